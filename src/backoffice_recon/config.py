"""Configuration loader and validation for back-office reconciliation settings."""

from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
import logging
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class FeeRate(BaseModel):
    """Percentage rate plus per-transaction fixed fee."""

    rate: Decimal
    fixed_fee: Decimal = Decimal("0")


class FeeConfig(BaseModel):
    """UK merchant rates applied by the fee calculator."""

    card_not_present: FeeRate = Field(
        default_factory=lambda: FeeRate(rate=Decimal("0.0199"), fixed_fee=Decimal("0.20"))
    )
    card_present: FeeRate = Field(
        default_factory=lambda: FeeRate(rate=Decimal("0.0175"), fixed_fee=Decimal("0"))
    )
    bacs: FeeRate = Field(
        default_factory=lambda: FeeRate(rate=Decimal("0.01"), fixed_fee=Decimal("0.20"))
    )


class SettlementConfig(BaseModel):
    """Configuration for settlement to bank deposit matching."""

    window_days: int = 3
    variance_margin: Decimal = Decimal("0.05")


class RulesConfig(BaseModel):
    """Configuration for the reconciliation rules engine."""

    batch_size: int = 1000
    default_priority: int = 100
    preview_limit: int = 100
    test_limit: int = 50
    sample_size: int = 20
    status_update_chunk: int = 100


class StorageConfig(BaseModel):
    """Configuration for the relational store."""

    database_url: str = "sqlite:///backoffice.db"
    echo: bool = False


class AIConfig(BaseModel):
    """Configuration for the generative AI provider."""

    enabled: bool = True
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024
    temperature: float = 0.0
    api_key_env: str = "ANTHROPIC_API_KEY"


class WebhookConfig(BaseModel):
    """Configuration for the membership platform webhook receiver."""

    source: str = "mindbody"


class InputConfig(BaseModel):
    """Configuration for input file parsing."""

    bank: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "date_format": "%d/%m/%Y",
            "column_mappings": {
                "date": "Date",
                "counter_party": "Counter Party",
                "reference": "Reference",
                "type": "Type",
                "amount": "Amount (GBP)",
                "balance": "Balance (GBP)",
                "spending_category": "Spending Category",
            },
        }
    )
    settlements: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "date_format": "%Y-%m-%d",
            "column_mappings": {
                "settlement_id": "Settlement ID",
                "date": "Settlement Date",
                "gross": "Gross",
                "fees": "Fees",
                "net": "Net",
                "transaction_count": "Transactions",
            },
        }
    )
    payments: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "column_mappings": {
                "amount": "Amount",
                "payment_type": "Payment Type",
                "entry_method": "Entry Method",
            },
        }
    )


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    unreconciled: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Unreconciled Settlements")
    )
    reconciled: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Reconciled Settlements")
    )
    fees: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Fee Breakdown"))
    pending_matches: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Pending Matches")
    )


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_report_{date}_{time}.xlsx"


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReconConfig(BaseModel):
    """Main configuration model for the back office."""

    fees: FeeConfig = Field(default_factory=FeeConfig)
    settlements: SettlementConfig = Field(default_factory=SettlementConfig)
    rules: RulesConfig = Field(default_factory=RulesConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    webhooks: WebhookConfig = Field(default_factory=WebhookConfig)
    input: InputConfig = Field(default_factory=InputConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return ReconConfig().model_dump(mode="json", exclude={"config_file_path"})


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    ``DATABASE_URL`` from the environment (or a ``.env`` file) overrides the
    configured store location.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation
    """
    load_dotenv()
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        config_dict["storage"]["database_url"] = database_url

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Back-office reconciliation configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
