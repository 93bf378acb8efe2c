"""Tests for backoffice_recon.config."""

from decimal import Decimal
import logging

import pytest
import yaml

from backoffice_recon.config import generate_default_config, load_config
from backoffice_recon.utils.exceptions import ConfigurationError
from backoffice_recon.utils.logging_config import LOGGER_NAME, level_from_name, setup_logging


@pytest.fixture(autouse=True)
def no_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)


class TestLoadConfig:
    """Test cases for configuration loading."""

    def test_defaults(self):
        config = load_config()

        assert config.settlements.window_days == 3
        assert config.settlements.variance_margin == Decimal("0.05")
        assert config.fees.card_not_present.rate == Decimal("0.0199")
        assert config.fees.card_not_present.fixed_fee == Decimal("0.20")
        assert config.fees.card_present.fixed_fee == Decimal("0")
        assert config.fees.bacs.rate == Decimal("0.01")
        assert config.rules.batch_size == 1000
        assert config.config_file_path is None

    def test_yaml_is_merged_over_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "settlements": {"variance_margin": "0.10"},
                    "input": {"bank": {"date_format": "%Y-%m-%d"}},
                    "logging": {"level": "DEBUG"},
                }
            )
        )

        config = load_config(path)

        assert config.settlements.variance_margin == Decimal("0.10")
        assert config.settlements.window_days == 3
        assert config.input.bank["date_format"] == "%Y-%m-%d"
        assert config.input.bank["column_mappings"]["amount"] == "Amount (GBP)"
        assert config.logging.level == "DEBUG"
        assert config.config_file_path == str(path)

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config.config_file_path is None

    def test_database_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://recon@db/backoffice")

        assert load_config().storage.database_url == "postgresql://recon@db/backoffice"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("settlements: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("settlements:\n  window_days: soon\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(path)

    def test_generated_file_round_trips(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"

        generate_default_config(path)
        config = load_config(path)

        assert path.read_text().startswith("# Back-office reconciliation configuration")
        assert config.fees.card_present.rate == Decimal("0.0175")
        assert config.output.sheets.summary.name == "Summary"


class TestLevelFromName:
    @pytest.mark.parametrize(
        "name,level",
        [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("chatty", logging.INFO)],
    )
    def test_level_from_name(self, name, level):
        assert level_from_name(name) == level


class TestSetupLogging:
    """Test cases for logging setup."""

    @pytest.fixture(autouse=True)
    def reset_handlers(self):
        yield
        logger = logging.getLogger(LOGGER_NAME)
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []

    def test_configured_level(self):
        logger = setup_logging("WARNING")

        assert logger.name == LOGGER_NAME
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_verbose_overrides_level(self):
        logger = setup_logging("ERROR", verbose=True)

        assert logger.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_repeat_calls_replace_handlers(self):
        setup_logging()
        logger = setup_logging()

        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "recon.log"

        logger = setup_logging(log_file=str(log_file))
        logger.info("imported")

        assert len(logger.handlers) == 2
        assert log_file.exists()
