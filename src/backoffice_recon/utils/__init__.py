"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    ConfigurationError,
    StoreError,
    AuthenticationError,
    NotFoundError,
    InvalidTransitionError,
    ParseError,
    BankStatementParseError,
    SettlementParseError,
    ReportGenerationError,
    AIProviderError,
)
from .logging_config import setup_logging, level_from_name

__all__ = [
    "ReconciliationError",
    "ConfigurationError",
    "StoreError",
    "AuthenticationError",
    "NotFoundError",
    "InvalidTransitionError",
    "ParseError",
    "BankStatementParseError",
    "SettlementParseError",
    "ReportGenerationError",
    "AIProviderError",
    "setup_logging",
    "level_from_name",
]
