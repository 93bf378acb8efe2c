"""Custom exceptions for the back-office reconciliation application."""


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class StoreError(ReconciliationError):
    """Error reading from or writing to the backing store."""

    pass


class AuthenticationError(ReconciliationError):
    """Operation attempted without an authenticated tenant."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(ReconciliationError):
    """Requested record does not exist for the tenant."""

    pass


class InvalidTransitionError(ReconciliationError):
    """Pending match is not in a state that allows the requested review."""

    pass


class ParseError(ReconciliationError):
    """Error parsing an import file."""

    pass


class BankStatementParseError(ParseError):
    """Error parsing a bank statement CSV."""

    pass


class SettlementParseError(ParseError):
    """Error parsing a payment processor settlement or payment CSV."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass


class AIProviderError(ReconciliationError):
    """Error returned by the generative AI provider."""

    pass
