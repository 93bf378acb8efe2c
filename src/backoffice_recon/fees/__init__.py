"""Payment processor fee calculation."""

from .calculator import (
    calculate_fee,
    calculate_batch_fees,
    check_reconciliation,
    round_currency,
    to_decimal,
)

__all__ = [
    "calculate_fee",
    "calculate_batch_fees",
    "check_reconciliation",
    "round_currency",
    "to_decimal",
]
