"""Data models for payment processor fee calculation."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class FeeType(Enum):
    """Fee category a transaction was charged under."""

    NONE = "none"
    BACS = "bacs"
    CARD_PRESENT = "card-present"
    CARD_NOT_PRESENT = "card-not-present"


@dataclass(frozen=True)
class FeeCalculation:
    """Fee charged for a single transaction. Derived, never persisted."""

    fee: Decimal
    rate: Decimal
    fixed_fee: Decimal
    fee_type: FeeType

    @property
    def percentage_fee(self) -> Decimal:
        return self.fee - self.fixed_fee


@dataclass
class FeeTransaction:
    """A processor payment as seen by the fee calculator."""

    amount: Decimal
    payment_type: str
    entry_method: str = ""


@dataclass
class FeeBucket:
    """Count and fee total for one fee type."""

    count: int = 0
    fees: Decimal = Decimal("0")


@dataclass
class BatchFeeSummary:
    """Aggregated fees for a batch of transactions."""

    total_fees: Decimal = Decimal("0")
    total_fixed_fees: Decimal = Decimal("0")
    total_percentage_fees: Decimal = Decimal("0")
    breakdown: dict[FeeType, FeeBucket] = field(
        default_factory=lambda: {
            FeeType.CARD_PRESENT: FeeBucket(),
            FeeType.CARD_NOT_PRESENT: FeeBucket(),
            FeeType.BACS: FeeBucket(),
        }
    )
    skipped_count: int = 0

    @property
    def charged_count(self) -> int:
        return sum(bucket.count for bucket in self.breakdown.values())


@dataclass(frozen=True)
class ReconciliationCheck:
    """Outcome of comparing a processor net amount with a bank deposit."""

    matched: bool
    variance: Decimal
