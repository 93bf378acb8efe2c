"""Data models for settlement to bank deposit reconciliation."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class BankDeposit:
    """A deposit observed on the bank statement. Immutable once observed."""

    id: str
    amount: Decimal
    date: date
    description: Optional[str] = None


@dataclass
class Settlement:
    """
    A batch of payment processor funds expected to land as one bank deposit.

    Mutated once, when it is reconciled against a deposit.
    """

    settlement_id: str
    user_id: str
    settlement_date: date
    mb_net: Decimal
    transaction_count: int = 0
    gross: Optional[Decimal] = None
    fees: Optional[Decimal] = None

    # Reconciliation state
    reconciled: bool = False
    reconciled_at: Optional[datetime] = None
    bank_transaction_id: Optional[str] = None
    bank_amount: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    auto_reconciled: bool = False


@dataclass(frozen=True)
class SettlementMatch:
    """A candidate settlement scored against a bank deposit."""

    settlement_id: str
    settlement_date: date
    mb_net: Decimal
    bank_amount: Decimal
    variance: Decimal
    within_margin: bool
    transaction_count: int


@dataclass
class ReconciliationResult:
    """Result of searching settlements for a bank deposit."""

    bank_deposit: BankDeposit
    matches: list[SettlementMatch] = field(default_factory=list)
    auto_reconciled: bool = False
    reconciled_settlement_id: Optional[str] = None


@dataclass(frozen=True)
class ManualReconcileResult:
    """Outcome of a manual reconciliation write."""

    success: bool
    error: Optional[str] = None


@dataclass
class UnreconciledSummary:
    """Settlements still waiting for a bank deposit."""

    settlements: list[Settlement] = field(default_factory=list)
    total: int = 0
    total_value: Decimal = Decimal("0")


@dataclass(frozen=True)
class ReconciliationStats:
    """Reconciliation counters across all of a tenant's settlements."""

    total_reconciled: int = 0
    total_unreconciled: int = 0
    auto_reconciled_count: int = 0
    manual_reconciled_count: int = 0
    average_variance: Decimal = Decimal("0")
