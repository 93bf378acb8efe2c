"""Data models for bank transactions, reconciliation rules and pending matches."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class TransactionType(Enum):
    """Direction of a bank transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class ReconciliationStatus(Enum):
    """Where a bank transaction is in the categorisation workflow."""

    UNRECONCILED = "unreconciled"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    RECONCILED = "reconciled"


class MatchType(Enum):
    """How a reconciliation rule decides whether a transaction matches."""

    VENDOR = "vendor"
    STAFF = "staff"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    REGEX = "regex"
    COMPOSITE = "composite"
    COUNTER_PARTY = "counter_party"
    CONDITIONS = "conditions"


class ConditionField(Enum):
    """Transaction field a dynamic rule condition inspects."""

    COUNTER_PARTY = "counter_party"
    REFERENCE = "reference"
    AMOUNT = "amount"
    TRANSACTION_TYPE = "transaction_type"


class ConditionOperator(Enum):
    """Comparison applied by a dynamic rule condition."""

    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    EQUALS = "equals"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX = "regex"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class MatchStatus(Enum):
    """Review state of a pending match. Approved and rejected are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class Transaction:
    """A bank transaction imported from the bank statement."""

    id: str
    user_id: str
    date: date
    amount: Decimal
    type: TransactionType
    description: str = ""
    raw_party: Optional[str] = None
    vendor_id: Optional[str] = None
    staff_id: Optional[str] = None
    category_id: Optional[str] = None
    notes: Optional[str] = None
    reconciliation_status: ReconciliationStatus = ReconciliationStatus.UNRECONCILED
    confirmed: bool = False
    matched_rule_id: Optional[str] = None
    reconciled_at: Optional[datetime] = None
    reconciled_by: Optional[str] = None
    bank_category: Optional[str] = None
    import_hash: Optional[str] = None

    @property
    def is_reconciled(self) -> bool:
        """Whether a human (or earlier approval) has already settled this row."""
        return self.confirmed or self.reconciliation_status == ReconciliationStatus.RECONCILED


@dataclass
class RuleCondition:
    """One clause of a ``conditions`` rule. All clauses must hold."""

    field: ConditionField
    operator: ConditionOperator
    value: Any
    value2: Optional[Decimal] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "field": self.field.value,
            "operator": self.operator.value,
            "value": str(self.value),
        }
        if self.value2 is not None:
            data["value2"] = str(self.value2)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleCondition":
        value2 = data.get("value2")
        return cls(
            field=ConditionField(data["field"]),
            operator=ConditionOperator(data["operator"]),
            value=data.get("value", ""),
            value2=Decimal(str(value2)) if value2 not in (None, "") else None,
        )


@dataclass
class ReconciliationRule:
    """
    Stored matching criteria and the categorisation it suggests.

    Lower ``priority`` numbers are evaluated first.
    """

    id: str
    user_id: str
    name: str
    match_type: MatchType
    priority: int = 100
    is_active: bool = True
    description: Optional[str] = None
    conditions: list[RuleCondition] = field(default_factory=list)

    # Match criteria
    match_vendor_id: Optional[str] = None
    match_staff_id: Optional[str] = None
    match_description_pattern: Optional[str] = None
    match_counter_party_pattern: Optional[str] = None
    match_amount_min: Optional[Decimal] = None
    match_amount_max: Optional[Decimal] = None
    match_transaction_type: Optional[TransactionType] = None

    # Suggested actions
    action_category_id: Optional[str] = None
    action_staff_id: Optional[str] = None
    action_vendor_id: Optional[str] = None
    action_notes_template: Optional[str] = None
    requires_approval: bool = True

    # Usage counters
    match_count: int = 0
    last_matched_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class PendingMatch:
    """A rule-suggested categorisation awaiting human review."""

    id: str
    user_id: str
    transaction_id: str
    rule_id: str
    suggested_category_id: Optional[str] = None
    suggested_staff_id: Optional[str] = None
    suggested_vendor_id: Optional[str] = None
    suggested_notes: Optional[str] = None
    match_confidence: float = 1.0
    status: MatchStatus = MatchStatus.PENDING
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None


@dataclass(frozen=True)
class RulesEngineResult:
    """Counts from one run of the rules engine."""

    processed: int = 0
    matched: int = 0
    already_reconciled: int = 0


@dataclass
class RulePreview:
    """Transactions a rule would match, without creating pending matches."""

    match_count: int = 0
    sample_matches: list[Transaction] = field(default_factory=list)


@dataclass(frozen=True)
class BulkReviewResult:
    """Outcome of approving or rejecting several pending matches."""

    success: bool
    succeeded: int
    failed: int
