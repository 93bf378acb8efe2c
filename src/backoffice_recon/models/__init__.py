"""Data models for reconciliation."""

from .tenant import TenantContext
from .fees import (
    FeeType,
    FeeCalculation,
    FeeTransaction,
    FeeBucket,
    BatchFeeSummary,
    ReconciliationCheck,
)
from .settlement import (
    BankDeposit,
    Settlement,
    SettlementMatch,
    ReconciliationResult,
    ManualReconcileResult,
    UnreconciledSummary,
    ReconciliationStats,
)
from .rules import (
    Transaction,
    TransactionType,
    ReconciliationStatus,
    MatchType,
    ConditionField,
    ConditionOperator,
    RuleCondition,
    ReconciliationRule,
    MatchStatus,
    PendingMatch,
    RulesEngineResult,
    RulePreview,
    BulkReviewResult,
)
from .membership import (
    LogType,
    LogStatus,
    Member,
    Membership,
    Sale,
    ApiLogEntry,
    WebhookEvent,
    WebhookResponse,
)

__all__ = [
    "TenantContext",
    "FeeType",
    "FeeCalculation",
    "FeeTransaction",
    "FeeBucket",
    "BatchFeeSummary",
    "ReconciliationCheck",
    "BankDeposit",
    "Settlement",
    "SettlementMatch",
    "ReconciliationResult",
    "ManualReconcileResult",
    "UnreconciledSummary",
    "ReconciliationStats",
    "Transaction",
    "TransactionType",
    "ReconciliationStatus",
    "MatchType",
    "ConditionField",
    "ConditionOperator",
    "RuleCondition",
    "ReconciliationRule",
    "MatchStatus",
    "PendingMatch",
    "RulesEngineResult",
    "RulePreview",
    "BulkReviewResult",
    "LogType",
    "LogStatus",
    "Member",
    "Membership",
    "Sale",
    "ApiLogEntry",
    "WebhookEvent",
    "WebhookResponse",
]
