"""Settlement matching, reconciliation rules and the approval queue."""

from .settlements import SettlementMatcher
from .engine import RulesEngine
from .approvals import ApprovalQueue
from .strategies import (
    RuleStrategy,
    VendorStrategy,
    StaffStrategy,
    CounterPartyStrategy,
    DescriptionStrategy,
    RegexStrategy,
    AmountStrategy,
    CompositeStrategy,
    ConditionsStrategy,
    evaluate_rule,
)

__all__ = [
    "SettlementMatcher",
    "RulesEngine",
    "ApprovalQueue",
    "RuleStrategy",
    "VendorStrategy",
    "StaffStrategy",
    "CounterPartyStrategy",
    "DescriptionStrategy",
    "RegexStrategy",
    "AmountStrategy",
    "CompositeStrategy",
    "ConditionsStrategy",
    "evaluate_rule",
]
