"""
Rule evaluation strategies for the reconciliation rules engine.
Each strategy implements one rule match type.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Optional
import logging
import re

from ..models.rules import (
    ConditionField,
    ConditionOperator,
    MatchType,
    ReconciliationRule,
    RuleCondition,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)


def match_text(text: str, pattern: Optional[str], as_regex: bool = False) -> bool:
    """
    Case-insensitive text match used by several strategies.

    An empty pattern always matches. An invalid regular expression never
    matches.
    """
    if not pattern:
        return True

    if as_regex:
        try:
            return re.search(pattern, text, re.IGNORECASE) is not None
        except re.error:
            logger.warning(f"Invalid regex in rule pattern: {pattern!r}")
            return False

    return pattern.lower() in text.lower()


def _to_decimal(value) -> Optional[Decimal]:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


class RuleStrategy(ABC):
    """Abstract base class for rule match strategies."""

    @abstractmethod
    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        """
        Check whether a transaction satisfies a rule's criteria.

        Args:
            rule: Rule whose criteria are applied
            txn: Transaction being evaluated

        Returns:
            True if the rule matches
        """
        pass


class VendorStrategy(RuleStrategy):
    """Vendor id must match; a description pattern, if set, must also match."""

    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        if not rule.match_vendor_id or txn.vendor_id != rule.match_vendor_id:
            return False
        return match_text(txn.description, rule.match_description_pattern, as_regex=True)


class StaffStrategy(RuleStrategy):
    """Staff id must match; a description pattern, if set, must also match."""

    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        if not rule.match_staff_id or txn.staff_id != rule.match_staff_id:
            return False
        return match_text(txn.description, rule.match_description_pattern, as_regex=True)


class CounterPartyStrategy(RuleStrategy):
    """
    Bank counter party name match.

    Either string containing the other counts as a match, so "TESCO" matches
    "TESCO STORES 3321" and vice versa.
    """

    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        party = (txn.raw_party or "").lower()
        pattern = (rule.match_counter_party_pattern or "").lower()
        if not party or not pattern:
            return False
        return pattern in party or party in pattern


class DescriptionStrategy(RuleStrategy):
    """Case-insensitive substring match on the bank reference."""

    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        return match_text(txn.description, rule.match_description_pattern)


class RegexStrategy(RuleStrategy):
    """Case-insensitive regular expression match on the bank reference."""

    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        return match_text(txn.description, rule.match_description_pattern, as_regex=True)


class AmountStrategy(RuleStrategy):
    """Absolute amount within an inclusive range; either bound may be open."""

    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        return self.in_range(abs(txn.amount), rule.match_amount_min, rule.match_amount_max)

    @staticmethod
    def in_range(
        amount: Decimal, minimum: Optional[Decimal], maximum: Optional[Decimal]
    ) -> bool:
        if minimum is not None and amount < minimum:
            return False
        if maximum is not None and amount > maximum:
            return False
        return True


class CompositeStrategy(RuleStrategy):
    """Every criterion set on the rule must hold."""

    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        if rule.match_vendor_id and txn.vendor_id != rule.match_vendor_id:
            return False
        if rule.match_staff_id and txn.staff_id != rule.match_staff_id:
            return False
        if rule.match_description_pattern and not match_text(
            txn.description, rule.match_description_pattern, as_regex=True
        ):
            return False
        return AmountStrategy.in_range(
            abs(txn.amount), rule.match_amount_min, rule.match_amount_max
        )


class ConditionsStrategy(RuleStrategy):
    """
    Dynamic conditions built in the rule editor, combined with AND.

    A rule without conditions never matches. Operators that do not apply to
    a field (e.g. ``contains`` on an amount) are ignored.
    """

    TEXT_FIELDS = {ConditionField.COUNTER_PARTY, ConditionField.REFERENCE}

    def matches(self, rule: ReconciliationRule, txn: Transaction) -> bool:
        if not rule.conditions:
            return False
        return all(self._condition_holds(c, txn) for c in rule.conditions)

    def _condition_holds(self, cond: RuleCondition, txn: Transaction) -> bool:
        if cond.field == ConditionField.AMOUNT:
            return self._amount_holds(cond, abs(txn.amount))

        if cond.field == ConditionField.TRANSACTION_TYPE:
            wants_expense = str(cond.value).lower() == TransactionType.EXPENSE.value
            return (txn.type == TransactionType.EXPENSE) == wants_expense

        if cond.field not in self.TEXT_FIELDS:
            return True

        if cond.field == ConditionField.COUNTER_PARTY:
            field_value = (txn.raw_party or "").lower()
        else:
            field_value = txn.description.lower()
        return self._text_holds(cond, field_value)

    @staticmethod
    def _text_holds(cond: RuleCondition, field_value: str) -> bool:
        expected = str(cond.value).lower()
        op = cond.operator

        if op == ConditionOperator.CONTAINS:
            return expected in field_value
        if op == ConditionOperator.NOT_CONTAINS:
            return expected not in field_value
        if op == ConditionOperator.EQUALS:
            return field_value == expected
        if op == ConditionOperator.STARTS_WITH:
            return field_value.startswith(expected)
        if op == ConditionOperator.ENDS_WITH:
            return field_value.endswith(expected)
        if op == ConditionOperator.REGEX:
            return match_text(field_value, str(cond.value), as_regex=True)
        return True

    @staticmethod
    def _amount_holds(cond: RuleCondition, amount: Decimal) -> bool:
        op = cond.operator
        if op not in (
            ConditionOperator.EQUALS,
            ConditionOperator.GREATER_THAN,
            ConditionOperator.LESS_THAN,
            ConditionOperator.BETWEEN,
        ):
            return True

        expected = _to_decimal(cond.value)
        if expected is None:
            return False

        if op == ConditionOperator.EQUALS:
            return amount == expected
        if op == ConditionOperator.GREATER_THAN:
            return amount > expected
        if op == ConditionOperator.LESS_THAN:
            return amount < expected

        upper = _to_decimal(cond.value2) if cond.value2 is not None else expected
        if upper is None:
            return False
        return expected <= amount <= upper


STRATEGIES: dict[MatchType, RuleStrategy] = {
    MatchType.VENDOR: VendorStrategy(),
    MatchType.STAFF: StaffStrategy(),
    MatchType.COUNTER_PARTY: CounterPartyStrategy(),
    MatchType.DESCRIPTION: DescriptionStrategy(),
    MatchType.REGEX: RegexStrategy(),
    MatchType.AMOUNT: AmountStrategy(),
    MatchType.COMPOSITE: CompositeStrategy(),
    MatchType.CONDITIONS: ConditionsStrategy(),
}


def evaluate_rule(rule: ReconciliationRule, txn: Transaction) -> bool:
    """
    Check whether a transaction satisfies a rule.

    The rule's transaction type filter (income/expense) is applied before
    the match type strategy.
    """
    if rule.match_transaction_type and rule.match_transaction_type != txn.type:
        return False

    strategy = STRATEGIES.get(rule.match_type)
    if strategy is None:
        return False
    return strategy.matches(rule, txn)
