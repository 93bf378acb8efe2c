"""Tests for backoffice_recon.matching.strategies."""

from decimal import Decimal

import pytest

from backoffice_recon.matching.strategies import evaluate_rule, match_text
from backoffice_recon.models import (
    ConditionField,
    ConditionOperator,
    MatchType,
    RuleCondition,
    TransactionType,
)

from factories import make_rule, make_transaction


class TestMatchText:
    def test_empty_pattern_matches(self):
        assert match_text("anything", None)
        assert match_text("anything", "")

    def test_case_insensitive_substring(self):
        assert match_text("Monthly RENT March", "rent")
        assert not match_text("Monthly rent", "utilities")

    def test_regex(self):
        assert match_text("INV-2024-0042", r"inv-\d{4}-\d+", as_regex=True)

    def test_invalid_regex_never_matches(self):
        assert match_text("anything [", "[unclosed", as_regex=True) is False


class TestVendorAndStaff:
    def test_vendor_id_must_match(self):
        rule = make_rule("r", MatchType.VENDOR, match_vendor_id="v1")

        assert evaluate_rule(rule, make_transaction("t1", 10, vendor_id="v1"))
        assert not evaluate_rule(rule, make_transaction("t2", 10, vendor_id="v2"))
        assert not evaluate_rule(rule, make_transaction("t3", 10))

    def test_vendor_with_description_pattern(self):
        rule = make_rule(
            "r", MatchType.VENDOR, match_vendor_id="v1", match_description_pattern="^DD "
        )

        assert evaluate_rule(rule, make_transaction("t1", 10, vendor_id="v1", description="dd rent"))
        assert not evaluate_rule(
            rule, make_transaction("t2", 10, vendor_id="v1", description="card rent")
        )

    def test_vendor_rule_without_vendor_never_matches(self):
        rule = make_rule("r", MatchType.VENDOR)

        assert not evaluate_rule(rule, make_transaction("t1", 10))

    def test_staff_id_must_match(self):
        rule = make_rule("r", MatchType.STAFF, match_staff_id="coach-1")

        assert evaluate_rule(rule, make_transaction("t1", 10, staff_id="coach-1"))
        assert not evaluate_rule(rule, make_transaction("t2", 10, staff_id="coach-2"))


class TestCounterParty:
    @pytest.mark.parametrize(
        "party,pattern",
        [("TESCO STORES 3321", "tesco"), ("Tesco", "TESCO STORES"), ("British Gas", "british gas")],
    )
    def test_containment_either_way(self, party, pattern):
        rule = make_rule("r", MatchType.COUNTER_PARTY, match_counter_party_pattern=pattern)

        assert evaluate_rule(rule, make_transaction("t", 10, raw_party=party))

    def test_unrelated_party(self):
        rule = make_rule("r", MatchType.COUNTER_PARTY, match_counter_party_pattern="tesco")

        assert not evaluate_rule(rule, make_transaction("t", 10, raw_party="Sainsbury's"))

    def test_empty_pattern_or_party_never_matches(self):
        assert not evaluate_rule(
            make_rule("r", MatchType.COUNTER_PARTY), make_transaction("t", 10, raw_party="Tesco")
        )
        assert not evaluate_rule(
            make_rule("r", MatchType.COUNTER_PARTY, match_counter_party_pattern="tesco"),
            make_transaction("t", 10),
        )


class TestDescriptionRegexAmount:
    def test_description_substring(self):
        rule = make_rule("r", MatchType.DESCRIPTION, match_description_pattern="Rent")

        assert evaluate_rule(rule, make_transaction("t", 10, description="MONTHLY RENT"))
        assert not evaluate_rule(rule, make_transaction("t", 10, description="Utilities"))

    def test_description_pattern_is_literal(self):
        rule = make_rule("r", MatchType.DESCRIPTION, match_description_pattern="a.c")

        assert not evaluate_rule(rule, make_transaction("t", 10, description="abc"))

    def test_regex(self):
        rule = make_rule("r", MatchType.REGEX, match_description_pattern=r"^ref\s*\d+$")

        assert evaluate_rule(rule, make_transaction("t", 10, description="REF 123"))
        assert not evaluate_rule(rule, make_transaction("t", 10, description="REF abc"))

    def test_amount_range_is_inclusive(self):
        rule = make_rule(
            "r",
            MatchType.AMOUNT,
            match_amount_min=Decimal("10.00"),
            match_amount_max=Decimal("20.00"),
        )

        assert evaluate_rule(rule, make_transaction("t", "10.00"))
        assert evaluate_rule(rule, make_transaction("t", "20.00"))
        assert not evaluate_rule(rule, make_transaction("t", "20.01"))
        assert not evaluate_rule(rule, make_transaction("t", "9.99"))

    def test_amount_open_bounds(self):
        at_least = make_rule("r", MatchType.AMOUNT, match_amount_min=Decimal("100"))
        at_most = make_rule("r", MatchType.AMOUNT, match_amount_max=Decimal("0"))

        assert evaluate_rule(at_least, make_transaction("t", 5000))
        assert evaluate_rule(at_most, make_transaction("t", 0))
        assert not evaluate_rule(at_most, make_transaction("t", "0.01"))

    def test_amount_uses_absolute_value(self):
        rule = make_rule("r", MatchType.AMOUNT, match_amount_min=Decimal("5"))

        assert evaluate_rule(rule, make_transaction("t", "-7.50"))


class TestComposite:
    def test_all_set_criteria_must_hold(self):
        rule = make_rule(
            "r",
            MatchType.COMPOSITE,
            match_vendor_id="v1",
            match_description_pattern="rent",
            match_amount_min=Decimal("500"),
        )

        good = make_transaction("t1", 900, vendor_id="v1", description="Rent March")
        wrong_vendor = make_transaction("t2", 900, vendor_id="v2", description="Rent March")
        too_small = make_transaction("t3", 100, vendor_id="v1", description="Rent March")

        assert evaluate_rule(rule, good)
        assert not evaluate_rule(rule, wrong_vendor)
        assert not evaluate_rule(rule, too_small)


class TestConditions:
    def _rule(self, *conditions):
        return make_rule("r", MatchType.CONDITIONS, conditions=list(conditions))

    def test_empty_conditions_never_match(self):
        assert not evaluate_rule(self._rule(), make_transaction("t", 10))

    def test_all_conditions_must_hold(self):
        rule = self._rule(
            RuleCondition(ConditionField.COUNTER_PARTY, ConditionOperator.CONTAINS, "gas"),
            RuleCondition(ConditionField.AMOUNT, ConditionOperator.GREATER_THAN, "50"),
        )

        assert evaluate_rule(rule, make_transaction("t", 80, raw_party="British Gas"))
        assert not evaluate_rule(rule, make_transaction("t", 20, raw_party="British Gas"))

    @pytest.mark.parametrize(
        "operator,value,expected",
        [
            (ConditionOperator.CONTAINS, "rent", True),
            (ConditionOperator.NOT_CONTAINS, "rent", False),
            (ConditionOperator.EQUALS, "monthly rent", True),
            (ConditionOperator.STARTS_WITH, "MONTHLY", True),
            (ConditionOperator.ENDS_WITH, "month", False),
            (ConditionOperator.REGEX, r"rent$", True),
        ],
    )
    def test_text_operators(self, operator, value, expected):
        rule = self._rule(RuleCondition(ConditionField.REFERENCE, operator, value))

        assert evaluate_rule(rule, make_transaction("t", 10, description="Monthly Rent")) is expected

    def test_amount_between(self):
        rule = self._rule(
            RuleCondition(ConditionField.AMOUNT, ConditionOperator.BETWEEN, "10", Decimal("20"))
        )

        assert evaluate_rule(rule, make_transaction("t", 15))
        assert not evaluate_rule(rule, make_transaction("t", 25))

    def test_amount_equals_and_less_than(self):
        equals = self._rule(RuleCondition(ConditionField.AMOUNT, ConditionOperator.EQUALS, "42.00"))
        less = self._rule(RuleCondition(ConditionField.AMOUNT, ConditionOperator.LESS_THAN, "5"))

        assert evaluate_rule(equals, make_transaction("t", 42))
        assert evaluate_rule(less, make_transaction("t", "4.99"))

    def test_invalid_number_fails(self):
        rule = self._rule(
            RuleCondition(ConditionField.AMOUNT, ConditionOperator.GREATER_THAN, "lots")
        )

        assert not evaluate_rule(rule, make_transaction("t", 100))

    def test_inapplicable_operator_is_ignored(self):
        rule = self._rule(RuleCondition(ConditionField.AMOUNT, ConditionOperator.CONTAINS, "1"))

        assert evaluate_rule(rule, make_transaction("t", 99))

    def test_transaction_type_condition(self):
        rule = self._rule(
            RuleCondition(ConditionField.TRANSACTION_TYPE, ConditionOperator.EQUALS, "income")
        )

        assert evaluate_rule(rule, make_transaction("t", 10, type=TransactionType.INCOME))
        assert not evaluate_rule(rule, make_transaction("t", 10, type=TransactionType.EXPENSE))


class TestTransactionTypeFilter:
    def test_type_filter_applies_before_strategy(self):
        rule = make_rule(
            "r",
            MatchType.DESCRIPTION,
            match_description_pattern="stripe",
            match_transaction_type=TransactionType.INCOME,
        )

        assert evaluate_rule(
            rule, make_transaction("t", 10, description="STRIPE", type=TransactionType.INCOME)
        )
        assert not evaluate_rule(
            rule, make_transaction("t", 10, description="STRIPE", type=TransactionType.EXPENSE)
        )
