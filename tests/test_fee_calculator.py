"""Tests for backoffice_recon.fees.calculator."""

from decimal import Decimal, ROUND_HALF_UP

import pytest

from backoffice_recon.config import FeeConfig, FeeRate
from backoffice_recon.fees import calculate_batch_fees, calculate_fee, check_reconciliation
from backoffice_recon.models import FeeTransaction, FeeType


def _round(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class TestCalculateFee:
    """Test cases for single transaction pricing."""

    @pytest.mark.parametrize("payment_type", ["Cash", "cash", "OnAccount", "Account", "on-account"])
    def test_fee_free_payment_types(self, payment_type):
        calc = calculate_fee(Decimal("250.00"), payment_type, "Chip")

        assert calc.fee == Decimal("0")
        assert calc.fee_type == FeeType.NONE

    @pytest.mark.parametrize("amount", ["0", "0.01", "33.33", "49.99", "1234.56"])
    def test_direct_debit_fee(self, amount):
        calc = calculate_fee(Decimal(amount), "DirectDebit", "")

        assert calc.fee == _round(Decimal(amount) * Decimal("0.01") + Decimal("0.20"))
        assert calc.fee_type == FeeType.BACS

    def test_bacs_entry_method_uses_bacs_rate(self):
        calc = calculate_fee(Decimal("100.00"), "CreditCard", "BACS")

        assert calc.fee == Decimal("1.20")
        assert calc.fixed_fee == Decimal("0.20")

    @pytest.mark.parametrize("entry_method", ["CardPresent", "card-present", "Chip", "SWIPE"])
    def test_card_present_has_no_fixed_fee(self, entry_method):
        calc = calculate_fee(Decimal("100.00"), "CreditCard", entry_method)

        assert calc.fee == Decimal("1.75")
        assert calc.fixed_fee == Decimal("0")
        assert calc.fee_type == FeeType.CARD_PRESENT

    def test_card_not_present_is_default(self):
        calc = calculate_fee(Decimal("100.00"), "CreditCard", "Online")

        assert calc.fee == Decimal("2.19")
        assert calc.percentage_fee == Decimal("1.99")
        assert calc.fee_type == FeeType.CARD_NOT_PRESENT

    def test_missing_tags_are_card_not_present(self):
        calc = calculate_fee(Decimal("10.00"), None, None)

        assert calc.fee_type == FeeType.CARD_NOT_PRESENT
        assert calc.fee == Decimal("0.40")

    def test_cash_wins_over_card_present_entry(self):
        assert calculate_fee(Decimal("10"), "cash", "chip").fee_type == FeeType.NONE

    def test_rounds_half_up(self):
        # 12.50 * 1.75% = 0.21875
        assert calculate_fee(Decimal("12.50"), "CreditCard", "Chip").fee == Decimal("0.22")

    def test_accepts_float_and_string_amounts(self):
        assert calculate_fee(100.0, "CreditCard", "Chip").fee == Decimal("1.75")
        assert calculate_fee("100", "CreditCard", "Chip").fee == Decimal("1.75")

    def test_custom_rates(self):
        rates = FeeConfig(card_present=FeeRate(rate=Decimal("0.02"), fixed_fee=Decimal("0.10")))

        calc = calculate_fee(Decimal("50.00"), "CreditCard", "Chip", rates)

        assert calc.fee == Decimal("1.10")


class TestCalculateBatchFees:
    """Test cases for batch fee totals."""

    def test_fixed_fee_charged_per_transaction(self):
        txns = [FeeTransaction(Decimal("10.00"), "CreditCard") for _ in range(3)]

        summary = calculate_batch_fees(txns)

        assert summary.total_fixed_fees == Decimal("0.60")
        assert summary.total_fees == Decimal("1.20")
        assert summary.breakdown[FeeType.CARD_NOT_PRESENT].count == 3

    def test_total_equals_sum_of_individual_fees(self):
        txns = [
            FeeTransaction(Decimal("12.34"), "CreditCard", "Chip"),
            FeeTransaction(Decimal("56.78"), "CreditCard", "Online"),
            FeeTransaction(Decimal("90.12"), "DirectDebit"),
            FeeTransaction(Decimal("3.33"), "CreditCard", "Swipe"),
            FeeTransaction(Decimal("45.00"), "Cash"),
        ]

        summary = calculate_batch_fees(txns)
        individual = sum(
            calculate_fee(t.amount, t.payment_type, t.entry_method).fee for t in txns
        )

        assert summary.total_fees == individual
        assert summary.total_fees == summary.total_fixed_fees + summary.total_percentage_fees

    def test_fee_free_transactions_are_skipped(self):
        txns = [
            FeeTransaction(Decimal("20.00"), "Cash"),
            FeeTransaction(Decimal("20.00"), "OnAccount"),
            FeeTransaction(Decimal("100.00"), "CreditCard", "Chip"),
        ]

        summary = calculate_batch_fees(txns)

        assert summary.skipped_count == 2
        assert summary.charged_count == 1
        assert summary.total_fees == Decimal("1.75")

    def test_breakdown_by_fee_type(self):
        txns = [
            FeeTransaction(Decimal("100.00"), "CreditCard", "Chip"),
            FeeTransaction(Decimal("100.00"), "CreditCard", "Chip"),
            FeeTransaction(Decimal("100.00"), "DirectDebit"),
        ]

        summary = calculate_batch_fees(txns)

        assert summary.breakdown[FeeType.CARD_PRESENT].count == 2
        assert summary.breakdown[FeeType.CARD_PRESENT].fees == Decimal("3.50")
        assert summary.breakdown[FeeType.BACS].fees == Decimal("1.20")
        assert summary.breakdown[FeeType.CARD_NOT_PRESENT].count == 0

    def test_empty_batch(self):
        summary = calculate_batch_fees([])

        assert summary.total_fees == Decimal("0")
        assert summary.charged_count == 0


class TestCheckReconciliation:
    """Test cases for the net amount to deposit comparison."""

    def test_within_margin(self):
        check = check_reconciliation(Decimal("100.00"), Decimal("100.03"))

        assert check.matched is True
        assert check.variance == Decimal("0.03")

    def test_margin_is_inclusive(self):
        assert check_reconciliation(Decimal("100.00"), Decimal("99.95")).matched is True

    def test_outside_margin(self):
        check = check_reconciliation(Decimal("100.00"), Decimal("100.06"))

        assert check.matched is False
        assert check.variance == Decimal("0.06")

    def test_custom_margin(self):
        assert check_reconciliation(Decimal("100"), Decimal("101"), margin=Decimal("1")).matched
