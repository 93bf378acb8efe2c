"""Tests for backoffice_recon.matching.settlements."""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from backoffice_recon.config import SettlementConfig
from backoffice_recon.matching import SettlementMatcher
from backoffice_recon.models import BankDeposit
from backoffice_recon.utils.exceptions import StoreError

from factories import make_settlement

D = date(2024, 3, 10)


def deposit(amount, on=D, deposit_id="bank-1"):
    return BankDeposit(id=deposit_id, amount=Decimal(str(amount)), date=on)


@pytest.fixture
def matcher(store):
    return SettlementMatcher(store)


class TestFindSettlementMatches:
    """Test cases for automatic settlement matching."""

    def test_single_in_margin_match_is_auto_reconciled(self, store, matcher, tenant):
        store.upsert_settlements([make_settlement("S1", D, "100.00")])

        result = matcher.find_settlement_matches(tenant, deposit("100.03", on=D + timedelta(days=2)))

        assert len(result.matches) == 1
        assert result.matches[0].variance == Decimal("0.03")
        assert result.matches[0].within_margin is True
        assert result.auto_reconciled is True
        assert result.reconciled_settlement_id == "S1"

        stored = store.get_settlement("user-1", "S1")
        assert stored.reconciled is True
        assert stored.auto_reconciled is True
        assert stored.bank_transaction_id == "bank-1"
        assert stored.bank_amount == Decimal("100.03")
        assert stored.variance == Decimal("0.03")
        assert stored.reconciled_at is not None

    def test_two_in_margin_matches_are_left_for_a_human(self, store, matcher, tenant):
        store.upsert_settlements(
            [
                make_settlement("S1", D - timedelta(days=1), "100.04"),
                make_settlement("S2", D - timedelta(days=2), "100.01"),
            ]
        )

        result = matcher.find_settlement_matches(tenant, deposit("100.00"))

        assert result.auto_reconciled is False
        assert result.reconciled_settlement_id is None
        assert [m.settlement_id for m in result.matches] == ["S2", "S1"]
        assert [m.variance for m in result.matches] == [Decimal("0.01"), Decimal("0.04")]
        assert not store.get_settlement("user-1", "S1").reconciled
        assert not store.get_settlement("user-1", "S2").reconciled

    def test_identical_variances_are_not_tie_broken(self, store, matcher, tenant):
        store.upsert_settlements(
            [make_settlement("S1", D, "50.00"), make_settlement("S2", D - timedelta(days=1), "50.00")]
        )

        result = matcher.find_settlement_matches(tenant, deposit("50.00"))

        assert result.auto_reconciled is False
        assert len(result.matches) == 2

    def test_settlement_outside_window_is_ignored(self, store, matcher, tenant):
        store.upsert_settlements([make_settlement("OLD", D - timedelta(days=4), "100.00")])

        result = matcher.find_settlement_matches(tenant, deposit("100.00"))

        assert result.matches == []
        assert result.auto_reconciled is False

    def test_window_bounds_are_inclusive(self, store, matcher, tenant):
        store.upsert_settlements(
            [
                make_settlement("EDGE", D - timedelta(days=3), "10.00"),
                make_settlement("SAME_DAY", D, "20.00"),
                make_settlement("FUTURE", D + timedelta(days=1), "10.00"),
            ]
        )

        result = matcher.find_settlement_matches(tenant, deposit("500.00"))

        assert {m.settlement_id for m in result.matches} == {"EDGE", "SAME_DAY"}

    def test_out_of_margin_candidates_are_returned_sorted(self, store, matcher, tenant):
        store.upsert_settlements(
            [
                make_settlement("FAR", D, "90.00"),
                make_settlement("NEAR", D, "99.00"),
                make_settlement("MID", D, "95.00"),
            ]
        )

        result = matcher.find_settlement_matches(tenant, deposit("100.00"))

        assert [m.settlement_id for m in result.matches] == ["NEAR", "MID", "FAR"]
        assert not any(m.within_margin for m in result.matches)
        assert result.auto_reconciled is False

    def test_one_in_margin_among_others_is_auto_reconciled(self, store, matcher, tenant):
        store.upsert_settlements(
            [make_settlement("S1", D, "100.02"), make_settlement("S2", D, "120.00")]
        )

        result = matcher.find_settlement_matches(tenant, deposit("100.00"))

        assert result.auto_reconciled is True
        assert result.reconciled_settlement_id == "S1"
        assert len(result.matches) == 2

    def test_reconciled_settlements_are_excluded(self, store, matcher, tenant):
        store.upsert_settlements([make_settlement("S1", D, "100.00", reconciled=True)])

        assert matcher.find_settlement_matches(tenant, deposit("100.00")).matches == []

    def test_other_tenants_settlements_are_invisible(self, store, matcher, tenant):
        store.upsert_settlements([make_settlement("S1", D, "100.00", user_id="user-2")])

        assert matcher.find_settlement_matches(tenant, deposit("100.00")).matches == []

    def test_unauthenticated_caller_gets_empty_result(self, store, matcher, anonymous):
        store.upsert_settlements([make_settlement("S1", D, "100.00")])

        result = matcher.find_settlement_matches(anonymous, deposit("100.00"))

        assert result.matches == []
        assert result.auto_reconciled is False
        assert not store.get_settlement("user-1", "S1").reconciled

    def test_second_call_after_auto_reconcile_has_no_side_effects(self, store, matcher, tenant):
        store.upsert_settlements([make_settlement("S1", D, "100.00")])

        first = matcher.find_settlement_matches(tenant, deposit("100.00"))
        second = matcher.find_settlement_matches(tenant, deposit("100.00"))

        assert first.auto_reconciled is True
        assert second.matches == []
        assert second.auto_reconciled is False

    def test_repeated_ambiguous_calls_return_same_matches(self, store, matcher, tenant):
        store.upsert_settlements(
            [make_settlement("S1", D, "100.01"), make_settlement("S2", D, "99.98")]
        )

        first = matcher.find_settlement_matches(tenant, deposit("100.00"))
        second = matcher.find_settlement_matches(tenant, deposit("100.00"))

        assert first.matches == second.matches

    def test_custom_window_and_margin(self, store, tenant):
        matcher = SettlementMatcher(
            store, SettlementConfig(window_days=5, variance_margin=Decimal("1.00"))
        )
        store.upsert_settlements([make_settlement("S1", D - timedelta(days=5), "99.50")])

        result = matcher.find_settlement_matches(tenant, deposit("100.00"))

        assert result.auto_reconciled is True

    def test_store_read_failure_is_soft(self, tenant):
        broken = MagicMock()
        broken.list_settlements.side_effect = StoreError("connection lost")

        result = SettlementMatcher(broken).find_settlement_matches(tenant, deposit("100.00"))

        assert result.matches == []
        assert result.auto_reconciled is False

    def test_store_write_failure_leaves_match_unreconciled(self, tenant):
        broken = MagicMock()
        broken.list_settlements.return_value = [make_settlement("S1", D, "100.00")]
        broken.mark_settlement_reconciled.side_effect = StoreError("read only")

        result = SettlementMatcher(broken).find_settlement_matches(tenant, deposit("100.00"))

        assert len(result.matches) == 1
        assert result.auto_reconciled is False
        assert result.reconciled_settlement_id is None


class TestManualReconcile:
    """Test cases for manual reconciliation."""

    def test_links_settlement_regardless_of_margin(self, store, matcher, tenant):
        store.upsert_settlements([make_settlement("S1", D, "100.00")])

        result = matcher.manual_reconcile(tenant, "S1", "bank-9", Decimal("87.50"))

        assert result.success is True
        assert result.error is None
        stored = store.get_settlement("user-1", "S1")
        assert stored.reconciled is True
        assert stored.auto_reconciled is False
        assert stored.variance == Decimal("12.50")
        assert stored.bank_transaction_id == "bank-9"

    def test_unknown_settlement(self, matcher, tenant):
        result = matcher.manual_reconcile(tenant, "missing", "bank-1", Decimal("1"))

        assert result.success is False
        assert result.error == "Settlement not found"

    def test_other_tenants_settlement_is_not_found(self, store, matcher, other_tenant):
        store.upsert_settlements([make_settlement("S1", D, "100.00")])

        result = matcher.manual_reconcile(other_tenant, "S1", "bank-1", Decimal("100"))

        assert result.success is False
        assert not store.get_settlement("user-1", "S1").reconciled

    def test_unauthenticated(self, matcher, anonymous):
        result = matcher.manual_reconcile(anonymous, "S1", "bank-1", Decimal("1"))

        assert result == result.__class__(success=False, error="Not authenticated")

    def test_store_error_is_reported(self, tenant):
        broken = MagicMock()
        broken.get_settlement.return_value = make_settlement("S1", D, "100.00")
        broken.mark_settlement_reconciled.side_effect = StoreError("disk full")

        result = SettlementMatcher(broken).manual_reconcile(tenant, "S1", "bank-1", Decimal("100"))

        assert result.success is False
        assert result.error == "disk full"


class TestUnreconciledAndStats:
    """Test cases for the unreconciled listing and statistics."""

    def test_unreconciled_listing(self, store, matcher, tenant):
        store.upsert_settlements(
            [
                make_settlement("S1", D - timedelta(days=1), "10.01"),
                make_settlement("S2", D, "20.00"),
                make_settlement("S3", D, "5.00", reconciled=True),
            ]
        )

        summary = matcher.get_unreconciled_settlements(tenant)

        assert summary.total == 2
        assert [s.settlement_id for s in summary.settlements] == ["S2", "S1"]
        assert summary.total_value == Decimal("30.01")

    def test_stats(self, store, matcher, tenant):
        store.upsert_settlements(
            [
                make_settlement("S1", D, "100.00"),
                make_settlement("S2", D - timedelta(days=10), "200.00"),
                make_settlement("S3", D - timedelta(days=20), "300.00"),
            ]
        )
        matcher.find_settlement_matches(tenant, deposit("100.02"))
        matcher.manual_reconcile(tenant, "S2", "bank-2", Decimal("199.90"))

        stats = matcher.get_reconciliation_stats(tenant)

        assert stats.total_reconciled == 2
        assert stats.total_unreconciled == 1
        assert stats.auto_reconciled_count == 1
        assert stats.manual_reconciled_count == 1
        assert stats.average_variance == Decimal("0.06")

    def test_stats_for_anonymous_are_zero(self, matcher, anonymous):
        stats = matcher.get_reconciliation_stats(anonymous)

        assert stats.total_reconciled == 0
        assert stats.average_variance == Decimal("0")

    def test_stats_store_failure_is_soft(self, tenant):
        broken = MagicMock()
        broken.list_settlements.side_effect = StoreError("timeout")

        assert SettlementMatcher(broken).get_reconciliation_stats(tenant).total_reconciled == 0
        assert SettlementMatcher(broken).get_unreconciled_settlements(tenant).total == 0
