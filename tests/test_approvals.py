"""Tests for backoffice_recon.matching.approvals."""

import pytest

from backoffice_recon.matching import ApprovalQueue, RulesEngine
from backoffice_recon.models import MatchStatus, MatchType, ReconciliationStatus
from backoffice_recon.utils.exceptions import (
    AuthenticationError,
    InvalidTransitionError,
    NotFoundError,
)

from factories import make_rule, make_transaction


@pytest.fixture
def queue(store):
    return ApprovalQueue(store)


@pytest.fixture
def matched(store, tenant):
    """Two transactions with pending suggestions from one rule."""
    store.add_rule(
        make_rule(
            "rent",
            MatchType.DESCRIPTION,
            match_description_pattern="rent",
            action_category_id="premises",
            action_vendor_id="landlord",
            action_notes_template="Monthly rent",
        )
    )
    store.add_transactions(
        [
            make_transaction("t1", 900, description="Rent March"),
            make_transaction("t2", 900, description="Rent April"),
        ]
    )
    RulesEngine(store).run(tenant)
    return {m.transaction_id: m for m in store.list_pending_matches("user-1")}


class TestApprove:
    """Test cases for approving pending matches."""

    def test_approve_applies_suggestion(self, store, queue, tenant, matched):
        queue.approve(tenant, matched["t1"].id)

        txn = store.get_transaction("user-1", "t1")
        assert txn.category_id == "premises"
        assert txn.vendor_id == "landlord"
        assert txn.notes == "Monthly rent"
        assert txn.reconciliation_status == ReconciliationStatus.APPROVED
        assert txn.matched_rule_id == "rent"
        assert txn.reconciled_by == "rule"
        assert txn.confirmed is True
        assert txn.reconciled_at is not None

        match = store.get_pending_match("user-1", matched["t1"].id)
        assert match.status == MatchStatus.APPROVED
        assert match.reviewed_at is not None

    def test_approve_with_edit_overrides_category(self, store, queue, tenant, matched):
        queue.approve_with_edit(tenant, matched["t1"].id, "office", notes="Split later")

        txn = store.get_transaction("user-1", "t1")
        assert txn.category_id == "office"
        assert txn.notes == "Split later"
        assert txn.vendor_id is None

    def test_approve_without_category_fails(self, store, queue, tenant):
        store.add_rule(make_rule("bare", MatchType.AMOUNT, action_category_id=None))
        store.add_transactions([make_transaction("t1", 10)])
        RulesEngine(store).run(tenant)
        match = store.list_pending_matches("user-1")[0]

        with pytest.raises(InvalidTransitionError, match="No suggested category"):
            queue.approve(tenant, match.id)

        assert store.get_pending_match("user-1", match.id).status == MatchStatus.PENDING

    def test_reviewed_match_cannot_be_reviewed_again(self, queue, tenant, matched):
        queue.approve(tenant, matched["t1"].id)

        with pytest.raises(InvalidTransitionError, match="already approved"):
            queue.approve(tenant, matched["t1"].id)
        with pytest.raises(InvalidTransitionError):
            queue.reject(tenant, matched["t1"].id)

    def test_unknown_match(self, queue, tenant):
        with pytest.raises(NotFoundError, match="Match not found"):
            queue.approve(tenant, "nope")

    def test_other_tenants_match_is_not_found(self, queue, other_tenant, matched):
        with pytest.raises(NotFoundError):
            queue.approve(other_tenant, matched["t1"].id)


class TestReject:
    """Test cases for rejecting pending matches."""

    def test_reject_returns_transaction_to_pool(self, store, queue, tenant, matched):
        queue.reject(tenant, matched["t2"].id)

        txn = store.get_transaction("user-1", "t2")
        assert txn.reconciliation_status == ReconciliationStatus.UNRECONCILED
        assert txn.category_id is None
        assert store.get_pending_match("user-1", matched["t2"].id).status == MatchStatus.REJECTED

    def test_rejected_match_is_final(self, queue, tenant, matched):
        queue.reject(tenant, matched["t2"].id)

        with pytest.raises(InvalidTransitionError, match="already rejected"):
            queue.approve(tenant, matched["t2"].id)


class TestQueueViews:
    """Test cases for listing and bulk review."""

    def test_list_and_count_pending(self, queue, tenant, matched):
        assert queue.pending_count(tenant) == 2
        assert {m.transaction_id for m in queue.list_pending(tenant)} == {"t1", "t2"}

        queue.approve(tenant, matched["t1"].id)

        assert queue.pending_count(tenant) == 1
        assert len(queue.matches_by_rule(tenant, "rent")) == 2

    def test_bulk_approve(self, queue, tenant, matched):
        result = queue.bulk_approve(tenant, [m.id for m in matched.values()])

        assert result.success is True
        assert result.succeeded == 2
        assert result.failed == 0
        assert queue.pending_count(tenant) == 0

    def test_bulk_reject_counts_failures(self, queue, tenant, matched):
        queue.approve(tenant, matched["t1"].id)

        result = queue.bulk_reject(tenant, [matched["t1"].id, matched["t2"].id, "missing"])

        assert result.success is False
        assert result.succeeded == 1
        assert result.failed == 2

    def test_unauthenticated(self, queue, anonymous):
        with pytest.raises(AuthenticationError):
            queue.list_pending(anonymous)
        with pytest.raises(AuthenticationError):
            queue.bulk_approve(anonymous, ["m1"])
