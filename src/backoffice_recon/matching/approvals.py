"""Human review of rule-suggested categorisations."""

from datetime import datetime
from typing import Any, Optional
import logging

from ..models.rules import (
    BulkReviewResult,
    MatchStatus,
    PendingMatch,
    ReconciliationStatus,
)
from ..models.tenant import TenantContext
from ..storage.base import ReconStore
from ..utils.exceptions import (
    AuthenticationError,
    InvalidTransitionError,
    NotFoundError,
    ReconciliationError,
)

logger = logging.getLogger(__name__)


class ApprovalQueue:
    """
    Moves pending matches to approved or rejected.

    Approving applies the suggestion to the transaction; rejecting returns
    the transaction to the unreconciled pool so other rules can match it.
    Both outcomes are final.
    """

    def __init__(self, store: ReconStore):
        self.store = store

    @staticmethod
    def _user_id(tenant: TenantContext) -> str:
        if not tenant.is_authenticated:
            raise AuthenticationError()
        return tenant.user_id

    def list_pending(self, tenant: TenantContext) -> list[PendingMatch]:
        """Pending matches awaiting review, newest first."""
        return self.store.list_pending_matches(self._user_id(tenant), status=MatchStatus.PENDING)

    def pending_count(self, tenant: TenantContext) -> int:
        return self.store.count_pending_matches(self._user_id(tenant))

    def matches_by_rule(self, tenant: TenantContext, rule_id: str) -> list[PendingMatch]:
        """Every match a rule has produced, whatever its review state."""
        return self.store.list_pending_matches(self._user_id(tenant), rule_id=rule_id)

    def _get_pending(self, user_id: str, match_id: str) -> PendingMatch:
        match = self.store.get_pending_match(user_id, match_id)
        if match is None:
            raise NotFoundError("Match not found")
        if match.status != MatchStatus.PENDING:
            raise InvalidTransitionError(
                f"Match {match_id} is already {match.status.value}"
            )
        return match

    def approve(self, tenant: TenantContext, match_id: str) -> None:
        """
        Apply a pending match's suggestion to its transaction.

        Raises:
            NotFoundError: If the match does not belong to the tenant
            InvalidTransitionError: If the match was already reviewed or has
                no suggested category
        """
        user_id = self._user_id(tenant)
        match = self._get_pending(user_id, match_id)
        if not match.suggested_category_id:
            raise InvalidTransitionError("Cannot approve match: No suggested category found")

        changes = self._approval_changes(match, match.suggested_category_id, match.suggested_notes)
        if match.suggested_staff_id:
            changes["staff_id"] = match.suggested_staff_id
        if match.suggested_vendor_id:
            changes["vendor_id"] = match.suggested_vendor_id

        self._finish(user_id, match, changes, MatchStatus.APPROVED)

    def approve_with_edit(
        self,
        tenant: TenantContext,
        match_id: str,
        category_id: str,
        notes: Optional[str] = None,
    ) -> None:
        """Approve a pending match with a category chosen by the reviewer."""
        user_id = self._user_id(tenant)
        match = self._get_pending(user_id, match_id)
        changes = self._approval_changes(match, category_id, notes or match.suggested_notes)
        self._finish(user_id, match, changes, MatchStatus.APPROVED)

    def reject(self, tenant: TenantContext, match_id: str) -> None:
        """Discard a suggestion and return its transaction to the unreconciled pool."""
        user_id = self._user_id(tenant)
        match = self._get_pending(user_id, match_id)
        changes = {"reconciliation_status": ReconciliationStatus.UNRECONCILED}
        self._finish(user_id, match, changes, MatchStatus.REJECTED)

    def bulk_approve(self, tenant: TenantContext, match_ids: list[str]) -> BulkReviewResult:
        self._user_id(tenant)
        return self._bulk(tenant, match_ids, self.approve)

    def bulk_reject(self, tenant: TenantContext, match_ids: list[str]) -> BulkReviewResult:
        self._user_id(tenant)
        return self._bulk(tenant, match_ids, self.reject)

    @staticmethod
    def _bulk(tenant: TenantContext, match_ids: list[str], review) -> BulkReviewResult:
        failed = 0
        for match_id in match_ids:
            try:
                review(tenant, match_id)
            except ReconciliationError as e:
                logger.warning(f"Review of match {match_id} failed: {e}")
                failed += 1
        return BulkReviewResult(
            success=failed == 0,
            succeeded=len(match_ids) - failed,
            failed=failed,
        )

    @staticmethod
    def _approval_changes(
        match: PendingMatch, category_id: str, notes: Optional[str]
    ) -> dict[str, Any]:
        changes: dict[str, Any] = {
            "category_id": category_id,
            "reconciliation_status": ReconciliationStatus.APPROVED,
            "matched_rule_id": match.rule_id,
            "reconciled_at": datetime.now(),
            "reconciled_by": "rule",
            "confirmed": True,
        }
        if notes:
            changes["notes"] = notes
        return changes

    def _finish(
        self,
        user_id: str,
        match: PendingMatch,
        transaction_changes: dict[str, Any],
        status: MatchStatus,
    ) -> None:
        self.store.update_transaction(user_id, match.transaction_id, transaction_changes)
        self.store.update_pending_match_status(user_id, match.id, status, datetime.now())
        logger.info(f"Match {match.id} {status.value} (transaction {match.transaction_id})")
