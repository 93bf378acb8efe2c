"""
Reconciliation rules engine.

Active rules are scanned in priority order against bank transactions; the
first rule that matches a transaction produces a pending match for human
approval. Transactions are never categorised directly.
"""

from collections import Counter
from dataclasses import fields
from datetime import datetime
from typing import Any, Optional
import logging
import uuid

from ..config import RulesConfig
from ..models.rules import (
    MatchStatus,
    MatchType,
    PendingMatch,
    ReconciliationRule,
    ReconciliationStatus,
    RulePreview,
    RulesEngineResult,
    Transaction,
)
from ..models.tenant import TenantContext
from ..storage.base import ReconStore
from ..utils.exceptions import AuthenticationError, NotFoundError
from .strategies import evaluate_rule

logger = logging.getLogger(__name__)

# Fields a caller may set when creating or editing a rule
EDITABLE_RULE_FIELDS = {
    f.name
    for f in fields(ReconciliationRule)
    if f.name
    not in {"id", "user_id", "match_count", "last_matched_at", "created_at", "updated_at"}
}


def _require_tenant(tenant: TenantContext) -> str:
    if not tenant.is_authenticated:
        raise AuthenticationError()
    return tenant.user_id


class RulesEngine:
    """
    Evaluates a tenant's reconciliation rules against their transactions.

    Also owns rule maintenance (create, edit, delete, preview) since every
    change to a rule is checked with the same evaluation code.
    """

    def __init__(self, store: ReconStore, config: Optional[RulesConfig] = None):
        """
        Initialize the rules engine.

        Args:
            store: Tenant-scoped store holding rules and transactions
            config: Batch sizes and preview limits
        """
        self.store = store
        self.config = config or RulesConfig()

    def run(self, tenant: TenantContext, include_confirmed: bool = False) -> RulesEngineResult:
        """
        Run all active rules against the tenant's transactions.

        Args:
            tenant: Caller whose rules and transactions are used
            include_confirmed: Also evaluate transactions a human has already
                confirmed. Off by default so earlier decisions are not
                re-queued.

        Returns:
            Processed, matched and already-reconciled counts

        Raises:
            AuthenticationError: If the tenant is not authenticated
            StoreError: If the store cannot be read or written
        """
        user_id = _require_tenant(tenant)

        rules = self.store.list_rules(user_id, active_only=True)
        if not rules:
            logger.info("No active rules, nothing to do")
            return RulesEngineResult()

        # A rejected suggestion is not offered again for the same transaction
        rejected = {
            (m.transaction_id, m.rule_id)
            for m in self.store.list_pending_matches(user_id, status=MatchStatus.REJECTED)
        }

        processed = 0
        already_reconciled: set[str] = set()
        hits: list[PendingMatch] = []
        now = datetime.now()
        batch_size = self.config.batch_size
        offset = 0

        while True:
            batch = self.store.list_transactions(
                user_id,
                unreconciled_only=not include_confirmed,
                offset=offset,
                limit=batch_size,
            )
            if not batch:
                break
            processed += len(batch)

            for txn in batch:
                rule = self._first_matching_rule(rules, txn, rejected)
                if rule is None:
                    continue

                if txn.is_reconciled:
                    already_reconciled.add(txn.id)
                hits.append(
                    PendingMatch(
                        id=str(uuid.uuid4()),
                        user_id=user_id,
                        transaction_id=txn.id,
                        rule_id=rule.id,
                        suggested_category_id=rule.action_category_id,
                        suggested_staff_id=rule.action_staff_id,
                        suggested_vendor_id=rule.action_vendor_id,
                        suggested_notes=rule.action_notes_template,
                        match_confidence=1.0,
                        status=MatchStatus.PENDING,
                        created_at=now,
                    )
                )

            if len(batch) < batch_size:
                break
            offset += batch_size

        if hits:
            self._store_hits(user_id, rules, hits, already_reconciled, now)

        result = RulesEngineResult(
            processed=processed,
            matched=len(hits),
            already_reconciled=len(already_reconciled),
        )
        logger.info(
            f"Rules engine: {result.processed} processed, {result.matched} matched, "
            f"{result.already_reconciled} already reconciled"
        )
        return result

    @staticmethod
    def _first_matching_rule(
        rules: list[ReconciliationRule],
        txn: Transaction,
        rejected: set[tuple[str, str]],
    ) -> Optional[ReconciliationRule]:
        for rule in rules:
            if (txn.id, rule.id) in rejected:
                continue
            if evaluate_rule(rule, txn):
                return rule
        return None

    def _store_hits(
        self,
        user_id: str,
        rules: list[ReconciliationRule],
        hits: list[PendingMatch],
        already_reconciled: set[str],
        now: datetime,
    ) -> None:
        pending = self.store.upsert_pending_matches(hits)

        to_flag = [m.transaction_id for m in pending if m.transaction_id not in already_reconciled]
        chunk = self.config.status_update_chunk
        for i in range(0, len(to_flag), chunk):
            self.store.set_transaction_status(
                user_id, to_flag[i : i + chunk], ReconciliationStatus.PENDING_APPROVAL
            )

        counts = Counter(m.rule_id for m in hits)
        for rule in rules:
            if counts[rule.id]:
                self.store.record_rule_matches(
                    user_id, rule.id, rule.match_count + counts[rule.id], now
                )

    def preview_rule(self, tenant: TenantContext, rule: ReconciliationRule) -> RulePreview:
        """
        Show which unreconciled transactions an unsaved rule would match.

        Args:
            tenant: Caller whose transactions are searched
            rule: Draft rule, not necessarily stored

        Returns:
            Match count and a sample of matching transactions
        """
        user_id = _require_tenant(tenant)
        return self._preview(user_id, rule, self.config.preview_limit)

    def test_rule(self, tenant: TenantContext, rule_id: str) -> RulePreview:
        """Show which unreconciled transactions a stored rule matches."""
        user_id = _require_tenant(tenant)
        rule = self.store.get_rule(user_id, rule_id)
        if rule is None:
            raise NotFoundError("Rule not found")
        return self._preview(user_id, rule, self.config.test_limit)

    def _preview(self, user_id: str, rule: ReconciliationRule, limit: int) -> RulePreview:
        candidates = self.store.list_transactions(user_id, unreconciled_only=True, limit=limit)
        matched = [txn for txn in candidates if evaluate_rule(rule, txn)]
        return RulePreview(
            match_count=len(matched),
            sample_matches=matched[: self.config.sample_size],
        )

    # Rule maintenance

    def create_rule(
        self, tenant: TenantContext, name: str, match_type: MatchType, **criteria: Any
    ) -> ReconciliationRule:
        """
        Create an active rule for the tenant.

        Args:
            tenant: Rule owner
            name: Display name
            match_type: How the rule matches transactions
            **criteria: Any other editable rule field

        Returns:
            The stored rule

        Raises:
            ValueError: If an unknown field is supplied
        """
        user_id = _require_tenant(tenant)
        self._check_fields(criteria)

        now = datetime.now()
        criteria.setdefault("priority", self.config.default_priority)
        rule = ReconciliationRule(
            id=str(uuid.uuid4()),
            user_id=user_id,
            name=name,
            match_type=match_type,
            created_at=now,
            updated_at=now,
            **criteria,
        )
        rule.is_active = True
        self.store.add_rule(rule)
        logger.info(f"Created rule {rule.name!r} ({rule.match_type.value}, priority {rule.priority})")
        return rule

    def update_rule(self, tenant: TenantContext, rule_id: str, **changes: Any) -> None:
        """Apply a partial edit to one of the tenant's rules."""
        user_id = _require_tenant(tenant)
        self._check_fields(changes)
        changes["updated_at"] = datetime.now()
        self.store.update_rule(user_id, rule_id, changes)

    def toggle_rule_active(self, tenant: TenantContext, rule_id: str, is_active: bool) -> None:
        self.update_rule(tenant, rule_id, is_active=is_active)

    def delete_rule(self, tenant: TenantContext, rule_id: str) -> None:
        user_id = _require_tenant(tenant)
        self.store.delete_rule(user_id, rule_id)

    def list_rules(self, tenant: TenantContext) -> list[ReconciliationRule]:
        """All of the tenant's rules, lowest priority number first."""
        user_id = _require_tenant(tenant)
        return self.store.list_rules(user_id)

    @staticmethod
    def _check_fields(values: dict[str, Any]) -> None:
        unknown = set(values) - EDITABLE_RULE_FIELDS
        if unknown:
            raise ValueError(f"Unknown rule fields: {', '.join(sorted(unknown))}")
