"""
Settlement to bank deposit matching.

When a deposit lands on day T, unreconciled processor settlements dated
T-3 to T are scored by variance. A single candidate within the margin is
reconciled automatically; anything ambiguous is left for a human.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
import logging

from ..config import SettlementConfig
from ..fees.calculator import check_reconciliation, round_currency, to_decimal
from ..models.settlement import (
    BankDeposit,
    ManualReconcileResult,
    ReconciliationResult,
    ReconciliationStats,
    SettlementMatch,
    UnreconciledSummary,
)
from ..models.tenant import TenantContext
from ..storage.base import ReconStore
from ..utils.exceptions import StoreError

logger = logging.getLogger(__name__)


class SettlementMatcher:
    """Matches bank deposits to payment processor settlements."""

    def __init__(self, store: ReconStore, config: Optional[SettlementConfig] = None):
        """
        Initialize the matcher.

        Args:
            store: Tenant-scoped store holding the settlements
            config: Window length and variance margin
        """
        self.store = store
        self.config = config or SettlementConfig()

    def find_settlement_matches(
        self, tenant: TenantContext, bank_deposit: BankDeposit
    ) -> ReconciliationResult:
        """
        Find settlements that could explain a bank deposit.

        Args:
            tenant: Caller whose settlements are searched
            bank_deposit: Deposit observed on the bank statement

        Returns:
            Candidates ordered by ascending variance, and whether one of
            them was reconciled automatically
        """
        result = ReconciliationResult(bank_deposit=bank_deposit)
        if not tenant.is_authenticated:
            return result

        window_start = bank_deposit.date - timedelta(days=self.config.window_days)
        try:
            settlements = self.store.list_settlements(
                tenant.user_id,
                reconciled=False,
                start=window_start,
                end=bank_deposit.date,
            )
        except StoreError as e:
            logger.warning(f"Settlement lookup failed for deposit {bank_deposit.id}: {e}")
            return result

        deposit_amount = to_decimal(bank_deposit.amount)
        for s in settlements:
            check = check_reconciliation(s.mb_net, deposit_amount, self.config.variance_margin)
            result.matches.append(
                SettlementMatch(
                    settlement_id=s.settlement_id,
                    settlement_date=s.settlement_date,
                    mb_net=s.mb_net,
                    bank_amount=deposit_amount,
                    variance=check.variance,
                    within_margin=check.matched,
                    transaction_count=s.transaction_count,
                )
            )

        # Stable sort keeps the newest-first store order for equal variances
        result.matches.sort(key=lambda m: m.variance)

        in_margin = [m for m in result.matches if m.within_margin]
        logger.debug(
            f"Deposit {bank_deposit.id} ({deposit_amount}): {len(result.matches)} candidates "
            f"from {window_start} to {bank_deposit.date}, {len(in_margin)} within margin"
        )

        if len(in_margin) != 1:
            if len(in_margin) > 1:
                logger.info(
                    f"Deposit {bank_deposit.id}: {len(in_margin)} settlements within margin, "
                    "leaving for manual reconciliation"
                )
            return result

        match = in_margin[0]
        try:
            self.store.mark_settlement_reconciled(
                tenant.user_id,
                match.settlement_id,
                bank_transaction_id=bank_deposit.id,
                bank_amount=deposit_amount,
                variance=match.variance,
                auto_reconciled=True,
                reconciled_at=datetime.now(),
            )
        except StoreError as e:
            logger.warning(f"Auto-reconcile of settlement {match.settlement_id} failed: {e}")
            return result

        result.auto_reconciled = True
        result.reconciled_settlement_id = match.settlement_id
        logger.info(
            f"Auto-reconciled settlement {match.settlement_id} to deposit {bank_deposit.id} "
            f"(variance {match.variance})"
        )
        return result

    def manual_reconcile(
        self,
        tenant: TenantContext,
        settlement_id: str,
        bank_transaction_id: str,
        bank_amount: Decimal,
    ) -> ManualReconcileResult:
        """
        Link a settlement to a bank deposit chosen by a human.

        The variance is recorded but never checked against the margin.

        Args:
            tenant: Caller who owns the settlement
            settlement_id: Settlement to reconcile
            bank_transaction_id: Bank deposit it was paid out in
            bank_amount: Amount of that deposit

        Returns:
            Whether the link was stored, with an error message if not
        """
        if not tenant.is_authenticated:
            return ManualReconcileResult(success=False, error="Not authenticated")

        try:
            settlement = self.store.get_settlement(tenant.user_id, settlement_id)
        except StoreError as e:
            return ManualReconcileResult(success=False, error=str(e))

        if settlement is None:
            return ManualReconcileResult(success=False, error="Settlement not found")

        amount = to_decimal(bank_amount)
        check = check_reconciliation(settlement.mb_net, amount, self.config.variance_margin)

        try:
            self.store.mark_settlement_reconciled(
                tenant.user_id,
                settlement_id,
                bank_transaction_id=bank_transaction_id,
                bank_amount=amount,
                variance=check.variance,
                auto_reconciled=False,
                reconciled_at=datetime.now(),
            )
        except StoreError as e:
            return ManualReconcileResult(success=False, error=str(e))

        logger.info(
            f"Manually reconciled settlement {settlement_id} to {bank_transaction_id} "
            f"(variance {check.variance})"
        )
        return ManualReconcileResult(success=True)

    def get_unreconciled_settlements(self, tenant: TenantContext) -> UnreconciledSummary:
        """List settlements still waiting for a deposit, newest first."""
        if not tenant.is_authenticated:
            return UnreconciledSummary()

        try:
            settlements = self.store.list_settlements(tenant.user_id, reconciled=False)
        except StoreError as e:
            logger.warning(f"Unreconciled settlement lookup failed: {e}")
            return UnreconciledSummary()

        total_value = sum((s.mb_net or Decimal("0") for s in settlements), Decimal("0"))
        return UnreconciledSummary(
            settlements=settlements,
            total=len(settlements),
            total_value=round_currency(total_value),
        )

    def get_reconciliation_stats(self, tenant: TenantContext) -> ReconciliationStats:
        """Summarise how a tenant's settlements were reconciled."""
        if not tenant.is_authenticated:
            return ReconciliationStats()

        try:
            settlements = self.store.list_settlements(tenant.user_id)
        except StoreError as e:
            logger.warning(f"Reconciliation stats lookup failed: {e}")
            return ReconciliationStats()

        reconciled = [s for s in settlements if s.reconciled]
        auto = [s for s in reconciled if s.auto_reconciled]
        variances = [s.variance or Decimal("0") for s in reconciled]
        average = sum(variances, Decimal("0")) / len(variances) if variances else Decimal("0")

        return ReconciliationStats(
            total_reconciled=len(reconciled),
            total_unreconciled=len(settlements) - len(reconciled),
            auto_reconciled_count=len(auto),
            manual_reconciled_count=len(reconciled) - len(auto),
            average_variance=round_currency(average),
        )
