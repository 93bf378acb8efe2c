"""
Abstract interface to the relational store.

Every tenant-scoped call takes the user id explicitly and implementations
must filter on it. Failures are raised as StoreError.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from ..models.membership import ApiLogEntry, Member, Membership, Sale
from ..models.rules import (
    MatchStatus,
    PendingMatch,
    ReconciliationRule,
    ReconciliationStatus,
    Transaction,
)
from ..models.settlement import Settlement


class ReconStore(ABC):
    """Abstract base class for the back-office store."""

    # Settlements

    @abstractmethod
    def upsert_settlements(self, settlements: Iterable[Settlement]) -> int:
        """Insert settlements, refreshing unreconciled ones that already exist."""
        pass

    @abstractmethod
    def list_settlements(
        self,
        user_id: str,
        reconciled: Optional[bool] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Settlement]:
        """
        List a tenant's settlements, newest settlement date first.

        Args:
            user_id: Tenant filter
            reconciled: Restrict to reconciled (True) or unreconciled (False)
            start: Earliest settlement date, inclusive
            end: Latest settlement date, inclusive
        """
        pass

    @abstractmethod
    def get_settlement(self, user_id: str, settlement_id: str) -> Optional[Settlement]:
        pass

    @abstractmethod
    def mark_settlement_reconciled(
        self,
        user_id: str,
        settlement_id: str,
        bank_transaction_id: str,
        bank_amount: Decimal,
        variance: Decimal,
        auto_reconciled: bool,
        reconciled_at: datetime,
    ) -> None:
        """Link a settlement to a bank deposit in a single update."""
        pass

    # Bank transactions

    @abstractmethod
    def add_transactions(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        """
        Insert transactions, skipping any whose id or import hash is already stored.

        Returns:
            The transactions that were actually inserted
        """
        pass

    @abstractmethod
    def list_transactions(
        self,
        user_id: str,
        unreconciled_only: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """List a tenant's transactions in a stable order for batching."""
        pass

    @abstractmethod
    def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    def update_transaction(
        self, user_id: str, transaction_id: str, changes: dict[str, Any]
    ) -> None:
        pass

    @abstractmethod
    def set_transaction_status(
        self, user_id: str, transaction_ids: list[str], status: ReconciliationStatus
    ) -> None:
        """Bulk update the reconciliation status of several transactions."""
        pass

    # Reconciliation rules

    @abstractmethod
    def add_rule(self, rule: ReconciliationRule) -> ReconciliationRule:
        pass

    @abstractmethod
    def update_rule(self, user_id: str, rule_id: str, changes: dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_rule(self, user_id: str, rule_id: str) -> None:
        pass

    @abstractmethod
    def get_rule(self, user_id: str, rule_id: str) -> Optional[ReconciliationRule]:
        pass

    @abstractmethod
    def list_rules(self, user_id: str, active_only: bool = False) -> list[ReconciliationRule]:
        """List a tenant's rules ordered by ascending priority."""
        pass

    @abstractmethod
    def record_rule_matches(
        self, user_id: str, rule_id: str, match_count: int, last_matched_at: datetime
    ) -> None:
        pass

    # Pending matches

    @abstractmethod
    def upsert_pending_matches(self, matches: Iterable[PendingMatch]) -> list[PendingMatch]:
        """
        Store suggestions keyed on (transaction_id, rule_id).

        Existing pending suggestions are refreshed; reviewed ones are left
        untouched.

        Returns:
            The matches that are pending after the write
        """
        pass

    @abstractmethod
    def list_pending_matches(
        self,
        user_id: str,
        status: Optional[MatchStatus] = None,
        rule_id: Optional[str] = None,
    ) -> list[PendingMatch]:
        """List a tenant's pending matches, newest first."""
        pass

    @abstractmethod
    def get_pending_match(self, user_id: str, match_id: str) -> Optional[PendingMatch]:
        pass

    @abstractmethod
    def count_pending_matches(self, user_id: str) -> int:
        pass

    @abstractmethod
    def update_pending_match_status(
        self, user_id: str, match_id: str, status: MatchStatus, reviewed_at: datetime
    ) -> None:
        pass

    # Membership platform records

    @abstractmethod
    def upsert_member(self, member: Member) -> None:
        pass

    @abstractmethod
    def update_member(self, mb_client_id: str, changes: dict[str, Any]) -> int:
        """Returns the number of rows changed."""
        pass

    @abstractmethod
    def get_member(self, mb_client_id: str) -> Optional[Member]:
        pass

    @abstractmethod
    def upsert_membership(self, membership: Membership) -> None:
        pass

    @abstractmethod
    def update_membership(self, mb_membership_id: str, changes: dict[str, Any]) -> int:
        pass

    @abstractmethod
    def reassign_memberships(self, from_client_id: str, to_client_id: str) -> int:
        pass

    @abstractmethod
    def get_membership(self, mb_membership_id: str) -> Optional[Membership]:
        pass

    @abstractmethod
    def upsert_sale(self, sale: Sale) -> None:
        pass

    @abstractmethod
    def get_sale(self, mb_transaction_id: str) -> Optional[Sale]:
        pass

    # API audit log

    @abstractmethod
    def write_api_log(self, entry: ApiLogEntry) -> None:
        pass

    @abstractmethod
    def list_api_logs(
        self, limit: int = 100, event_type: Optional[str] = None
    ) -> list[ApiLogEntry]:
        """Most recent log entries first."""
        pass
