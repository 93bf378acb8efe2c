"""
SQLAlchemy implementation of the back-office store.

Uses SQLAlchemy Core tables so the same code runs on SQLite for local use
and tests, and on PostgreSQL in production.
"""

from contextlib import contextmanager
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Iterator, Optional
import logging

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    JSON,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine, RowMapping
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..models.membership import ApiLogEntry, LogStatus, LogType, Member, Membership, Sale
from ..models.rules import (
    MatchStatus,
    MatchType,
    PendingMatch,
    ReconciliationRule,
    ReconciliationStatus,
    RuleCondition,
    Transaction,
    TransactionType,
)
from ..models.settlement import Settlement
from ..utils.exceptions import StoreError
from .base import ReconStore

logger = logging.getLogger(__name__)

metadata = MetaData()

Money = Numeric(12, 2)

settlements_table = Table(
    "mb_settlements",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("settlement_id", String(64), nullable=False),
    Column("settlement_date", Date, nullable=False, index=True),
    Column("mb_net", Money, nullable=False),
    Column("gross", Money),
    Column("fees", Money),
    Column("transaction_count", Integer, nullable=False, default=0),
    Column("reconciled", Boolean, nullable=False, default=False),
    Column("reconciled_at", DateTime),
    Column("bank_transaction_id", String(64)),
    Column("bank_amount", Money),
    Column("variance", Money),
    Column("auto_reconciled", Boolean, nullable=False, default=False),
    UniqueConstraint("user_id", "settlement_id", name="uq_settlement_user"),
)

transactions_table = Table(
    "transactions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("transaction_date", Date, nullable=False),
    Column("amount", Money, nullable=False),
    Column("type", String(16), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("raw_party", String(255)),
    Column("vendor_id", String(64)),
    Column("staff_id", String(64)),
    Column("category_id", String(64)),
    Column("notes", Text),
    Column("reconciliation_status", String(32), nullable=False, default="unreconciled"),
    Column("confirmed", Boolean, nullable=False, default=False),
    Column("matched_rule_id", String(64)),
    Column("reconciled_at", DateTime),
    Column("reconciled_by", String(32)),
    Column("bank_category", String(128)),
    Column("import_hash", String(512)),
)

rules_table = Table(
    "reconciliation_rules",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("priority", Integer, nullable=False, default=100),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("match_type", String(32), nullable=False),
    Column("conditions", JSON, nullable=False, default=list),
    Column("match_vendor_id", String(64)),
    Column("match_staff_id", String(64)),
    Column("match_description_pattern", String(512)),
    Column("match_counter_party_pattern", String(512)),
    Column("match_amount_min", Money),
    Column("match_amount_max", Money),
    Column("match_transaction_type", String(16)),
    Column("action_category_id", String(64)),
    Column("action_staff_id", String(64)),
    Column("action_vendor_id", String(64)),
    Column("action_notes_template", Text),
    Column("requires_approval", Boolean, nullable=False, default=True),
    Column("match_count", Integer, nullable=False, default=0),
    Column("last_matched_at", DateTime),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

pending_matches_table = Table(
    "pending_matches",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("transaction_id", String(64), nullable=False),
    Column("rule_id", String(64), nullable=False),
    Column("suggested_category_id", String(64)),
    Column("suggested_staff_id", String(64)),
    Column("suggested_vendor_id", String(64)),
    Column("suggested_notes", Text),
    Column("match_confidence", Float, nullable=False, default=1.0),
    Column("status", String(16), nullable=False, default="pending"),
    Column("created_at", DateTime),
    Column("reviewed_at", DateTime),
    UniqueConstraint("transaction_id", "rule_id", name="uq_pending_match"),
)

members_table = Table(
    "mb_members",
    metadata,
    Column("mb_client_id", String(64), primary_key=True),
    Column("first_name", String(128)),
    Column("last_name", String(128)),
    Column("email", String(255)),
    Column("membership_status", String(64)),
    Column("merged_into", String(64)),
    Column("synced_at", DateTime),
)

memberships_table = Table(
    "mb_memberships",
    metadata,
    Column("mb_membership_id", String(64), primary_key=True),
    Column("mb_client_id", String(64), nullable=False, index=True),
    Column("name", String(255)),
    Column("status", String(64), nullable=False, default="Active"),
    Column("start_date", Date),
    Column("termination_date", Date),
    Column("at_risk", Boolean, nullable=False, default=False),
    Column("synced_at", DateTime),
)

sales_table = Table(
    "mb_transactions",
    metadata,
    Column("mb_transaction_id", String(64), primary_key=True),
    Column("mb_sale_id", String(64), nullable=False),
    Column("mb_client_id", String(64)),
    Column("gross_amount", Money, nullable=False, default=0),
    Column("net_amount", Money, nullable=False, default=0),
    Column("payment_type", String(64), nullable=False, default=""),
    Column("status", String(32), nullable=False, default="Approved"),
    Column("description", Text),
    Column("transaction_date", DateTime),
    Column("synced_at", DateTime),
)

api_logs_table = Table(
    "api_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64)),
    Column("log_type", String(16), nullable=False),
    Column("source", String(32), nullable=False),
    Column("event_type", String(128)),
    Column("status", String(16), nullable=False),
    Column("request_data", JSON),
    Column("response_data", JSON),
    Column("error_message", Text),
    Column("duration_ms", Integer),
    Column("created_at", DateTime, nullable=False),
)


def _plain(value: Any) -> Any:
    """Convert enums and rule conditions to column values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list) and value and isinstance(value[0], RuleCondition):
        return [c.to_dict() for c in value]
    return value


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


class SqlStore(ReconStore):
    """ReconStore backed by any SQLAlchemy-supported database."""

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize the store and create missing tables.

        Args:
            database_url: SQLAlchemy URL, e.g. "sqlite:///backoffice.db"
            echo: Log every SQL statement
        """
        self.database_url = database_url
        self.engine = self._create_engine(database_url, echo)
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to initialise schema: {e}") from e
        logger.debug(f"Store ready: {self.engine.url.render_as_string(hide_password=True)}")

    @staticmethod
    def _create_engine(database_url: str, echo: bool) -> Engine:
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each connection sees an empty database
            return create_engine(
                database_url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        """Open a connection inside a transaction, translating driver errors."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            logger.error(f"Store error: {e}")
            raise StoreError(str(e)) from e

    # Settlements

    def upsert_settlements(self, settlements: Iterable[Settlement]) -> int:
        written = 0
        with self._begin() as conn:
            for s in settlements:
                existing = conn.execute(
                    select(settlements_table.c.reconciled).where(
                        settlements_table.c.user_id == s.user_id,
                        settlements_table.c.settlement_id == s.settlement_id,
                    )
                ).first()

                figures = {
                    "settlement_date": s.settlement_date,
                    "mb_net": s.mb_net,
                    "gross": s.gross,
                    "fees": s.fees,
                    "transaction_count": s.transaction_count,
                }
                if existing is None:
                    conn.execute(
                        insert(settlements_table).values(
                            user_id=s.user_id,
                            settlement_id=s.settlement_id,
                            reconciled=s.reconciled,
                            reconciled_at=s.reconciled_at,
                            bank_transaction_id=s.bank_transaction_id,
                            bank_amount=s.bank_amount,
                            variance=s.variance,
                            auto_reconciled=s.auto_reconciled,
                            **figures,
                        )
                    )
                    written += 1
                elif not existing.reconciled:
                    conn.execute(
                        update(settlements_table)
                        .where(
                            settlements_table.c.user_id == s.user_id,
                            settlements_table.c.settlement_id == s.settlement_id,
                        )
                        .values(**figures)
                    )
                    written += 1
        return written

    def list_settlements(
        self,
        user_id: str,
        reconciled: Optional[bool] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Settlement]:
        t = settlements_table
        query = select(t).where(t.c.user_id == user_id)
        if reconciled is not None:
            query = query.where(t.c.reconciled == reconciled)
        if start is not None:
            query = query.where(t.c.settlement_date >= start)
        if end is not None:
            query = query.where(t.c.settlement_date <= end)
        query = query.order_by(t.c.settlement_date.desc(), t.c.id)

        with self._begin() as conn:
            rows = conn.execute(query).mappings().all()
        return [self._to_settlement(r) for r in rows]

    def get_settlement(self, user_id: str, settlement_id: str) -> Optional[Settlement]:
        t = settlements_table
        with self._begin() as conn:
            row = (
                conn.execute(
                    select(t).where(t.c.user_id == user_id, t.c.settlement_id == settlement_id)
                )
                .mappings()
                .first()
            )
        return self._to_settlement(row) if row else None

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
        t = settlements_table
        with self._begin() as conn:
            conn.execute(
                update(t)
                .where(t.c.user_id == user_id, t.c.settlement_id == settlement_id)
                .values(
                    reconciled=True,
                    reconciled_at=reconciled_at,
                    bank_transaction_id=bank_transaction_id,
                    bank_amount=bank_amount,
                    variance=variance,
                    auto_reconciled=auto_reconciled,
                )
            )

    @staticmethod
    def _to_settlement(row: RowMapping) -> Settlement:
        return Settlement(
            settlement_id=row["settlement_id"],
            user_id=row["user_id"],
            settlement_date=row["settlement_date"],
            mb_net=_decimal(row["mb_net"]),
            transaction_count=row["transaction_count"] or 0,
            gross=_decimal(row["gross"]),
            fees=_decimal(row["fees"]),
            reconciled=bool(row["reconciled"]),
            reconciled_at=row["reconciled_at"],
            bank_transaction_id=row["bank_transaction_id"],
            bank_amount=_decimal(row["bank_amount"]),
            variance=_decimal(row["variance"]),
            auto_reconciled=bool(row["auto_reconciled"]),
        )

    # Bank transactions

    def add_transactions(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        t = transactions_table
        added = []
        with self._begin() as conn:
            for txn in transactions:
                duplicate = select(t.c.id).where(t.c.id == txn.id)
                if txn.import_hash:
                    duplicate = select(t.c.id).where(
                        (t.c.id == txn.id)
                        | ((t.c.user_id == txn.user_id) & (t.c.import_hash == txn.import_hash))
                    )
                if conn.execute(duplicate).first() is not None:
                    continue
                conn.execute(insert(t).values(**self._transaction_values(asdict(txn))))
                added.append(txn)
        return added

    def list_transactions(
        self,
        user_id: str,
        unreconciled_only: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        t = transactions_table
        query = select(t).where(t.c.user_id == user_id)
        if unreconciled_only:
            query = query.where(
                t.c.reconciliation_status == ReconciliationStatus.UNRECONCILED.value
            )
        query = query.order_by(t.c.transaction_date, t.c.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)

        with self._begin() as conn:
            rows = conn.execute(query).mappings().all()
        return [self._to_transaction(r) for r in rows]

    def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        t = transactions_table
        with self._begin() as conn:
            row = (
                conn.execute(select(t).where(t.c.user_id == user_id, t.c.id == transaction_id))
                .mappings()
                .first()
            )
        return self._to_transaction(row) if row else None

    def update_transaction(
        self, user_id: str, transaction_id: str, changes: dict[str, Any]
    ) -> None:
        t = transactions_table
        with self._begin() as conn:
            conn.execute(
                update(t)
                .where(t.c.user_id == user_id, t.c.id == transaction_id)
                .values(**self._transaction_values(changes))
            )

    def set_transaction_status(
        self, user_id: str, transaction_ids: list[str], status: ReconciliationStatus
    ) -> None:
        if not transaction_ids:
            return
        t = transactions_table
        with self._begin() as conn:
            conn.execute(
                update(t)
                .where(t.c.user_id == user_id, t.c.id.in_(transaction_ids))
                .values(reconciliation_status=status.value)
            )

    @staticmethod
    def _transaction_values(fields: dict[str, Any]) -> dict[str, Any]:
        values = {k: _plain(v) for k, v in fields.items()}
        if "date" in values:
            values["transaction_date"] = values.pop("date")
        return values

    @staticmethod
    def _to_transaction(row: RowMapping) -> Transaction:
        return Transaction(
            id=row["id"],
            user_id=row["user_id"],
            date=row["transaction_date"],
            amount=_decimal(row["amount"]),
            type=TransactionType(row["type"]),
            description=row["description"] or "",
            raw_party=row["raw_party"],
            vendor_id=row["vendor_id"],
            staff_id=row["staff_id"],
            category_id=row["category_id"],
            notes=row["notes"],
            reconciliation_status=ReconciliationStatus(row["reconciliation_status"]),
            confirmed=bool(row["confirmed"]),
            matched_rule_id=row["matched_rule_id"],
            reconciled_at=row["reconciled_at"],
            reconciled_by=row["reconciled_by"],
            bank_category=row["bank_category"],
            import_hash=row["import_hash"],
        )

    # Reconciliation rules

    def add_rule(self, rule: ReconciliationRule) -> ReconciliationRule:
        values = {k: _plain(v) for k, v in asdict(rule).items()}
        values["conditions"] = [c.to_dict() for c in rule.conditions]
        with self._begin() as conn:
            conn.execute(insert(rules_table).values(**values))
        return rule

    def update_rule(self, user_id: str, rule_id: str, changes: dict[str, Any]) -> None:
        values = {k: _plain(v) for k, v in changes.items()}
        t = rules_table
        with self._begin() as conn:
            conn.execute(
                update(t).where(t.c.user_id == user_id, t.c.id == rule_id).values(**values)
            )

    def delete_rule(self, user_id: str, rule_id: str) -> None:
        t = rules_table
        with self._begin() as conn:
            conn.execute(delete(t).where(t.c.user_id == user_id, t.c.id == rule_id))

    def get_rule(self, user_id: str, rule_id: str) -> Optional[ReconciliationRule]:
        t = rules_table
        with self._begin() as conn:
            row = (
                conn.execute(select(t).where(t.c.user_id == user_id, t.c.id == rule_id))
                .mappings()
                .first()
            )
        return self._to_rule(row) if row else None

    def list_rules(self, user_id: str, active_only: bool = False) -> list[ReconciliationRule]:
        t = rules_table
        query = select(t).where(t.c.user_id == user_id)
        if active_only:
            query = query.where(t.c.is_active.is_(True))
        query = query.order_by(t.c.priority, t.c.created_at, t.c.id)

        with self._begin() as conn:
            rows = conn.execute(query).mappings().all()
        return [self._to_rule(r) for r in rows]

    def record_rule_matches(
        self, user_id: str, rule_id: str, match_count: int, last_matched_at: datetime
    ) -> None:
        t = rules_table
        with self._begin() as conn:
            conn.execute(
                update(t)
                .where(t.c.user_id == user_id, t.c.id == rule_id)
                .values(match_count=match_count, last_matched_at=last_matched_at)
            )

    @staticmethod
    def _to_rule(row: RowMapping) -> ReconciliationRule:
        tx_type = row["match_transaction_type"]
        return ReconciliationRule(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            match_type=MatchType(row["match_type"]),
            priority=row["priority"],
            is_active=bool(row["is_active"]),
            description=row["description"],
            conditions=[RuleCondition.from_dict(c) for c in (row["conditions"] or [])],
            match_vendor_id=row["match_vendor_id"],
            match_staff_id=row["match_staff_id"],
            match_description_pattern=row["match_description_pattern"],
            match_counter_party_pattern=row["match_counter_party_pattern"],
            match_amount_min=_decimal(row["match_amount_min"]),
            match_amount_max=_decimal(row["match_amount_max"]),
            match_transaction_type=TransactionType(tx_type) if tx_type else None,
            action_category_id=row["action_category_id"],
            action_staff_id=row["action_staff_id"],
            action_vendor_id=row["action_vendor_id"],
            action_notes_template=row["action_notes_template"],
            requires_approval=bool(row["requires_approval"]),
            match_count=row["match_count"] or 0,
            last_matched_at=row["last_matched_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # Pending matches

    def upsert_pending_matches(self, matches: Iterable[PendingMatch]) -> list[PendingMatch]:
        t = pending_matches_table
        pending: list[PendingMatch] = []
        with self._begin() as conn:
            for match in matches:
                existing = (
                    conn.execute(
                        select(t.c.id, t.c.status, t.c.created_at).where(
                            t.c.transaction_id == match.transaction_id,
                            t.c.rule_id == match.rule_id,
                        )
                    )
                    .mappings()
                    .first()
                )
                suggestion = {
                    "suggested_category_id": match.suggested_category_id,
                    "suggested_staff_id": match.suggested_staff_id,
                    "suggested_vendor_id": match.suggested_vendor_id,
                    "suggested_notes": match.suggested_notes,
                    "match_confidence": match.match_confidence,
                }
                if existing is None:
                    conn.execute(
                        insert(t).values(
                            id=match.id,
                            user_id=match.user_id,
                            transaction_id=match.transaction_id,
                            rule_id=match.rule_id,
                            status=MatchStatus.PENDING.value,
                            created_at=match.created_at,
                            **suggestion,
                        )
                    )
                    pending.append(match)
                elif existing["status"] == MatchStatus.PENDING.value:
                    conn.execute(update(t).where(t.c.id == existing["id"]).values(**suggestion))
                    match.id = existing["id"]
                    match.created_at = existing["created_at"]
                    pending.append(match)
        return pending

    def list_pending_matches(
        self,
        user_id: str,
        status: Optional[MatchStatus] = None,
        rule_id: Optional[str] = None,
    ) -> list[PendingMatch]:
        t = pending_matches_table
        query = select(t).where(t.c.user_id == user_id)
        if status is not None:
            query = query.where(t.c.status == status.value)
        if rule_id is not None:
            query = query.where(t.c.rule_id == rule_id)
        query = query.order_by(t.c.created_at.desc(), t.c.id)

        with self._begin() as conn:
            rows = conn.execute(query).mappings().all()
        return [self._to_pending_match(r) for r in rows]

    def get_pending_match(self, user_id: str, match_id: str) -> Optional[PendingMatch]:
        t = pending_matches_table
        with self._begin() as conn:
            row = (
                conn.execute(select(t).where(t.c.user_id == user_id, t.c.id == match_id))
                .mappings()
                .first()
            )
        return self._to_pending_match(row) if row else None

    def count_pending_matches(self, user_id: str) -> int:
        t = pending_matches_table
        with self._begin() as conn:
            return conn.execute(
                select(func.count())
                .select_from(t)
                .where(t.c.user_id == user_id, t.c.status == MatchStatus.PENDING.value)
            ).scalar_one()

    def update_pending_match_status(
        self, user_id: str, match_id: str, status: MatchStatus, reviewed_at: datetime
    ) -> None:
        t = pending_matches_table
        with self._begin() as conn:
            conn.execute(
                update(t)
                .where(t.c.user_id == user_id, t.c.id == match_id)
                .values(status=status.value, reviewed_at=reviewed_at)
            )

    @staticmethod
    def _to_pending_match(row: RowMapping) -> PendingMatch:
        return PendingMatch(
            id=row["id"],
            user_id=row["user_id"],
            transaction_id=row["transaction_id"],
            rule_id=row["rule_id"],
            suggested_category_id=row["suggested_category_id"],
            suggested_staff_id=row["suggested_staff_id"],
            suggested_vendor_id=row["suggested_vendor_id"],
            suggested_notes=row["suggested_notes"],
            match_confidence=row["match_confidence"],
            status=MatchStatus(row["status"]),
            created_at=row["created_at"],
            reviewed_at=row["reviewed_at"],
        )

    # Membership platform records

    def _upsert(self, table: Table, key: str, values: dict[str, Any]) -> None:
        with self._begin() as conn:
            exists = conn.execute(
                select(table.c[key]).where(table.c[key] == values[key])
            ).first()
            if exists is None:
                conn.execute(insert(table).values(**values))
            else:
                conn.execute(
                    update(table).where(table.c[key] == values[key]).values(**values)
                )

    def _update(self, table: Table, key: str, key_value: str, changes: dict[str, Any]) -> int:
        with self._begin() as conn:
            result = conn.execute(
                update(table).where(table.c[key] == key_value).values(**changes)
            )
            return result.rowcount

    def _get(self, table: Table, key: str, key_value: str) -> Optional[dict[str, Any]]:
        with self._begin() as conn:
            row = conn.execute(select(table).where(table.c[key] == key_value)).mappings().first()
        return dict(row) if row else None

    def upsert_member(self, member: Member) -> None:
        self._upsert(members_table, "mb_client_id", asdict(member))

    def update_member(self, mb_client_id: str, changes: dict[str, Any]) -> int:
        return self._update(members_table, "mb_client_id", mb_client_id, changes)

    def get_member(self, mb_client_id: str) -> Optional[Member]:
        row = self._get(members_table, "mb_client_id", mb_client_id)
        return Member(**row) if row else None

    def upsert_membership(self, membership: Membership) -> None:
        self._upsert(memberships_table, "mb_membership_id", asdict(membership))

    def update_membership(self, mb_membership_id: str, changes: dict[str, Any]) -> int:
        return self._update(memberships_table, "mb_membership_id", mb_membership_id, changes)

    def reassign_memberships(self, from_client_id: str, to_client_id: str) -> int:
        return self._update(
            memberships_table, "mb_client_id", from_client_id, {"mb_client_id": to_client_id}
        )

    def get_membership(self, mb_membership_id: str) -> Optional[Membership]:
        row = self._get(memberships_table, "mb_membership_id", mb_membership_id)
        return Membership(**row) if row else None

    def upsert_sale(self, sale: Sale) -> None:
        self._upsert(sales_table, "mb_transaction_id", asdict(sale))

    def get_sale(self, mb_transaction_id: str) -> Optional[Sale]:
        row = self._get(sales_table, "mb_transaction_id", mb_transaction_id)
        if not row:
            return None
        row["gross_amount"] = _decimal(row["gross_amount"])
        row["net_amount"] = _decimal(row["net_amount"])
        return Sale(**row)

    # API audit log

    def write_api_log(self, entry: ApiLogEntry) -> None:
        values = {k: _plain(v) for k, v in asdict(entry).items() if k != "id"}
        with self._begin() as conn:
            conn.execute(insert(api_logs_table).values(**values))

    def list_api_logs(
        self, limit: int = 100, event_type: Optional[str] = None
    ) -> list[ApiLogEntry]:
        t = api_logs_table
        query = select(t)
        if event_type is not None:
            query = query.where(t.c.event_type == event_type)
        query = query.order_by(t.c.created_at.desc(), t.c.id.desc()).limit(limit)

        with self._begin() as conn:
            rows = conn.execute(query).mappings().all()
        return [
            ApiLogEntry(
                id=r["id"],
                user_id=r["user_id"],
                log_type=LogType(r["log_type"]),
                source=r["source"],
                event_type=r["event_type"],
                status=LogStatus(r["status"]),
                request_data=r["request_data"],
                response_data=r["response_data"],
                error_message=r["error_message"],
                duration_ms=r["duration_ms"],
                created_at=r["created_at"],
            )
            for r in rows
        ]
