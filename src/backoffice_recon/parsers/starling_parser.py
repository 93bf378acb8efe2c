"""
Starling Bank CSV statement parser.
Converts statement rows into bank transactions and settlement deposits.
"""

from pathlib import Path
from typing import Any, Optional
import hashlib
import logging

import pandas as pd

from ..models.rules import Transaction, TransactionType
from ..models.settlement import BankDeposit
from ..utils.exceptions import BankStatementParseError
from .base import CsvParser

logger = logging.getLogger(__name__)

# Statement types that indicate money leaving the account
EXPENSE_TYPES = (
    "FASTER PAYMENT OUT",
    "OUTGOING",
    "DIRECT DEBIT",
    "CARD PAYMENT",
    "FEE",
    "TRANSFER OUT",
    "STANDING ORDER",
    "WITHDRAWAL",
)


class BankStatementParser(CsvParser):
    """
    Parser for Starling Bank CSV exports.

    The sign of the amount decides income or expense; zero-value rows fall
    back to the statement's Type column. Amounts are stored unsigned.
    """

    error_class = BankStatementParseError
    default_date_format = "%d/%m/%Y"

    def parse_file(self, file_path: Path, user_id: str) -> list[Transaction]:
        """
        Parse a statement file.

        Args:
            file_path: Path to the CSV export
            user_id: Tenant the transactions belong to

        Returns:
            Transactions in file order; invalid rows are skipped

        Raises:
            BankStatementParseError: If the file cannot be read
        """
        logger.info(f"Parsing bank statement: {file_path}")
        df = self.read(file_path)

        transactions: list[Transaction] = []
        for idx, row in df.iterrows():
            try:
                txn = self._normalize_row(row, int(idx), user_id)
            except Exception as e:
                logger.warning(f"Failed to process row {idx}: {e}")
                continue
            if txn:
                transactions.append(txn)

        logger.info(f"Extracted {len(transactions)} transactions from bank statement")
        return transactions

    def _normalize_row(self, row: pd.Series, idx: int, user_id: str) -> Optional[Transaction]:
        date_cell = row.get(self.column("date", "Date"))
        party = self.text(row.get(self.column("counter_party", "Counter Party")))
        reference = self.text(row.get(self.column("reference", "Reference")))
        type_cell = self.text(row.get(self.column("type", "Type"))).upper()
        amount_cell = self.text(row.get(self.column("amount", "Amount (GBP)")))
        balance_cell = self.text(row.get(self.column("balance", "Balance (GBP)")))
        category = self.text(row.get(self.column("spending_category", "Spending Category")))

        txn_date = self.parse_date(date_cell)
        if not txn_date:
            logger.warning(f"Row {idx}: Invalid date, skipping")
            return None

        amount = self.parse_amount(amount_cell)
        if amount is None:
            logger.warning(f"Row {idx}: Invalid amount, skipping")
            return None

        if amount < 0:
            txn_type = TransactionType.EXPENSE
        elif amount > 0:
            txn_type = TransactionType.INCOME
        elif any(t in type_cell for t in EXPENSE_TYPES):
            txn_type = TransactionType.EXPENSE
        else:
            txn_type = TransactionType.INCOME

        # Row index keeps otherwise identical same-day rows distinct
        import_hash = "-".join(
            [str(idx), self.text(date_cell), party, reference, amount_cell, balance_cell]
        )

        return Transaction(
            id=self.transaction_id(user_id, import_hash),
            user_id=user_id,
            date=txn_date,
            amount=abs(amount),
            type=txn_type,
            description=reference,
            raw_party=party or None,
            bank_category=category or None,
            import_hash=import_hash,
        )

    @staticmethod
    def transaction_id(user_id: str, import_hash: str) -> str:
        digest = hashlib.sha1(f"{user_id}:{import_hash}".encode("utf-8")).hexdigest()
        return f"STARLING-{digest[:16]}"

    @staticmethod
    def to_bank_deposits(transactions: list[Transaction]) -> list[BankDeposit]:
        """Income rows as deposits that settlements can be matched against."""
        return [
            BankDeposit(
                id=txn.id,
                amount=txn.amount,
                date=txn.date,
                description=txn.raw_party or txn.description,
            )
            for txn in transactions
            if txn.type == TransactionType.INCOME and txn.amount > 0
        ]

    def get_file_summary(self, file_path: Path) -> dict[str, Any]:
        """Row count, date range and income/expense totals of a statement."""
        df = self.read(file_path)
        dates = df[self.column("date", "Date")].apply(self.parse_date).dropna()
        amounts = df[self.column("amount", "Amount (GBP)")].apply(self.parse_amount).dropna()

        income = [a for a in amounts if a > 0]
        expenses = [-a for a in amounts if a < 0]
        return {
            "row_count": len(df),
            "columns": list(df.columns),
            "date_range": {
                "start": min(dates).isoformat() if len(dates) > 0 else None,
                "end": max(dates).isoformat() if len(dates) > 0 else None,
            },
            "totals": {
                "income_count": len(income),
                "expense_count": len(expenses),
                "total_income": sum(income),
                "total_expenses": sum(expenses),
            },
        }
