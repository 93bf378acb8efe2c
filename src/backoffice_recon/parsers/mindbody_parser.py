"""
Membership platform CSV parsers: settlement reports and payment exports.
"""

from pathlib import Path
from typing import Optional
import logging

import pandas as pd

from ..fees.calculator import round_currency
from ..models.fees import FeeTransaction
from ..models.settlement import Settlement
from ..utils.exceptions import SettlementParseError
from .base import CsvParser

logger = logging.getLogger(__name__)


class SettlementParser(CsvParser):
    """Parser for processor settlement reports (one row per payout)."""

    error_class = SettlementParseError

    def parse_file(self, file_path: Path, user_id: str) -> list[Settlement]:
        """
        Parse a settlement report.

        Args:
            file_path: Path to the CSV export
            user_id: Tenant the settlements belong to

        Returns:
            Settlements in file order; invalid rows are skipped

        Raises:
            SettlementParseError: If the file cannot be read
        """
        logger.info(f"Parsing settlement report: {file_path}")
        df = self.read(file_path)

        settlements: list[Settlement] = []
        for idx, row in df.iterrows():
            try:
                settlement = self._normalize_row(row, int(idx), user_id)
            except Exception as e:
                logger.warning(f"Failed to process row {idx}: {e}")
                continue
            if settlement:
                settlements.append(settlement)

        logger.info(f"Extracted {len(settlements)} settlements")
        return settlements

    def _normalize_row(self, row: pd.Series, idx: int, user_id: str) -> Optional[Settlement]:
        settlement_id = self.text(row.get(self.column("settlement_id", "Settlement ID")))
        if not settlement_id:
            logger.warning(f"Row {idx}: Missing settlement id, skipping")
            return None

        settlement_date = self.parse_date(row.get(self.column("date", "Settlement Date")))
        if not settlement_date:
            logger.warning(f"Row {idx}: Invalid date, skipping")
            return None

        net = self.parse_amount(row.get(self.column("net", "Net")))
        if net is None:
            logger.warning(f"Row {idx}: Invalid net amount, skipping")
            return None

        gross = self.parse_amount(row.get(self.column("gross", "Gross")))
        fees = self.parse_amount(row.get(self.column("fees", "Fees")))
        count = self.parse_amount(row.get(self.column("transaction_count", "Transactions")))

        return Settlement(
            settlement_id=settlement_id,
            user_id=user_id,
            settlement_date=settlement_date,
            mb_net=round_currency(net),
            transaction_count=int(count) if count is not None else 0,
            gross=round_currency(gross) if gross is not None else None,
            fees=round_currency(fees) if fees is not None else None,
        )


class PaymentParser(CsvParser):
    """Parser for payment exports priced by the fee calculator."""

    error_class = SettlementParseError

    def parse_file(self, file_path: Path) -> list[FeeTransaction]:
        logger.info(f"Parsing payments: {file_path}")
        df = self.read(file_path)

        amount_col = self.column("amount", "Amount")
        type_col = self.column("payment_type", "Payment Type")
        method_col = self.column("entry_method", "Entry Method")

        payments: list[FeeTransaction] = []
        for idx, row in df.iterrows():
            amount = self.parse_amount(row.get(amount_col))
            if amount is None or amount < 0:
                logger.warning(f"Row {idx}: Invalid amount, skipping")
                continue
            payments.append(
                FeeTransaction(
                    amount=amount,
                    payment_type=self.text(row.get(type_col)),
                    entry_method=self.text(row.get(method_col)),
                )
            )

        logger.info(f"Extracted {len(payments)} payments")
        return payments
