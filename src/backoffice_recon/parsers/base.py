"""Shared CSV reading and cell parsing for the import parsers."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional
import logging

import pandas as pd

from ..utils.exceptions import ParseError

logger = logging.getLogger(__name__)


class CsvParser:
    """
    Base class for pandas-backed CSV parsers.

    Subclasses set ``error_class`` and read their own section of the
    ``input`` configuration.
    """

    error_class: type[ParseError] = ParseError
    default_date_format = "%Y-%m-%d"

    def __init__(self, settings: dict[str, Any]):
        """
        Args:
            settings: Input section for this file type (encoding, date format,
                column mappings)
        """
        self.settings = settings or {}
        self.column_mappings: dict[str, str] = self.settings.get("column_mappings", {})
        self.date_format = self.settings.get("date_format", self.default_date_format)

    def column(self, key: str, default: str) -> str:
        return self.column_mappings.get(key, default)

    def read(self, file_path: Path) -> pd.DataFrame:
        """
        Read a CSV file into a DataFrame of strings.

        Raises:
            ParseError: (subclass) if the file cannot be read
        """
        try:
            return pd.read_csv(
                file_path,
                encoding=self.settings.get("encoding", "utf-8"),
                delimiter=self.settings.get("delimiter", ","),
                dtype=str,
                skip_blank_lines=True,
            )
        except Exception as e:
            logger.error(f"Failed to read CSV file {file_path}: {e}")
            raise self.error_class(f"Failed to read CSV file: {e}") from e

    def parse_date(self, value: Any) -> Optional[date]:
        """Parse a date cell with the configured format, falling back to pandas."""
        if value is None or pd.isna(value) or str(value).strip() == "":
            return None

        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        try:
            return datetime.strptime(str(value).strip(), self.date_format).date()
        except ValueError:
            try:
                return pd.to_datetime(value, dayfirst=self.date_format.startswith("%d")).date()
            except (ValueError, TypeError):
                return None

    @staticmethod
    def parse_amount(value: Any) -> Optional[Decimal]:
        """Parse a money cell, ignoring currency symbols and thousands separators."""
        if value is None or pd.isna(value):
            return None

        text = str(value).replace("£", "").replace("$", "").replace(",", "").strip()
        if not text:
            return None

        try:
            amount = Decimal(text)
        except (InvalidOperation, ValueError):
            return None
        return amount if amount.is_finite() else None

    @staticmethod
    def text(value: Any) -> str:
        if value is None or pd.isna(value):
            return ""
        return str(value).strip()
