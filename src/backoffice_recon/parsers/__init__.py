"""Parsers for bank statements and membership platform exports."""

from .starling_parser import BankStatementParser
from .mindbody_parser import PaymentParser, SettlementParser

__all__ = ["BankStatementParser", "PaymentParser", "SettlementParser"]
