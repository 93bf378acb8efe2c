"""
UK merchant fee calculator for payment processor transactions.

Pure functions: nothing here touches the store.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union
import logging
import re

from ..config import FeeConfig, FeeRate
from ..models.fees import (
    BatchFeeSummary,
    FeeCalculation,
    FeeTransaction,
    FeeType,
    ReconciliationCheck,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DEFAULT_MARGIN = Decimal("0.05")

Amount = Union[Decimal, int, float, str]

# Tags as sent by the processor, compared after _normalize_tag
NO_FEE_PAYMENT_TYPES = {"account", "onaccount", "cash"}
DIRECT_DEBIT_PAYMENT_TYPES = {"directdebit"}
DIRECT_DEBIT_ENTRY_METHODS = {"bacs", "directdebit"}
CARD_PRESENT_ENTRY_METHODS = {"cardpresent", "chip", "swipe"}

_DEFAULT_RATES = FeeConfig()


def to_decimal(value: Amount) -> Decimal:
    """Convert an amount to Decimal without picking up float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value: Decimal) -> Decimal:
    """Round half-up at the cent."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _normalize_tag(tag: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]", "", (tag or "").lower())


def _charge(amount: Decimal, rates: FeeRate, fee_type: FeeType) -> FeeCalculation:
    fee = round_currency(amount * rates.rate + rates.fixed_fee)
    return FeeCalculation(
        fee=fee, rate=rates.rate, fixed_fee=rates.fixed_fee, fee_type=fee_type
    )


def calculate_fee(
    amount: Amount,
    payment_type: Optional[str],
    entry_method: Optional[str],
    rates: Optional[FeeConfig] = None,
) -> FeeCalculation:
    """
    Calculate the merchant fee for a single transaction.

    Rules are evaluated in order and the first one that applies wins:
    on-account and cash payments are free, direct debits pay the Bacs rate,
    card-present entry methods pay the flat card-present rate, and anything
    else is charged as card-not-present.

    Args:
        amount: Transaction amount in GBP (non-negative)
        payment_type: Payment type tag from the processor (e.g. "CreditCard")
        entry_method: Entry method tag from the processor (e.g. "CardPresent")
        rates: Merchant rates (defaults to the standard UK rates)

    Returns:
        Fee calculation details
    """
    rates = rates or _DEFAULT_RATES
    value = to_decimal(amount)
    payment = _normalize_tag(payment_type)
    entry = _normalize_tag(entry_method)

    if payment in NO_FEE_PAYMENT_TYPES:
        return FeeCalculation(
            fee=Decimal("0.00"), rate=Decimal("0"), fixed_fee=Decimal("0"), fee_type=FeeType.NONE
        )

    if payment in DIRECT_DEBIT_PAYMENT_TYPES or entry in DIRECT_DEBIT_ENTRY_METHODS:
        return _charge(value, rates.bacs, FeeType.BACS)

    if entry in CARD_PRESENT_ENTRY_METHODS:
        return _charge(value, rates.card_present, FeeType.CARD_PRESENT)

    return _charge(value, rates.card_not_present, FeeType.CARD_NOT_PRESENT)


def calculate_batch_fees(
    transactions: Iterable[FeeTransaction],
    rates: Optional[FeeConfig] = None,
) -> BatchFeeSummary:
    """
    Calculate total fees for a batch of transactions.

    The fixed fee is charged per transaction, so every transaction is priced
    individually and the rounded fees are summed.

    Args:
        transactions: Processor payments to price
        rates: Merchant rates (defaults to the standard UK rates)

    Returns:
        Batch totals with a per fee type breakdown
    """
    summary = BatchFeeSummary()

    for txn in transactions:
        calc = calculate_fee(txn.amount, txn.payment_type, txn.entry_method, rates)

        if calc.fee_type == FeeType.NONE:
            summary.skipped_count += 1
            continue

        summary.total_fees += calc.fee
        summary.total_fixed_fees += calc.fixed_fee
        summary.total_percentage_fees += calc.percentage_fee

        bucket = summary.breakdown[calc.fee_type]
        bucket.count += 1
        bucket.fees += calc.fee

    summary.total_fees = round_currency(summary.total_fees)
    summary.total_fixed_fees = round_currency(summary.total_fixed_fees)
    summary.total_percentage_fees = round_currency(summary.total_percentage_fees)
    for bucket in summary.breakdown.values():
        bucket.fees = round_currency(bucket.fees)

    logger.debug(
        f"Priced {summary.charged_count} transactions "
        f"({summary.skipped_count} skipped): total fees {summary.total_fees}"
    )
    return summary


def check_reconciliation(
    mb_net: Amount,
    bank_deposit: Amount,
    margin: Amount = DEFAULT_MARGIN,
) -> ReconciliationCheck:
    """
    Check whether a bank deposit matches a processor net amount.

    Args:
        mb_net: Net amount the processor reports as paid out
        bank_deposit: Amount that arrived in the bank
        margin: Largest variance still treated as a match (5p by default)

    Returns:
        Whether the amounts match and the variance rounded to the cent
    """
    variance = abs(to_decimal(mb_net) - to_decimal(bank_deposit))
    return ReconciliationCheck(
        matched=variance <= to_decimal(margin),
        variance=round_currency(variance),
    )
