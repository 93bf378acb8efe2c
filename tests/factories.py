"""Builders for test records."""

from datetime import date
from decimal import Decimal

from backoffice_recon.models import ReconciliationRule, Settlement, Transaction, TransactionType


def make_settlement(settlement_id, settlement_date, mb_net, user_id="user-1", **kwargs):
    kwargs.setdefault("transaction_count", 3)
    return Settlement(
        settlement_id=settlement_id,
        user_id=user_id,
        settlement_date=settlement_date,
        mb_net=Decimal(str(mb_net)),
        **kwargs,
    )


def make_transaction(txn_id, amount, user_id="user-1", **kwargs):
    kwargs.setdefault("date", date(2024, 3, 1))
    kwargs.setdefault("type", TransactionType.EXPENSE)
    return Transaction(id=txn_id, user_id=user_id, amount=Decimal(str(amount)), **kwargs)


def make_rule(rule_id, match_type, user_id="user-1", **kwargs):
    kwargs.setdefault("action_category_id", f"cat-{rule_id}")
    return ReconciliationRule(
        id=rule_id, user_id=user_id, name=rule_id, match_type=match_type, **kwargs
    )
