"""Referral earnings ledger."""

from refledger.earnings.ledger import EarningsLedger, NotificationOutcome, earnings_ledger, get_balances
from refledger.earnings.models import AccountBalance, EarningsCredit, EarningsEvent

__all__ = [
    "AccountBalance",
    "EarningsCredit",
    "EarningsEvent",
    "EarningsLedger",
    "NotificationOutcome",
    "earnings_ledger",
    "get_balances",
]
