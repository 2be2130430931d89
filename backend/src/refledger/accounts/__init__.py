"""Account profiles that referral attachment and earnings hang off."""

from refledger.accounts.models import Account

__all__ = ["Account"]
