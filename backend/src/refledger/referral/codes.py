"""Referral code issuance, resolution and rotation."""

import secrets
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from refledger.accounts.models import Account
from refledger.exceptions import NotFoundError
from refledger.logging_config import get_logger
from refledger.referral.models import ReferralCode
from refledger.settings import settings
from refledger.storage.atomic import insert_if_absent, update_where
from refledger.storage.db import Database, db

logger = get_logger(__name__)

# Exclude confusing characters: 0, O, I, L, 1
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10


def generate_code(length: int = CODE_LENGTH) -> str:
    """Generate a readable referral code, e.g. ``ABC12XYZ``."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str | None) -> str | None:
    """Canonical form used for storage and lookup, or None if blank."""
    if not code:
        return None
    code = code.strip().upper()
    return code or None


def build_referral_link(code: str, base_url: str | None = None) -> str:
    """Shareable landing link carrying the code as the ``ref`` parameter."""
    base = (base_url or settings.public_base_url).rstrip("/")
    return f"{base}/?ref={code}"


class ReferralCodeService:
    """Issues, resolves and rotates per-account referral codes."""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    def issue_code(self, account_id: int) -> str:
        """Return the account's current code, creating one if it has none.

        Args:
            account_id: Account ID

        Returns:
            Current referral code

        Raises:
            NotFoundError: If the account does not exist
        """
        for _ in range(MAX_CODE_ATTEMPTS):
            try:
                with self.db.session() as session:
                    if session.get(Account, account_id) is None:
                        raise NotFoundError("account", account_id)

                    created = insert_if_absent(
                        session,
                        ReferralCode,
                        {
                            "account_id": account_id,
                            "code": generate_code(),
                            "clicks": 0,
                            "conversions": 0,
                            "created_at": datetime.utcnow(),
                        },
                        index_elements=["account_id"],
                    )
                    code = session.scalar(
                        select(ReferralCode.code).where(ReferralCode.account_id == account_id)
                    )
            except IntegrityError:
                # Generated code collided with another account's code
                continue

            if created:
                logger.info("referral_code_created", account_id=account_id, code=code)
            return code

        raise RuntimeError(f"Could not generate a unique referral code for account {account_id}")

    def resolve(self, code: str | None) -> int | None:
        """Resolve a code to the account that currently owns it.

        Args:
            code: Referral code as received (any case, may be padded)

        Returns:
            Owning account ID, or None for unknown, rotated-away or blank codes
        """
        code = normalize_code(code)
        if code is None:
            return None

        with self.db.session() as session:
            return session.scalar(
                select(ReferralCode.account_id).where(ReferralCode.code == code)
            )

    def rotate(self, account_id: int) -> str:
        """Replace the account's code with a fresh one.

        The swap is a single UPDATE, so lookups see either the old code or
        the new one, never both and never neither.

        Args:
            account_id: Account ID

        Returns:
            New referral code

        Raises:
            NotFoundError: If the account does not exist
        """
        for _ in range(MAX_CODE_ATTEMPTS):
            new_code = generate_code()
            try:
                with self.db.session() as session:
                    updated = update_where(
                        session,
                        ReferralCode,
                        [ReferralCode.account_id == account_id],
                        {"code": new_code, "rotated_at": datetime.utcnow()},
                    )
            except IntegrityError:
                continue

            if not updated:
                # Never had a code; issuing one is the rotation
                return self.issue_code(account_id)

            logger.info("referral_code_rotated", account_id=account_id, code=new_code)
            return new_code

        raise RuntimeError(f"Could not generate a unique referral code for account {account_id}")

    def get_stats(self, account_id: int) -> dict[str, Any]:
        """Get referral statistics for an account.

        Args:
            account_id: Account ID

        Returns:
            Dict with code, link, counters and earnings balances
        """
        from refledger.earnings.ledger import get_balances

        code = self.issue_code(account_id)
        with self.db.session() as session:
            row = session.scalars(
                select(ReferralCode).where(ReferralCode.account_id == account_id)
            ).one()
            referred_count = len(
                session.scalars(select(Account.id).where(Account.referred_by_id == account_id)).all()
            )

            stats = {
                "code": code,
                "link": build_referral_link(code),
                "clicks": row.clicks,
                "conversions": row.conversions,
                "referred_count": referred_count,
            }

        stats["balances"] = get_balances(account_id, database=self.db)
        return stats


# Singleton instance
referral_codes = ReferralCodeService()
