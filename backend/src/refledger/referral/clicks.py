"""Server-side recording of referral link visits."""

from datetime import datetime

from sqlalchemy import select

from refledger.logging_config import get_logger
from refledger.referral.codes import normalize_code
from refledger.referral.models import ReferralClick, ReferralCode
from refledger.storage.atomic import increment
from refledger.storage.db import Database, db

logger = get_logger(__name__)


class ReferralClickRecorder:
    """Appends one ReferralClick per logged visit."""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    def record(self, code: str, ip: str | None = None, user_agent: str | None = None) -> ReferralClick:
        """Record a visit carrying ``code``.

        The referrer is whichever account currently owns the code. Codes
        that do not resolve are still stored, with a null referrer.

        Args:
            code: Referral code from the visit URL
            ip: Client IP
            user_agent: Client user agent

        Returns:
            The stored click
        """
        ref_code = normalize_code(code) or code

        with self.db.session() as session:
            referrer_id = session.scalar(
                select(ReferralCode.account_id).where(ReferralCode.code == ref_code)
            )

            click = ReferralClick(
                ref_code=ref_code,
                referrer_account_id=referrer_id,
                ip=ip,
                user_agent=user_agent,
                created_at=datetime.utcnow(),
            )
            session.add(click)
            session.flush()

            if referrer_id is not None:
                increment(session, ReferralCode, [ReferralCode.account_id == referrer_id], "clicks")

        logger.info(
            "referral_click_recorded",
            click_id=click.id,
            code=ref_code,
            referrer_id=referrer_id,
        )
        return click


# Singleton instance
click_recorder = ReferralClickRecorder()
