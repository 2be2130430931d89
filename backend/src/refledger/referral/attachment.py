"""Write-once linking of an account to its referrer."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import select

from refledger.accounts.models import Account
from refledger.exceptions import NotFoundError
from refledger.logging_config import get_logger
from refledger.referral.codes import normalize_code
from refledger.referral.models import ReferralClick, ReferralCode
from refledger.storage.atomic import increment, update_where
from refledger.storage.db import Database, db

logger = get_logger(__name__)


class AttachOutcome(str, Enum):
    """Why an attach call did or did not link the account."""
    ATTACHED = "attached"
    ALREADY_ATTACHED = "already_attached"
    NO_CODE = "no_code"
    UNKNOWN_CODE = "unknown_code"
    SELF_REFERRAL = "self_referral"
    LOST_RACE = "lost_race"


# Outcomes after which the stored reference is useless and may be cleared
_CONSUMED = {
    AttachOutcome.ATTACHED,
    AttachOutcome.ALREADY_ATTACHED,
    AttachOutcome.UNKNOWN_CODE,
    AttachOutcome.SELF_REFERRAL,
    AttachOutcome.LOST_RACE,
}


@dataclass(frozen=True)
class Referrer:
    """Public view of the account that referred someone."""
    id: int
    name: str


@dataclass(frozen=True)
class AttachmentResult:
    """Result of an attach call."""
    outcome: AttachOutcome
    referrer: Referrer | None = None

    @property
    def attached(self) -> bool:
        return self.outcome is AttachOutcome.ATTACHED

    @property
    def clear_stored_reference(self) -> bool:
        """Whether the caller should drop its stored referral reference."""
        return self.outcome in _CONSUMED


class ReferralAttachmentService:
    """Links an account to the owner of a referral code, at most once."""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    def attach(
        self,
        account_id: int,
        code: str | None,
        click_id: int | None = None,
    ) -> AttachmentResult:
        """Attach ``account_id`` to the account currently owning ``code``.

        Safe to call any number of times, concurrently included: the final
        write is conditioned on ``referred_by_id`` still being null, so the
        first writer wins and every other call reports ``attached=False``.

        Args:
            account_id: Account being attached (the referred account)
            code: Stored referral code, may be None
            click_id: Originating referral click, if known

        Returns:
            AttachmentResult

        Raises:
            NotFoundError: If the account does not exist
            StorageUnavailableError: If the database cannot be reached
        """
        with self.db.session() as session:
            row = session.execute(
                select(Account.id, Account.referred_by_id).where(Account.id == account_id)
            ).first()
            if row is None:
                raise NotFoundError("account", account_id)
            if row.referred_by_id is not None:
                return AttachmentResult(AttachOutcome.ALREADY_ATTACHED)

            code = normalize_code(code)
            if code is None:
                return AttachmentResult(AttachOutcome.NO_CODE)

            referrer = session.execute(
                select(Account)
                .join(ReferralCode, ReferralCode.account_id == Account.id)
                .where(ReferralCode.code == code)
            ).scalar_one_or_none()
            if referrer is None:
                logger.info("referral_code_unresolved", account_id=account_id, code=code)
                return AttachmentResult(AttachOutcome.UNKNOWN_CODE)

            if referrer.id == account_id:
                logger.warning("self_referral_blocked", account_id=account_id)
                return AttachmentResult(AttachOutcome.SELF_REFERRAL)

            if click_id is not None and session.get(ReferralClick, click_id) is None:
                click_id = None

            values = {
                "referred_by_id": referrer.id,
                "referred_at": datetime.utcnow(),
            }
            if click_id is not None:
                values["referral_click_id"] = click_id

            updated = update_where(
                session,
                Account,
                [Account.id == account_id, Account.referred_by_id.is_(None)],
                values,
            )
            if not updated:
                logger.info("referral_attach_lost_race", account_id=account_id)
                return AttachmentResult(AttachOutcome.LOST_RACE)

            increment(session, ReferralCode, [ReferralCode.account_id == referrer.id], "conversions")
            result = AttachmentResult(
                AttachOutcome.ATTACHED,
                Referrer(id=referrer.id, name=referrer.display_name),
            )

        logger.info(
            "referral_attached",
            account_id=account_id,
            referrer_id=referrer.id,
            click_id=click_id,
        )
        return result


# Singleton instance
attachment_service = ReferralAttachmentService()
