"""Referral earnings recorded from verified purchase notifications.

Each notification runs two independent idempotent steps:

1. attach the buyer to the referral code carried on the checkout, if the
   buyer is not attached yet;
2. insert the EarningsEvent for the order and, only when this call created
   it, credit tier 1 and tier 2 referrers in the same transaction.

A failure in step 1 is logged and does not stop step 2. A failure in step 2
propagates so the provider redelivers, and redelivery repeats both steps
safely.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from enum import Enum

from sqlalchemy import select

from refledger.accounts.models import Account
from refledger.earnings.models import AccountBalance, EarningsCredit, EarningsEvent
from refledger.exceptions import LedgerNotConfiguredError, NotFoundError
from refledger.logging_config import get_logger
from refledger.payments.stripe_service import PurchaseNotification, parse_purchase, verify_webhook_signature
from refledger.referral.attachment import ReferralAttachmentService, attachment_service
from refledger.settings import settings
from refledger.storage.atomic import add_to_column, insert_if_absent
from refledger.storage.db import Database, db

logger = get_logger(__name__)


class NotificationOutcome(str, Enum):
    """What handling a notification did."""
    IGNORED = "ignored"
    RECORDED = "recorded"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class TierCredit:
    """Credit owed to one referrer for one order."""
    tier: int
    account_id: int
    rate: Decimal
    amount: int  # minor units


def compute_credit(gross_amount: int, rate: Decimal) -> int:
    """Credit in minor units, rounded down so the total never exceeds the rate."""
    return int((Decimal(gross_amount) * rate).to_integral_value(rounding=ROUND_DOWN))


def get_balances(account_id: int, database: Database | None = None) -> dict[str, int]:
    """Referral earnings balance per currency, in minor units."""
    with (database or db).session() as session:
        rows = session.execute(
            select(AccountBalance.currency, AccountBalance.amount).where(
                AccountBalance.account_id == account_id
            )
        ).all()
        return {row.currency: row.amount for row in rows}


class EarningsLedger:
    """Turns purchase notifications into tiered referral credits, once per order."""

    def __init__(
        self,
        database: Database | None = None,
        attachment: ReferralAttachmentService | None = None,
        webhook_secret: str | None = None,
        tier1_rate: float | None = None,
        tier2_rate: float | None = None,
        min_gross_amount: int | None = None,
    ):
        self.db = database or db
        self.attachment = attachment or attachment_service
        self._webhook_secret = webhook_secret
        self._tier1_rate = tier1_rate
        self._tier2_rate = tier2_rate
        self._min_gross_amount = min_gross_amount

    @property
    def webhook_secret(self) -> str | None:
        return self._webhook_secret or settings.stripe_webhook_secret

    @property
    def min_gross_amount(self) -> int:
        if self._min_gross_amount is not None:
            return self._min_gross_amount
        return settings.referral_min_gross_amount

    def rates(self) -> tuple[Decimal, Decimal]:
        """Configured tier 1 and tier 2 rates.

        Raises:
            LedgerNotConfiguredError: If either rate is unset
        """
        tier1 = self._tier1_rate if self._tier1_rate is not None else settings.referral_tier1_rate
        tier2 = self._tier2_rate if self._tier2_rate is not None else settings.referral_tier2_rate
        if tier1 is None or tier2 is None:
            raise LedgerNotConfiguredError("Referral tier rates are not configured")
        return Decimal(str(tier1)), Decimal(str(tier2))

    def handle_purchase_notification(
        self,
        raw_body: bytes | str,
        signature_header: str | None,
    ) -> NotificationOutcome:
        """Process one inbound purchase notification.

        Args:
            raw_body: Raw request body exactly as received
            signature_header: Stripe-Signature header value

        Returns:
            NotificationOutcome

        Raises:
            LedgerNotConfiguredError: If the webhook secret or tier rates are unset
            WebhookSignatureError: If the signature does not verify
            PayloadValidationError: If a purchase is missing required fields
            StorageUnavailableError: If the earnings could not be written
        """
        if not self.webhook_secret:
            raise LedgerNotConfiguredError("Stripe webhook secret is not configured")

        event = verify_webhook_signature(raw_body, signature_header, self.webhook_secret)

        purchase = parse_purchase(event)
        if purchase is None:
            logger.info("stripe_webhook_ignored", event_id=event.get("id"), event_type=event.get("type"))
            return NotificationOutcome.IGNORED

        if purchase.buyer_account_id is None:
            logger.warning("stripe_purchase_without_buyer", order_id=purchase.order_id)
            return NotificationOutcome.IGNORED

        self._attach_buyer(purchase)

        try:
            created = self.record_purchase(purchase)
        except NotFoundError as e:
            logger.warning("stripe_purchase_unknown_buyer", order_id=purchase.order_id, error=str(e))
            return NotificationOutcome.IGNORED

        return NotificationOutcome.RECORDED if created else NotificationOutcome.DUPLICATE

    def _attach_buyer(self, purchase: PurchaseNotification) -> None:
        if not purchase.referral_code:
            return
        try:
            result = self.attachment.attach(
                purchase.buyer_account_id,
                purchase.referral_code,
                click_id=purchase.click_id,
            )
        except Exception as e:
            logger.error(
                "checkout_referral_attach_failed",
                order_id=purchase.order_id,
                account_id=purchase.buyer_account_id,
                error=str(e),
            )
            return

        logger.info(
            "checkout_referral_attach",
            order_id=purchase.order_id,
            account_id=purchase.buyer_account_id,
            outcome=result.outcome.value,
        )

    def record_purchase(self, purchase: PurchaseNotification) -> bool:
        """Create the EarningsEvent for the order and apply tier credits.

        Args:
            purchase: Verified purchase

        Returns:
            True if this call recorded the order, False if it was already recorded

        Raises:
            LedgerNotConfiguredError: If tier rates are unset
            NotFoundError: If the buyer account does not exist
        """
        tier1_rate, tier2_rate = self.rates()

        with self.db.session() as session:
            buyer = session.get(Account, purchase.buyer_account_id)
            if buyer is None:
                raise NotFoundError("account", purchase.buyer_account_id)

            created = insert_if_absent(
                session,
                EarningsEvent,
                {
                    "order_id": purchase.order_id,
                    "buyer_account_id": buyer.id,
                    "gross_amount": purchase.gross_amount,
                    "currency": purchase.currency,
                    "created_at": datetime.utcnow(),
                },
                index_elements=["order_id"],
            )
            if not created:
                logger.info("earnings_event_duplicate", order_id=purchase.order_id)
                return False

            credits = self._tier_credits(session, buyer, purchase.gross_amount, tier1_rate, tier2_rate)
            for credit in credits:
                session.add(
                    EarningsCredit(
                        order_id=purchase.order_id,
                        account_id=credit.account_id,
                        tier=credit.tier,
                        rate=str(credit.rate),
                        amount=credit.amount,
                        currency=purchase.currency,
                        created_at=datetime.utcnow(),
                    )
                )
                add_to_column(
                    session,
                    AccountBalance,
                    {"account_id": credit.account_id, "currency": purchase.currency},
                    "amount",
                    credit.amount,
                )

        logger.info(
            "earnings_event_recorded",
            order_id=purchase.order_id,
            buyer_id=purchase.buyer_account_id,
            gross_amount=purchase.gross_amount,
            currency=purchase.currency,
            credits=[(c.tier, c.account_id, c.amount) for c in credits],
        )
        return True

    def _tier_credits(
        self,
        session,
        buyer: Account,
        gross_amount: int,
        tier1_rate: Decimal,
        tier2_rate: Decimal,
    ) -> list[TierCredit]:
        if gross_amount < self.min_gross_amount:
            logger.info("purchase_below_minimum", buyer_id=buyer.id, gross_amount=gross_amount)
            return []

        credits = []
        tier1_id = buyer.referred_by_id
        if tier1_id is None:
            return credits

        amount = compute_credit(gross_amount, tier1_rate)
        if amount > 0:
            credits.append(TierCredit(1, tier1_id, tier1_rate, amount))

        tier1 = session.get(Account, tier1_id)
        tier2_id = tier1.referred_by_id if tier1 is not None else None
        if tier2_id is None or tier2_id == buyer.id:
            return credits

        amount = compute_credit(gross_amount, tier2_rate)
        if amount > 0:
            credits.append(TierCredit(2, tier2_id, tier2_rate, amount))
        return credits


# Singleton instance
earnings_ledger = EarningsLedger()
