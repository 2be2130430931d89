"""Stripe webhook verification and purchase payload extraction."""

import json
from dataclasses import dataclass
from typing import Any

import stripe

from refledger.exceptions import PayloadValidationError, WebhookSignatureError
from refledger.logging_config import get_logger

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
INVOICE_PAID = "invoice.payment_succeeded"
PURCHASE_EVENTS = (CHECKOUT_COMPLETED, INVOICE_PAID)
DEFAULT_CURRENCY = "gbp"


@dataclass(frozen=True)
class PurchaseNotification:
    """Fields of a completed checkout that the ledger acts on."""
    event_id: str
    order_id: str
    buyer_account_id: int | None
    referral_code: str | None
    click_id: int | None
    gross_amount: int  # minor units
    currency: str


def verify_webhook_signature(payload: bytes | str, sig_header: str | None, secret: str) -> dict[str, Any]:
    """Verify and parse a Stripe webhook event.

    Args:
        payload: Raw request body
        sig_header: Stripe-Signature header value
        secret: Endpoint signing secret

    Returns:
        Verified event as a plain dict

    Raises:
        WebhookSignatureError: If the header is missing or the signature is invalid
        PayloadValidationError: If the verified body is not a JSON object
    """
    if not sig_header:
        raise WebhookSignatureError("Missing Stripe-Signature header")

    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            # Stripe signs UTF-8 JSON, so such a body cannot carry a valid signature
            raise WebhookSignatureError("Webhook body is not valid UTF-8") from e

    try:
        stripe.WebhookSignature.verify_header(
            payload,
            sig_header,
            secret,
            tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
        )
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError("Invalid webhook signature") from e

    try:
        event = json.loads(payload)
    except ValueError as e:
        raise PayloadValidationError("Webhook body is not valid JSON") from e
    if not isinstance(event, dict):
        raise PayloadValidationError("Webhook body is not a JSON object")
    return event


def _optional_int(value: Any, field: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("stripe_metadata_not_integer", field=field, value=value)
        return None


def _required_amount(value: Any, order_id: str, field: str) -> int:
    if value is None:
        raise PayloadValidationError(f"{order_id} has no {field}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise PayloadValidationError(f"{order_id} has a non-integer {field}") from e


def _from_checkout(event_id: str, session: dict[str, Any]) -> PurchaseNotification | None:
    if session.get("payment_status", "paid") != "paid":
        logger.info("stripe_checkout_not_paid", session_id=session.get("id"))
        return None

    order_id = session.get("id")
    if not order_id:
        raise PayloadValidationError("Checkout session has no id")

    metadata = session.get("metadata") or {}
    buyer = session.get("client_reference_id") or metadata.get("user_id")

    return PurchaseNotification(
        event_id=event_id,
        order_id=order_id,
        buyer_account_id=_optional_int(buyer, "user_id"),
        referral_code=metadata.get("ref_code") or metadata.get("referral_code") or None,
        click_id=_optional_int(metadata.get("click_id"), "click_id"),
        gross_amount=_required_amount(session.get("amount_total"), order_id, "amount_total"),
        currency=(session.get("currency") or DEFAULT_CURRENCY).lower(),
    )


def _from_invoice(event_id: str, invoice: dict[str, Any]) -> PurchaseNotification:
    order_id = invoice.get("id")
    if not order_id:
        raise PayloadValidationError("Invoice has no id")

    # Renewals carry the buyer on the invoice or on the subscription it bills
    metadata = invoice.get("metadata") or {}
    subscription_metadata = (invoice.get("subscription_details") or {}).get("metadata") or {}
    buyer = metadata.get("user_id") or subscription_metadata.get("user_id")

    return PurchaseNotification(
        event_id=event_id,
        order_id=order_id,
        buyer_account_id=_optional_int(buyer, "user_id"),
        referral_code=None,
        click_id=None,
        gross_amount=_required_amount(invoice.get("amount_paid"), order_id, "amount_paid"),
        currency=(invoice.get("currency") or DEFAULT_CURRENCY).lower(),
    )


def parse_purchase(event: dict[str, Any]) -> PurchaseNotification | None:
    """Extract a PurchaseNotification from a verified event.

    Paid checkout sessions and paid subscription invoices are purchases.
    The order id is the session id or the invoice id respectively.

    Args:
        event: Verified Stripe event

    Returns:
        PurchaseNotification, or None for events that are not a paid purchase

    Raises:
        PayloadValidationError: If a purchase lacks its id or amount
    """
    event_type = event.get("type")
    if event_type not in PURCHASE_EVENTS:
        return None

    obj = (event.get("data") or {}).get("object") or {}
    event_id = event.get("id", "")
    if event_type == CHECKOUT_COMPLETED:
        return _from_checkout(event_id, obj)
    return _from_invoice(event_id, obj)
