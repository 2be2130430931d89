"""Shared test helpers: lookups and signed Stripe payloads."""
import hashlib
import hmac
import json
import time
from typing import Any

from refledger.accounts.models import Account
from refledger.ads.models import Ad
from refledger.storage.db import db

WEBHOOK_SECRET = "whsec_test_secret"


def get_account(account_id: int) -> Account:
    with db.session() as session:
        return session.get(Account, account_id)


def get_ad(ad_id: str) -> Ad:
    with db.session() as session:
        return session.get(Ad, ad_id)


def sign_payload(payload: dict[str, Any], secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> tuple[str, str]:
    """Serialize a webhook payload and build a matching Stripe-Signature header."""
    body = json.dumps(payload)
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{body}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return body, f"t={timestamp},v1={signature}"


def checkout_completed(
    order_id: str = "ord_1",
    buyer_id: int | None = None,
    amount: int = 5000,
    currency: str = "gbp",
    ref_code: str | None = None,
    click_id: int | None = None,
    event_id: str = "evt_1",
    payment_status: str = "paid",
) -> dict[str, Any]:
    """A checkout.session.completed event as Stripe sends it."""
    metadata = {}
    if ref_code:
        metadata["ref_code"] = ref_code
    if click_id is not None:
        metadata["click_id"] = str(click_id)
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": order_id,
                "object": "checkout.session",
                "client_reference_id": str(buyer_id) if buyer_id is not None else None,
                "amount_total": amount,
                "currency": currency,
                "payment_status": payment_status,
                "metadata": metadata,
            }
        },
    }


def invoice_paid(
    invoice_id: str = "in_1",
    buyer_id: int | None = None,
    amount: int = 5000,
    currency: str = "gbp",
    event_id: str = "evt_inv_1",
    on_subscription: bool = False,
) -> dict[str, Any]:
    """An invoice.payment_succeeded event for a subscription renewal."""
    metadata = {"user_id": str(buyer_id)} if buyer_id is not None else {}
    invoice = {
        "id": invoice_id,
        "object": "invoice",
        "amount_paid": amount,
        "currency": currency,
        "metadata": {} if on_subscription else metadata,
    }
    if on_subscription:
        invoice["subscription_details"] = {"metadata": metadata}
    return {
        "id": event_id,
        "object": "event",
        "type": "invoice.payment_succeeded",
        "data": {"object": invoice},
    }
