"""Visit and sign-in flows tying the store to the API client."""

from refledger.client.api import RefledgerClient
from refledger.client.storage import ReferralCodeStore
from refledger.logging_config import get_logger

logger = get_logger(__name__)


def capture_visit(store: ReferralCodeStore, client: RefledgerClient, visit_url: str) -> str | None:
    """Persist a referral code from the visit URL and log the click in the background."""
    code = store.capture(visit_url)
    if code:
        client.log_click(code)
    return code


async def attach_after_sign_in(
    client: RefledgerClient,
    store: ReferralCodeStore,
    account_id: int,
) -> str | None:
    """Attach the signed-in account to its stored referral code.

    Never raises: failures are logged and simply mean no welcome message.

    Returns:
        Referrer name to greet the user with, or None
    """
    code = store.read()
    if not code:
        return None

    try:
        data = await client.attach_referral(account_id, code)
    except Exception as e:
        logger.warning("referral_attach_request_failed", account_id=account_id, error=str(e))
        return None

    if data.get("clear_stored"):
        store.clear()

    referrer = data.get("referrer") if data.get("success") else None
    if referrer:
        logger.info("referral_welcome", account_id=account_id, referrer_id=referrer.get("id"))
        return referrer.get("name")
    return None
