"""Webhook endpoints for the payment provider."""

from fastapi import APIRouter, HTTPException, Request, status

from refledger.earnings.ledger import earnings_ledger
from refledger.exceptions import LedgerNotConfiguredError, PayloadValidationError, WebhookSignatureError
from refledger.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(request: Request):
    """Handle Stripe purchase notifications.

    Any handled or ignored event answers 200. Storage failures answer 500
    so Stripe redelivers; redelivery of a recorded order is a no-op.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        outcome = earnings_ledger.handle_purchase_notification(payload, sig_header)
    except LedgerNotConfiguredError as e:
        logger.error("stripe_webhook_not_configured", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhooks not configured",
        )
    except WebhookSignatureError as e:
        logger.warning("stripe_webhook_invalid", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PayloadValidationError as e:
        logger.warning("stripe_webhook_malformed", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("stripe_webhook_error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error processing payment",
        )

    return {"received": True, "outcome": outcome.value}
