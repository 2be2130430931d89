"""Referral API v1 endpoints."""

from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import BaseModel, Field

from refledger.api.rate_limit import limiter
from refledger.api.request_info import client_ip, user_agent
from refledger.exceptions import NotFoundError, StorageUnavailableError
from refledger.logging_config import get_logger
from refledger.referral.attachment import attachment_service
from refledger.referral.clicks import click_recorder
from refledger.referral.codes import build_referral_link, referral_codes
from refledger.settings import settings

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])


# ==================== MODELS ====================


class AttachRequest(BaseModel):
    """Request to attach the caller's stored referral code."""
    user_id: int
    ref: str | None = None  # durable-store copy; the cookie is used when absent


class ReferrerInfo(BaseModel):
    id: int
    name: str


class AttachResponse(BaseModel):
    """Result of an attach request."""
    success: bool
    reason: str
    clear_stored: bool = False
    referrer: ReferrerInfo | None = None


class LogClickRequest(BaseModel):
    """Request to log a referral link visit."""
    ref: str = Field(..., min_length=1, max_length=64)


class AccountRequest(BaseModel):
    user_id: int


class ReferralCodeResponse(BaseModel):
    """Account's current referral code."""
    code: str
    link: str


class ReferralStatsResponse(BaseModel):
    """Referral statistics for an account."""
    code: str
    link: str
    clicks: int
    conversions: int
    referred_count: int
    balances: dict[str, int]


# ==================== ENDPOINTS ====================


@router.post("/attach", response_model=AttachResponse)
async def attach_referral(request: Request, response: Response, body: AttachRequest):
    """Attach a freshly signed-in account to its referrer.

    Idempotent: once an account is attached every further call reports
    ``success=false`` with reason ``already_attached``.
    """
    code = body.ref or request.cookies.get(settings.referral_cookie_name)

    try:
        result = attachment_service.attach(body.user_id, code)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    except StorageUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Referral attachment temporarily unavailable",
        )

    if result.clear_stored_reference:
        response.delete_cookie(settings.referral_cookie_name, path="/")

    return AttachResponse(
        success=result.attached,
        reason=result.outcome.value,
        clear_stored=result.clear_stored_reference,
        referrer=ReferrerInfo(id=result.referrer.id, name=result.referrer.name) if result.referrer else None,
    )


@router.post("/log-click")
@limiter.limit("60/minute")
async def log_referral_click(request: Request, body: LogClickRequest):
    """Log a visit that arrived with a referral code.

    Audit only; failures are reported in the body and never as an error
    status so the visiting page is not affected.
    """
    try:
        click_recorder.record(body.ref, ip=client_ip(request), user_agent=user_agent(request))
    except StorageUnavailableError:
        logger.warning("referral_click_not_recorded", code=body.ref)
        return {"success": False}

    return {"success": True}


@router.post("/rotate", response_model=ReferralCodeResponse)
async def rotate_referral_code(body: AccountRequest):
    """Issue a new referral code; the previous one stops resolving."""
    try:
        code = referral_codes.rotate(body.user_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    return ReferralCodeResponse(code=code, link=build_referral_link(code))


@router.get("/code", response_model=ReferralCodeResponse)
async def get_referral_code(user_id: int):
    """Get an account's referral code, creating one if needed."""
    try:
        code = referral_codes.issue_code(user_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    return ReferralCodeResponse(code=code, link=build_referral_link(code))


@router.get("/stats", response_model=ReferralStatsResponse)
async def get_referral_stats(user_id: int):
    """Clicks, conversions and earnings balances for an account."""
    try:
        stats = referral_codes.get_stats(user_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    return ReferralStatsResponse(**stats)
