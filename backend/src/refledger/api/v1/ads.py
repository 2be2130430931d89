"""Ad tracking API v1 endpoints."""

from datetime import date
from typing import Literal

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from refledger.ads.catalog import list_active_ads
from refledger.ads.recorder import ad_recorder
from refledger.api.rate_limit import limiter
from refledger.api.request_info import client_ip, referer, user_agent
from refledger.exceptions import NotFoundError, StorageUnavailableError
from refledger.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/ads", tags=["ads"])


class TrackRequest(BaseModel):
    """Observed ad impression or click."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["impression", "click"]
    ad_id: str = Field(..., alias="adId", min_length=1)
    placement: str | None = None


class SlotAdResponse(BaseModel):
    """Ad offered to a placement."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    placement: str | None
    target_url: str | None
    media_url: str | None
    start_date: date | None
    end_date: date | None


@router.post("/track")
@limiter.limit("120/minute")
async def track_ad_event(request: Request, body: TrackRequest):
    """Record an impression or click, collapsing repeats inside the dedup window."""
    try:
        ad_recorder.record_event(
            body.ad_id,
            body.type,
            placement=body.placement,
            ip=client_ip(request),
            user_agent=user_agent(request),
            referrer=referer(request),
        )
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad not found")
    except StorageUnavailableError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")

    return {"ok": True}


@router.get("/redirect")
async def redirect_to_ad(request: Request, ad_id: str):
    """Count a click-through and redirect to the advertiser."""
    try:
        target_url = ad_recorder.redirect(
            ad_id,
            ip=client_ip(request),
            user_agent=user_agent(request),
            referrer=referer(request),
        )
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    except StorageUnavailableError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")

    return RedirectResponse(target_url, status_code=status.HTTP_302_FOUND)


@router.get("/slot", response_model=list[SlotAdResponse])
async def get_slot_ads(placement: str):
    """Active ads for a placement, newest first."""
    return list_active_ads(placement)
