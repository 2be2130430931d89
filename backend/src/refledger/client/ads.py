"""Ad slot selection and per-session impression logging."""

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from refledger.client.api import RefledgerClient
from refledger.logging_config import get_logger

logger = get_logger(__name__)

VISIBILITY_THRESHOLD = 0.4


@dataclass(frozen=True)
class SlotAd:
    """Active ad as offered to a placement, newest first."""
    id: str
    placement: str
    title: str = ""
    target_url: str | None = None
    media_url: str | None = None
    start_date: date | None = None
    end_date: date | None = None


def within_window(ad: SlotAd, today: date) -> bool:
    """Whether ``today`` falls inside the ad's start/end dates (open-ended if unset)."""
    after_start = ad.start_date is None or ad.start_date <= today
    before_end = ad.end_date is None or ad.end_date >= today
    return after_start and before_end


def select_ad(ads: Sequence[SlotAd], today: date | None = None) -> SlotAd | None:
    """Pick the ad to render in a placement.

    Prefers the first ad whose window contains today. If none does, the
    first active ad is shown anyway, even when its window has lapsed.
    """
    if not ads:
        return None
    today = today or date.today()
    for ad in ads:
        if within_window(ad, today):
            return ad
    logger.debug("ad_selection_fallback", ad_id=ads[0].id, placement=ads[0].placement)
    return ads[0]


class ImpressionTracker:
    """Logs each rendered ad at most once per session.

    The guard is keyed by ``(ad_id, placement)`` and lives as long as this
    object; the server-side dedup window is the authoritative check.
    """

    def __init__(self, client: RefledgerClient, threshold: float = VISIBILITY_THRESHOLD):
        self.client = client
        self.threshold = threshold
        self._logged: set[tuple[str, str]] = set()

    def on_visibility(self, ad_id: str, placement: str, visible_ratio: float) -> bool:
        """Handle a visibility change of a rendered ad.

        Returns:
            True if an impression was dispatched
        """
        key = (ad_id, placement)
        if visible_ratio < self.threshold or key in self._logged:
            return False
        self._logged.add(key)
        self.client.track_impression(ad_id, placement)
        return True

    def end_session(self) -> None:
        self._logged.clear()
