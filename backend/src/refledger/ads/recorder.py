"""Deduplicated ad impression/click recording."""

from datetime import datetime, timedelta

from refledger.ads.models import AD_EVENT_TYPES, Ad, AdEvent, AdEventWindow
from refledger.exceptions import NotFoundError, PayloadValidationError
from refledger.logging_config import get_logger
from refledger.settings import settings
from refledger.storage.atomic import increment, insert_if_absent, update_where
from refledger.storage.db import Database, db

logger = get_logger(__name__)

COUNTER_COLUMNS = {"impression": "impressions", "click": "clicks"}


class AdEventRecorder:
    """Records ad events and keeps the per-ad counters in step with them.

    Within the dedup window at most one event per ``(ad_id, type, ip)`` is
    counted. Events without a known client IP are always counted.
    """

    def __init__(self, database: Database | None = None, window: timedelta | None = None):
        self.db = database or db
        self.window = window or timedelta(minutes=settings.ad_dedup_window_minutes)

    def record_event(
        self,
        ad_id: str,
        event_type: str,
        placement: str | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
        referrer: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Record an impression or click unless it duplicates a recent one.

        Args:
            ad_id: Ad ID
            event_type: "impression" or "click"
            placement: Slot the ad was rendered in
            ip: Client IP (dedup key)
            user_agent: Client user agent
            referrer: Referer header of the page showing the ad
            now: Event time, defaults to the current UTC time

        Returns:
            True if the event was counted, False if it was suppressed

        Raises:
            PayloadValidationError: If ``event_type`` is not recognised
            NotFoundError: If the ad does not exist
        """
        if event_type not in AD_EVENT_TYPES:
            raise PayloadValidationError(f"Unknown ad event type: {event_type}")
        now = now or datetime.utcnow()

        with self.db.session() as session:
            if session.get(Ad, ad_id) is None:
                raise NotFoundError("ad", ad_id)

            if ip and not self._open_window(session, ad_id, event_type, ip, now):
                logger.debug("ad_event_deduplicated", ad_id=ad_id, type=event_type, ip=ip)
                return False

            self._count(session, ad_id, event_type, placement, ip, user_agent, referrer, now)

        logger.info("ad_event_recorded", ad_id=ad_id, type=event_type, placement=placement)
        return True

    def redirect(
        self,
        ad_id: str,
        ip: str | None = None,
        user_agent: str | None = None,
        referrer: str | None = None,
        now: datetime | None = None,
    ) -> str:
        """Count a click-through and return the ad's target URL.

        Click-throughs are not deduplicated, but each one restarts the click
        dedup window for its IP so a tracked click right after it is suppressed.

        Raises:
            NotFoundError: If the ad does not exist or has no target URL
        """
        now = now or datetime.utcnow()

        with self.db.session() as session:
            ad = session.get(Ad, ad_id)
            if ad is None or not ad.target_url:
                raise NotFoundError("ad", ad_id)
            target_url = ad.target_url

            self._count(session, ad_id, "click", None, ip, user_agent, referrer, now)
            if ip:
                self._restart_window(session, ad_id, "click", ip, now)

        logger.info("ad_redirect", ad_id=ad_id)
        return target_url

    def _open_window(self, session, ad_id: str, event_type: str, ip: str, now: datetime) -> bool:
        """Claim the dedup slot for the key, atomically.

        Either renews an expired window in place or creates the first one.
        Returns False when a window younger than ``self.window`` exists.
        """
        key = {"ad_id": ad_id, "type": event_type, "ip": ip}
        renewed = update_where(
            session,
            AdEventWindow,
            [
                AdEventWindow.ad_id == ad_id,
                AdEventWindow.type == event_type,
                AdEventWindow.ip == ip,
                AdEventWindow.last_counted_at <= now - self.window,
            ],
            {"last_counted_at": now},
        )
        if renewed:
            return True
        return insert_if_absent(
            session,
            AdEventWindow,
            {**key, "last_counted_at": now},
            index_elements=list(key),
        )

    def _restart_window(self, session, ad_id: str, event_type: str, ip: str, now: datetime) -> None:
        """Start the key's window at ``now`` regardless of its current age."""
        key = {"ad_id": ad_id, "type": event_type, "ip": ip}
        conditions = [getattr(AdEventWindow, name) == value for name, value in key.items()]
        if update_where(session, AdEventWindow, conditions, {"last_counted_at": now}):
            return
        if not insert_if_absent(session, AdEventWindow, {**key, "last_counted_at": now}, list(key)):
            update_where(session, AdEventWindow, conditions, {"last_counted_at": now})

    def _count(self, session, ad_id, event_type, placement, ip, user_agent, referrer, now) -> None:
        session.add(
            AdEvent(
                ad_id=ad_id,
                type=event_type,
                placement=placement,
                ip=ip,
                user_agent=user_agent,
                referrer=referrer,
                created_at=now,
            )
        )
        increment(session, Ad, [Ad.id == ad_id], COUNTER_COLUMNS[event_type])


# Singleton instance
ad_recorder = AdEventRecorder()
