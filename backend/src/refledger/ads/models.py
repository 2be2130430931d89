"""Advertisement models."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text

from refledger.storage.models import Base

AD_EVENT_TYPES = ("impression", "click")


class Ad(Base):
    """Advertisement with running impression/click counters."""
    __tablename__ = "ads"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    title = Column(String(255), nullable=False)
    ad_type = Column(String(32), default="banner", nullable=False)
    placement = Column(String(64), nullable=True, index=True)
    target_url = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)

    # Eligibility
    is_active = Column(Boolean, default=True, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    # Counters (only ever incremented)
    impressions = Column(Integer, default=0, nullable=False)
    clicks = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Ad(id={self.id}, placement={self.placement}, impressions={self.impressions}, clicks={self.clicks})>"


class AdEvent(Base):
    """Recorded (counted) ad impression or click."""
    __tablename__ = "ad_events"

    id = Column(Integer, primary_key=True)
    ad_id = Column(String(64), ForeignKey("ads.id"), nullable=False, index=True)
    type = Column(String(16), nullable=False)
    placement = Column(String(64), nullable=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<AdEvent(ad={self.ad_id}, type={self.type}, ip={self.ip})>"


class AdEventWindow(Base):
    """Start of the current dedup window for one (ad, type, ip) key.

    ``last_counted_at`` is the time of the most recent counted event for
    the key. Opening a new window is a conditional update on this row.
    """
    __tablename__ = "ad_event_windows"

    ad_id = Column(String(64), ForeignKey("ads.id"), primary_key=True)
    type = Column(String(16), primary_key=True)
    ip = Column(String(64), primary_key=True)
    last_counted_at = Column(DateTime, nullable=False)
