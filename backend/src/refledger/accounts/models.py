"""Account profile model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from refledger.storage.models import Base


class Account(Base):
    """Account profile.

    ``referred_by_id`` is the attachment record: null until the account is
    linked to its referrer, then never overwritten.
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)

    # Identity
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(120), nullable=True)
    last_name = Column(String(120), nullable=True)

    # Attachment
    referred_by_id = Column(Integer, ForeignKey("accounts.id"), nullable=True, index=True)
    referral_click_id = Column(Integer, nullable=True)  # referral_clicks.id of the originating visit
    referred_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Account(id={self.id}, email={self.email}, referred_by={self.referred_by_id})>"

    @property
    def display_name(self) -> str:
        """Name shown to the people this account refers."""
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "A friend"
