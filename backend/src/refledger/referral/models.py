"""Referral system database models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from refledger.storage.models import Base


class ReferralCode(Base):
    """Current referral code of an account.

    One row per account. Rotation replaces ``code`` in place, so the old
    value stops resolving the moment the update commits.
    """
    __tablename__ = "referral_codes"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, unique=True)
    code = Column(String(20), unique=True, nullable=False, index=True)

    # Statistics
    clicks = Column(Integer, default=0, nullable=False)  # Logged visits carrying this account's code
    conversions = Column(Integer, default=0, nullable=False)  # Accounts attached to this referrer

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    rotated_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<ReferralCode(code={self.code}, account={self.account_id})>"


class ReferralClick(Base):
    """Append-only audit record of a visit carrying a referral code.

    Unknown or stale codes are kept with a null referrer.
    """
    __tablename__ = "referral_clicks"

    id = Column(Integer, primary_key=True)
    ref_code = Column(String(64), nullable=False, index=True)
    referrer_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True, index=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ReferralClick(id={self.id}, code={self.ref_code}, referrer={self.referrer_account_id})>"
