"""Referral earnings models."""

from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from refledger.storage.models import Base


class EarningsEvent(Base):
    """One completed purchase, keyed by the provider's order id.

    The unique constraint on ``order_id`` is what makes redelivered
    notifications no-ops.
    """
    __tablename__ = "earnings_events"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(255), unique=True, nullable=False)
    buyer_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    gross_amount = Column(BigInteger, nullable=False)  # minor units
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<EarningsEvent(order={self.order_id}, amount={self.gross_amount} {self.currency})>"


class EarningsCredit(Base):
    """Tier credit derived from an earnings event."""
    __tablename__ = "earnings_credits"
    __table_args__ = (UniqueConstraint("order_id", "tier", name="uq_earnings_credits_order_tier"),)

    id = Column(Integer, primary_key=True)
    order_id = Column(String(255), ForeignKey("earnings_events.order_id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    tier = Column(Integer, nullable=False)  # 1 = direct referrer, 2 = referrer's referrer
    rate = Column(String(16), nullable=False)  # exact decimal used, kept as text
    amount = Column(BigInteger, nullable=False)  # minor units
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<EarningsCredit(order={self.order_id}, tier={self.tier}, amount={self.amount})>"


class AccountBalance(Base):
    """Running referral earnings balance per account and currency."""
    __tablename__ = "account_balances"
    __table_args__ = (UniqueConstraint("account_id", "currency", name="uq_account_balances_account_currency"),)

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    currency = Column(String(3), nullable=False)
    amount = Column(BigInteger, default=0, nullable=False)  # minor units

    def __repr__(self):
        return f"<AccountBalance(account={self.account_id}, {self.amount} {self.currency})>"
