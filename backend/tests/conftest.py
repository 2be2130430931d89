"""
Pytest configuration and shared fixtures.

Environment is set before any refledger import so the global settings and
database pick up a throwaway SQLite file.
"""
import os
import tempfile
from datetime import date
from typing import Callable

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="refledger-tests-")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/refledger-test.db"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["REFERRAL_TIER1_RATE"] = "0.10"
os.environ["REFERRAL_TIER2_RATE"] = "0.05"
os.environ["REFERRAL_MIN_GROSS_AMOUNT"] = "0"

from refledger.accounts.models import Account  # noqa: E402
from refledger.ads.models import Ad  # noqa: E402
from refledger.referral.models import ReferralCode  # noqa: E402
from refledger.storage.db import db  # noqa: E402


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test."""
    db.drop_tables()
    db.create_tables()
    yield db


@pytest.fixture
def make_account(database) -> Callable[..., int]:
    """Create an account, optionally with a fixed referral code and referrer."""
    counter = {"n": 0}

    def _make(
        first_name: str | None = None,
        last_name: str | None = None,
        code: str | None = None,
        referred_by_id: int | None = None,
    ) -> int:
        counter["n"] += 1
        with database.session() as session:
            account = Account(
                email=f"user{counter['n']}@example.com",
                first_name=first_name,
                last_name=last_name,
                referred_by_id=referred_by_id,
            )
            session.add(account)
            session.flush()
            if code:
                session.add(ReferralCode(account_id=account.id, code=code))
            return account.id

    return _make


@pytest.fixture
def make_ad(database) -> Callable[..., str]:
    """Create an ad and return its id."""

    def _make(
        ad_id: str = "a1",
        placement: str = "home_hero",
        target_url: str | None = "https://advertiser.example.com/landing",
        start_date: date | None = None,
        end_date: date | None = None,
        is_active: bool = True,
    ) -> str:
        with database.session() as session:
            session.add(
                Ad(
                    id=ad_id,
                    title=f"Ad {ad_id}",
                    placement=placement,
                    target_url=target_url,
                    media_url="https://cdn.example.com/banner.png",
                    start_date=start_date,
                    end_date=end_date,
                    is_active=is_active,
                )
            )
        return ad_id

    return _make
