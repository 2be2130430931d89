"""Client-side referral capture, click logging and ad impressions."""

from refledger.client.ads import ImpressionTracker, SlotAd, select_ad
from refledger.client.api import RefledgerClient
from refledger.client.flows import attach_after_sign_in, capture_visit
from refledger.client.storage import CookieJarStore, JsonFileStore, MemoryStore, ReferralCodeStore

__all__ = [
    "CookieJarStore",
    "ImpressionTracker",
    "JsonFileStore",
    "MemoryStore",
    "ReferralCodeStore",
    "RefledgerClient",
    "SlotAd",
    "attach_after_sign_in",
    "capture_visit",
    "select_ad",
]
