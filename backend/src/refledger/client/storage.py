"""Client-side persistence of an inbound referral code.

The code is written to two independent stores, a durable key-value store
and a cookie jar, so clearing either one does not lose it.
"""

import calendar
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from http.cookiejar import Cookie, CookieJar, FileCookieJar
from pathlib import Path
from typing import Callable
from urllib.parse import parse_qs, urlsplit

from refledger.logging_config import get_logger
from refledger.settings import settings

logger = get_logger(__name__)

REF_PARAM = "ref"


@dataclass(frozen=True)
class StoredReferralReference:
    """Referral code plus the time it was captured."""
    code: str
    captured_at: datetime

    def to_json(self) -> str:
        return json.dumps({"code": self.code, "captured_at": self.captured_at.isoformat()})

    @classmethod
    def from_json(cls, raw: str) -> "StoredReferralReference":
        """Parse a stored value.

        Raises:
            ValueError: If ``raw`` is not a JSON object with a string code and ISO timestamp
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Stored referral reference is not a JSON object")
        code, captured_at = data.get("code"), data.get("captured_at")
        if not isinstance(code, str) or not isinstance(captured_at, str):
            raise ValueError("Stored referral reference is missing code or captured_at")
        return cls(code=code, captured_at=datetime.fromisoformat(captured_at))


class KeyValueStore(ABC):
    """String store with per-key expiry."""

    @abstractmethod
    def get(self, key: str, now: datetime) -> str | None:
        """Value stored under ``key``, or None if absent or expired at ``now``."""

    @abstractmethod
    def set(self, key: str, value: str, expires_at: datetime) -> None:
        """Store ``value`` under ``key`` until ``expires_at``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; a missing key is not an error."""


class MemoryStore(KeyValueStore):
    """In-process store, mainly for tests and short-lived clients."""

    def __init__(self):
        self._items: dict[str, tuple[str, datetime]] = {}

    def get(self, key: str, now: datetime) -> str | None:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at <= now:
            del self._items[key]
            return None
        return value

    def set(self, key: str, value: str, expires_at: datetime) -> None:
        self._items[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Store persisted as a JSON document on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, dict[str, str]]:
        if not self.path.exists():
            return {}
        items = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(items, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return items

    def _save(self, items: dict[str, dict[str, str]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(items), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str, now: datetime) -> str | None:
        item = self._load().get(key)
        if item is None:
            return None
        if datetime.fromisoformat(item["expires_at"]) <= now:
            self.delete(key)
            return None
        return item["value"]

    def set(self, key: str, value: str, expires_at: datetime) -> None:
        items = self._load()
        items[key] = {"value": value, "expires_at": expires_at.isoformat()}
        self._save(items)

    def delete(self, key: str) -> None:
        items = self._load()
        if items.pop(key, None) is not None:
            self._save(items)


class CookieJarStore(KeyValueStore):
    """Cookie-backed store over a standard ``CookieJar``.

    Pass a ``MozillaCookieJar`` with a filename to keep cookies across runs.
    """

    def __init__(self, jar: CookieJar | None = None, domain: str = "localhost", path: str = "/"):
        self.jar = jar if jar is not None else CookieJar()
        self.domain = domain
        self.path = path

    def get(self, key: str, now: datetime) -> str | None:
        self.jar.clear_expired_cookies()
        expiry_cutoff = calendar.timegm(now.utctimetuple())
        for cookie in self.jar:
            if cookie.name != key or cookie.domain != self.domain:
                continue
            if cookie.expires is not None and cookie.expires <= expiry_cutoff:
                continue
            return cookie.value
        return None

    def set(self, key: str, value: str, expires_at: datetime) -> None:
        self.jar.set_cookie(
            Cookie(
                version=0,
                name=key,
                value=value,
                port=None,
                port_specified=False,
                domain=self.domain,
                domain_specified=True,
                domain_initial_dot=False,
                path=self.path,
                path_specified=True,
                secure=False,
                expires=calendar.timegm(expires_at.utctimetuple()),
                discard=False,
                comment=None,
                comment_url=None,
                rest={},
            )
        )
        self._persist()

    def delete(self, key: str) -> None:
        try:
            self.jar.clear(self.domain, self.path, key)
        except KeyError:
            return
        self._persist()

    def _persist(self) -> None:
        if isinstance(self.jar, FileCookieJar) and self.jar.filename:
            self.jar.save(ignore_discard=True)


def extract_ref(visit_url: str) -> str | None:
    """Referral code carried in the ``ref`` query parameter, if any."""
    values = parse_qs(urlsplit(visit_url).query).get(REF_PARAM)
    if not values:
        return None
    code = values[0].strip().upper()
    return code or None


class ReferralCodeStore:
    """Captures a referral code from visit URLs and keeps it in two stores.

    Each store is written and read independently; a failing store is
    logged and skipped so the other one still does its job.
    """

    def __init__(
        self,
        durable: KeyValueStore,
        cookies: CookieJarStore,
        key: str | None = None,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.durable = durable
        self.cookies = cookies
        self.key = key or settings.referral_cookie_name
        self.ttl = ttl or timedelta(days=settings.referral_ttl_days)
        self.clock = clock

    def capture(self, visit_url: str) -> str | None:
        """Store the visit's referral code, if it carries one.

        Visits without a ``ref`` parameter leave the stored code untouched.

        Returns:
            The captured code, or None
        """
        code = extract_ref(visit_url)
        if code is None:
            return None

        now = self.clock()
        reference = StoredReferralReference(code=code, captured_at=now)
        expires_at = now + self.ttl

        try:
            self.durable.set(self.key, reference.to_json(), expires_at)
        except (OSError, ValueError) as e:
            logger.warning("referral_durable_store_write_failed", error=str(e))
        try:
            self.cookies.set(self.key, code, expires_at)
        except (OSError, ValueError) as e:
            logger.warning("referral_cookie_write_failed", error=str(e))

        logger.info("referral_code_captured", code=code)
        return code

    def read(self) -> str | None:
        """Stored code, preferring the durable store over the cookie."""
        now = self.clock()

        try:
            raw = self.durable.get(self.key, now)
            if raw:
                reference = StoredReferralReference.from_json(raw)
                if now - reference.captured_at < self.ttl:
                    return reference.code
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("referral_durable_store_read_failed", error=str(e))

        try:
            return self.cookies.get(self.key, now)
        except (OSError, ValueError) as e:
            logger.warning("referral_cookie_read_failed", error=str(e))
            return None

    def clear(self) -> None:
        """Remove the stored code from both stores."""
        for store in (self.durable, self.cookies):
            try:
                store.delete(self.key)
            except (OSError, ValueError) as e:
                logger.warning("referral_store_clear_failed", store=type(store).__name__, error=str(e))
