"""Async HTTP client for the referral and ad endpoints."""

import asyncio
from typing import Any, Coroutine

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from refledger.logging_config import get_logger
from refledger.settings import settings

logger = get_logger(__name__)


class TransientAPIError(Exception):
    """Server reported a retriable failure (5xx)."""


class RefledgerClient:
    """Client for the refledger API.

    ``log_click`` and ``track_impression`` are fire-and-forget: they return
    immediately and any failure ends up in the log, never at the caller.
    """

    def __init__(
        self,
        base_url: str | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.http = http or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout,
        )
        self._pending: set[asyncio.Task] = set()

    async def __aenter__(self) -> "RefledgerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Wait for dispatched background calls, then close the HTTP client."""
        await self.drain()
        await self.http.aclose()

    async def drain(self) -> None:
        """Wait until every fire-and-forget call has finished."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _dispatch(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task | None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("background_call_skipped", call=name, reason="no running event loop")
            return None

        async def guarded():
            try:
                await coro
            except Exception as e:
                logger.warning("background_call_failed", call=name, error=str(e))

        task = asyncio.create_task(guarded(), name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self.http.post(path, json=payload)
        if response.status_code >= 500:
            raise TransientAPIError(f"{path} returned {response.status_code}")
        response.raise_for_status()
        return response.json()

    def log_click(self, code: str) -> asyncio.Task | None:
        """Record a referral link visit in the background."""
        return self._dispatch("log_referral_click", self._post("/api/v1/referral/log-click", {"ref": code}))

    def track_impression(self, ad_id: str, placement: str) -> asyncio.Task | None:
        """Record an ad impression in the background."""
        return self._dispatch(
            "track_ad_impression",
            self._post("/api/v1/ads/track", {"type": "impression", "adId": ad_id, "placement": placement}),
        )

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, TransientAPIError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, max=2),
        reraise=True,
    )
    async def attach_referral(self, account_id: int, code: str | None) -> dict[str, Any]:
        """Ask the server to attach ``account_id`` to the owner of ``code``.

        Returns:
            Response body: ``success``, ``clear_stored``, optional ``referrer``
        """
        return await self._post("/api/v1/referral/attach", {"user_id": account_id, "ref": code})

    async def rotate_code(self, account_id: int) -> str:
        """Rotate the account's referral code and return the new one."""
        data = await self._post("/api/v1/referral/rotate", {"user_id": account_id})
        return data["code"]
