"""
Tests for the async API client and the visit/sign-in flows.
"""
import json

import httpx
import pytest

from refledger.api.main import app
from refledger.client.api import RefledgerClient, TransientAPIError
from refledger.client.flows import attach_after_sign_in, capture_visit
from refledger.client.storage import CookieJarStore, MemoryStore, ReferralCodeStore
from refledger.referral.models import ReferralCode

from helpers import get_account


def mock_client(handler) -> RefledgerClient:
    return RefledgerClient(http=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test"))


@pytest.fixture
def store():
    return ReferralCodeStore(MemoryStore(), CookieJarStore(), key="ref_code")


class TestRefledgerClient:
    """Tests for RefledgerClient"""

    @pytest.mark.asyncio
    async def test_log_click_is_fire_and_forget(self):
        seen = []

        def handler(request):
            seen.append((request.url.path, request.content))
            return httpx.Response(200, json={"success": True})

        async with mock_client(handler) as client:
            task = client.log_click("ABC123")
            assert task is not None

        assert [(path, json.loads(content)) for path, content in seen] == [("/api/v1/referral/log-click", {"ref": "ABC123"})]

    @pytest.mark.asyncio
    async def test_background_failure_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("network down")

        client = mock_client(handler)
        client.track_impression("a1", "home_hero")

        await client.aclose()

    def test_dispatch_without_event_loop(self):
        client = mock_client(lambda request: httpx.Response(200, json={}))

        assert client.log_click("ABC123") is None

    @pytest.mark.asyncio
    async def test_attach_retries_transient_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"success": True, "clear_stored": True})

        async with mock_client(handler) as client:
            data = await client.attach_referral(7, "ABC123")

        assert data["success"] is True
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_attach_gives_up_after_three_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        async with mock_client(handler) as client:
            with pytest.raises(TransientAPIError):
                await client.attach_referral(7, "ABC123")

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, json={"detail": "Account not found"})

        async with mock_client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.attach_referral(7, "ABC123")

        assert len(calls) == 1


class TestFlows:
    """Tests for the visit and sign-in flows"""

    @pytest.mark.asyncio
    async def test_attach_failure_keeps_stored_code(self, store):
        store.capture("https://example.com/?ref=ABC123")

        def handler(request):
            return httpx.Response(404, json={"detail": "Account not found"})

        async with mock_client(handler) as client:
            assert await attach_after_sign_in(client, store, 7) is None

        assert store.read() == "ABC123"

    @pytest.mark.asyncio
    async def test_nothing_stored_skips_request(self, store):
        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            assert await attach_after_sign_in(client, store, 7) is None

    @pytest.mark.asyncio
    async def test_visit_then_sign_in_end_to_end(self, store, make_account, database):
        referrer = make_account(first_name="Ada", last_name="Lovelace", code="ABC123")
        newcomer = make_account()
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

        async with RefledgerClient(http=http) as client:
            assert capture_visit(store, client, "https://example.com/?ref=abc123") == "ABC123"
            await client.drain()

            name = await attach_after_sign_in(client, store, newcomer)
            again = await attach_after_sign_in(client, store, newcomer)

        assert name == "Ada Lovelace"
        assert again is None
        assert store.read() is None
        assert get_account(newcomer).referred_by_id == referrer
        with database.session() as session:
            row = session.query(ReferralCode).filter(ReferralCode.account_id == referrer).one()
            assert (row.clicks, row.conversions) == (1, 1)
