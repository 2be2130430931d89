"""
Tests for the HTTP API.
"""
import pytest
from fastapi.testclient import TestClient

from refledger.api.main import app
from refledger.settings import settings

from helpers import checkout_completed, get_account, get_ad, invoice_paid, sign_payload


@pytest.fixture
def client(database):
    return TestClient(app)


def test_health(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Request-ID"] == "req-123"


class TestReferralEndpoints:
    """Tests for /api/v1/referral"""

    def test_attach_from_cookie(self, client, make_account):
        referrer = make_account(first_name="Ada", code="ABC123")
        newcomer = make_account()
        client.cookies.set(settings.referral_cookie_name, "ABC123")

        response = client.post("/api/v1/referral/attach", json={"user_id": newcomer})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["reason"] == "attached"
        assert data["clear_stored"] is True
        assert data["referrer"] == {"id": referrer, "name": "Ada"}
        assert f"{settings.referral_cookie_name}=" in response.headers["set-cookie"]
        assert get_account(newcomer).referred_by_id == referrer

    def test_attach_twice(self, client, make_account):
        make_account(code="ABC123")
        newcomer = make_account()

        client.post("/api/v1/referral/attach", json={"user_id": newcomer, "ref": "ABC123"})
        response = client.post("/api/v1/referral/attach", json={"user_id": newcomer, "ref": "ABC123"})

        assert response.json()["success"] is False
        assert response.json()["reason"] == "already_attached"

    def test_attach_without_code_keeps_cookie(self, client, make_account):
        newcomer = make_account()

        response = client.post("/api/v1/referral/attach", json={"user_id": newcomer})

        assert response.json() == {
            "success": False,
            "reason": "no_code",
            "clear_stored": False,
            "referrer": None,
        }
        assert "set-cookie" not in response.headers

    def test_attach_unknown_account(self, client):
        response = client.post("/api/v1/referral/attach", json={"user_id": 999, "ref": "ABC123"})

        assert response.status_code == 404

    def test_attach_validation_error(self, client):
        response = client.post("/api/v1/referral/attach", json={"ref": "ABC123"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid request"

    def test_log_click(self, client, make_account):
        make_account(code="ABC123")

        response = client.post("/api/v1/referral/log-click", json={"ref": "ABC123"})

        assert response.json() == {"success": True}

    def test_code_rotate_and_stats(self, client, make_account):
        account_id = make_account()

        issued = client.get("/api/v1/referral/code", params={"user_id": account_id}).json()
        rotated = client.post("/api/v1/referral/rotate", json={"user_id": account_id}).json()
        stats = client.get("/api/v1/referral/stats", params={"user_id": account_id}).json()

        assert rotated["code"] != issued["code"]
        assert rotated["link"].endswith(f"?ref={rotated['code']}")
        assert stats["code"] == rotated["code"]
        assert stats["referred_count"] == 0

    def test_rotate_unknown_account(self, client):
        assert client.post("/api/v1/referral/rotate", json={"user_id": 999}).status_code == 404


class TestStripeWebhook:
    """Tests for /api/v1/webhooks/stripe"""

    def post(self, client, body, header):
        return client.post(
            "/api/v1/webhooks/stripe",
            content=body,
            headers={"Stripe-Signature": header, "Content-Type": "application/json"},
        )

    def test_invalid_signature(self, client, make_account):
        body, header = sign_payload(checkout_completed(buyer_id=make_account()), secret="whsec_wrong")

        assert self.post(client, body, header).status_code == 400

    def test_missing_signature(self, client):
        response = client.post("/api/v1/webhooks/stripe", content=b"{}")

        assert response.status_code == 400

    def test_body_that_is_not_utf8(self, client):
        response = client.post(
            "/api/v1/webhooks/stripe",
            content=b"\xff\xfe\xfa",
            headers={"Stripe-Signature": "t=1,v1=abc"},
        )

        assert response.status_code == 400

    def test_renewal_invoice_recorded(self, client, make_account):
        parent = make_account(code="PARNT1")
        buyer = make_account(referred_by_id=parent)
        body, header = sign_payload(invoice_paid(buyer_id=buyer, amount=3000))

        response = self.post(client, body, header)

        assert response.json() == {"received": True, "outcome": "recorded"}
        stats = client.get("/api/v1/referral/stats", params={"user_id": parent}).json()
        assert stats["balances"] == {"gbp": 300}

    def test_redelivery_acknowledged(self, client, make_account):
        parent = make_account(code="PARNT1")
        buyer = make_account(referred_by_id=parent)
        body, header = sign_payload(checkout_completed(buyer_id=buyer))

        first = self.post(client, body, header)
        second = self.post(client, body, header)

        assert (first.status_code, second.status_code) == (200, 200)
        assert first.json()["outcome"] == "recorded"
        assert second.json()["outcome"] == "duplicate"
        stats = client.get("/api/v1/referral/stats", params={"user_id": parent}).json()
        assert stats["balances"] == {"gbp": 500}

    def test_unconfigured_rates(self, client, make_account, monkeypatch):
        monkeypatch.setattr(settings, "referral_tier2_rate", None)
        body, header = sign_payload(checkout_completed(buyer_id=make_account()))

        assert self.post(client, body, header).status_code == 503


class TestAdEndpoints:
    """Tests for /api/v1/ads"""

    def test_track_dedups_by_forwarded_ip(self, client, make_ad):
        make_ad("a1")
        payload = {"type": "impression", "adId": "a1", "placement": "home_hero"}

        for _ in range(3):
            response = client.post("/api/v1/ads/track", json=payload, headers={"X-Forwarded-For": "9.9.9.9, 10.0.0.1"})
            assert response.json() == {"ok": True}
        client.post("/api/v1/ads/track", json=payload, headers={"X-Forwarded-For": "8.8.8.8"})

        assert get_ad("a1").impressions == 2

    def test_track_unknown_ad(self, client):
        response = client.post("/api/v1/ads/track", json={"type": "click", "adId": "missing"})

        assert response.status_code == 404

    def test_track_unknown_type(self, client, make_ad):
        make_ad("a1")

        response = client.post("/api/v1/ads/track", json={"type": "hover", "adId": "a1"})

        assert response.status_code == 400

    def test_redirect(self, client, make_ad):
        make_ad("a1", target_url="https://advertiser.example.com/offer")

        response = client.get("/api/v1/ads/redirect", params={"ad_id": "a1"}, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "https://advertiser.example.com/offer"
        assert get_ad("a1").clicks == 1

    def test_redirect_unknown_ad(self, client):
        response = client.get("/api/v1/ads/redirect", params={"ad_id": "missing"}, follow_redirects=False)

        assert response.status_code == 404

    def test_slot(self, client, make_ad):
        make_ad("a1", placement="sidebar")

        response = client.get("/api/v1/ads/slot", params={"placement": "sidebar"})

        assert [ad["id"] for ad in response.json()] == ["a1"]
