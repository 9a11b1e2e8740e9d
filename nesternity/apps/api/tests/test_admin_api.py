"""API tests for the admin session and usage inspection endpoints."""

import os

from nesternity_api.auth.admin_session import ADMIN_COOKIE_NAME
from nesternity_api.billing.models import FeatureType

ADMIN_LOGIN = {
    "email": os.environ["ADMIN_EMAIL"],
    "password": os.environ["ADMIN_PASSWORD"],
}


class TestAdminSession:
    def test_login_sets_cookie(self, test_client):
        response = test_client.post("/admin/session", json=ADMIN_LOGIN)

        assert response.status_code == 200
        assert response.json()["email"] == ADMIN_LOGIN["email"]
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"{ADMIN_COOKIE_NAME}=")
        assert "HttpOnly" in set_cookie
        assert "samesite=lax" in set_cookie.lower()

    def test_wrong_password(self, test_client):
        response = test_client.post(
            "/admin/session", json={"email": ADMIN_LOGIN["email"], "password": "guess"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"
        assert ADMIN_COOKIE_NAME not in response.cookies

    def test_credentials_not_configured(self, test_client, monkeypatch):
        monkeypatch.delenv("ADMIN_EMAIL")

        response = test_client.post("/admin/session", json=ADMIN_LOGIN)

        assert response.status_code == 500
        assert "not configured" in response.json()["detail"]

    def test_login_rate_limited(self, test_client):
        bad = {"email": ADMIN_LOGIN["email"], "password": "guess"}
        for _ in range(5):
            assert test_client.post("/admin/session", json=bad).status_code == 401

        response = test_client.post("/admin/session", json=ADMIN_LOGIN)

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert '"admin-login"' in response.headers["RateLimit-Policy"]
        assert response.headers["content-type"].startswith("application/problem+json")

    def test_logout_clears_cookie(self, test_client):
        test_client.post("/admin/session", json=ADMIN_LOGIN)

        response = test_client.delete("/admin/session")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert f'{ADMIN_COOKIE_NAME}=""' in response.headers["set-cookie"]


class TestAdminUsage:
    def test_requires_cookie(self, test_client):
        response = test_client.get("/admin/usage/anyone")

        assert response.status_code == 401
        assert response.json()["detail"] == "Admin authentication required"

    def test_forged_cookie_rejected(self, test_client):
        test_client.cookies.set(ADMIN_COOKIE_NAME, "eyJlbWFpbCI6ImEifQ.deadbeef")

        response = test_client.get("/admin/usage/anyone")

        assert response.status_code == 401

    def test_usage_totals(self, test_client, factory, limiter):
        user = factory.user()
        limiter.increment_usage(user.id, None, FeatureType.AI_PROPOSAL, count=2)
        limiter.increment_usage(user.id, None, FeatureType.AI_PROPOSAL)
        limiter.increment_usage(user.id, None, FeatureType.INVOICE)
        test_client.post("/admin/session", json=ADMIN_LOGIN)

        response = test_client.get(f"/admin/usage/{user.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == user.id
        assert body["totals"] == {"AI_PROPOSAL": 3, "INVOICE": 1}
        assert len(body["records"]) == 3
