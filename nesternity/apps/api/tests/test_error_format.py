"""
Error Format: RFC 9457 Problem Details

Tests that error responses follow RFC 9457 Problem Details format:
- Content-Type: application/problem+json
- Required fields: type, title, status, detail, instance
- instance is an opaque trace URN built from the request id

Status codes tested: 400, 401, 403, 404, 500
"""

import re

import pytest
from fastapi.testclient import TestClient

from nesternity_api.db.session import get_db
from nesternity_api.deps import get_access_policy
from nesternity_api.main import app


def assert_problem_details(resp, expected_status: int) -> dict:
    """
    Assert response follows RFC 9457 Problem Details format.

    Returns:
        Parsed problem body
    """
    content_type = resp.headers.get("content-type", "")
    assert content_type.startswith("application/problem+json"), \
        f"Expected application/problem+json, got: {content_type}"

    data = resp.json()
    for field in ["type", "title", "status", "detail", "instance"]:
        assert field in data, f"Missing required field: {field}"

    assert data["status"] == expected_status
    assert resp.status_code == expected_status

    instance = data["instance"]
    assert re.match(r"^urn:nesternity:trace:[A-Za-z0-9._:-]{8,}$", instance), \
        f"Invalid instance format: {instance}"
    assert "/" not in instance
    return data


@pytest.fixture
def unauthenticated_client(db_session):
    """TestClient with the real session auth dependency."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app, raise_server_exceptions=False)
    yield client
    app.dependency_overrides.clear()


class TestErrorFormat:
    def test_400_missing_field(self, test_client, factory, login_as):
        login_as(factory.user())

        response = test_client.post("/v1/organisations", json={"email": "ops@acme.test"})

        data = assert_problem_details(response, 400)
        assert data["detail"] == "Missing required field 'name'"
        assert data["type"].endswith("/validation-error")

    def test_400_invalid_field(self, test_client, factory, login_as):
        login_as(factory.user())

        response = test_client.post(
            "/v1/organisations", json={"name": "Acme", "email": "not-an-email"}
        )

        data = assert_problem_details(response, 400)
        assert data["detail"].startswith("Invalid field 'email'")

    def test_400_domain_validation(self, test_client, factory, login_as):
        login_as(factory.user())

        response = test_client.get("/v1/access/financial")

        data = assert_problem_details(response, 400)
        assert data["detail"] == "Organisation ID required"

    def test_401_missing_bearer(self, unauthenticated_client):
        response = unauthenticated_client.get("/v1/usage")

        data = assert_problem_details(response, 401)
        assert response.headers.get("WWW-Authenticate") == "Bearer"
        assert "Authorization" in data["detail"]

    def test_403_access_denied(self, test_client, factory, login_as):
        owner = factory.user()
        organisation = factory.organisation(owner)
        login_as(factory.user())

        response = test_client.get(f"/v1/organisations/{organisation.id}/invoices")

        data = assert_problem_details(response, 403)
        assert data["title"] == "Forbidden"
        assert data["type"].endswith("/access-denied")

    def test_404_not_found(self, test_client, factory, login_as):
        login_as(factory.user())

        response = test_client.get("/v1/projects/missing-project/access")

        data = assert_problem_details(response, 404)
        assert data["detail"] == "Project not found"

    def test_500_hides_internals(self, test_client, factory, login_as):
        login_as(factory.user())

        def broken_policy():
            raise RuntimeError("connection string postgresql://user:pw@db")

        app.dependency_overrides[get_access_policy] = broken_policy

        response = test_client.get("/v1/projects/p-1/access")

        data = assert_problem_details(response, 500)
        assert "postgresql" not in response.text
        assert data["detail"] == "An unexpected error occurred. Please try again later."

    def test_request_id_echoed_into_instance(self, test_client, factory, login_as):
        login_as(factory.user())

        response = test_client.get(
            "/v1/projects/missing-project/access",
            headers={"X-Request-ID": "req-0123456789"},
        )

        assert response.headers["X-Request-ID"] == "req-0123456789"
        assert response.json()["instance"] == "urn:nesternity:trace:req-0123456789"
