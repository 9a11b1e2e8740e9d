"""API tests for access checks and usage summaries."""

from nesternity_api.billing.models import FeatureType
from nesternity_api.access.policy import FINANCIAL_ACCESS_REASON


class TestAccessEndpoints:
    def test_project_access_for_owner(self, test_client, factory, login_as):
        owner = factory.user()
        organisation = factory.organisation(owner)
        project = factory.project(factory.team(owner, organisation), organisation)
        login_as(owner)

        response = test_client.get(f"/v1/projects/{project.id}/access")

        assert response.status_code == 200
        assert response.json() == {"has_access": True, "role": "owner", "reason": None}

    def test_project_access_for_member(self, test_client, factory, login_as):
        owner = factory.user()
        organisation = factory.organisation(owner)
        team = factory.team(owner, organisation)
        project = factory.project(team, organisation)
        member = factory.user()
        factory.member(team, member, role="member")
        login_as(member)

        response = test_client.get(f"/v1/projects/{project.id}/access")

        assert response.json()["role"] == "member"

    def test_project_access_denied_is_200_with_reason(self, test_client, factory, login_as):
        owner = factory.user()
        organisation = factory.organisation(owner)
        project = factory.project(factory.team(owner, organisation), organisation)
        login_as(factory.user())

        response = test_client.get(f"/v1/projects/{project.id}/access")

        assert response.status_code == 200
        assert response.json()["has_access"] is False
        assert response.json()["reason"] == "No access"

    def test_financial_access_owner_and_admin(self, test_client, factory, login_as):
        owner = factory.user()
        organisation = factory.organisation(owner)
        team = factory.team(owner, organisation)
        admin_user = factory.user()
        factory.member(team, admin_user, role="admin")

        login_as(owner)
        allowed = test_client.get(
            "/v1/access/financial", params={"organisation_id": organisation.id}
        )
        login_as(admin_user)
        denied = test_client.get(
            "/v1/access/financial", params={"organisation_id": organisation.id}
        )

        assert allowed.json()["has_access"] is True
        assert allowed.json()["role"] is None
        assert denied.json()["has_access"] is False
        assert denied.json()["reason"] == FINANCIAL_ACCESS_REASON

    def test_financial_access_unknown_organisation(self, test_client, factory, login_as):
        login_as(factory.user())

        response = test_client.get("/v1/access/financial", params={"organisation_id": "nope"})

        assert response.status_code == 404
        assert response.json()["detail"] == "Organisation not found"


class TestUsageEndpoints:
    def test_summary_for_free_user(self, test_client, factory, login_as, limiter):
        user = factory.user()
        limiter.increment_usage(user.id, None, FeatureType.AI_CONTRACT, count=4)
        login_as(user)

        response = test_client.get("/v1/usage")

        assert response.status_code == 200
        body = response.json()
        assert body["tier"] == "FREE"
        assert {f["feature_type"] for f in body["features"]} == {f.value for f in FeatureType}
        contract = next(f for f in body["features"] if f["feature_type"] == "AI_CONTRACT")
        assert contract == {
            "feature_type": "AI_CONTRACT",
            "allowed": True,
            "used": 4,
            "limit": 5,
            "remaining": 1,
            "warn": True,
        }

    def test_single_feature_unlimited(self, test_client, factory, login_as):
        user = factory.user()
        factory.subscription(user, plan_tier="ENTERPRISE")
        login_as(user)

        response = test_client.get("/v1/usage/features/AI_PROPOSAL")

        assert response.status_code == 200
        assert response.json()["limit"] == -1
        assert response.json()["remaining"] is None

    def test_unknown_feature_rejected(self, test_client, factory, login_as):
        login_as(factory.user())

        response = test_client.get("/v1/usage/features/AI_VIDEO")

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid field 'feature_type'")
