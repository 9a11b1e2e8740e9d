"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

import os

# Must be set before nesternity_api.main is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("NESTERNITY_JSON_LOGS", "false")
os.environ.setdefault("ADMIN_EMAIL", "admin@nesternity.test")
os.environ.setdefault("ADMIN_PASSWORD", "correct-horse-battery-staple")
os.environ.setdefault("ADMIN_SESSION_SECRET", "test-admin-session-secret-0123456789abcdef")

import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nesternity_api.access.policy import AccessPolicy
from nesternity_api.auth.session_auth import SessionAuthContext, get_session_auth_context
from nesternity_api.billing.catalog import get_tier_catalog
from nesternity_api.billing.limits import SubscriptionLimiter
from nesternity_api.billing.models import TierCatalogModel
from nesternity_api.db.models import (
    Base,
    Client,
    Organisation,
    Project,
    Subscription,
    Team,
    TeamMember,
    User,
)
from nesternity_api.db.session import get_db
from nesternity_api.main import app
from nesternity_api.routers import admin
from nesternity_api.teams.ownership import TeamOwnershipService

TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Create a fresh in-memory SQLite database for each test.

    StaticPool keeps the single connection alive so TestClient worker
    threads see the same database.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
        session.rollback()
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def catalog() -> TierCatalogModel:
    return get_tier_catalog()


@pytest.fixture
def limiter(db_session: Session, catalog: TierCatalogModel) -> SubscriptionLimiter:
    return SubscriptionLimiter(db_session, catalog)


@pytest.fixture
def policy(db_session: Session) -> AccessPolicy:
    return AccessPolicy(db_session)


@pytest.fixture
def team_service(db_session: Session) -> TeamOwnershipService:
    return TeamOwnershipService(db_session)


class Factory:
    """Row builders for tests. Every builder commits."""

    def __init__(self, db: Session):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, user_id: Optional[str] = None) -> User:
        user_id = user_id or f"user_{uuid.uuid4().hex[:8]}"
        return self._save(User(id=user_id, email=f"{user_id}@example.test"))

    def organisation(
        self, owner: User, name: str = "Acme Studio", max_projects: int = -1
    ) -> Organisation:
        return self._save(
            Organisation(
                id=str(uuid.uuid4()),
                name=name,
                email="billing@acme.test",
                type="OWNER",
                owner_id=owner.id,
                max_projects=max_projects,
            )
        )

    def team(self, owner: User, organisation: Optional[Organisation] = None) -> Team:
        team = self._save(
            Team(
                id=str(uuid.uuid4()),
                name="Delivery",
                organisation_id=organisation.id if organisation else None,
                created_by=owner.id,
            )
        )
        return team

    def member(self, team: Team, user: User, role: str = "member") -> TeamMember:
        return self._save(
            TeamMember(
                id=str(uuid.uuid4()),
                team_id=team.id,
                user_id=user.id,
                role=role,
                added_by=team.created_by,
            )
        )

    def project(self, team: Team, organisation: Optional[Organisation] = None) -> Project:
        return self._save(
            Project(
                id=str(uuid.uuid4()),
                name="Website redesign",
                organisation_id=organisation.id if organisation else None,
                team_id=team.id,
            )
        )

    def client(self, owner: User, name: str = "Globex") -> Client:
        return self._save(
            Client(
                id=str(uuid.uuid4()),
                name=name,
                email="ap@globex.test",
                created_by=owner.id,
            )
        )

    def subscription(
        self,
        user: User,
        plan_tier: str = "PRO",
        status: str = "ACTIVE",
        created_at: Optional[datetime] = None,
    ) -> Subscription:
        return self._save(
            Subscription(
                id=str(uuid.uuid4()),
                user_id=user.id,
                plan_tier=plan_tier,
                status=status,
                created_at=created_at or datetime.now(timezone.utc),
            )
        )


@pytest.fixture
def factory(db_session: Session) -> Factory:
    return Factory(db_session)


@pytest.fixture
def auth_state() -> dict:
    """Mutable identity used by the session auth override."""
    return {"user_id": None, "email": None}


@pytest.fixture
def login_as(auth_state: dict):
    """Switch the authenticated user for subsequent client requests."""

    def _login(user: User) -> None:
        auth_state["user_id"] = user.id
        auth_state["email"] = user.email

    return _login


@pytest.fixture
def test_client(db_session: Session, auth_state: dict):
    """TestClient with db_session and session auth dependency overrides."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close - db_session fixture handles it

    def override_auth() -> SessionAuthContext:
        if auth_state["user_id"] is None:
            raise AssertionError("call login_as() before issuing authenticated requests")
        return SessionAuthContext(user_id=auth_state["user_id"], email=auth_state["email"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_auth_context] = override_auth
    client = TestClient(app, raise_server_exceptions=False)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_admin_login_limiter(monkeypatch):
    """Fresh in-memory login limiter per test."""
    monkeypatch.setattr(admin, "_login_limiter", None)
    monkeypatch.setenv("NESTERNITY_RATE_LIMIT_BACKEND", "memory")
    yield
