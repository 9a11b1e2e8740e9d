"""SQLAlchemy ORM Models for Nesternity."""

from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    BIGINT,
    DATE,
    INTEGER,
    JSON,
    NUMERIC,
    TEXT,
    TIMESTAMP,
    CheckConstraint,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

TEAM_ROLES = ("owner", "admin", "member")
ORGANISATION_TYPES = ("OWNER", "CLIENT")
UNLIMITED = -1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Mirror of an auth-provider (Supabase) user."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    email: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )


class Organisation(Base):
    """Top-level tenant and billing entity. Exactly one owner."""

    __tablename__ = "organisations"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    email: Mapped[str] = mapped_column(TEXT, nullable=False)
    type: Mapped[str] = mapped_column(TEXT, nullable=False, default="OWNER")
    owner_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    # -1 = unlimited
    max_projects: Mapped[int] = mapped_column(INTEGER, nullable=False, default=UNLIMITED)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    projects: Mapped[list["Project"]] = relationship(back_populates="organisation")

    __table_args__ = (
        CheckConstraint("type IN ('OWNER', 'CLIENT')", name="ck_organisations_type"),
        Index("idx_organisations_owner", "owner_id"),
    )


class Team(Base):
    """Collaboration unit. ``created_by`` is the team owner."""

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    organisation_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("organisations.id"), nullable=True
    )
    created_by: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    members: Mapped[list["TeamMember"]] = relationship(back_populates="team")

    __table_args__ = (Index("idx_teams_created_by", "created_by"),)


class TeamMember(Base):
    """Membership of a user in a team, with a closed-enum role."""

    __tablename__ = "team_members"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    team_id: Mapped[str] = mapped_column(TEXT, ForeignKey("teams.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    role: Mapped[str] = mapped_column(TEXT, nullable=False, default="member")
    added_by: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    team: Mapped[Team] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        CheckConstraint("role IN ('owner', 'admin', 'member')", name="ck_team_members_role"),
        Index("idx_team_members_user", "user_id"),
    )


class Client(Base):
    """Client record owned by the user who created it."""

    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    email: Mapped[str] = mapped_column(TEXT, nullable=False)
    company: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_by: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )


class Project(Base):
    """Project. ``organisation_id`` is nullable for legacy rows."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    organisation_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("organisations.id"), nullable=True
    )
    team_id: Mapped[str] = mapped_column(TEXT, ForeignKey("teams.id"), nullable=False)
    client_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("clients.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="ACTIVE")
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    organisation: Mapped[Optional[Organisation]] = relationship(back_populates="projects")
    team: Mapped[Team] = relationship()

    __table_args__ = (
        Index("idx_projects_organisation", "organisation_id"),
        Index("idx_projects_team", "team_id"),
    )


class Proposal(Base):
    """Proposal sent to a client. Financial document."""

    __tablename__ = "proposals"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    organisation_id: Mapped[str] = mapped_column(
        TEXT, ForeignKey("organisations.id"), nullable=False
    )
    project_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("projects.id"), nullable=True
    )
    client_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("clients.id"), nullable=True
    )
    title: Mapped[str] = mapped_column(TEXT, nullable=False)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="DRAFT")
    amount: Mapped[Optional[Any]] = mapped_column(NUMERIC(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(TEXT, nullable=False, default="INR")
    created_by: Mapped[str] = mapped_column(TEXT, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_proposals_organisation", "organisation_id"),
        Index("idx_proposals_project", "project_id"),
    )


class Invoice(Base):
    """Invoice issued by an organisation. Financial document."""

    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    organisation_id: Mapped[str] = mapped_column(
        TEXT, ForeignKey("organisations.id"), nullable=False
    )
    project_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("projects.id"), nullable=True
    )
    client_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("clients.id"), nullable=True
    )
    invoice_number: Mapped[str] = mapped_column(TEXT, nullable=False)
    amount: Mapped[Any] = mapped_column(NUMERIC(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(TEXT, nullable=False, default="INR")
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="DRAFT")
    due_date: Mapped[Optional[date]] = mapped_column(DATE, nullable=True)
    created_by: Mapped[str] = mapped_column(TEXT, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "organisation_id", "invoice_number", name="uq_invoices_org_number"
        ),
        Index("idx_invoices_organisation", "organisation_id"),
    )


class Subscription(Base):
    """A user's plan subscription, synced from the payment provider."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    plan_tier: Mapped[str] = mapped_column(TEXT, nullable=False, default="FREE")
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="ACTIVE")
    provider: Mapped[str] = mapped_column(TEXT, nullable=False, default="manual")
    external_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    current_period_start: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    current_period_end: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_subscriptions_user_status", "user_id", "status"),
        UniqueConstraint("provider", "external_id", name="uq_subscriptions_provider_external"),
    )


class UsageRecord(Base):
    """One metered usage event. Appended, never aggregated at write time."""

    __tablename__ = "usage_records"

    # SQLite only autoincrements INTEGER primary keys
    id: Mapped[int] = mapped_column(
        BIGINT().with_variant(INTEGER, "sqlite"), primary_key=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    subscription_id: Mapped[Optional[str]] = mapped_column(
        TEXT, ForeignKey("subscriptions.id"), nullable=True
    )
    feature_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    period_start: Mapped[date] = mapped_column(DATE, nullable=False)
    period_end: Mapped[date] = mapped_column(DATE, nullable=False)
    count: Mapped[int] = mapped_column(INTEGER, nullable=False, default=1)
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        CheckConstraint("count > 0", name="ck_usage_records_count_positive"),
        Index("idx_usage_records_user_feature_period", "user_id", "feature_type", "period_start"),
    )
