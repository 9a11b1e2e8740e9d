"""Organisation and project creation, bounded by plan limits."""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from nesternity_api.auth.session_auth import SessionAuthContext, get_session_auth_context
from nesternity_api.billing.limits import SubscriptionLimiter
from nesternity_api.context import organisation_id_var
from nesternity_api.db.models import Organisation, Project, Team, User
from nesternity_api.db.session import get_db
from nesternity_api.deps import get_subscription_limiter
from nesternity_api.errors import (
    AccessDeniedError,
    NotFoundError,
    OrganisationNotFoundError,
    PlanLimitReachedError,
    ValidationError,
)
from nesternity_api.schemas import (
    OrganisationCreateRequest,
    OrganisationResponse,
    ProjectCreateRequest,
    ProjectResponse,
)

router = APIRouter(prefix="/v1/organisations", tags=["organisations"])
logger = logging.getLogger(__name__)


def ensure_user_row(db: Session, auth: SessionAuthContext) -> User:
    """Mirror the authenticated Supabase user into ``users`` on first write."""
    user = db.get(User, auth.user_id)
    if user is None:
        user = User(id=auth.user_id, email=auth.email or f"{auth.user_id}@users.invalid")
        db.add(user)
        db.flush()
    return user


@router.post("", response_model=OrganisationResponse, status_code=status.HTTP_201_CREATED)
def create_organisation(
    body: OrganisationCreateRequest,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    db: Session = Depends(get_db),
    limiter: SubscriptionLimiter = Depends(get_subscription_limiter),
) -> OrganisationResponse:
    """Create an organisation owned by the caller."""
    limit_check = limiter.check_organisation_limit(auth.user_id)
    if not limit_check.can_create:
        raise PlanLimitReachedError(
            limit_check.message or "Organisation limit reached",
            extensions={"limit": limit_check.limit, "current": limit_check.current},
        )

    tier = limiter.resolve_tier(auth.user_id)
    ensure_user_row(db, auth)
    organisation = Organisation(
        id=str(uuid.uuid4()),
        name=body.name.strip(),
        email=body.email.strip(),
        type=body.type,
        owner_id=auth.user_id,
        max_projects=tier.plan_limits.max_projects,
    )
    db.add(organisation)
    db.commit()
    db.refresh(organisation)

    organisation_id_var.set(organisation.id)
    logger.info(
        "Organisation created",
        extra={"event": "organisation.created", "tier": tier.tier.value},
    )
    return OrganisationResponse.model_validate(organisation)


@router.post(
    "/{organisation_id}/projects",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_project(
    organisation_id: str,
    body: ProjectCreateRequest,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    db: Session = Depends(get_db),
    limiter: SubscriptionLimiter = Depends(get_subscription_limiter),
) -> ProjectResponse:
    """Create a project in an organisation the caller owns."""
    organisation_id_var.set(organisation_id)
    organisation = db.get(Organisation, organisation_id)
    if organisation is None:
        raise OrganisationNotFoundError()
    if organisation.owner_id != auth.user_id:
        raise AccessDeniedError("Only organisation owners can create projects")

    team = db.get(Team, body.team_id)
    if team is None:
        raise NotFoundError("Team not found")
    if team.organisation_id is not None and team.organisation_id != organisation_id:
        raise ValidationError("Team belongs to a different organisation")

    limit_check = limiter.check_project_limit(organisation_id)
    if not limit_check.can_create:
        raise PlanLimitReachedError(
            limit_check.message or "Project limit reached",
            extensions={"limit": limit_check.limit, "current": limit_check.current},
        )

    project = Project(
        id=str(uuid.uuid4()),
        name=body.name.strip(),
        description=body.description,
        organisation_id=organisation_id,
        team_id=body.team_id,
        client_id=body.client_id,
    )
    db.add(project)
    db.commit()
    db.refresh(project)

    logger.info("Project created", extra={"event": "project.created", "project_id": project.id})
    return ProjectResponse.model_validate(project)
