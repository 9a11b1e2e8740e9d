"""Access-control predicates for projects and financial data.

Decisions are computed from storage on every call and never cached, so a
membership change is visible to the very next check.

Rules:
- Project access: the owning organisation's owner (role "owner"), or any
  member of the project's team (role = membership role).
- Financial access (proposals, invoices, contracts): organisation owner only.
  Team admins do not get financial access.
"""

import logging
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from nesternity_api.db.models import Organisation, Project, TeamMember
from nesternity_api.errors import OrganisationNotFoundError, ProjectNotFoundError

logger = logging.getLogger(__name__)

NO_ACCESS_REASON = "No access"
FINANCIAL_ACCESS_REASON = "Only organisation owners can access financial data"


class AccessDecision(BaseModel):
    """Result of an access check."""

    has_access: bool
    role: Optional[str] = None
    reason: Optional[str] = None


class AccessPolicy:
    """Read-only access checks bound to a database session."""

    def __init__(self, db: Session):
        self.db = db

    def check_project_access(self, user_id: str, project_id: str) -> AccessDecision:
        """Check whether a user may access a project.

        Args:
            user_id: Authenticated user
            project_id: Project to check

        Returns:
            AccessDecision with the caller's role when access is granted

        Raises:
            ProjectNotFoundError: If the project does not exist
        """
        project = self.db.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError()

        if project.organisation_id is not None:
            organisation = self.db.get(Organisation, project.organisation_id)
            if organisation is not None and organisation.owner_id == user_id:
                return AccessDecision(has_access=True, role="owner")

        membership = self.db.execute(
            select(TeamMember).where(
                TeamMember.team_id == project.team_id,
                TeamMember.user_id == user_id,
            )
        ).scalars().first()
        if membership is not None:
            return AccessDecision(has_access=True, role=membership.role)

        logger.info(
            "Project access denied",
            extra={"event": "access.project.denied", "project_id": project_id},
        )
        return AccessDecision(has_access=False, reason=NO_ACCESS_REASON)

    def check_financial_access(self, user_id: str, organisation_id: str) -> AccessDecision:
        """Check whether a user may read an organisation's financial data.

        Raises:
            OrganisationNotFoundError: If the organisation does not exist
        """
        organisation = self.db.get(Organisation, organisation_id)
        if organisation is None:
            raise OrganisationNotFoundError()

        if organisation.owner_id == user_id:
            return AccessDecision(has_access=True)

        logger.info(
            "Financial access denied",
            extra={
                "event": "access.financial.denied",
                "target_organisation_id": organisation_id,
            },
        )
        return AccessDecision(has_access=False, reason=FINANCIAL_ACCESS_REASON)

    def check_project_financial_access(
        self, user_id: str, project_id: str, organisation_id: str
    ) -> AccessDecision:
        """Project access AND financial access, short-circuiting.

        A denied project check is returned unchanged and the financial check
        is not evaluated. Otherwise the result carries the financial decision
        together with the caller's project role.
        """
        project_decision = self.check_project_access(user_id, project_id)
        if not project_decision.has_access:
            return project_decision

        financial_decision = self.check_financial_access(user_id, organisation_id)
        return AccessDecision(
            has_access=financial_decision.has_access,
            role=project_decision.role,
            reason=financial_decision.reason,
        )
