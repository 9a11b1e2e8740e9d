"""Team membership management and atomic ownership transfer.

The transfer touches three rows (team owner pointer plus two memberships)
inside one transaction. Any failure rolls the whole transfer back, so no
caller can observe a team whose owner pointer and memberships disagree.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nesternity_api.billing.limits import SubscriptionLimiter
from nesternity_api.db.models import TEAM_ROLES, Team, TeamMember, User
from nesternity_api.errors import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    PlanLimitReachedError,
    TeamNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = tuple(role for role in TEAM_ROLES if role != "owner")


class TeamOwnershipService:
    """Team membership writes bound to a database session."""

    def __init__(self, db: Session):
        self.db = db

    def _get_membership(self, team_id: str, user_id: str) -> Optional[TeamMember]:
        return self.db.execute(
            select(TeamMember).where(
                TeamMember.team_id == team_id,
                TeamMember.user_id == user_id,
            )
        ).scalars().first()

    def _upsert_admin(self, team_id: str, user_id: str, added_by: str) -> TeamMember:
        """Ensure ``user_id`` holds an admin membership on the team (no commit)."""
        membership = self._get_membership(team_id, user_id)
        if membership is None:
            membership = TeamMember(
                id=str(uuid.uuid4()),
                team_id=team_id,
                user_id=user_id,
                role="admin",
                added_by=added_by,
                accepted_at=datetime.now(timezone.utc),
            )
            self.db.add(membership)
        else:
            membership.role = "admin"
            membership.added_by = added_by
        self.db.flush()
        return membership

    def transfer_ownership(
        self, team_id: str, current_owner_id: str, new_owner_id: Optional[str]
    ) -> Team:
        """Transfer team ownership to an existing admin member.

        Args:
            team_id: Team to transfer
            current_owner_id: Authenticated caller, must be the team owner
            new_owner_id: Member receiving ownership, must already be an admin

        Returns:
            The updated Team

        Raises:
            TeamNotFoundError: Team missing or caller is not its owner
            ValidationError: new_owner_id missing or not an admin member
        """
        team = self.db.execute(
            select(Team).where(Team.id == team_id, Team.created_by == current_owner_id)
        ).scalars().first()
        if team is None:
            raise TeamNotFoundError("Team not found or you are not the owner")

        if not new_owner_id:
            raise ValidationError("New owner ID is required")

        new_owner_membership = self._get_membership(team_id, new_owner_id)
        if new_owner_membership is None or new_owner_membership.role != "admin":
            raise ValidationError("New owner must be an admin member")

        try:
            team.created_by = new_owner_id
            self.db.flush()
            self._upsert_admin(team_id, new_owner_id, added_by=current_owner_id)
            self._upsert_admin(team_id, current_owner_id, added_by=new_owner_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(
                "Team ownership transfer rolled back",
                extra={"event": "team.ownership.transfer_failed", "team_id": team_id},
                exc_info=True,
            )
            raise

        self.db.refresh(team)
        logger.info(
            "Team ownership transferred",
            extra={
                "event": "team.ownership.transferred",
                "team_id": team_id,
                "previous_owner_id": current_owner_id,
                "new_owner_id": new_owner_id,
            },
        )
        return team

    def add_member(
        self,
        team_id: str,
        actor_id: str,
        user_id: str,
        role: str,
        limiter: SubscriptionLimiter,
    ) -> TeamMember:
        """Add a member to a team.

        Only the team owner or an admin member may add members. The owner
        role is not assignable here; it moves through transfer_ownership.

        Raises:
            TeamNotFoundError: Unknown team
            NotFoundError: Unknown user
            AccessDeniedError: Actor is neither owner nor admin
            ValidationError: Role outside the assignable set
            PlanLimitReachedError: Team owner's plan member limit reached
            ConflictError: User is already a member
        """
        team = self.db.get(Team, team_id)
        if team is None:
            raise TeamNotFoundError()

        if team.created_by != actor_id:
            actor_membership = self._get_membership(team_id, actor_id)
            if actor_membership is None or actor_membership.role != "admin":
                raise AccessDeniedError("Only team owners and admins can add members")

        if role not in ASSIGNABLE_ROLES:
            raise ValidationError(
                f"Invalid role '{role}'. Must be one of: {', '.join(ASSIGNABLE_ROLES)}"
            )

        if self.db.get(User, user_id) is None:
            raise NotFoundError("User not found")

        if self._get_membership(team_id, user_id) is not None:
            raise ConflictError("User is already a member of this team")

        limit_check = limiter.check_team_member_limit(team_id)
        if not limit_check.can_create:
            raise PlanLimitReachedError(
                limit_check.message or "Team member limit reached",
                extensions={"limit": limit_check.limit, "current": limit_check.current},
            )

        membership = TeamMember(
            id=str(uuid.uuid4()),
            team_id=team_id,
            user_id=user_id,
            role=role,
            added_by=actor_id,
        )
        self.db.add(membership)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("User is already a member of this team") from e
        self.db.refresh(membership)

        logger.info(
            "Team member added",
            extra={"event": "team.member.added", "team_id": team_id, "role": role},
        )
        return membership
