"""Team membership endpoints."""

from fastapi import APIRouter, Depends, status

from nesternity_api.auth.session_auth import SessionAuthContext, get_session_auth_context
from nesternity_api.billing.limits import SubscriptionLimiter
from nesternity_api.deps import get_subscription_limiter, get_team_service
from nesternity_api.schemas import (
    TeamMemberCreateRequest,
    TeamMemberResponse,
    TransferOwnershipRequest,
    TransferOwnershipResponse,
)
from nesternity_api.teams.ownership import TeamOwnershipService

router = APIRouter(prefix="/v1/teams", tags=["teams"])


@router.post(
    "/{team_id}/members",
    response_model=TeamMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_team_member(
    team_id: str,
    body: TeamMemberCreateRequest,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    service: TeamOwnershipService = Depends(get_team_service),
    limiter: SubscriptionLimiter = Depends(get_subscription_limiter),
) -> TeamMemberResponse:
    membership = service.add_member(team_id, auth.user_id, body.user_id, body.role, limiter)
    return TeamMemberResponse.model_validate(membership)


@router.post("/{team_id}/transfer-ownership", response_model=TransferOwnershipResponse)
def transfer_team_ownership(
    team_id: str,
    body: TransferOwnershipRequest,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    service: TeamOwnershipService = Depends(get_team_service),
) -> TransferOwnershipResponse:
    """Hand team ownership to an admin member. The caller stays on as admin."""
    team = service.transfer_ownership(team_id, auth.user_id, body.new_owner_id)
    return TransferOwnershipResponse(team_id=team.id, owner_id=team.created_by)
