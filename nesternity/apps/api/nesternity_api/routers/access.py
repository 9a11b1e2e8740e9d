"""Access check endpoints.

The web client asks these before rendering financial or project views.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from nesternity_api.access.policy import AccessPolicy
from nesternity_api.auth.session_auth import SessionAuthContext, get_session_auth_context
from nesternity_api.context import organisation_id_var
from nesternity_api.deps import get_access_policy
from nesternity_api.errors import ValidationError
from nesternity_api.schemas import AccessDecisionResponse

router = APIRouter(prefix="/v1", tags=["access"])
logger = logging.getLogger(__name__)


@router.get("/access/financial", response_model=AccessDecisionResponse)
def get_financial_access(
    organisation_id: Optional[str] = Query(None, description="Organisation to check"),
    auth: SessionAuthContext = Depends(get_session_auth_context),
    policy: AccessPolicy = Depends(get_access_policy),
) -> AccessDecisionResponse:
    """Whether the caller may see the organisation's financial data."""
    if not organisation_id:
        raise ValidationError("Organisation ID required")

    organisation_id_var.set(organisation_id)
    decision = policy.check_financial_access(auth.user_id, organisation_id)
    return AccessDecisionResponse(**decision.model_dump())


@router.get("/projects/{project_id}/access", response_model=AccessDecisionResponse)
def get_project_access(
    project_id: str,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    policy: AccessPolicy = Depends(get_access_policy),
) -> AccessDecisionResponse:
    """Whether the caller may access the project, and with which role."""
    decision = policy.check_project_access(auth.user_id, project_id)
    return AccessDecisionResponse(**decision.model_dump())
