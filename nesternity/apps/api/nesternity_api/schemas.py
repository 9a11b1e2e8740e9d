"""Pydantic schemas for API requests/responses."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from nesternity_api.billing.models import FeatureType, PlanTier


# ============================================================================
# RFC 9457 Problem Details
# ============================================================================


class ProblemDetail(BaseModel):
    """RFC 9457 Problem Details for HTTP API errors.

    RFC 9457: detail can be either a string or a structured object (dict).
    Extension members (e.g. quota numbers) are allowed as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str | dict[str, Any] = Field(..., description="Human-readable explanation or structured error details")
    instance: Optional[str] = Field(None, description="URI reference identifying the specific occurrence")


# ============================================================================
# GET /v1/access/* - Response
# ============================================================================


class AccessDecisionResponse(BaseModel):
    """Access check result."""

    has_access: bool
    role: Optional[str] = None
    reason: Optional[str] = None


# ============================================================================
# GET /v1/usage - Response
# ============================================================================


class FeatureUsageResponse(BaseModel):
    """Monthly quota status for one feature."""

    feature_type: FeatureType
    allowed: bool
    used: int
    limit: int = Field(..., description="Monthly quota (-1 = unlimited)")
    remaining: Optional[int] = None
    warn: bool


class UsageSummaryResponse(BaseModel):
    """Quota status for every metered feature."""

    tier: PlanTier
    period_start: date
    period_end: date
    features: list[FeatureUsageResponse]


# ============================================================================
# Organisations / Projects
# ============================================================================


class OrganisationCreateRequest(BaseModel):
    """Request body for POST /v1/organisations."""

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    type: Literal["OWNER", "CLIENT"] = "OWNER"


class OrganisationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    type: str
    owner_id: str
    max_projects: int
    created_at: datetime


class ProjectCreateRequest(BaseModel):
    """Request body for POST /v1/organisations/{organisation_id}/projects."""

    name: str = Field(..., min_length=1, max_length=200)
    team_id: str = Field(..., description="Team that works on the project")
    description: Optional[str] = None
    client_id: Optional[str] = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    organisation_id: Optional[str] = None
    team_id: str
    client_id: Optional[str] = None
    status: str
    created_at: datetime


# ============================================================================
# Financial documents
# ============================================================================


class InvoiceCreateRequest(BaseModel):
    """Request body for POST /v1/organisations/{organisation_id}/invoices."""

    invoice_number: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    project_id: Optional[str] = None
    client_id: Optional[str] = None
    due_date: Optional[date] = None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organisation_id: str
    project_id: Optional[str] = None
    client_id: Optional[str] = None
    invoice_number: str
    amount: Decimal
    currency: str
    status: str
    due_date: Optional[date] = None
    created_at: datetime


class InvoiceListResponse(BaseModel):
    invoices: list[InvoiceResponse]


class ProposalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organisation_id: str
    project_id: Optional[str] = None
    client_id: Optional[str] = None
    title: str
    status: str
    amount: Optional[Decimal] = None
    currency: str
    created_at: datetime


class ProposalListResponse(BaseModel):
    proposals: list[ProposalResponse]


# ============================================================================
# Teams
# ============================================================================


class TeamMemberCreateRequest(BaseModel):
    """Request body for POST /v1/teams/{team_id}/members."""

    user_id: str = Field(..., min_length=1)
    role: str = Field(default="member", description="admin or member")


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    team_id: str
    user_id: str
    role: str
    added_by: Optional[str] = None


class TransferOwnershipRequest(BaseModel):
    """Request body for POST /v1/teams/{team_id}/transfer-ownership.

    new_owner_id is optional at the schema level so that a missing value
    gets the domain message instead of a generic validation error.
    """

    new_owner_id: Optional[str] = None


class TransferOwnershipResponse(BaseModel):
    team_id: str
    owner_id: str
    message: str = "Team ownership transferred successfully"


# ============================================================================
# Admin
# ============================================================================


class AdminLoginRequest(BaseModel):
    """Request body for POST /admin/session."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AdminSessionResponse(BaseModel):
    email: str
    expires_at: datetime


class UsageRecordItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    feature_type: str
    count: int
    period_start: date
    period_end: date
    subscription_id: Optional[str] = None
    meta: Optional[dict[str, Any]] = None
    created_at: datetime


class AdminUsageResponse(BaseModel):
    """Current-month usage for one user."""

    user_id: str
    period_start: date
    period_end: date
    totals: dict[str, int]
    records: list[UsageRecordItem]
