"""Financial documents: invoices and proposals.

Reading or writing these requires financial access, which only the
organisation owner has. Creating an invoice consumes the INVOICE quota.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nesternity_api.access.policy import FINANCIAL_ACCESS_REASON, AccessDecision, AccessPolicy
from nesternity_api.auth.session_auth import SessionAuthContext, get_session_auth_context
from nesternity_api.billing.limits import SubscriptionLimiter
from nesternity_api.billing.models import FeatureType
from nesternity_api.context import organisation_id_var
from nesternity_api.db.models import Client, Invoice, Project, Proposal
from nesternity_api.db.session import get_db
from nesternity_api.deps import get_access_policy, get_subscription_limiter
from nesternity_api.errors import (
    AccessDeniedError,
    ClientNotFoundError,
    ConflictError,
    ProjectNotFoundError,
    ValidationError,
)
from nesternity_api.schemas import (
    InvoiceCreateRequest,
    InvoiceListResponse,
    InvoiceResponse,
    ProposalListResponse,
    ProposalResponse,
)

router = APIRouter(prefix="/v1", tags=["financial"])
logger = logging.getLogger(__name__)


def _require(decision: AccessDecision) -> None:
    if not decision.has_access:
        raise AccessDeniedError(decision.reason or FINANCIAL_ACCESS_REASON)


def _check_invoice_references(
    db: Session, organisation_id: str, body: InvoiceCreateRequest, owner_id: str
) -> None:
    """Referenced project must belong to the organisation, client to its owner."""
    if body.project_id is not None:
        project = db.get(Project, body.project_id)
        if project is None:
            raise ProjectNotFoundError()
        if project.organisation_id != organisation_id:
            raise ValidationError("Project belongs to a different organisation")

    if body.client_id is not None:
        client = db.get(Client, body.client_id)
        if client is None:
            raise ClientNotFoundError()
        if client.created_by != owner_id:
            raise ValidationError("Client belongs to a different organisation")


def _invoice_number_taken(db: Session, organisation_id: str, invoice_number: str) -> bool:
    return db.execute(
        select(Invoice.id).where(
            Invoice.organisation_id == organisation_id,
            Invoice.invoice_number == invoice_number,
        )
    ).first() is not None


@router.get("/organisations/{organisation_id}/invoices", response_model=InvoiceListResponse)
def list_invoices(
    organisation_id: str,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> InvoiceListResponse:
    organisation_id_var.set(organisation_id)
    _require(policy.check_financial_access(auth.user_id, organisation_id))

    invoices = db.execute(
        select(Invoice)
        .where(Invoice.organisation_id == organisation_id)
        .order_by(Invoice.created_at.desc())
    ).scalars().all()
    return InvoiceListResponse(invoices=[InvoiceResponse.model_validate(i) for i in invoices])


@router.post(
    "/organisations/{organisation_id}/invoices",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_invoice(
    organisation_id: str,
    body: InvoiceCreateRequest,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
    limiter: SubscriptionLimiter = Depends(get_subscription_limiter),
) -> InvoiceResponse:
    """Create an invoice: financial access, INVOICE quota, insert, meter."""
    organisation_id_var.set(organisation_id)
    _require(policy.check_financial_access(auth.user_id, organisation_id))
    limiter.enforce_feature_limit(auth.user_id, FeatureType.INVOICE)
    _check_invoice_references(db, organisation_id, body, auth.user_id)

    invoice = Invoice(
        id=str(uuid.uuid4()),
        organisation_id=organisation_id,
        project_id=body.project_id,
        client_id=body.client_id,
        invoice_number=body.invoice_number,
        amount=body.amount,
        currency=body.currency.upper(),
        due_date=body.due_date,
        created_by=auth.user_id,
    )
    db.add(invoice)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not _invoice_number_taken(db, organisation_id, body.invoice_number):
            raise
        raise ConflictError(
            f"Invoice number {body.invoice_number} already exists in this organisation"
        ) from e
    db.refresh(invoice)

    subscription = limiter.get_current_subscription(auth.user_id)
    limiter.increment_usage(
        auth.user_id,
        subscription.id if subscription else None,
        FeatureType.INVOICE,
        meta={"invoice_id": invoice.id},
    )
    return InvoiceResponse.model_validate(invoice)


@router.get("/projects/{project_id}/proposals", response_model=ProposalListResponse)
def list_project_proposals(
    project_id: str,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> ProposalListResponse:
    """Proposals of a project: project access AND financial access."""
    project = db.get(Project, project_id)
    if project is None:
        raise ProjectNotFoundError()
    if project.organisation_id is None:
        # Legacy project without an organisation: no owner can be resolved
        raise AccessDeniedError(FINANCIAL_ACCESS_REASON)

    organisation_id_var.set(project.organisation_id)
    _require(
        policy.check_project_financial_access(auth.user_id, project_id, project.organisation_id)
    )

    proposals = db.execute(
        select(Proposal)
        .where(Proposal.project_id == project_id)
        .order_by(Proposal.created_at.desc())
    ).scalars().all()
    return ProposalListResponse(proposals=[ProposalResponse.model_validate(p) for p in proposals])
