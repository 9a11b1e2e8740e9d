"""Shared FastAPI dependencies for policy objects.

Each request gets policy instances bound to its own database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from nesternity_api.access.policy import AccessPolicy
from nesternity_api.billing.catalog import get_tier_catalog
from nesternity_api.billing.limits import SubscriptionLimiter
from nesternity_api.billing.models import TierCatalogModel
from nesternity_api.db.session import get_db
from nesternity_api.teams.ownership import TeamOwnershipService


def get_access_policy(db: Session = Depends(get_db)) -> AccessPolicy:
    return AccessPolicy(db)


def get_subscription_limiter(
    db: Session = Depends(get_db),
    catalog: TierCatalogModel = Depends(get_tier_catalog),
) -> SubscriptionLimiter:
    return SubscriptionLimiter(db, catalog)


def get_team_service(db: Session = Depends(get_db)) -> TeamOwnershipService:
    return TeamOwnershipService(db)
