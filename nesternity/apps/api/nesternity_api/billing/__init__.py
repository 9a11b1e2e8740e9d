"""
Nesternity Billing Module
Tier catalog, monthly feature quotas and plan limits
"""

from .models import (
    FeatureLimitCheck,
    FeatureType,
    PlanLimitCheck,
    PlanLimitsModel,
    PlanTier,
    TierCatalogModel,
    TierModel,
    UNLIMITED,
)

from .catalog import (
    TierCatalogLoader,
    get_catalog_loader,
    get_tier_catalog,
)

from .limits import (
    SubscriptionLimiter,
)

__all__ = [
    "FeatureLimitCheck",
    "FeatureType",
    "PlanLimitCheck",
    "PlanLimitsModel",
    "PlanTier",
    "TierCatalogModel",
    "TierModel",
    "UNLIMITED",
    "TierCatalogLoader",
    "get_catalog_loader",
    "get_tier_catalog",
    "SubscriptionLimiter",
]
