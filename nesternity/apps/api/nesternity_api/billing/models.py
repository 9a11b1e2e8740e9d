"""
Pydantic models for the subscription tier catalog and limit checks
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

UNLIMITED = -1


class PlanTier(str, Enum):
    """Subscription tiers"""
    FREE = "FREE"
    STARTER = "STARTER"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class FeatureType(str, Enum):
    """Billable features metered per calendar month"""
    AI_PROPOSAL = "AI_PROPOSAL"
    AI_CONTRACT = "AI_CONTRACT"
    SCOPE_RADAR_CHECK = "SCOPE_RADAR_CHECK"
    RECURRING_INVOICE = "RECURRING_INVOICE"
    INVOICE = "INVOICE"


class PlanLimitsModel(BaseModel):
    """Structural plan limits (-1 means unlimited)"""
    max_organisations: int = Field(..., ge=UNLIMITED)
    max_projects: int = Field(..., ge=UNLIMITED)
    max_team_members: int = Field(..., ge=UNLIMITED)


class TierModel(BaseModel):
    """One subscription tier"""
    tier: PlanTier
    display_name: str
    plan_limits: PlanLimitsModel
    feature_quotas: dict[FeatureType, int]
    upgrade_message: str

    def quota_for(self, feature_type: FeatureType) -> int:
        return self.feature_quotas[feature_type]


class TierCatalogModel(BaseModel):
    """Complete tier catalog"""
    catalog_version: str
    unlimited_sentinel: int = UNLIMITED
    default_tier: PlanTier = PlanTier.FREE
    feature_types: list[FeatureType]
    tiers: list[TierModel]

    @model_validator(mode="after")
    def _check_coverage(self) -> "TierCatalogModel":
        tier_names = [t.tier for t in self.tiers]
        if sorted(tier_names) != sorted(PlanTier):
            raise ValueError(f"Catalog must define each tier exactly once, got {tier_names}")
        for tier in self.tiers:
            missing = set(FeatureType) - set(tier.feature_quotas)
            if missing:
                raise ValueError(
                    f"Tier {tier.tier.value} is missing quotas for "
                    f"{sorted(m.value for m in missing)}"
                )
        return self

    def get_tier(self, tier: PlanTier | str) -> TierModel:
        """Get tier by name"""
        tier = PlanTier(tier)
        for t in self.tiers:
            if t.tier == tier:
                return t
        raise ValueError(f"Tier {tier.value} not found in catalog")

    def is_unlimited(self, value: int) -> bool:
        """Check whether a quota or limit value is the unlimited sentinel"""
        return value == self.unlimited_sentinel


class FeatureLimitCheck(BaseModel):
    """Outcome of a monthly feature quota check"""
    allowed: bool
    used: int
    limit: int
    remaining: Optional[int] = Field(
        None, description="Units left this month (None when unlimited)"
    )
    warn: bool = Field(False, description="True once usage reaches 80% of the quota")


class PlanLimitCheck(BaseModel):
    """Outcome of an organisation / project / team-member limit check"""
    can_create: bool
    current: int
    limit: int
    message: Optional[str] = None
