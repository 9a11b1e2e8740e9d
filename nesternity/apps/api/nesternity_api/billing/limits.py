"""
Subscription limiter
Monthly feature quotas, usage metering and structural plan limits
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from nesternity_api.db.models import Organisation, Project, Subscription, Team, TeamMember, UsageRecord
from nesternity_api.errors import FeatureQuotaExceededError, OrganisationNotFoundError, TeamNotFoundError
from nesternity_api.utils.periods import month_window

from .models import FeatureLimitCheck, FeatureType, PlanLimitCheck, PlanTier, TierCatalogModel, TierModel

logger = logging.getLogger(__name__)

# Subscription statuses that grant the paid tier
CURRENT_SUBSCRIPTION_STATUSES = ("ACTIVE", "TRIALING")


class SubscriptionLimiter:
    """
    Quota and plan-limit checks against the tier catalog:
    1. Feature quotas - SUM(usage_records.count) over the current month window
    2. Organisation / project / team-member plan limits - row counts

    Checks read then decide without locking. Two concurrent callers near a
    quota boundary can both pass the check and overshoot by one unit each.
    """

    def __init__(self, db: Session, catalog: TierCatalogModel):
        self.db = db
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Tier resolution
    # ------------------------------------------------------------------

    def get_current_subscription(self, user_id: str) -> Optional[Subscription]:
        """Most recently created ACTIVE/TRIALING subscription, if any"""
        stmt = (
            select(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status.in_(CURRENT_SUBSCRIPTION_STATUSES),
            )
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def resolve_tier(self, user_id: str) -> TierModel:
        """Catalog tier for the user (default tier when unsubscribed)"""
        subscription = self.get_current_subscription(user_id)
        if subscription is None:
            return self.catalog.get_tier(self.catalog.default_tier)
        try:
            return self.catalog.get_tier(subscription.plan_tier)
        except ValueError:
            logger.warning(
                "Unknown plan tier on subscription, falling back to default tier",
                extra={
                    "event": "billing.tier.unknown",
                    "subscription_id": subscription.id,
                    "plan_tier": subscription.plan_tier,
                },
            )
            return self.catalog.get_tier(self.catalog.default_tier)

    # ------------------------------------------------------------------
    # Feature quotas
    # ------------------------------------------------------------------

    def get_usage_for_period(
        self,
        user_id: str,
        feature_type: FeatureType,
        now: Optional[datetime] = None,
    ) -> int:
        """Sum of usage counts inside the month window containing ``now``"""
        period_start, period_end = month_window(now)
        stmt = select(func.coalesce(func.sum(UsageRecord.count), 0)).where(
            UsageRecord.user_id == user_id,
            UsageRecord.feature_type == FeatureType(feature_type).value,
            UsageRecord.period_start >= period_start,
            UsageRecord.period_end <= period_end,
        )
        return int(self.db.execute(stmt).scalar_one())

    def check_feature_limit(
        self,
        user_id: str,
        feature_type: FeatureType,
        now: Optional[datetime] = None,
    ) -> FeatureLimitCheck:
        """
        Check a monthly feature quota

        Returns:
            FeatureLimitCheck. An unlimited quota short-circuits without
            touching usage rows: used=0, limit=-1, remaining=None.
        """
        feature_type = FeatureType(feature_type)
        tier = self.resolve_tier(user_id)
        limit = tier.quota_for(feature_type)

        if self.catalog.is_unlimited(limit):
            return FeatureLimitCheck(
                allowed=True, used=0, limit=limit, remaining=None, warn=False
            )

        used = self.get_usage_for_period(user_id, feature_type, now)

        return FeatureLimitCheck(
            allowed=used < limit,
            used=used,
            limit=limit,
            remaining=max(0, limit - used),
            # used / limit >= 0.8, in integers
            warn=used * 5 >= limit * 4,
        )

    def enforce_feature_limit(
        self,
        user_id: str,
        feature_type: FeatureType,
        now: Optional[datetime] = None,
    ) -> FeatureLimitCheck:
        """
        Check a feature quota and raise when it is used up

        Raises:
            FeatureQuotaExceededError: quota reached for this month
        """
        feature_type = FeatureType(feature_type)
        check = self.check_feature_limit(user_id, feature_type, now)
        if not check.allowed:
            logger.info(
                "Feature quota exceeded",
                extra={
                    "event": "billing.feature_limit.exceeded",
                    "feature_type": feature_type.value,
                    "used": check.used,
                    "limit": check.limit,
                },
            )
            raise FeatureQuotaExceededError(
                f"Feature {feature_type.value} limit exceeded",
                extensions={
                    "feature_type": feature_type.value,
                    **check.model_dump(),
                },
            )
        return check

    def increment_usage(
        self,
        user_id: str,
        subscription_id: Optional[str],
        feature_type: FeatureType,
        count: int = 1,
        meta: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> UsageRecord:
        """
        Append one usage row for the current month window and commit

        Args:
            user_id: User consuming the feature
            subscription_id: Current subscription (None on the default tier)
            feature_type: Metered feature
            count: Units consumed (must be positive)
            meta: Free-form context stored with the row
            now: Reference instant for the period (defaults to UTC now)

        Returns:
            The persisted UsageRecord
        """
        if count <= 0:
            raise ValueError(f"count must be positive, got {count}")

        feature_type = FeatureType(feature_type)
        period_start, period_end = month_window(now)
        record = UsageRecord(
            user_id=user_id,
            subscription_id=subscription_id,
            feature_type=feature_type.value,
            period_start=period_start,
            period_end=period_end,
            count=count,
            meta=meta,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        logger.info(
            "Usage recorded",
            extra={
                "event": "billing.usage.recorded",
                "feature_type": feature_type.value,
                "count": count,
                "period_start": period_start.isoformat(),
            },
        )
        return record

    def list_usage_for_period(
        self, user_id: str, now: Optional[datetime] = None
    ) -> list[UsageRecord]:
        """All usage rows of the user in the month window containing ``now``"""
        period_start, period_end = month_window(now)
        stmt = (
            select(UsageRecord)
            .where(
                UsageRecord.user_id == user_id,
                UsageRecord.period_start >= period_start,
                UsageRecord.period_end <= period_end,
            )
            .order_by(UsageRecord.created_at.desc(), UsageRecord.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    # ------------------------------------------------------------------
    # Plan limits
    # ------------------------------------------------------------------

    def _plan_limit_check(
        self, current: int, limit: int, tier: Optional[TierModel], noun: str
    ) -> PlanLimitCheck:
        if self.catalog.is_unlimited(limit):
            return PlanLimitCheck(can_create=True, current=current, limit=limit)

        if current < limit:
            return PlanLimitCheck(can_create=True, current=current, limit=limit)

        message = f"You have reached the maximum of {limit} {noun} for your plan."
        if tier is not None:
            message = f"{message} {tier.upgrade_message}"
        return PlanLimitCheck(
            can_create=False, current=current, limit=limit, message=message
        )

    def check_organisation_limit(self, user_id: str) -> PlanLimitCheck:
        """Owned organisations against the tier's max_organisations"""
        tier = self.resolve_tier(user_id)
        current = self.db.execute(
            select(func.count()).select_from(Organisation).where(Organisation.owner_id == user_id)
        ).scalar_one()
        return self._plan_limit_check(
            current, tier.plan_limits.max_organisations, tier, "organisations"
        )

    def check_project_limit(self, organisation_id: str) -> PlanLimitCheck:
        """
        Projects of an organisation against ``organisations.max_projects``

        Raises:
            OrganisationNotFoundError: unknown organisation
        """
        organisation = self.db.get(Organisation, organisation_id)
        if organisation is None:
            raise OrganisationNotFoundError()

        current = self.db.execute(
            select(func.count()).select_from(Project).where(Project.organisation_id == organisation_id)
        ).scalar_one()
        tier = self.resolve_tier(organisation.owner_id)
        return self._plan_limit_check(current, organisation.max_projects, tier, "projects")

    def check_team_member_limit(self, team_id: str) -> PlanLimitCheck:
        """
        Members of a team against the team owner's max_team_members

        Raises:
            TeamNotFoundError: unknown team
        """
        team = self.db.get(Team, team_id)
        if team is None:
            raise TeamNotFoundError()

        current = self.db.execute(
            select(func.count()).select_from(TeamMember).where(TeamMember.team_id == team_id)
        ).scalar_one()
        tier = self.resolve_tier(team.created_by)
        return self._plan_limit_check(
            current, tier.plan_limits.max_team_members, tier, "team members"
        )

    def get_upgrade_message(self, tier: PlanTier | str) -> str:
        """Upgrade hint shown when a plan limit is reached"""
        return self.catalog.get_tier(tier).upgrade_message
