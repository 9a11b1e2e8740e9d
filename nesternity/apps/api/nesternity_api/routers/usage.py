"""Feature quota endpoints for the authenticated user."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from nesternity_api.auth.session_auth import SessionAuthContext, get_session_auth_context
from nesternity_api.billing.limits import SubscriptionLimiter
from nesternity_api.billing.models import FeatureType
from nesternity_api.deps import get_subscription_limiter
from nesternity_api.schemas import FeatureUsageResponse, UsageSummaryResponse
from nesternity_api.utils.periods import month_window

router = APIRouter(prefix="/v1/usage", tags=["usage"])


@router.get("", response_model=UsageSummaryResponse)
def get_usage_summary(
    auth: SessionAuthContext = Depends(get_session_auth_context),
    limiter: SubscriptionLimiter = Depends(get_subscription_limiter),
) -> UsageSummaryResponse:
    """Current tier and quota status of every metered feature this month."""
    now = datetime.now(timezone.utc)
    period_start, period_end = month_window(now)
    tier = limiter.resolve_tier(auth.user_id)
    features = [
        FeatureUsageResponse(
            feature_type=feature_type,
            **limiter.check_feature_limit(auth.user_id, feature_type, now).model_dump(),
        )
        for feature_type in FeatureType
    ]
    return UsageSummaryResponse(
        tier=tier.tier,
        period_start=period_start,
        period_end=period_end,
        features=features,
    )


@router.get("/features/{feature_type}", response_model=FeatureUsageResponse)
def get_feature_usage(
    feature_type: FeatureType,
    auth: SessionAuthContext = Depends(get_session_auth_context),
    limiter: SubscriptionLimiter = Depends(get_subscription_limiter),
) -> FeatureUsageResponse:
    """Quota status of one feature this month."""
    check = limiter.check_feature_limit(auth.user_id, feature_type)
    return FeatureUsageResponse(feature_type=feature_type, **check.model_dump())
