"""Admin endpoints for operational support.

WARNING: These endpoints are for authorized operators only.
- Login with ADMIN_EMAIL / ADMIN_PASSWORD sets the signed ``admin-auth`` cookie
- Login attempts are rate limited per client address
- Every other admin endpoint requires a valid cookie
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from nesternity_api.auth.admin_session import (
    ADMIN_COOKIE_NAME,
    AdminSession,
    create_admin_session_cookie,
    require_admin_session,
    verify_admin_credentials,
)
from nesternity_api.billing.limits import SubscriptionLimiter
from nesternity_api.config.env import get_admin_session_ttl_seconds, is_production_env
from nesternity_api.deps import get_subscription_limiter
from nesternity_api.rate_limiter import RateLimiter, build_rate_limiter
from nesternity_api.schemas import (
    AdminLoginRequest,
    AdminSessionResponse,
    AdminUsageResponse,
    UsageRecordItem,
)
from nesternity_api.utils.periods import month_window

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)

LOGIN_ATTEMPTS_PER_WINDOW = 5
LOGIN_WINDOW_SECONDS = 15 * 60

# Module-level singleton; monkeypatchable in tests
_login_limiter: Optional[RateLimiter] = None


def get_login_limiter() -> RateLimiter:
    """Return the admin login rate limiter, building it on first use."""
    global _login_limiter
    if _login_limiter is None:
        _login_limiter = build_rate_limiter(
            LOGIN_ATTEMPTS_PER_WINDOW, LOGIN_WINDOW_SECONDS, policy_id="admin-login"
        )
    return _login_limiter


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


@router.post("/session", response_model=AdminSessionResponse)
def create_admin_session(
    body: AdminLoginRequest,
    request: Request,
    response: Response,
) -> AdminSessionResponse:
    """Log in as admin and receive the session cookie."""
    result = get_login_limiter().check_rate_limit(_client_key(request), request.url.path)
    if not result.allowed:
        logger.warning("Admin login rate limited", extra={"event": "admin.login.rate_limited"})
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
            headers={
                "Retry-After": str(result.reset),
                "RateLimit-Policy": f'"{result.policy_id}"; q={result.quota}; w={result.window}',
                "RateLimit": f'"{result.policy_id}"; r={result.remaining}; t={result.reset}',
            },
        )

    try:
        valid = verify_admin_credentials(body.email, body.password)
    except ValueError as e:
        logger.error(f"Admin credentials not configured: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin credentials not configured on server",
        )

    if not valid:
        logger.warning("Invalid admin login attempt", extra={"event": "admin.login.failed"})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    now = datetime.now(timezone.utc)
    ttl_seconds = get_admin_session_ttl_seconds()
    response.set_cookie(
        key=ADMIN_COOKIE_NAME,
        value=create_admin_session_cookie(body.email, now=now.timestamp()),
        max_age=ttl_seconds,
        httponly=True,
        secure=is_production_env(),
        samesite="lax",
        path="/",
    )

    logger.info("Admin session created", extra={"event": "admin.login.succeeded"})
    return AdminSessionResponse(
        email=body.email,
        expires_at=datetime.fromtimestamp(int(now.timestamp()) + ttl_seconds, tz=timezone.utc),
    )


@router.delete("/session")
def delete_admin_session(response: Response) -> dict[str, bool]:
    """Log out: clear the session cookie."""
    response.delete_cookie(key=ADMIN_COOKIE_NAME, path="/")
    return {"success": True}


@router.get("/usage/{user_id}", response_model=AdminUsageResponse)
def get_user_usage(
    user_id: str,
    _admin: AdminSession = Depends(require_admin_session),
    limiter: SubscriptionLimiter = Depends(get_subscription_limiter),
) -> AdminUsageResponse:
    """Current-month usage records of a user, with per-feature totals."""
    now = datetime.now(timezone.utc)
    period_start, period_end = month_window(now)
    records = limiter.list_usage_for_period(user_id, now)

    totals: dict[str, int] = defaultdict(int)
    for record in records:
        totals[record.feature_type] += record.count

    return AdminUsageResponse(
        user_id=user_id,
        period_start=period_start,
        period_end=period_end,
        totals=dict(totals),
        records=[UsageRecordItem.model_validate(r) for r in records],
    )
