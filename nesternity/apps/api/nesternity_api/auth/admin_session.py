"""Admin session cookie.

The admin surface uses a single configured credential pair
(ADMIN_EMAIL / ADMIN_PASSWORD). A successful login sets the ``admin-auth``
cookie:

    base64url(JSON{"email": ..., "issued_at": <unix seconds>}) "." hex(HMAC-SHA256)

signed with ADMIN_SESSION_SECRET. A cookie is valid only when the signature
matches, the email equals ADMIN_EMAIL and it is younger than the session
window (ADMIN_SESSION_TTL_SECONDS, default 4 hours).
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status

from nesternity_api.config.env import (
    get_admin_credentials,
    get_admin_session_secret,
    get_admin_session_ttl_seconds,
)

logger = logging.getLogger(__name__)

ADMIN_COOKIE_NAME = "admin-auth"

# Tolerated clock skew for cookies issued "in the future"
_MAX_CLOCK_SKEW_SECONDS = 60


@dataclass(frozen=True)
class AdminSession:
    """Decoded, verified admin session."""

    email: str
    issued_at: int

    def expires_at(self, ttl_seconds: int) -> int:
        return self.issued_at + ttl_seconds


def verify_admin_credentials(email: str, password: str) -> bool:
    """Constant-time check of submitted credentials against the configured pair.

    Raises:
        ValueError: If ADMIN_EMAIL / ADMIN_PASSWORD are not configured
    """
    expected_email, expected_password = get_admin_credentials()
    email_ok = secrets.compare_digest(email.encode("utf-8"), expected_email.encode("utf-8"))
    password_ok = secrets.compare_digest(
        password.encode("utf-8"), expected_password.encode("utf-8")
    )
    return email_ok and password_ok


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("ascii"), hashlib.sha256).hexdigest()


def create_admin_session_cookie(email: str, now: Optional[float] = None) -> str:
    """Build a signed cookie value for an authenticated admin.

    Args:
        email: Admin email (already verified)
        now: Issue time as unix seconds (defaults to current time)

    Returns:
        Cookie value
    """
    issued_at = int(now if now is not None else time.time())
    body = json.dumps({"email": email, "issued_at": issued_at}, separators=(",", ":"))
    payload = base64.urlsafe_b64encode(body.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{payload}.{_sign(payload, get_admin_session_secret())}"


def verify_admin_session_cookie(
    cookie_value: Optional[str], now: Optional[float] = None
) -> Optional[AdminSession]:
    """Verify an ``admin-auth`` cookie.

    Returns:
        AdminSession if valid, None if missing, tampered, foreign or expired
    """
    if not cookie_value or "." not in cookie_value:
        return None

    payload, signature = cookie_value.rsplit(".", 1)
    expected = _sign(payload, get_admin_session_secret())
    if not hmac.compare_digest(signature, expected):
        return None

    try:
        padded = payload + "=" * (-len(payload) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        email = str(data["email"])
        issued_at = int(data["issued_at"])
    except (binascii.Error, ValueError, KeyError, TypeError):
        return None

    expected_email, _ = get_admin_credentials()
    if not secrets.compare_digest(email.encode("utf-8"), expected_email.encode("utf-8")):
        return None

    current = now if now is not None else time.time()
    if issued_at - current > _MAX_CLOCK_SKEW_SECONDS:
        return None
    if current - issued_at > get_admin_session_ttl_seconds():
        return None

    return AdminSession(email=email, issued_at=issued_at)


def require_admin_session(request: Request) -> AdminSession:
    """FastAPI dependency: require a valid admin session cookie.

    Raises:
        HTTPException: 401 if the cookie is missing or invalid
    """
    session = verify_admin_session_cookie(request.cookies.get(ADMIN_COOKIE_NAME))
    if session is None:
        logger.warning(
            "Admin session rejected",
            extra={"event": "admin.session.rejected", "path": request.url.path},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin authentication required",
        )
    return session
