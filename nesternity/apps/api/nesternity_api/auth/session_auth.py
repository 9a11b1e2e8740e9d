"""Session authentication for user-facing endpoints.

Supabase JWT-based session auth.

FLOW:
1. The web client signs in with Supabase and receives an access token
2. The client calls an API endpoint with Authorization: Bearer <jwt>
3. This dependency validates the JWT with Supabase and extracts user_id
4. Returns SessionAuthContext(user_id, email)

Authorisation (project / financial access, plan limits) is decided later by
the policy layer, never here.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from nesternity_api.context import user_id_var
from nesternity_api.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)

# HTTPBearer scheme for session JWT
session_security = HTTPBearer(auto_error=False, description="Supabase JWT Session Token")


class SessionAuthContext:
    """Session authentication context for user-authenticated requests."""

    def __init__(self, user_id: str, email: Optional[str] = None):
        self.user_id = user_id
        self.email = email


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_session_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(session_security),
) -> SessionAuthContext:
    """Get session authentication context from a Supabase JWT.

    Args:
        credentials: HTTP Bearer credentials (JWT)

    Returns:
        SessionAuthContext with user_id and email

    Raises:
        HTTPException: 401 if authentication fails
    """
    if not credentials:
        raise _unauthorized("Missing Authorization header. Please log in first.")

    try:
        supabase = get_supabase_client()

        # Supabase validates JWT signature and expiration
        user_response = supabase.auth.get_user(credentials.credentials)
    except Exception as e:
        logger.error(f"JWT validation failed: {e}", exc_info=True)
        raise _unauthorized("Session validation failed. Please log in again.")

    if not user_response or not user_response.user:
        raise _unauthorized("Invalid or expired session token. Please log in again.")

    user = user_response.user
    user_id_var.set(user.id)

    logger.info(
        "Session JWT validated",
        extra={"event": "session.jwt.validated"},
    )

    return SessionAuthContext(user_id=user.id, email=user.email)
