"""Domain exceptions.

Each exception carries the HTTP status and RFC 9457 fields it maps to.
main.py registers a single handler that renders any NesternityError as
application/problem+json, so services raise these without touching HTTP.
"""

from typing import Any, Optional

PROBLEM_TYPE_BASE = "https://api.nesternity.app/problems"


class NesternityError(Exception):
    """Base class for domain errors surfaced to API clients."""

    status_code: int = 500
    title: str = "Internal Server Error"
    slug: str = "internal-error"

    def __init__(self, detail: str, *, extensions: Optional[dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.extensions = extensions or {}

    @property
    def error_type(self) -> str:
        return f"{PROBLEM_TYPE_BASE}/{self.slug}"


class ValidationError(NesternityError):
    """Request is well-formed but violates a business rule (400)."""

    status_code = 400
    title = "Bad Request"
    slug = "validation-error"


class AuthenticationError(NesternityError):
    """Caller is not authenticated (401)."""

    status_code = 401
    title = "Unauthorized"
    slug = "unauthorized"


class AccessDeniedError(NesternityError):
    """Caller is authenticated but not allowed (403)."""

    status_code = 403
    title = "Forbidden"
    slug = "access-denied"


class FeatureQuotaExceededError(AccessDeniedError):
    """Monthly feature quota is used up (403)."""

    title = "Feature quota exceeded"
    slug = "feature-quota-exceeded"


class PlanLimitReachedError(AccessDeniedError):
    """Plan limit on organisations, projects or team members reached (403)."""

    title = "Plan limit reached"
    slug = "plan-limit-reached"


class NotFoundError(NesternityError):
    """Referenced entity does not exist (404)."""

    status_code = 404
    title = "Not Found"
    slug = "not-found"


class ProjectNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Project not found", **kwargs: Any):
        super().__init__(detail, **kwargs)


class OrganisationNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Organisation not found", **kwargs: Any):
        super().__init__(detail, **kwargs)


class TeamNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Team not found", **kwargs: Any):
        super().__init__(detail, **kwargs)


class ClientNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Client not found", **kwargs: Any):
        super().__init__(detail, **kwargs)


class ConflictError(NesternityError):
    """State conflict such as a duplicate membership (409)."""

    status_code = 409
    title = "Conflict"
    slug = "conflict"
