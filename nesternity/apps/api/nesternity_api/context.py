"""Request context management for observability.

Context variables for request tracking across async boundaries.
JSONFormatter picks these up automatically, so handlers only set them once.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Authenticated user (Supabase user id) for the current request
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# Organisation the current request is scoped to, when there is one
organisation_id_var: ContextVar[str] = ContextVar("organisation_id", default="")
