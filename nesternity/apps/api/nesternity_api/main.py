"""Nesternity API - FastAPI Application Entry Point."""

import asyncio
import logging
import os
import time
import uuid
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nesternity_api.cache.ai_cache import get_ai_cache
from nesternity_api.cache.janitor import run_janitor
from nesternity_api.config.env import get_cache_janitor_interval_seconds, get_cors_allowed_origins
from nesternity_api.context import organisation_id_var, request_id_var, user_id_var
from nesternity_api.errors import PROBLEM_TYPE_BASE, NesternityError
from nesternity_api.routers import access, admin, financial, health, organisations, teams, usage
from nesternity_api.schemas import ProblemDetail
from nesternity_api.utils import configure_json_logging

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Nesternity API",
    description="Multi-tenant CRM, project management and invoicing API with RFC 9457 error handling.",
    version="0.1.0",
    docs_url="/api-docs",
    redoc_url="/redoc",
)

# Structured JSON logging
# Set NESTERNITY_JSON_LOGS=false to disable (defaults to true for production)
if os.getenv("NESTERNITY_JSON_LOGS", "true").lower() != "false":
    configure_json_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))
    logger.info("Structured JSON logging enabled")

# CORS: credentials mode cannot use wildcard origins (admin cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "RateLimit-Policy", "RateLimit", "Retry-After"],
)


# ============================================================================
# HTTP Request Completion Logging Middleware
# ============================================================================


@app.middleware("http")
async def http_completion_logging_middleware(request: Request, call_next):
    """Log every HTTP request completion.

    - Every HTTP request emits an "http.request.completed" log
    - Fields: method, path, status_code, duration_ms (+ request context)
    - Logs even on exceptions (status_code=500)
    - Clears per-request contextvars at start and end
    """
    user_id_var.set("")
    organisation_id_var.set("")

    start_time = time.perf_counter()
    status_code = 500  # Default to 500 in case of unhandled exception

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "http.request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        user_id_var.set("")
        organisation_id_var.set("")


# ============================================================================
# Request ID Middleware (MUST BE OUTERMOST)
# ============================================================================


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Generate and propagate request_id for observability.

    - Accepts X-Request-ID header from client (optional)
    - Generates new UUID if not provided
    - Sets context variable for logging
    - Returns X-Request-ID in response headers

    Registered last so it runs outermost and the request_id is set before
    any inner middleware executes.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_id_var.set(request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# RFC 9457 Global Exception Handlers
# ============================================================================


def _instance() -> str:
    """Opaque occurrence identifier built from the request_id."""
    request_id = request_id_var.get()
    return f"urn:nesternity:trace:{request_id or uuid.uuid4()}"


def _problem_response(problem: ProblemDetail, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


@app.exception_handler(NesternityError)
async def domain_error_handler(request: Request, exc: NesternityError) -> JSONResponse:
    """Handle domain errors (access denied, quota exceeded, not found...)."""
    extensions: dict[str, Any] = {
        key: value
        for key, value in exc.extensions.items()
        if key not in {"type", "title", "status", "detail", "instance"}
    }
    problem = ProblemDetail(
        type=exc.error_type,
        title=exc.title,
        status=exc.status_code,
        detail=exc.detail,
        instance=_instance(),
        **extensions,
    )
    return _problem_response(problem)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with RFC 9457 Problem Details format.

    Preserves dict details and handler-provided headers (WWW-Authenticate,
    Retry-After).
    """
    detail_value = exc.detail if exc.detail is not None else _get_title_for_status(exc.status_code)

    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/http-{exc.status_code}",
        title=_get_title_for_status(exc.status_code),
        status=exc.status_code,
        detail=detail_value,
        instance=_instance(),
    )

    headers = dict(exc.headers or {})
    if exc.status_code == 429 and "Retry-After" not in headers:
        headers["Retry-After"] = "60"

    return _problem_response(problem, headers or None)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors as 400 Bad Request problems.

    The detail names the first offending field; missing fields are reported
    as "Missing required field '<name>'".
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    loc = [str(part) for part in first_error.get("loc", [])]
    if loc and loc[0] in {"body", "query", "path", "header", "cookie"}:
        loc = loc[1:]
    field = ".".join(loc) or "body"

    if first_error.get("type") == "missing":
        detail = f"Missing required field '{field}'"
    else:
        detail = f"Invalid field '{field}': {first_error.get('msg', 'Validation error')}"

    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/validation-error",
        title="Bad Request",
        status=status.HTTP_400_BAD_REQUEST,
        detail=detail,
        instance=_instance(),
    )
    return _problem_response(problem)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions: log server-side, return a generic 500."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/internal-error",
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred. Please try again later.",
        instance=_instance(),
    )
    return _problem_response(problem)


def _get_title_for_status(status_code: int) -> str:
    """Get human-readable title for HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        429: "Too Many Requests",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(access.router)
app.include_router(usage.router)
app.include_router(organisations.router)
app.include_router(financial.router)
app.include_router(teams.router)
app.include_router(admin.router)


# ============================================================================
# Application Lifecycle (cache janitor)
# ============================================================================


@app.on_event("startup")
async def startup_event():
    """Initialize application state and start the cache janitor.

    Tests can replace app.state.ai_cache before issuing requests.
    """
    app.state.ai_cache = get_ai_cache()
    app.state.janitor_stop = asyncio.Event()
    app.state.janitor_task = asyncio.create_task(
        run_janitor(
            app.state.ai_cache,
            [admin.get_login_limiter()],
            get_cache_janitor_interval_seconds(),
            stop_event=app.state.janitor_stop,
        )
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the cache janitor."""
    stop_event = getattr(app.state, "janitor_stop", None)
    task = getattr(app.state, "janitor_task", None)
    if stop_event is not None:
        stop_event.set()
    if task is not None:
        await task
