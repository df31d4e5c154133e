"""
Error handlers - map jobspine errors to RFC 7807 responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from jobspine.api.schemas import ErrorDetail, ProblemDetail
from jobspine.core.errors import (
    JobNotFoundError,
    JobSpineError,
    SchedulerShuttingDownError,
    StoreUnavailableError,
    ValidationError,
)
from jobspine.core.logging import get_logger

logger = get_logger(__name__)

# ── Error type → (HTTP status, title) ────────────────────────────────────
# Checked in order; first isinstance match wins

ERROR_STATUS: list[tuple[type[JobSpineError], int, str]] = [
    (ValidationError, 400, "Validation Failed"),
    (JobNotFoundError, 404, "Job Not Found"),
    (SchedulerShuttingDownError, 503, "Scheduler Unavailable"),
    (StoreUnavailableError, 503, "Store Unavailable"),
]


def status_for_error(exc: JobSpineError) -> tuple[int, str]:
    """Resolve an error to HTTP status and title, defaulting to 500."""
    for error_type, status, title in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status, title
    return 500, "Internal Server Error"


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    errors: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(title=title, status=status, detail=detail, instance=instance)
    if errors:
        body.errors = [ErrorDetail(**e) for e in errors]
    return JSONResponse(status_code=status, content=body.model_dump())


async def jobspine_error_handler(request: Request, exc: JobSpineError) -> JSONResponse:
    status, title = status_for_error(exc)
    errors = None
    if isinstance(exc, ValidationError) and exc.field:
        errors = [{"code": "VALIDATION_FAILED", "message": exc.message, "field": exc.field}]
    if status >= 500:
        logger.error("api_request_failed", path=request.url.path, **exc.to_dict())
    return problem_response(
        status=status,
        title=title,
        detail=exc.message,
        instance=str(request.url.path),
        errors=errors,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions - returns 500 with ProblemDetail."""
    logger.exception("api_unhandled_exception", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred.",
        instance=str(request.url.path),
    )
