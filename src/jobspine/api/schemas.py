"""
API schemas - request bodies, response envelopes and RFC 7807 errors.

Every endpoint returns either :class:`SuccessResponse` / :class:`PagedResponse`
(2xx) or :class:`ProblemDetail` (4xx/5xx).

Request bodies are deliberately loose (empty-string defaults): payload rules
live in :class:`~jobspine.jobs.validator.JobValidator`, so the API and the
CLI reject the same inputs with the same messages.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")


# ── RFC 7807 Problem Detail ─────────────────────────────────────────────


class ErrorDetail(BaseModel):
    """Field-level error detail."""

    code: str = Field(description="Machine-readable error code (e.g., 'VALIDATION_FAILED')")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field name if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Example:
        {
            "type": "about:blank",
            "title": "Job not found",
            "status": 404,
            "detail": "Job not found: 01J0...",
            "instance": "/api/jobs/01J0...",
            "errors": []
        }
    """

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str = ""
    instance: str = ""
    errors: list[ErrorDetail] = Field(default_factory=list)


# ── Success Envelopes ────────────────────────────────────────────────────


class PageMeta(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool

    @classmethod
    def from_result(cls, total: int, limit: int, offset: int) -> PageMeta:
        return cls(total=total, limit=limit, offset=offset, has_more=(offset + limit) < total)


class SuccessResponse(BaseModel, Generic[T]):
    """Single-item envelope."""

    data: T
    warnings: list[str] = Field(default_factory=list)


class PagedResponse(BaseModel, Generic[T]):
    """List envelope with pagination metadata."""

    data: list[T]
    page: PageMeta


# ── Job resources ────────────────────────────────────────────────────────


class JobSchema(BaseModel):
    id: str
    name: str
    description: str | None = None
    cron_schedule: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    status: str
    last_run: str | None = None
    next_run: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class ExecutionResultSchema(BaseModel):
    job_id: str
    job_type: str
    outcome: str
    started_at: str | None = None
    finished_at: str | None = None
    duration_seconds: float = 0.0
    next_run: str | None = None
    error: str | None = None
    output: dict[str, Any] = Field(default_factory=dict)
    settled: bool = True


class CreateJobBody(BaseModel):
    """Accepts ``cron_schedule`` or the camelCase ``cronSchedule``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    description: str | None = None
    cron_schedule: str = Field(default="", validation_alias=AliasChoices("cron_schedule", "cronSchedule"))
    type: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    status: str | None = None


class UpdateJobBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    description: str | None = None
    cron_schedule: str | None = Field(
        default=None, validation_alias=AliasChoices("cron_schedule", "cronSchedule")
    )
    type: str | None = None
    data: dict[str, Any] | None = None
    status: str | None = None


__all__ = [
    "ErrorDetail",
    "ProblemDetail",
    "PageMeta",
    "SuccessResponse",
    "PagedResponse",
    "JobSchema",
    "ExecutionResultSchema",
    "CreateJobBody",
    "UpdateJobBody",
]
