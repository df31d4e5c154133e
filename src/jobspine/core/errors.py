"""
Error types raised by the scheduling core, the job stores and the job service.

Every error carries a category (what kind of failure), a retryable flag (may
the same call succeed later), the job it concerns and, when wrapping a lower
level exception, that cause. Per-job errors are logged and recorded at the
job boundary; none of them is allowed to stop a timer or the discovery loop.

Hierarchy::

    JobSpineError                          INTERNAL
    ├── ValidationError                    VALIDATION
    │   └── InvalidExpressionError
    ├── ConfigError                        CONFIG
    ├── StoreError                         STORAGE
    │   ├── JobNotFoundError
    │   └── StoreUnavailableError          retryable
    ├── SchedulingError                    SCHEDULING
    │   └── SchedulerShuttingDownError
    └── ExecutionFailure                   EXECUTION

Registering an id that already holds a timer is not an error: the registry
cancels the old timer first.

Examples:
    >>> error = InvalidExpressionError("not-a-cron", reason="expected 5 or 6 fields")
    >>> error.retryable
    False
    >>> error.with_context(job_id="01J0ABC").context.job_id
    '01J0ABC'
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    STORAGE = "STORAGE"
    SCHEDULING = "SCHEDULING"
    EXECUTION = "EXECUTION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """The job an error concerns.

    :meth:`to_dict` drops unset fields and flattens ``metadata``, so the
    result can be splatted straight into a structlog call.
    """

    job_id: str | None = None
    job_name: str | None = None
    job_type: str | None = None
    cron_expression: str | None = None
    instance_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def known_keys(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls) if f.name != "metadata")

    def to_dict(self) -> dict[str, Any]:
        data = {key: getattr(self, key) for key in self.known_keys() if getattr(self, key) is not None}
        data.update(self.metadata)
        return dict(sorted(data.items()))


class JobSpineError(Exception):
    """Base class for every jobspine error.

    Subclasses declare ``default_category`` / ``default_retryable``; a call
    site passes ``category`` or ``retryable`` only to override them.

        >>> JobSpineError("Something went wrong").to_dict()["error_type"]
        'JobSpineError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = self.default_category if category is None else category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = ErrorContext() if context is None else context
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **values: Any):
        """Attach job metadata and return ``self``, for ``raise X(...).with_context(...)``."""
        known = ErrorContext.known_keys()
        for key, value in values.items():
            if key in known:
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            data["context"] = context
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# --- payloads ---------------------------------------------------------------


class ValidationError(JobSpineError):
    """A job payload was rejected. ``field`` names the offending key."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, field: str | None = None, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        if self.value is not None:
            data["value"] = repr(self.value)
        return data


class InvalidExpressionError(ValidationError):
    """Cron expression that cannot be parsed; such a job never gets a timer."""

    def __init__(self, expression: Any, *, reason: str = "", **kwargs: Any):
        self.expression = expression
        self.reason = reason
        message = f"Invalid cron expression {expression!r}" + (f": {reason}" if reason else "")
        super().__init__(message, field="cron_schedule", value=expression, **kwargs)
        if isinstance(expression, str):
            self.context.cron_expression = expression


class ConfigError(JobSpineError):
    default_category = ErrorCategory.CONFIG


# --- job store --------------------------------------------------------------


class StoreError(JobSpineError):
    default_category = ErrorCategory.STORAGE


class JobNotFoundError(StoreError):
    def __init__(self, job_id: str, message: str | None = None):
        self.job_id = job_id
        super().__init__(message or f"Job not found: {job_id}")
        self.context.job_id = job_id


class StoreUnavailableError(StoreError):
    """The store call itself failed (driver error, locked database, ...).

    Retryable: discovery passes and timer firings re-read the store, so the
    next cycle is the retry.
    """

    default_retryable = True


# --- scheduling -------------------------------------------------------------


class SchedulingError(JobSpineError):
    default_category = ErrorCategory.SCHEDULING


class SchedulerShuttingDownError(SchedulingError):
    def __init__(self, message: str = "Scheduler is shutting down", **kwargs: Any):
        super().__init__(message, **kwargs)


class ExecutionFailure(JobSpineError):
    """A handler raised during one run of a job.

    Recorded on the job and on the execution result, never re-raised into
    the timer.
    """

    default_category = ErrorCategory.EXECUTION


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "JobSpineError",
    "ValidationError",
    "InvalidExpressionError",
    "ConfigError",
    "StoreError",
    "JobNotFoundError",
    "StoreUnavailableError",
    "SchedulingError",
    "SchedulerShuttingDownError",
    "ExecutionFailure",
]
