"""
Shared enums for jobs and their lifecycle.

STDLIB ONLY - NO PYDANTIC.
"""

from enum import Enum


class JobStatus(str, Enum):
    """
    Lifecycle status of a job.

    Only ACTIVE jobs hold a live timer. A successful run keeps a recurring job
    ACTIVE; a failed run moves it to FAILED until an operator reactivates it
    (under the default failure policy). PAUSED and COMPLETED are never
    scheduled.
    """

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_schedulable(self) -> bool:
        return self is JobStatus.ACTIVE

    @property
    def takes_run_outcome(self) -> bool:
        """Whether a finished run may overwrite this status.

        A job paused or completed while a run was in flight keeps that status.
        """
        return self in (JobStatus.ACTIVE, JobStatus.FAILED)


class JobType(str, Enum):
    """
    Closed set of job kinds, one execution branch each.

    GENERIC is the forward-compatibility variant: any type string the
    executor does not know resolves to it and runs as a successful no-op.
    """

    EMAIL = "email"
    DATA_PROCESSING = "data-processing"
    REPORT = "report"
    NOTIFICATION = "notification"
    REMINDER = "reminder"
    GENERIC = "generic"

    @classmethod
    def resolve(cls, value: "str | JobType") -> "JobType":
        """Map a stored type string onto a variant, defaulting to GENERIC."""
        if isinstance(value, JobType):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.GENERIC


class FailurePolicy(str, Enum):
    """What a handler failure does to the job's status.

    MARK_FAILED: status=failed, next_run untouched; needs reactivation.
    KEEP_ACTIVE: status stays active and next_run advances; the next natural
        trigger is the retry.
    """

    MARK_FAILED = "mark_failed"
    KEEP_ACTIVE = "keep_active"


class ExecutionOutcome(str, Enum):
    """Result of one execution attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
