"""Built-in job handlers and the type → handler table.

ARCHITECTURE
────────────
::

    HandlerTable
      email            ─ log recipient + subject
      data-processing  ─ log record count
      report           ─ log report type + period
      notification     ─ log message
      reminder         ─ log message
      generic          ─ unknown types land here; warns and succeeds

Handlers are coroutine functions taking the job and returning a small
summary dict. Raising from a handler is how a run reports failure.

Related modules:
    executor.py - JobExecutor, which dispatches through this table
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Mapping
from functools import wraps
from typing import TYPE_CHECKING, Any

from jobspine.core.enums import JobType
from jobspine.core.logging import get_logger

if TYPE_CHECKING:
    from jobspine.jobs.models import Job

logger = get_logger(__name__)

JobHandler = Callable[["Job"], Awaitable[dict[str, Any] | None]]


# ── Built-in handlers ────────────────────────────────────────────────────


async def email_handler(job: Job) -> dict[str, Any]:
    to = job.data.get("to")
    subject = job.data.get("subject")
    logger.info("email_job_sent", job_id=job.id, to=to, subject=subject)
    return {"to": to, "subject": subject}


async def data_processing_handler(job: Job) -> dict[str, Any]:
    records = job.data.get("records", 0)
    logger.info("data_processing_job_completed", job_id=job.id, records=records)
    return {"records": records}


async def report_handler(job: Job) -> dict[str, Any]:
    report_type = job.data.get("reportType")
    period = job.data.get("period")
    logger.info("report_job_generated", job_id=job.id, report_type=report_type, period=period)
    return {"report_type": report_type, "period": period}


async def notification_handler(job: Job) -> dict[str, Any]:
    message = job.data.get("message")
    logger.info("notification_job_sent", job_id=job.id, message=message)
    return {"message": message}


async def reminder_handler(job: Job) -> dict[str, Any]:
    message = job.data.get("message")
    logger.info("reminder_job_sent", job_id=job.id, message=message)
    return {"message": message}


async def generic_handler(job: Job) -> dict[str, Any]:
    """No-op for job types without a dedicated handler."""
    logger.warning("unknown_job_type", job_id=job.id, job_type=job.type)
    return {}


BUILTIN_HANDLERS: dict[JobType, JobHandler] = {
    JobType.EMAIL: email_handler,
    JobType.DATA_PROCESSING: data_processing_handler,
    JobType.REPORT: report_handler,
    JobType.NOTIFICATION: notification_handler,
    JobType.REMINDER: reminder_handler,
    JobType.GENERIC: generic_handler,
}


def simulated_work(handler: JobHandler, max_delay_seconds: float) -> JobHandler:
    """Wrap ``handler`` so each call first sleeps a random 0..max_delay_seconds."""
    if max_delay_seconds <= 0:
        return handler

    @wraps(handler)
    async def _delayed(job: Job) -> dict[str, Any] | None:
        await asyncio.sleep(random.uniform(0, max_delay_seconds))
        return await handler(job)

    return _delayed


class HandlerTable:
    """Explicit mapping of :class:`JobType` to handler.

    Lookup never fails: any type string outside the enum resolves to
    ``JobType.GENERIC``.

    Example:
        >>> table = HandlerTable.default()
        >>> table.get("email") is email_handler
        True
        >>> table.get("send-fax") is generic_handler
        True
    """

    def __init__(self, handlers: Mapping[JobType, JobHandler] | None = None) -> None:
        self._handlers: dict[JobType, JobHandler] = dict(handlers or {})
        self._handlers.setdefault(JobType.GENERIC, generic_handler)

    @classmethod
    def default(cls, max_delay_seconds: float = 0.0) -> HandlerTable:
        return cls(
            {
                job_type: simulated_work(handler, max_delay_seconds)
                for job_type, handler in BUILTIN_HANDLERS.items()
            }
        )

    def register(self, job_type: JobType | str, handler: JobHandler) -> None:
        """Install or replace the handler for ``job_type``."""
        self._handlers[JobType(job_type)] = handler

    def get(self, job_type: JobType | str) -> JobHandler:
        resolved = JobType.resolve(job_type)
        return self._handlers.get(resolved) or self._handlers[JobType.GENERIC]

    def __contains__(self, job_type: object) -> bool:
        return job_type in self._handlers

    def types(self) -> list[JobType]:
        return list(self._handlers)


__all__ = [
    "JobHandler",
    "HandlerTable",
    "BUILTIN_HANDLERS",
    "simulated_work",
    "email_handler",
    "data_processing_handler",
    "report_handler",
    "notification_handler",
    "reminder_handler",
    "generic_handler",
]
