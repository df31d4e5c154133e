"""Job executor - runs one tick of a job and settles its store state.

Manifesto:
    A firing must always resolve into a result. Handler exceptions and store
    failures are caught here and reported on the returned
    :class:`ExecutionResult`; nothing escapes into the timer that fired.

┌──────────────────────────────────────────────────────────────────────────────┐
│  EXECUTE(job)                                                                 │
│                                                                               │
│   started = clock()                                                           │
│   handler = HandlerTable.get(job.type)      unknown type → generic no-op     │
│      │                                                                        │
│      ├── ok ──►  next = evaluator.next_trigger(cron, now)                     │
│      │           store.mark_completed(id, ran_at=started, next_run=next)      │
│      │                                                                        │
│      └── raises ──► FailurePolicy                                             │
│                      MARK_FAILED: store.mark_failed(id, ran_at=started)       │
│                      KEEP_ACTIVE: store.mark_completed(..., next_run=next)    │
│                                                                               │
│   store error ──► logged, result.settled = False                              │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from jobspine.core.enums import ExecutionOutcome, FailurePolicy, JobType
from jobspine.core.errors import ExecutionFailure, InvalidExpressionError, StoreError
from jobspine.core.logging import get_logger
from jobspine.core.protocols import Clock
from jobspine.core.timestamps import to_iso8601, utc_now

from .cron import CronEvaluator
from .handlers import HandlerTable

if TYPE_CHECKING:
    from jobspine.jobs.models import Job
    from jobspine.jobs.store import JobStore

logger = get_logger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of one execution attempt."""

    job_id: str
    job_type: JobType
    outcome: ExecutionOutcome
    started_at: datetime
    finished_at: datetime
    next_run: datetime | None = None
    error: str | None = None
    output: dict[str, Any] = field(default_factory=dict)
    settled: bool = True

    @property
    def succeeded(self) -> bool:
        return self.outcome == ExecutionOutcome.SUCCEEDED

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "job_type": self.job_type.value,
            "outcome": self.outcome.value,
            "started_at": to_iso8601(self.started_at),
            "finished_at": to_iso8601(self.finished_at),
            "duration_seconds": self.duration_seconds,
            "next_run": to_iso8601(self.next_run),
            "error": self.error,
            "output": self.output,
            "settled": self.settled,
        }


class JobExecutor:
    """Dispatches a job to its handler and writes the result back to the store.

    Example:
        >>> executor = JobExecutor(store, CronEvaluator())
        >>> result = await executor.execute(job)
        >>> result.outcome
        <ExecutionOutcome.SUCCEEDED: 'succeeded'>
    """

    def __init__(
        self,
        store: JobStore,
        evaluator: CronEvaluator | None = None,
        handlers: HandlerTable | None = None,
        *,
        failure_policy: FailurePolicy | str = FailurePolicy.MARK_FAILED,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.evaluator = evaluator or CronEvaluator()
        self.handlers = handlers or HandlerTable.default()
        self.failure_policy = FailurePolicy(failure_policy)
        self._clock = clock

    async def execute(self, job: Job) -> ExecutionResult:
        job_type = JobType.resolve(job.type)
        handler = self.handlers.get(job_type)
        log = logger.bind(job_id=job.id, job_name=job.name, job_type=job.type)

        started = self._clock()
        log.info("job_execution_started")
        try:
            output = await handler(job) or {}
        except Exception as exc:
            failure = ExecutionFailure(
                f"Handler for {job.type!r} failed: {exc}", cause=exc
            ).with_context(job_id=job.id, job_name=job.name, job_type=job.type)
            log.error("job_execution_failed", error=str(exc), exc_info=True)
            return self._settle_failure(job, job_type, started, failure)

        finished = self._clock()
        next_run = self._next_run(job, finished)
        settled = self._write(
            log,
            "mark_completed",
            lambda: self.store.mark_completed(job.id, ran_at=started, next_run=next_run),
        )
        log.info(
            "job_execution_completed",
            next_run=to_iso8601(next_run),
            duration_seconds=(finished - started).total_seconds(),
        )
        return ExecutionResult(
            job_id=job.id,
            job_type=job_type,
            outcome=ExecutionOutcome.SUCCEEDED,
            started_at=started,
            finished_at=finished,
            next_run=next_run,
            output=dict(output),
            settled=settled,
        )

    def _settle_failure(
        self,
        job: Job,
        job_type: JobType,
        started: datetime,
        failure: ExecutionFailure,
    ) -> ExecutionResult:
        finished = self._clock()
        log = logger.bind(job_id=job.id, policy=self.failure_policy.value)

        next_run: datetime | None
        if self.failure_policy is FailurePolicy.KEEP_ACTIVE:
            next_run = self._next_run(job, finished)
            settled = self._write(
                log,
                "mark_completed",
                lambda: self.store.mark_completed(job.id, ran_at=started, next_run=next_run),
            )
        else:
            next_run = job.next_run
            settled = self._write(
                log,
                "mark_failed",
                lambda: self.store.mark_failed(job.id, ran_at=started),
            )

        return ExecutionResult(
            job_id=job.id,
            job_type=job_type,
            outcome=ExecutionOutcome.FAILED,
            started_at=started,
            finished_at=finished,
            next_run=next_run,
            error=failure.message,
            settled=settled,
        )

    def _next_run(self, job: Job, reference: datetime) -> datetime | None:
        try:
            return self.evaluator.next_trigger(job.cron_schedule, reference)
        except InvalidExpressionError as exc:
            # next_run stays as stored; discovery will refuse to re-register it
            logger.warning("next_run_unavailable", job_id=job.id, error=exc.message)
            return None

    @staticmethod
    def _write(log: Any, operation: str, write: Any) -> bool:
        """Apply one store write; failures are logged and reported, never raised."""
        try:
            write()
        except StoreError as exc:
            log.error("job_bookkeeping_failed", operation=operation, error=exc.message, retryable=exc.retryable)
            return False
        except Exception as exc:
            log.exception("job_bookkeeping_failed", operation=operation, error=str(exc))
            return False
        return True


__all__ = ["JobExecutor", "ExecutionResult"]
