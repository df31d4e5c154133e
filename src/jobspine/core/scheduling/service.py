"""Scheduler coordinator - top-level orchestrator.

Manifesto:
    The coordinator wires evaluator, timer registry, executor and discovery
    loop into one scheduling authority per process. The HTTP layer and CLI
    call it after performing store writes; they never touch timers directly.

Tags:
    jobspine, scheduling, orchestrator, coordinator


┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER COORDINATOR                                                        │
│                                                                               │
│   start()                                                                     │
│     ├── store.find_active_jobs()                                              │
│     ├── schedule_job(job) for each       invalid cron → logged, skipped       │
│     └── discovery.start()                                                     │
│                                                                               │
│   timer fires ──► _on_fire(job_id)                                            │
│     ├── store.find_by_id(job_id)         missing / not active → unschedule    │
│     └── executor.execute(job)                                                 │
│                                                                               │
│   shutdown()                                                                  │
│     ├── shutting_down = True             new registrations + firings refused  │
│     ├── discovery.stop()                                                      │
│     ├── registry.cancel_all()                                                 │
│     └── registry.wait_idle(grace)        bounded, does not interrupt work     │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from jobspine.core.enums import FailurePolicy, JobStatus
from jobspine.core.errors import (
    InvalidExpressionError,
    JobNotFoundError,
    SchedulerShuttingDownError,
    SchedulingError,
    StoreError,
    ValidationError,
)
from jobspine.core.logging import LogContext, get_logger
from jobspine.core.protocols import Clock
from jobspine.core.timestamps import generate_ulid, to_iso8601, utc_now

from .cron import CronEvaluator
from .discovery import DiscoveryLoop
from .executor import ExecutionResult, JobExecutor
from .handlers import HandlerTable
from .protocol import SchedulerBackend
from .registry import TimerRegistry

if TYPE_CHECKING:
    from jobspine.core.settings import JobSpineSettings
    from jobspine.jobs.models import Job
    from jobspine.jobs.store import JobStore

logger = get_logger(__name__)

# Manual runs are allowed for these; FAILED doubles as operator reactivation
_RUNNABLE_STATUSES = frozenset({JobStatus.ACTIVE, JobStatus.FAILED})


@dataclass
class SchedulerStatus:
    """Point-in-time view of the coordinator."""

    instance_id: str
    running: bool
    is_shutting_down: bool
    total_scheduled: int
    scheduled_job_ids: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    uptime_seconds: float | None = None
    discovery: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "running": self.running,
            "is_shutting_down": self.is_shutting_down,
            "total_scheduled": self.total_scheduled,
            "scheduled_job_ids": self.scheduled_job_ids,
            "started_at": to_iso8601(self.started_at),
            "uptime_seconds": self.uptime_seconds,
            "discovery": self.discovery,
        }


class SchedulerCoordinator:
    """Owns the scheduling lifecycle for one process.

    Example:
        >>> coordinator = SchedulerCoordinator(InMemoryJobStore())
        >>> coordinator.start()
        0
        >>> coordinator.schedule_job(job)
        True
        >>> coordinator.get_status().total_scheduled
        1
        >>> coordinator.shutdown()
    """

    def __init__(
        self,
        store: JobStore,
        *,
        evaluator: CronEvaluator | None = None,
        registry: TimerRegistry | None = None,
        executor: JobExecutor | None = None,
        handlers: HandlerTable | None = None,
        backend: SchedulerBackend | None = None,
        discovery_interval_seconds: float = 10.0,
        shutdown_grace_seconds: float = 1.0,
        max_workers: int = 8,
        failure_policy: FailurePolicy | str = FailurePolicy.MARK_FAILED,
        clock: Clock = utc_now,
    ) -> None:
        self.instance_id = f"scheduler-{generate_ulid()}"
        self.store = store
        self.evaluator = evaluator or CronEvaluator()
        self.registry = registry or TimerRegistry(self.evaluator, max_workers=max_workers, clock=clock)
        self.executor = executor or JobExecutor(
            store,
            self.evaluator,
            handlers,
            failure_policy=failure_policy,
            clock=clock,
        )
        self.discovery = DiscoveryLoop(
            store,
            self.registry,
            self.schedule_job,
            backend=backend,
            interval_seconds=discovery_interval_seconds,
            is_shutting_down=lambda: self._shutting_down,
        )
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._running = False
        self._shutting_down = False
        self._started_at: datetime | None = None

    @classmethod
    def from_settings(cls, store: JobStore, settings: JobSpineSettings) -> SchedulerCoordinator:
        """Build a coordinator from :class:`JobSpineSettings`."""
        if settings.discovery_backend == "apscheduler":
            from .apscheduler_backend import APSchedulerBackend

            backend: SchedulerBackend = APSchedulerBackend(timezone=settings.timezone)
        else:
            from .thread_backend import ThreadSchedulerBackend

            backend = ThreadSchedulerBackend()

        return cls(
            store,
            evaluator=CronEvaluator(settings.timezone),
            handlers=HandlerTable.default(settings.handler_delay_seconds),
            backend=backend,
            discovery_interval_seconds=settings.discovery_interval_seconds,
            shutdown_grace_seconds=settings.shutdown_grace_seconds,
            max_workers=settings.max_workers,
            failure_policy=settings.failure_policy,
        )

    # === Lifecycle ===

    def start(self) -> int:
        """Register every active job and start discovery. Returns how many were scheduled."""
        with self._lock:
            if self._shutting_down:
                raise SchedulerShuttingDownError().with_context(instance_id=self.instance_id)
            if self._running:
                logger.warning("scheduler_already_running", instance_id=self.instance_id)
                return self.registry.count()
            self._running = True
            self._started_at = self._clock()

        try:
            jobs = self.store.find_active_jobs()
        except StoreError as exc:
            # Discovery retries on its first tick
            logger.warning("initial_load_failed", instance_id=self.instance_id, error=exc.message)
            jobs = []

        scheduled = sum(1 for job in jobs if self.schedule_job(job))
        self.discovery.start()
        logger.info(
            "scheduler_started",
            instance_id=self.instance_id,
            active_jobs=len(jobs),
            scheduled=scheduled,
        )
        return scheduled

    def shutdown(self, grace_seconds: float | None = None) -> bool:
        """Stop accepting work, cancel timers and wait briefly for in-flight runs.

        Returns:
            True if every in-flight execution finished within the grace period
        """
        with self._lock:
            if self._shutting_down:
                return True
            self._shutting_down = True

        grace = self.shutdown_grace_seconds if grace_seconds is None else grace_seconds
        logger.info("scheduler_shutting_down", instance_id=self.instance_id, grace_seconds=grace)

        self.discovery.stop()
        cancelled = self.registry.cancel_all()
        idle = self.registry.wait_idle(grace)
        self.registry.close()
        self._running = False

        logger.info("scheduler_stopped", instance_id=self.instance_id, cancelled=cancelled, idle=idle)
        return idle

    @property
    def is_running(self) -> bool:
        return self._running and not self._shutting_down

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    # === Registration ===

    def schedule_job(self, job: Job) -> bool:
        """Install a timer for ``job`` right away.

        Returns False (and installs nothing) when shutting down, when the job
        is not active or when its cron expression is invalid.
        """
        log = logger.bind(job_id=job.id, instance_id=self.instance_id)
        if self._shutting_down:
            log.warning("job_schedule_rejected", reason="shutting_down")
            return False
        if not job.is_active:
            self.registry.cancel(job.id)
            log.debug("job_schedule_skipped", status=job.status.value)
            return False

        try:
            entry = self.registry.register(job.id, job.cron_schedule, partial(self._on_fire, job.id))
        except InvalidExpressionError as exc:
            log.error("job_schedule_invalid", cron_expression=job.cron_schedule, error=exc.reason)
            return False
        except SchedulingError as exc:
            log.warning("job_schedule_rejected", reason=exc.message)
            return False

        next_run = entry.timer.next_fire_at
        if job.next_run != next_run:
            try:
                self.store.update_next_run(job.id, next_run)
            except StoreError as exc:
                log.warning("next_run_update_failed", error=exc.message)

        log.info("job_scheduled", cron_expression=job.cron_schedule, next_run=to_iso8601(next_run))
        return True

    def unschedule_job(self, job_id: str) -> bool:
        removed = self.registry.cancel(job_id)
        if removed:
            logger.info("job_unscheduled", job_id=job_id, instance_id=self.instance_id)
        return removed

    # === Execution ===

    async def _on_fire(self, job_id: str, fire_at: datetime) -> ExecutionResult | None:
        if self._shutting_down:
            return None

        try:
            job = self.store.find_by_id(job_id)
        except JobNotFoundError:
            logger.info("job_vanished", job_id=job_id)
            self.unschedule_job(job_id)
            return None
        except StoreError as exc:
            logger.warning("job_firing_abandoned", job_id=job_id, error=exc.message)
            return None

        if not job.is_active:
            logger.info("job_no_longer_active", job_id=job_id, status=job.status.value)
            self.unschedule_job(job_id)
            return None

        async with LogContext(job_id=job_id, instance_id=self.instance_id):
            logger.debug("job_fired", fire_at=to_iso8601(fire_at))
            return await self.executor.execute(job)

    async def trigger(self, job_id: str) -> ExecutionResult:
        """Run ``job_id`` now, independently of its timer.

        Raises:
            SchedulerShuttingDownError: Coordinator is shutting down
            JobNotFoundError: No such job
            ValidationError: Job is paused or completed
        """
        if self._shutting_down:
            raise SchedulerShuttingDownError().with_context(job_id=job_id)

        job = self.store.find_by_id(job_id)
        if job.status not in _RUNNABLE_STATUSES:
            raise ValidationError(
                f"Job {job_id} is {job.status.value}; only active or failed jobs can be run",
                field="status",
                value=job.status.value,
            ).with_context(job_id=job_id)

        async with LogContext(job_id=job_id, instance_id=self.instance_id):
            logger.info("job_triggered_manually")
            result = await self.executor.execute(job)

        # A successful run reactivates a failed job; give it its timer back
        if result.settled and job.status is JobStatus.FAILED and not self.registry.is_registered(job_id):
            try:
                self.schedule_job(self.store.find_by_id(job_id))
            except StoreError as exc:
                logger.warning("job_reschedule_after_trigger_failed", job_id=job_id, error=exc.message)
        return result

    # === Introspection ===

    def get_status(self) -> SchedulerStatus:
        started = self._started_at
        uptime = (self._clock() - started).total_seconds() if started and self._running else None
        return SchedulerStatus(
            instance_id=self.instance_id,
            running=self.is_running,
            is_shutting_down=self._shutting_down,
            total_scheduled=self.registry.count(),
            scheduled_job_ids=sorted(self.registry.list_registered_ids()),
            started_at=started,
            uptime_seconds=uptime,
            discovery=self.discovery.health(),
        )


__all__ = ["SchedulerCoordinator", "SchedulerStatus"]
