"""Discovery loop - periodic reconciliation of live timers with the store.

Manifesto:
    Synchronous registration on create is the primary path; discovery is the
    convergence safety net. Every pass re-reads the active set from the store,
    so anything that bypassed the in-process calls (a status flipped directly
    in the database, a registration lost to a transient error) converges
    within one interval.

┌──────────────────────────────────────────────────────────────────────────────┐
│  RECONCILE PASS                                                               │
│                                                                               │
│   active     = {job.id for job in store.find_active_jobs()}                   │
│   registered = registry.list_registered_ids()                                 │
│                                                                               │
│   to_add      = active - registered          → register(job)                  │
│   to_remove   = registered - active          → registry.cancel(id)            │
│   rescheduled = expression changed in store  → register(job)                  │
│                                                                               │
│   Errors are contained to the pass; the next tick runs regardless.            │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from jobspine.core.errors import StoreError
from jobspine.core.logging import get_logger
from jobspine.core.timestamps import to_iso8601, utc_now

from .protocol import SchedulerBackend
from .registry import TimerRegistry
from .thread_backend import ThreadSchedulerBackend

if TYPE_CHECKING:
    from jobspine.jobs.models import Job
    from jobspine.jobs.store import JobStore

logger = get_logger(__name__)

RegisterFn = Callable[["Job"], bool]
"""Installs a timer for one job; returns False when the job was rejected."""


@dataclass
class ReconcileResult:
    """What one reconciliation pass changed."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    rescheduled: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    active_count: int = 0
    error: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.rescheduled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": self.added,
            "removed": self.removed,
            "rescheduled": self.rescheduled,
            "skipped": self.skipped,
            "active_count": self.active_count,
            "error": self.error,
        }


class DiscoveryLoop:
    """Aligns the registry with the store's active jobs on a fixed interval.

    Example:
        >>> loop = DiscoveryLoop(store, registry, coordinator.schedule_job)
        >>> loop.reconcile().added
        ['01J0...']
        >>> loop.start()   # background passes every 10s
    """

    def __init__(
        self,
        store: JobStore,
        registry: TimerRegistry,
        register: RegisterFn,
        *,
        backend: SchedulerBackend | None = None,
        interval_seconds: float = 10.0,
        is_shutting_down: Callable[[], bool] = lambda: False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.store = store
        self.registry = registry
        self._register = register
        self.backend = backend or ThreadSchedulerBackend()
        self.interval_seconds = interval_seconds
        self._is_shutting_down = is_shutting_down

        self._running = False
        self.pass_count = 0
        self.error_count = 0
        self.last_pass_at: datetime | None = None
        self.last_error: str | None = None
        self.last_result: ReconcileResult | None = None

    # === Lifecycle ===

    def start(self) -> None:
        if self._running:
            return
        self.backend.start(self._tick, self.interval_seconds)
        self._running = True
        logger.info(
            "discovery_started",
            backend=self.backend.name,
            interval_seconds=self.interval_seconds,
        )

    def stop(self) -> None:
        if not self._running:
            return
        self.backend.stop()
        self._running = False
        logger.info("discovery_stopped", passes=self.pass_count)

    @property
    def is_running(self) -> bool:
        return self._running

    async def _tick(self) -> None:
        if self._is_shutting_down():
            logger.debug("discovery_tick_skipped", reason="shutting_down")
            return
        self.reconcile()

    # === Reconciliation ===

    def reconcile(self) -> ReconcileResult:
        """Run one pass. Never raises; failures are reported on the result."""
        result = ReconcileResult()
        try:
            self._reconcile(result)
        except StoreError as exc:
            result.error = exc.message
            logger.warning("discovery_store_unavailable", error=exc.message)
        except Exception as exc:
            result.error = str(exc)
            logger.exception("discovery_pass_failed")

        self.pass_count += 1
        self.last_pass_at = utc_now()
        self.last_result = result
        if result.error:
            self.error_count += 1
            self.last_error = result.error
        elif result.changed:
            logger.info("discovery_completed", **result.to_dict())
        else:
            logger.debug("discovery_completed", active_count=result.active_count)
        return result

    def _reconcile(self, result: ReconcileResult) -> None:
        active = {job.id: job for job in self.store.find_active_jobs()}
        registered = self.registry.list_registered_ids()
        result.active_count = len(active)

        to_add = sorted(active.keys() - registered)
        to_remove = sorted(registered - active.keys())
        to_reschedule = sorted(
            job_id
            for job_id in active.keys() & registered
            if self.registry.expression_for(job_id) != active[job_id].cron_schedule
        )

        for job_id in to_add:
            target = result.added if self._try_register(active[job_id]) else result.skipped
            target.append(job_id)

        for job_id in to_reschedule:
            target = result.rescheduled if self._try_register(active[job_id]) else result.skipped
            target.append(job_id)

        for job_id in to_remove:
            self.registry.cancel(job_id)
            result.removed.append(job_id)

    def _try_register(self, job: Job) -> bool:
        try:
            return self._register(job)
        except Exception:
            logger.exception("discovery_register_failed", job_id=job.id)
            return False

    def health(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "interval_seconds": self.interval_seconds,
            "pass_count": self.pass_count,
            "error_count": self.error_count,
            "last_pass_at": to_iso8601(self.last_pass_at),
            "last_error": self.last_error,
            "backend": self.backend.health(),
        }


__all__ = ["DiscoveryLoop", "ReconcileResult", "RegisterFn"]
