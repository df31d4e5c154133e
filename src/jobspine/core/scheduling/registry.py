"""Timer registry - live cron timers keyed by job id.

Manifesto:
    The registry is the only owner of long-lived timer resources. It holds
    one explicit map of job id → timer, guarded by a single lock, and is
    injected into the coordinator and the discovery loop instead of living
    as module-level state.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TIMER REGISTRY                                                               │
│                                                                               │
│   register(job_id, expr, on_fire)                                             │
│      │  cancel existing entry (cancel-then-register, idempotent)              │
│      │  validate expr  ──► InvalidExpressionError, nothing installed          │
│      ▼                                                                        │
│   ┌──────────────────────────┐    due     ┌───────────────────────────────┐  │
│   │ RecurringTimer (thread)  │ ─────────► │ dispatch pool (ThreadPool)    │  │
│   │  next = evaluator.next() │            │  on_fire(fire_at)             │  │
│   │  stop_event.wait(delay)  │            │  coroutine → asyncio.run      │  │
│   │  re-arm after each fire  │            │  exceptions logged, contained │  │
│   └──────────────────────────┘            │  one in flight per job id     │  │
│                                           └───────────────────────────────┘  │
│                                                                               │
│   cancel(job_id)   stop + remove; no-op when absent                           │
│   cancel_all()     on shutdown                                                │
│   wait_idle(t)     bounded wait for in-flight firings                         │
└──────────────────────────────────────────────────────────────────────────────┘

Cancellation affects future firings only: a callback already handed to the
dispatch pool runs to completion. A firing due while the same job's previous
firing is still running is skipped and logged as ``firing_skipped_overlap``,
so a stuck job holds at most one pool worker.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from jobspine.core.errors import SchedulingError
from jobspine.core.logging import get_logger
from jobspine.core.protocols import Clock
from jobspine.core.timestamps import utc_now

from .cron import CronEvaluator

logger = get_logger(__name__)

FireCallback = Callable[[datetime], Any]
"""Called with the scheduled fire instant; may be sync or a coroutine function."""

# Upper bound on a single wait so wall-clock jumps are noticed
MAX_WAIT_SECONDS = 60.0


class RecurringTimer:
    """Daemon thread that fires a job at each trigger of its cron expression.

    The first trigger is computed at construction so the registry can report
    ``next_fire_at`` immediately after registration.
    """

    def __init__(
        self,
        job_id: str,
        expression: str,
        evaluator: CronEvaluator,
        dispatch: Callable[[RecurringTimer, datetime], None],
        clock: Clock = utc_now,
    ) -> None:
        self.job_id = job_id
        self.expression = expression
        self._evaluator = evaluator
        self._dispatch = dispatch
        self._clock = clock
        self._stop_event = threading.Event()
        self.next_fire_at: datetime = evaluator.next_trigger(expression, clock())
        self.fire_count = 0
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"jobspine-timer-{job_id}",
        )

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _sleep_until(self, instant: datetime) -> bool:
        """Wait until ``instant``; False if stopped first."""
        while not self._stop_event.is_set():
            delay = (instant - self._clock()).total_seconds()
            if delay <= 0:
                return True
            if self._stop_event.wait(min(delay, MAX_WAIT_SECONDS)):
                return False
        return False

    def _run(self) -> None:
        try:
            while self._sleep_until(self.next_fire_at):
                fire_at = self.next_fire_at
                self.fire_count += 1
                self._dispatch(self, fire_at)
                # Missed triggers are skipped, not replayed
                reference = max(fire_at, self._clock())
                self.next_fire_at = self._evaluator.next_trigger(self.expression, reference)
        except Exception:
            logger.exception("timer_loop_crashed", job_id=self.job_id, cron_expression=self.expression)


@dataclass
class TimerEntry:
    """A live registration: the timer handle plus the expression it was built from."""

    job_id: str
    cron_expression: str
    timer: RecurringTimer
    on_fire: FireCallback
    registered_at: datetime = field(default_factory=utc_now)
    skipped_overlaps: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "cron_expression": self.cron_expression,
            "next_fire_at": self.timer.next_fire_at.isoformat(),
            "fire_count": self.timer.fire_count,
            "skipped_overlaps": self.skipped_overlaps,
            "registered_at": self.registered_at.isoformat(),
        }


class TimerRegistry:
    """Owns the job id → timer map.

    All mutations are serialised by one re-entrant lock, so ``register`` and
    ``cancel`` may be called concurrently from the coordinator, the discovery
    loop and API handlers.

    Example:
        >>> registry = TimerRegistry(CronEvaluator())
        >>> registry.register("job-1", "*/5 * * * *", on_fire=lambda at: print(at))
        >>> registry.is_registered("job-1")
        True
        >>> registry.cancel("job-1")
        True
    """

    def __init__(
        self,
        evaluator: CronEvaluator | None = None,
        *,
        max_workers: int = 8,
        clock: Clock = utc_now,
    ) -> None:
        self.evaluator = evaluator or CronEvaluator()
        self._clock = clock
        self._entries: dict[str, TimerEntry] = {}
        self._lock = threading.RLock()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="jobspine-fire")
        self._inflight: set[Future] = set()
        # Keyed by job id, not entry: survives cancel-then-register
        self._running: dict[str, Future] = {}
        self._closed = False

    # === Registration ===

    def register(self, job_id: str, cron_expression: str, on_fire: FireCallback) -> TimerEntry:
        """Install a recurring timer for ``job_id``, replacing any existing one.

        Raises:
            InvalidExpressionError: Expression rejected; no timer installed
            SchedulingError: Registry already closed
        """
        with self._lock:
            if self._closed:
                raise SchedulingError("Timer registry is closed").with_context(job_id=job_id)

            self._cancel_locked(job_id)
            self.evaluator.validate(cron_expression)

            timer = RecurringTimer(
                job_id,
                cron_expression,
                self.evaluator,
                dispatch=self._dispatch,
                clock=self._clock,
            )
            entry = TimerEntry(
                job_id=job_id,
                cron_expression=cron_expression,
                timer=timer,
                on_fire=on_fire,
                registered_at=self._clock(),
            )
            self._entries[job_id] = entry
            timer.start()

        logger.debug(
            "timer_registered",
            job_id=job_id,
            cron_expression=cron_expression,
            next_fire_at=timer.next_fire_at.isoformat(),
        )
        return entry

    def cancel(self, job_id: str) -> bool:
        """Stop and remove ``job_id``'s timer. Returns False when none existed."""
        with self._lock:
            removed = self._cancel_locked(job_id)
        if removed:
            logger.debug("timer_cancelled", job_id=job_id)
        return removed

    def _cancel_locked(self, job_id: str) -> bool:
        entry = self._entries.pop(job_id, None)
        if entry is None:
            return False
        entry.timer.stop()
        return True

    def cancel_all(self) -> int:
        """Stop every timer. Returns how many were cancelled."""
        with self._lock:
            job_ids = list(self._entries)
            for job_id in job_ids:
                self._cancel_locked(job_id)
        if job_ids:
            logger.info("timers_cancelled", count=len(job_ids))
        return len(job_ids)

    # === Introspection ===

    def is_registered(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._entries

    def list_registered_ids(self) -> set[str]:
        with self._lock:
            return set(self._entries)

    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_entry(self, job_id: str) -> TimerEntry | None:
        with self._lock:
            return self._entries.get(job_id)

    def next_fire_at(self, job_id: str) -> datetime | None:
        entry = self.get_entry(job_id)
        return entry.timer.next_fire_at if entry else None

    def expression_for(self, job_id: str) -> str | None:
        entry = self.get_entry(job_id)
        return entry.cron_expression if entry else None

    def snapshot(self) -> list[dict[str, Any]]:
        with self._lock:
            entries = list(self._entries.values())
        return [entry.to_dict() for entry in sorted(entries, key=lambda e: e.job_id)]

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._inflight)

    @property
    def closed(self) -> bool:
        return self._closed

    # === Dispatch ===

    def _dispatch(self, timer: RecurringTimer, fire_at: datetime) -> None:
        """Hand one firing to the pool.

        Dropped when the timer was cancelled or replaced, and skipped when the
        job's previous firing has not finished yet.
        """
        with self._lock:
            entry = self._entries.get(timer.job_id)
            if self._closed or entry is None or entry.timer is not timer:
                return
            running = self._running.get(entry.job_id)
            if running is not None and not running.done():
                entry.skipped_overlaps += 1
                skipped = entry.skipped_overlaps
                future = None
            else:
                future = self._pool.submit(self._run_callback, entry.job_id, entry.on_fire, fire_at)
                self._inflight.add(future)
                self._running[entry.job_id] = future

        if future is None:
            logger.warning(
                "firing_skipped_overlap",
                job_id=timer.job_id,
                fire_at=fire_at.isoformat(),
                skipped_overlaps=skipped,
            )
            return
        future.add_done_callback(lambda done: self._forget(timer.job_id, done))

    def _forget(self, job_id: str, future: Future) -> None:
        with self._lock:
            self._inflight.discard(future)
            if self._running.get(job_id) is future:
                del self._running[job_id]

    @staticmethod
    def _run_callback(job_id: str, callback: FireCallback, fire_at: datetime) -> None:
        try:
            result = callback(fire_at)
            if asyncio.iscoroutine(result):
                asyncio.run(result)
        except Exception:
            logger.exception("timer_callback_failed", job_id=job_id, fire_at=fire_at.isoformat())

    # === Shutdown ===

    def wait_idle(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for in-flight firings. True if all finished."""
        with self._lock:
            pending = set(self._inflight)
        if not pending:
            return True
        _done, not_done = wait_futures(pending, timeout=timeout)
        if not_done:
            logger.warning("inflight_executions_abandoned", count=len(not_done), timeout=timeout)
        return not not_done

    def close(self) -> None:
        """Cancel all timers and release the dispatch pool without further waiting."""
        with self._lock:
            if self._closed:
                return
            self.cancel_all()
            self._closed = True
        self._pool.shutdown(wait=False, cancel_futures=True)


__all__ = ["TimerRegistry", "TimerEntry", "RecurringTimer", "FireCallback"]
