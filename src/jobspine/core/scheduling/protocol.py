"""Discovery timing backends: the contract and the shared tick runner.

A backend decides WHEN a reconciliation pass happens; the discovery loop
decides WHAT the pass does. Per-job cron timers never go through a backend,
they belong to the TimerRegistry.

    backend thread / APScheduler job
        └── TickRunner.run_once()
              ├── tick_count += 1, last_tick = now
              └── asyncio.run(DiscoveryLoop._tick())   errors logged, loop survives
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from jobspine.core.timestamps import utc_now

TickCallback = Callable[[], Awaitable[None]]


@runtime_checkable
class SchedulerBackend(Protocol):
    """Calls an async tick on a fixed interval. Nothing else.

    Known implementations: ``ThreadSchedulerBackend`` (default) and
    ``APSchedulerBackend`` (``jobspine[apscheduler]``).
    """

    name: str

    def start(self, tick_callback: TickCallback, interval_seconds: float = 10.0) -> None: ...

    def stop(self) -> None: ...

    def health(self) -> dict[str, Any]:
        """At least ``healthy``, ``backend``, ``tick_count`` and ``last_tick`` (ISO or None)."""
        ...


@dataclass
class BackendHealth:
    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
        }
        data.update(self.extra)
        return data


class TickRunner:
    """Bookkeeping around one backend's tick callback.

    Each call to :meth:`run_once` counts the tick, stamps it, and drives the
    coroutine to completion on a fresh event loop. A failing pass is logged
    against the backend's logger and never raised into the timing thread.
    """

    def __init__(self, log: logging.Logger) -> None:
        self._log = log
        self._lock = threading.Lock()
        self.callback: TickCallback | None = None
        self.interval: float | None = None
        self.tick_count = 0
        self.last_tick: datetime | None = None

    def bind(self, callback: TickCallback, interval_seconds: float) -> None:
        self.callback = callback
        self.interval = interval_seconds

    def run_once(self) -> None:
        with self._lock:
            self.tick_count += 1
            self.last_tick = utc_now()
        if self.callback is None:
            return
        try:
            asyncio.run(self.callback())
        except Exception:
            self._log.exception("Discovery tick %d failed", self.tick_count)

    def snapshot(self, name: str, healthy: bool) -> BackendHealth:
        return BackendHealth(
            healthy=healthy,
            backend=name,
            tick_count=self.tick_count,
            last_tick=self.last_tick,
            extra={"interval_seconds": self.interval},
        )


__all__ = ["SchedulerBackend", "BackendHealth", "TickCallback", "TickRunner"]
