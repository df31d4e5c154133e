"""Default discovery backend: one daemon thread and an event wait.

Stopping sets the event, so the thread wakes immediately instead of sleeping
out the rest of the interval.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any

from .protocol import BackendHealth, TickCallback, TickRunner

logger = logging.getLogger(__name__)


class ThreadSchedulerBackend:
    """Runs the discovery tick every ``interval_seconds`` on ``jobspine-discovery``.

    Example:
        >>> backend = ThreadSchedulerBackend()
        >>> backend.start(loop._tick, interval_seconds=10.0)
        >>> backend.stop()
    """

    name = "thread"

    def __init__(self, join_timeout: float = 5.0) -> None:
        self.join_timeout = join_timeout
        self._runner = TickRunner(logger)
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self, tick_callback: TickCallback, interval_seconds: float = 10.0) -> None:
        if self._thread is not None:
            logger.warning("Discovery thread already running; start() ignored")
            return

        self._runner.bind(tick_callback, interval_seconds)
        self._wake.clear()
        self._thread = threading.Thread(
            target=self._loop,
            args=(interval_seconds,),
            daemon=True,
            name="jobspine-discovery",
        )
        self._thread.start()

    def _loop(self, interval: float) -> None:
        logger.info("Discovery thread up, passes every %ss", interval)
        while not self._wake.wait(interval):
            self._runner.run_once()
        logger.info("Discovery thread exiting after %d ticks", self._runner.tick_count)

    def stop(self) -> None:
        thread, self._thread = self._thread, None
        if thread is None:
            return
        self._wake.set()
        # stop() may be called from inside a tick
        if thread is threading.current_thread():
            return
        thread.join(self.join_timeout)
        if thread.is_alive():
            logger.warning("Discovery thread still alive %ss after stop()", self.join_timeout)

    def get_health(self) -> BackendHealth:
        return self._runner.snapshot(self.name, self.is_running)

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._runner.tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._runner.last_tick
