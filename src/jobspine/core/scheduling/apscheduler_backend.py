"""Discovery backend on APScheduler 3.x.

For deployments that already run APScheduler and want reconciliation passes
to share its executor and misfire handling. Needs the optional extra::

    pip install jobspine[apscheduler]
"""

from __future__ import annotations

import logging
from typing import Any

from .protocol import BackendHealth, TickCallback, TickRunner

logger = logging.getLogger(__name__)

DISCOVERY_JOB_ID = "jobspine_discovery_tick"


def _require_apscheduler():
    try:
        from apscheduler.schedulers.background import BackgroundScheduler
    except ImportError as exc:
        raise ImportError(
            "APSchedulerBackend needs APScheduler 3.x: pip install jobspine[apscheduler]"
        ) from exc
    return BackgroundScheduler


class APSchedulerBackend:
    """Discovery tick registered as a single APScheduler interval job.

    The job runs with ``max_instances=1`` and ``coalesce=True``: a pass that
    overruns its interval delays the next one rather than stacking behind it.
    """

    name = "apscheduler"

    def __init__(self, timezone: str = "UTC") -> None:
        scheduler_cls = _require_apscheduler()
        self._scheduler = scheduler_cls(timezone=timezone)
        self._runner = TickRunner(logger)

    def start(self, tick_callback: TickCallback, interval_seconds: float = 10.0) -> None:
        if self.is_running:
            logger.warning("APScheduler discovery job already scheduled; start() ignored")
            return

        self._runner.bind(tick_callback, interval_seconds)
        self._scheduler.add_job(
            self._runner.run_once,
            "interval",
            seconds=interval_seconds,
            id=DISCOVERY_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("APScheduler discovery job every %.1fs", interval_seconds)

    def stop(self) -> None:
        if not self.is_running:
            return
        self._scheduler.shutdown(wait=True)
        logger.info("APScheduler discovery stopped after %d ticks", self._runner.tick_count)

    def get_health(self) -> BackendHealth:
        return self._runner.snapshot(self.name, self.is_running)

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    @property
    def is_running(self) -> bool:
        return bool(self._scheduler.running)
