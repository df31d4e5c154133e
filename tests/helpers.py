"""Test helpers shared across test packages (imported by conftest and tests)."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from jobspine.core.errors import StoreUnavailableError
from jobspine.jobs.models import Job
from jobspine.jobs.store import InMemoryJobStore

EVERY_SECOND = "* * * * * *"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 14, 9, 26, 53, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FlakyStore(InMemoryJobStore):
    """In-memory store whose listed operations raise StoreUnavailableError."""

    def __init__(self) -> None:
        super().__init__()
        self.failing: set[str] = set()

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failing:
            raise StoreUnavailableError(f"{operation} unavailable")

    def find_by_id(self, job_id: str) -> Job:
        self._maybe_fail("find_by_id")
        return super().find_by_id(job_id)

    def find_active_jobs(self) -> list[Job]:
        self._maybe_fail("find_active_jobs")
        return super().find_active_jobs()

    def mark_completed(self, job_id: str, **kwargs: Any) -> Job:
        self._maybe_fail("mark_completed")
        return super().mark_completed(job_id, **kwargs)

    def mark_failed(self, job_id: str, **kwargs: Any) -> Job:
        self._maybe_fail("mark_failed")
        return super().mark_failed(job_id, **kwargs)

    def update_next_run(self, job_id: str, next_run: datetime | None) -> Job:
        self._maybe_fail("update_next_run")
        return super().update_next_run(job_id, next_run)


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.05) -> bool:
    """Poll ``predicate`` until true or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
