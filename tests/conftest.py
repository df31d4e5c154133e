"""
Shared pytest fixtures for jobspine tests.

This module provides:
- In-memory and SQLite job stores
- A controllable clock for deterministic executor tests
- A store wrapper that fails on demand (StoreUnavailableError paths)
- Test doubles and polling helpers live in ``helpers.py``
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from jobspine.core.scheduling.cron import CronEvaluator
from jobspine.core.scheduling.registry import TimerRegistry
from jobspine.core.sqlite_conn import SqliteConnection
from jobspine.jobs.models import Job, JobCreate
from jobspine.jobs.repository import JobRepository
from jobspine.jobs.store import InMemoryJobStore

from helpers import FlakyStore, FrozenClock

# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def evaluator() -> CronEvaluator:
    return CronEvaluator()


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def sqlite_repo() -> Generator[JobRepository, None, None]:
    conn = SqliteConnection(":memory:")
    repo = JobRepository(conn)
    repo.initialize_schema()
    yield repo
    conn.close()


@pytest.fixture
def registry(evaluator: CronEvaluator) -> Generator[TimerRegistry, None, None]:
    reg = TimerRegistry(evaluator, max_workers=4)
    yield reg
    reg.close()


@pytest.fixture
def make_job(store: InMemoryJobStore) -> Callable[..., Job]:
    """Create a job in the ``store`` fixture."""

    def _make(
        name: str = "digest",
        cron_schedule: str = "*/5 * * * *",
        type: str = "report",
        **kwargs: Any,
    ) -> Job:
        return store.create(JobCreate(name=name, cron_schedule=cron_schedule, type=type, **kwargs))

    return _make
