"""End-to-end scheduling: service, coordinator, timers and stores together."""

import asyncio
import threading
from datetime import timedelta

import pytest

from jobspine.core.enums import JobStatus
from jobspine.core.errors import InvalidExpressionError
from jobspine.core.scheduling.handlers import HandlerTable
from jobspine.core.scheduling.service import SchedulerCoordinator
from jobspine.core.scheduling.thread_backend import ThreadSchedulerBackend
from jobspine.core.timestamps import utc_now
from jobspine.jobs.models import JobUpdate
from jobspine.jobs.repository import open_store
from jobspine.jobs.service import JobService

from helpers import EVERY_SECOND, wait_for


def _recording_table(runs: list, *, block: threading.Event | None = None) -> HandlerTable:
    table = HandlerTable.default()

    async def record(job):
        runs.append(job.id)
        if block is not None:
            await asyncio.to_thread(block.wait, 5.0)
        return {"run": len(runs)}

    table.register("report", record)
    return table


@pytest.fixture
def running(store):
    """A started coordinator with a fast discovery loop and a recording handler."""
    runs: list[str] = []
    coordinator = SchedulerCoordinator(
        store,
        handlers=_recording_table(runs),
        backend=ThreadSchedulerBackend(),
        discovery_interval_seconds=0.2,
    )
    coordinator.start()
    yield coordinator, JobService(store, coordinator), runs
    coordinator.shutdown(grace_seconds=1.0)


class TestCreateToFire:
    def test_every_minute_job_gets_next_whole_minute(self, running):
        coordinator, service, _ = running
        before = utc_now()

        job = service.create_job({"name": "Test Job", "cron_schedule": "*/1 * * * *", "type": "email"})

        assert job.next_run.second == 0 and job.next_run.microsecond == 0
        assert before < job.next_run <= before + timedelta(minutes=1)
        assert coordinator.registry.is_registered(job.id)

    def test_every_second_job_runs_and_advances(self, running, store):
        coordinator, service, runs = running
        job = service.create_job({"name": "tick", "cron_schedule": EVERY_SECOND, "type": "report"})

        assert wait_for(lambda: runs.count(job.id) >= 2, timeout=5.0)
        assert wait_for(lambda: store.find_by_id(job.id).last_run is not None, timeout=2.0)
        stored = store.find_by_id(job.id)
        assert stored.status == JobStatus.ACTIVE
        assert stored.next_run > stored.last_run
        # next_run is the trigger after the run finished, one period on
        assert stored.next_run - stored.last_run <= timedelta(seconds=2)
        assert stored.next_run.microsecond == 0

    def test_invalid_cron_never_scheduled(self, running, store):
        coordinator, service, _ = running

        with pytest.raises(InvalidExpressionError):
            service.create_job({"name": "bad", "cron_schedule": "not-a-cron", "type": "email"})

        assert len(store) == 0
        assert coordinator.registry.count() == 0


class TestConvergence:
    def test_pause_behind_scheduler_back_stops_runs(self, running, store):
        coordinator, service, runs = running
        job = service.create_job({"name": "tick", "cron_schedule": EVERY_SECOND, "type": "report"})
        assert wait_for(lambda: job.id in runs, timeout=5.0)

        # status flipped directly in the store, no coordinator call
        store.update(job.id, JobUpdate(status=JobStatus.PAUSED))

        assert wait_for(lambda: not coordinator.registry.is_registered(job.id), timeout=3.0)
        settled = runs.count(job.id)
        assert not wait_for(lambda: runs.count(job.id) > settled, timeout=1.5)

    def test_job_written_by_another_process_is_discovered(self, tmp_path):
        """A CLI-style writer without a coordinator shares the SQLite file."""
        path = str(tmp_path / "jobs.db")
        runs: list[str] = []
        coordinator = SchedulerCoordinator(
            open_store(path),
            handlers=_recording_table(runs),
            backend=ThreadSchedulerBackend(),
            discovery_interval_seconds=0.2,
        )
        coordinator.start()
        try:
            writer = JobService(open_store(path))
            job = writer.create_job({"name": "tick", "cron_schedule": EVERY_SECOND, "type": "report"})

            assert wait_for(lambda: coordinator.registry.is_registered(job.id), timeout=3.0)
            assert wait_for(lambda: job.id in runs, timeout=5.0)

            writer.delete_job(job.id)
            assert wait_for(lambda: not coordinator.registry.is_registered(job.id), timeout=3.0)
        finally:
            coordinator.shutdown(grace_seconds=1.0)


class TestFailureAndShutdown:
    def test_failed_run_leaves_job_failed_until_resumed(self, store):
        table = HandlerTable.default()

        async def boom(job):
            raise RuntimeError("smtp down")

        table.register("email", boom)
        coordinator = SchedulerCoordinator(store, handlers=table, backend=ThreadSchedulerBackend(), discovery_interval_seconds=0.2)
        service = JobService(store, coordinator)
        coordinator.start()
        try:
            job = service.create_job({"name": "mail", "cron_schedule": EVERY_SECOND, "type": "email"})

            assert wait_for(lambda: store.find_by_id(job.id).status == JobStatus.FAILED, timeout=5.0)
            assert wait_for(lambda: not coordinator.registry.is_registered(job.id), timeout=3.0)

            service.resume_job(job.id)
            assert coordinator.registry.is_registered(job.id)
        finally:
            coordinator.shutdown(grace_seconds=1.0)

    def test_shutdown_does_not_wait_forever_for_in_flight_run(self, store):
        release = threading.Event()
        runs: list[str] = []
        coordinator = SchedulerCoordinator(
            store,
            handlers=_recording_table(runs, block=release),
            backend=ThreadSchedulerBackend(),
        )
        service = JobService(store, coordinator)
        coordinator.start()
        try:
            service.create_job({"name": "slow", "cron_schedule": EVERY_SECOND, "type": "report"})
            assert wait_for(lambda: len(runs) >= 1, timeout=5.0)

            assert coordinator.shutdown(grace_seconds=0.2) is False
            assert coordinator.registry.count() == 0
        finally:
            release.set()

    def test_no_firings_after_shutdown(self, running):
        coordinator, service, runs = running
        service.create_job({"name": "tick", "cron_schedule": EVERY_SECOND, "type": "report"})
        assert wait_for(lambda: len(runs) >= 1, timeout=5.0)

        coordinator.shutdown(grace_seconds=1.0)
        settled = len(runs)
        assert not wait_for(lambda: len(runs) > settled, timeout=1.5)
