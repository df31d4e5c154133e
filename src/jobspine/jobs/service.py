"""Job application service - store writes followed by scheduler calls.

Every mutating operation writes the store first and then tells the
coordinator, so the store stays authoritative and a lost scheduler call is
repaired by the next discovery pass.

    create_job   validate → next_run → store.create → schedule_job
    update_job   validate → store.update → re-register / unschedule
    pause_job    status=paused → unschedule_job
    resume_job   status=active → schedule_job     (also reactivates failed jobs)
    delete_job   store.delete → unschedule_job
    run_job_now  coordinator.trigger
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from jobspine.core.enums import JobStatus
from jobspine.core.errors import SchedulerShuttingDownError, SchedulingError
from jobspine.core.logging import get_logger

from .models import Job, JobCreate, JobUpdate
from .store import JobStore
from .validator import JobValidator

if TYPE_CHECKING:
    from jobspine.core.scheduling.executor import ExecutionResult
    from jobspine.core.scheduling.service import SchedulerCoordinator

logger = get_logger(__name__)


class JobService:
    """Use cases shared by the HTTP API and the CLI.

    ``coordinator`` is optional: without one (e.g. CLI commands editing the
    database of a running server) changes reach the live scheduler through
    its discovery loop.
    """

    def __init__(
        self,
        store: JobStore,
        coordinator: SchedulerCoordinator | None = None,
        validator: JobValidator | None = None,
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        if validator is None:
            evaluator = coordinator.evaluator if coordinator is not None else None
            validator = JobValidator(evaluator)
        self.validator = validator

    def _ensure_accepting(self) -> None:
        if self.coordinator is not None and self.coordinator.is_shutting_down:
            raise SchedulerShuttingDownError()

    def _sync(self, job: Job) -> Job:
        """Align the live timer with ``job`` and return the freshest record."""
        if self.coordinator is None:
            return job
        if job.is_active:
            if self.coordinator.schedule_job(job):
                return self.store.find_by_id(job.id)
        else:
            self.coordinator.unschedule_job(job.id)
        return job

    # === Queries ===

    def get_job(self, job_id: str) -> Job:
        return self.store.find_by_id(job_id)

    def list_jobs(
        self,
        status: JobStatus | str | None = None,
        type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        """Return one page of jobs plus the total matching count."""
        status = JobStatus(status) if status is not None else None
        jobs = self.store.find_all(status=status, type=type, limit=limit, offset=offset)
        return jobs, self.store.count(status=status, type=type)

    # === Mutations ===

    def create_job(self, data: Mapping[str, Any]) -> Job:
        self.validator.validate_job_data(data)
        self._ensure_accepting()

        spec = JobCreate.from_mapping(data)
        spec.next_run = self.validator.calculate_next_run_time(spec.cron_schedule)
        job = self.store.create(spec)
        logger.info("job_created", job_id=job.id, name=job.name, cron_expression=job.cron_schedule)
        return self._sync(job)

    def update_job(self, job_id: str, data: Mapping[str, Any]) -> Job:
        self.validator.validate_job_data(data, partial=True)
        changes = JobUpdate.from_mapping(data)
        if changes.is_empty:
            return self.store.find_by_id(job_id)
        if changes.status is JobStatus.ACTIVE:
            self._ensure_accepting()

        job = self.store.update(job_id, changes)
        logger.info("job_updated", job_id=job_id, fields=sorted(changes.changes()))
        if changes.cron_schedule is not None or changes.status is not None:
            return self._sync(job)
        return job

    def pause_job(self, job_id: str) -> Job:
        job = self.store.update(job_id, JobUpdate(status=JobStatus.PAUSED))
        logger.info("job_paused", job_id=job_id)
        return self._sync(job)

    def resume_job(self, job_id: str) -> Job:
        self._ensure_accepting()
        job = self.store.update(job_id, JobUpdate(status=JobStatus.ACTIVE))
        logger.info("job_resumed", job_id=job_id)
        return self._sync(job)

    def delete_job(self, job_id: str) -> None:
        self.store.delete(job_id)
        if self.coordinator is not None:
            self.coordinator.unschedule_job(job_id)
        logger.info("job_deleted", job_id=job_id)

    async def run_job_now(self, job_id: str) -> ExecutionResult:
        if self.coordinator is None:
            raise SchedulingError("No scheduler attached; cannot run jobs").with_context(job_id=job_id)
        return await self.coordinator.trigger(job_id)


__all__ = ["JobService"]
