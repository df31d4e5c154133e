"""Job store contract and the in-memory implementation.

┌──────────────────────────────────────────────────────────────────────────────┐
│  JOB STORE                                                                    │
│                                                                               │
│   CRUD:          create / find_by_id / find_all / count / update / delete     │
│   Scheduling:    find_active_jobs                                             │
│   Bookkeeping:   mark_completed(id, ran_at, next_run)   status=active *       │
│                  mark_failed(id, ran_at)                status=failed *       │
│                  update_next_run(id, instant)                                 │
│                                                                               │
│   Errors:        JobNotFoundError      missing id                             │
│                  StoreUnavailableError backend failure (retryable)            │
│                                                                               │
│   * only over active / failed; paused and completed are kept                  │
└──────────────────────────────────────────────────────────────────────────────┘

``mark_completed`` takes the next trigger in the same call, so a reader never
sees a job that has run but still carries its old ``next_run``.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Protocol, runtime_checkable

from jobspine.core.enums import JobStatus
from jobspine.core.errors import JobNotFoundError
from jobspine.core.timestamps import ensure_utc, generate_ulid, utc_now

from .models import Job, JobCreate, JobUpdate


@runtime_checkable
class JobStore(Protocol):
    """Persistence contract consumed by the scheduling core and the service layer."""

    def create(self, spec: JobCreate) -> Job: ...

    def find_by_id(self, job_id: str) -> Job: ...

    def find_all(
        self,
        status: JobStatus | None = None,
        type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Job]: ...

    def count(self, status: JobStatus | None = None, type: str | None = None) -> int: ...

    def find_active_jobs(self) -> list[Job]: ...

    def update(self, job_id: str, changes: JobUpdate) -> Job: ...

    def delete(self, job_id: str) -> None: ...

    def mark_completed(
        self, job_id: str, *, ran_at: datetime, next_run: datetime | None = None
    ) -> Job:
        """Record a run: last_run=ran_at, next_run when given.

        Status becomes active only if it is currently active or failed; a
        paused or completed job keeps its status.
        """
        ...

    def mark_failed(self, job_id: str, *, ran_at: datetime) -> Job:
        """Record a failed run: last_run=ran_at, next_run untouched.

        Status becomes failed under the same rule as :meth:`mark_completed`.
        """
        ...

    def update_next_run(self, job_id: str, next_run: datetime | None) -> Job: ...


class InMemoryJobStore:
    """Dict-backed store guarded by a lock.

    Returned jobs are copies; mutating them does not affect stored state.
    Used by tests and by the API/CLI when no database path is configured.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.RLock()

    def _get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _put(self, job_id: str, **changes) -> Job:
        with self._lock:
            job = replace(self._get(job_id), **changes, updated_at=utc_now())
            self._jobs[job_id] = job
            return _copy(job)

    def create(self, spec: JobCreate) -> Job:
        now = utc_now()
        job = Job(
            id=generate_ulid(),
            name=spec.name,
            description=spec.description,
            cron_schedule=spec.cron_schedule,
            type=spec.type,
            data=dict(spec.data),
            status=spec.status,
            next_run=ensure_utc(spec.next_run) if spec.next_run else None,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._jobs[job.id] = job
        return _copy(job)

    def find_by_id(self, job_id: str) -> Job:
        with self._lock:
            return _copy(self._get(job_id))

    def _filtered(self, status: JobStatus | None, type: str | None) -> list[Job]:
        jobs = [
            job
            for job in self._jobs.values()
            if (status is None or job.status == status) and (type is None or job.type == type)
        ]
        # Newest first, ULID breaks ties within the same instant
        jobs.sort(key=lambda j: (j.created_at, j.id), reverse=True)
        return jobs

    def find_all(
        self,
        status: JobStatus | None = None,
        type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Job]:
        with self._lock:
            jobs = self._filtered(status, type)
            return [_copy(job) for job in jobs[offset : offset + limit]]

    def count(self, status: JobStatus | None = None, type: str | None = None) -> int:
        with self._lock:
            return len(self._filtered(status, type))

    def find_active_jobs(self) -> list[Job]:
        with self._lock:
            return [_copy(job) for job in self._filtered(JobStatus.ACTIVE, None)]

    def update(self, job_id: str, changes: JobUpdate) -> Job:
        values = changes.changes()
        if "data" in values:
            values["data"] = dict(values["data"])
        return self._put(job_id, **values)

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._get(job_id)
            del self._jobs[job_id]

    def mark_completed(
        self, job_id: str, *, ran_at: datetime, next_run: datetime | None = None
    ) -> Job:
        with self._lock:
            values = {"last_run": ensure_utc(ran_at)}
            if next_run is not None:
                values["next_run"] = ensure_utc(next_run)
            if self._get(job_id).status.takes_run_outcome:
                values["status"] = JobStatus.ACTIVE
            return self._put(job_id, **values)

    def mark_failed(self, job_id: str, *, ran_at: datetime) -> Job:
        with self._lock:
            values = {"last_run": ensure_utc(ran_at)}
            if self._get(job_id).status.takes_run_outcome:
                values["status"] = JobStatus.FAILED
            return self._put(job_id, **values)

    def update_next_run(self, job_id: str, next_run: datetime | None) -> Job:
        return self._put(job_id, next_run=ensure_utc(next_run) if next_run else None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


def _copy(job: Job) -> Job:
    return replace(job, data=dict(job.data))


__all__ = ["JobStore", "InMemoryJobStore"]
