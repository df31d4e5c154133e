"""SQLite job repository.

Manifesto:
    Job persistence is a pure data concern. The repository speaks SQL over the
    :class:`~jobspine.core.protocols.Connection` protocol, converts rows to
    :class:`Job` records, and maps driver failures onto the store error
    taxonomy so callers never see ``sqlite3`` exceptions.

┌──────────────────────────────────────────────────────────────────────────────┐
│  JOB REPOSITORY                                                               │
│                                                                               │
│   Table: jobs                                                                 │
│     id TEXT PK (ULID) │ name │ description │ cron_schedule │ type             │
│     data (JSON)       │ status │ last_run │ next_run │ created_at │ updated_at │
│                                                                               │
│   Index: idx_jobs_status_next_run (status, next_run)                          │
│                                                                               │
│   Errors:                                                                     │
│     missing id       → JobNotFoundError                                       │
│     sqlite3.Error    → StoreUnavailableError (retryable)                      │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from datetime import datetime
from typing import Any

from jobspine.core.enums import JobStatus
from jobspine.core.errors import JobNotFoundError, StoreUnavailableError
from jobspine.core.logging import get_logger
from jobspine.core.protocols import Connection
from jobspine.core.sqlite_conn import SqliteConnection
from jobspine.core.timestamps import from_iso8601, generate_ulid, to_iso8601, utc_now

from .models import Job, JobCreate, JobUpdate
from .store import InMemoryJobStore, JobStore

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    id            TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    description   TEXT,
    cron_schedule TEXT NOT NULL,
    type          TEXT NOT NULL,
    data          TEXT NOT NULL DEFAULT '{}',
    status        TEXT NOT NULL DEFAULT 'active',
    last_run      TEXT,
    next_run      TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_jobs_status_next_run ON jobs (status, next_run);
"""

_COLUMNS = (
    "id, name, description, cron_schedule, type, data, status, "
    "last_run, next_run, created_at, updated_at"
)


class JobRepository:
    """:class:`~jobspine.jobs.store.JobStore` backed by a SQLite connection.

    Example:
        >>> conn = SqliteConnection("jobspine.db")
        >>> repo = JobRepository(conn)
        >>> repo.initialize_schema()
        >>> job = repo.create(JobCreate(name="digest", cron_schedule="0 8 * * *", type="email"))
        >>> repo.find_by_id(job.id).status
        <JobStatus.ACTIVE: 'active'>
    """

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def initialize_schema(self) -> None:
        """Create the ``jobs`` table and index if they do not exist."""
        with self._guard("initialize_schema"):
            executescript = getattr(self.conn, "executescript", None)
            if executescript is not None:
                executescript(SCHEMA)
            else:
                for statement in filter(None, (s.strip() for s in SCHEMA.split(";"))):
                    self.conn.execute(statement)
            self.conn.commit()

    # -- plumbing ------------------------------------------------------------

    def _unit(self):
        locked = getattr(self.conn, "locked", None)
        return locked() if locked is not None else nullcontext(self.conn)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        with self._unit():
            try:
                yield
            except sqlite3.Error as exc:
                try:
                    self.conn.rollback()
                except sqlite3.Error:
                    logger.debug("rollback_failed", operation=operation)
                logger.error("store_operation_failed", operation=operation, error=str(exc))
                raise StoreUnavailableError(
                    f"Job store {operation} failed: {exc}", cause=exc
                ) from exc

    def _row_to_job(self, row: Any) -> Job:
        return Job(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            cron_schedule=row["cron_schedule"],
            type=row["type"],
            data=json.loads(row["data"]) if row["data"] else {},
            status=JobStatus(row["status"]),
            last_run=from_iso8601(row["last_run"]),
            next_run=from_iso8601(row["next_run"]),
            created_at=from_iso8601(row["created_at"]) or utc_now(),
            updated_at=from_iso8601(row["updated_at"]) or utc_now(),
        )

    def _fetch(self, job_id: str) -> Job:
        self.conn.execute(f"SELECT {_COLUMNS} FROM jobs WHERE id = ?", (job_id,))
        row = self.conn.fetchone()
        if row is None:
            raise JobNotFoundError(job_id)
        return self._row_to_job(row)

    def _set(
        self,
        job_id: str,
        operation: str,
        values: dict[str, Any],
        *,
        run_outcome: JobStatus | None = None,
    ) -> Job:
        values["updated_at"] = to_iso8601(utc_now())
        assignments = [f"{column} = ?" for column in values]
        params: list[Any] = list(values.values())
        if run_outcome is not None:
            # paused / completed set while the run was in flight win
            assignments.append("status = CASE WHEN status IN (?, ?) THEN ? ELSE status END")
            params += [JobStatus.ACTIVE.value, JobStatus.FAILED.value, run_outcome.value]
        with self._guard(operation):
            cursor = self.conn.execute(
                f"UPDATE jobs SET {', '.join(assignments)} WHERE id = ?",
                (*params, job_id),
            )
            if getattr(cursor, "rowcount", 1) == 0:
                self.conn.rollback()
                raise JobNotFoundError(job_id)
            self.conn.commit()
            return self._fetch(job_id)

    @staticmethod
    def _where(status: JobStatus | None, type: str | None) -> tuple[str, tuple]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(JobStatus(status).value)
        if type is not None:
            clauses.append("type = ?")
            params.append(type)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, tuple(params)

    # === CRUD ===

    def create(self, spec: JobCreate) -> Job:
        job_id = generate_ulid()
        now = to_iso8601(utc_now())
        with self._guard("create"):
            self.conn.execute(
                f"INSERT INTO jobs ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    job_id,
                    spec.name,
                    spec.description,
                    spec.cron_schedule,
                    spec.type,
                    json.dumps(spec.data or {}),
                    JobStatus(spec.status).value,
                    None,
                    to_iso8601(spec.next_run),
                    now,
                    now,
                ),
            )
            self.conn.commit()
            job = self._fetch(job_id)
        logger.debug("job_created", job_id=job_id, name=spec.name)
        return job

    def find_by_id(self, job_id: str) -> Job:
        with self._guard("find_by_id"):
            return self._fetch(job_id)

    def find_all(
        self,
        status: JobStatus | None = None,
        type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Job]:
        where, params = self._where(status, type)
        with self._guard("find_all"):
            self.conn.execute(
                f"SELECT {_COLUMNS} FROM jobs{where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            )
            return [self._row_to_job(row) for row in self.conn.fetchall()]

    def count(self, status: JobStatus | None = None, type: str | None = None) -> int:
        where, params = self._where(status, type)
        with self._guard("count"):
            self.conn.execute(f"SELECT COUNT(*) AS n FROM jobs{where}", params)
            return int(self.conn.fetchone()["n"])

    def find_active_jobs(self) -> list[Job]:
        with self._guard("find_active_jobs"):
            self.conn.execute(
                f"SELECT {_COLUMNS} FROM jobs WHERE status = ? ORDER BY next_run",
                (JobStatus.ACTIVE.value,),
            )
            return [self._row_to_job(row) for row in self.conn.fetchall()]

    def update(self, job_id: str, changes: JobUpdate) -> Job:
        values: dict[str, Any] = {}
        for column, value in changes.changes().items():
            if column == "data":
                value = json.dumps(value)
            elif column == "status":
                value = JobStatus(value).value
            values[column] = value
        if not values:
            return self.find_by_id(job_id)
        return self._set(job_id, "update", values)

    def delete(self, job_id: str) -> None:
        with self._guard("delete"):
            cursor = self.conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            if getattr(cursor, "rowcount", 1) == 0:
                raise JobNotFoundError(job_id)
            self.conn.commit()
        logger.debug("job_deleted", job_id=job_id)

    # === Run bookkeeping ===

    def mark_completed(
        self, job_id: str, *, ran_at: datetime, next_run: datetime | None = None
    ) -> Job:
        values: dict[str, Any] = {"last_run": to_iso8601(ran_at)}
        if next_run is not None:
            values["next_run"] = to_iso8601(next_run)
        return self._set(job_id, "mark_completed", values, run_outcome=JobStatus.ACTIVE)

    def mark_failed(self, job_id: str, *, ran_at: datetime) -> Job:
        return self._set(
            job_id,
            "mark_failed",
            {"last_run": to_iso8601(ran_at)},
            run_outcome=JobStatus.FAILED,
        )

    def update_next_run(self, job_id: str, next_run: datetime | None) -> Job:
        return self._set(job_id, "update_next_run", {"next_run": to_iso8601(next_run)})


def open_store(database_path: str | None) -> JobStore:
    """SQLite repository at ``database_path``, or an in-memory store when None."""
    if not database_path:
        return InMemoryJobStore()
    repo = JobRepository(SqliteConnection(database_path))
    repo.initialize_schema()
    return repo


__all__ = ["JobRepository", "SCHEMA", "open_store"]
