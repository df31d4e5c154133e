"""Job records and the payloads used to create or patch them.

STDLIB ONLY - NO PYDANTIC. Request validation for the HTTP surface lives in
``jobspine.api.schemas``; these dataclasses are what stores return.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

from jobspine.core.enums import JobStatus, JobType
from jobspine.core.timestamps import from_iso8601, to_iso8601, utc_now


@dataclass
class Job:
    """A persisted recurring job.

    ``type`` keeps the stored string as-is so that records written by newer
    deployments survive; :attr:`job_type` resolves it onto the enum.
    """

    id: str
    name: str
    cron_schedule: str
    type: str
    description: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    status: JobStatus = JobStatus.ACTIVE
    last_run: datetime | None = None
    next_run: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def job_type(self) -> JobType:
        return JobType.resolve(self.type)

    @property
    def is_active(self) -> bool:
        return self.status.is_schedulable

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "cron_schedule": self.cron_schedule,
            "type": self.type,
            "data": dict(self.data),
            "status": self.status.value,
            "last_run": to_iso8601(self.last_run),
            "next_run": to_iso8601(self.next_run),
            "created_at": to_iso8601(self.created_at),
            "updated_at": to_iso8601(self.updated_at),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Job:
        return cls(
            id=raw["id"],
            name=raw["name"],
            description=raw.get("description"),
            cron_schedule=raw["cron_schedule"],
            type=raw["type"],
            data=dict(raw.get("data") or {}),
            status=JobStatus(raw.get("status", JobStatus.ACTIVE)),
            last_run=from_iso8601(raw.get("last_run")),
            next_run=from_iso8601(raw.get("next_run")),
            created_at=from_iso8601(raw.get("created_at")) or utc_now(),
            updated_at=from_iso8601(raw.get("updated_at")) or utc_now(),
        )


@dataclass
class JobCreate:
    """Validated input for :meth:`JobStore.create`. The store assigns ``id``."""

    name: str
    cron_schedule: str
    type: str
    description: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    status: JobStatus = JobStatus.ACTIVE
    next_run: datetime | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> JobCreate:
        return cls(
            name=raw["name"].strip(),
            cron_schedule=raw["cron_schedule"].strip(),
            type=raw["type"].strip(),
            description=raw.get("description"),
            data=dict(raw.get("data") or {}),
            status=JobStatus(raw.get("status") or JobStatus.ACTIVE),
        )


@dataclass
class JobUpdate:
    """Partial update; ``None`` means "leave unchanged"."""

    name: str | None = None
    description: str | None = None
    cron_schedule: str | None = None
    type: str | None = None
    data: dict[str, Any] | None = None
    status: JobStatus | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> JobUpdate:
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in raw.items() if k in known and v is not None}
        for key in ("name", "cron_schedule", "type"):
            if isinstance(values.get(key), str):
                values[key] = values[key].strip()
        if "status" in values:
            values["status"] = JobStatus(values["status"])
        return cls(**values)

    def changes(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    @property
    def is_empty(self) -> bool:
        return not self.changes()


__all__ = ["Job", "JobCreate", "JobUpdate"]
