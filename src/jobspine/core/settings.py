"""Runtime settings for jobspine.

Every deployment knob lives on :class:`JobSpineSettings` so the API, the CLI
and the tests build the scheduler from one validated object.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Bad intervals or unknown zones fail at startup
    - **Environment-driven:** ``JOBSPINE_*`` env vars and ``.env`` files
    - **Sensible defaults:** In-memory store, 10s discovery, UTC evaluation

Examples:
    >>> settings = JobSpineSettings(discovery_interval_seconds=2.5)
    >>> settings.discovery_interval_seconds
    2.5

Environment:
    JOBSPINE_DATABASE_PATH=/var/lib/jobspine/jobs.db
    JOBSPINE_TIMEZONE=Europe/Berlin
    JOBSPINE_DISCOVERY_INTERVAL_SECONDS=30
    JOBSPINE_FAILURE_POLICY=keep_active
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobSpineSettings(BaseSettings):
    """Settings shared by the scheduler, the API and the CLI.

    Fields
    ──────
    host, port                  : HTTP bind address
    log_level, json_logs        : structlog configuration
    database_path               : SQLite job store (None → in-memory store)
    timezone                    : Zone cron expressions are evaluated in
    discovery_interval_seconds  : Reconciliation period
    discovery_backend           : Timing backend for the discovery loop
    shutdown_grace_seconds      : Wait for in-flight executions on shutdown
    max_workers                 : Dispatch pool size for timer firings
    failure_policy              : What a handler failure does to job status
    handler_delay_seconds       : Upper bound of simulated built-in handler work
    """

    model_config = SettingsConfigDict(
        env_prefix="JOBSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Network ──────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = Field(
        default=None,
        description="JSON log output; None auto-detects (JSON when stdout is not a tty)",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: str | None = Field(
        default=None,
        description="SQLite file for the job store; in-memory store when unset",
    )

    # ── Scheduling ───────────────────────────────────────────────
    timezone: str = "UTC"
    discovery_interval_seconds: float = Field(default=10.0, gt=0)
    discovery_backend: Literal["thread", "apscheduler"] = "thread"
    shutdown_grace_seconds: float = Field(default=1.0, ge=0)
    max_workers: int = Field(default=8, ge=1)
    failure_policy: Literal["mark_failed", "keep_active"] = "mark_failed"
    handler_delay_seconds: float = Field(default=0.0, ge=0)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


@lru_cache(maxsize=1)
def get_settings() -> JobSpineSettings:
    """Cached settings - loaded once per process."""
    return JobSpineSettings()
