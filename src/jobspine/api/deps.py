"""
FastAPI dependency injection - application-scoped singletons.

The store, coordinator and job service are built once in the lifespan and
stashed on ``app.state``; routers receive them through these dependencies.

Usage in routers::

    from jobspine.api.deps import Service

    @router.get("/jobs")
    def list_jobs(service: Service):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from jobspine.core.scheduling.service import SchedulerCoordinator
from jobspine.core.settings import JobSpineSettings
from jobspine.jobs.service import JobService


def get_app_settings(request: Request) -> JobSpineSettings:
    return request.app.state.settings


def get_coordinator(request: Request) -> SchedulerCoordinator:
    return request.app.state.coordinator


def get_job_service(request: Request) -> JobService:
    return request.app.state.job_service


# ── Convenience type aliases ─────────────────────────────────────────────

Settings = Annotated[JobSpineSettings, Depends(get_app_settings)]
Coordinator = Annotated[SchedulerCoordinator, Depends(get_coordinator)]
Service = Annotated[JobService, Depends(get_job_service)]
