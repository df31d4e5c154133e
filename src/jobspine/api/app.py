"""
FastAPI application factory.

``create_app()`` wires error handlers, routers and the lifespan that owns the
scheduler into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root. The lifespan builds the
    store and the coordinator, starts scheduling on startup and shuts it down
    (cancelling every timer) on exit, so a stopped server holds no live
    timers.

Tags:
    jobspine, api, app-factory, composition-root, FastAPI
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jobspine import __version__
from jobspine.api.errors import jobspine_error_handler, unhandled_exception_handler
from jobspine.core.errors import JobSpineError
from jobspine.core.logging import get_logger
from jobspine.core.scheduling.service import SchedulerCoordinator
from jobspine.core.settings import JobSpineSettings, get_settings
from jobspine.jobs.repository import open_store
from jobspine.jobs.service import JobService
from jobspine.jobs.store import JobStore

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - start the scheduler, then shut it down."""
    log = get_logger("jobspine.api")
    settings: JobSpineSettings = app.state.settings

    store: JobStore = app.state.store
    if store is None:
        store = open_store(settings.database_path)
    coordinator = app.state.coordinator
    if coordinator is None:
        coordinator = SchedulerCoordinator.from_settings(store, settings)
    app.state.store = store
    app.state.coordinator = coordinator
    app.state.job_service = JobService(store, coordinator)

    scheduled = coordinator.start()
    log.info(
        "api_started",
        version=app.version,
        instance_id=coordinator.instance_id,
        scheduled=scheduled,
        database_path=settings.database_path,
    )

    yield

    log.info("api_shutting_down", instance_id=coordinator.instance_id)
    coordinator.shutdown()


def create_app(
    settings: JobSpineSettings | None = None,
    *,
    store: JobStore | None = None,
    coordinator: SchedulerCoordinator | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : JobSpineSettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    store, coordinator
        Pre-built collaborators; built from ``settings`` in the lifespan when
        omitted.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="jobspine",
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{API_PREFIX}/docs",
        openapi_url=f"{API_PREFIX}/openapi.json",
    )

    app.state.settings = settings
    app.state.store = store if store is not None else (coordinator.store if coordinator else None)
    app.state.coordinator = coordinator

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(JobSpineError, jobspine_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from jobspine.api.routers import jobs, scheduler

    app.include_router(jobs.router, prefix=API_PREFIX, tags=["jobs"])
    app.include_router(scheduler.router, prefix=API_PREFIX, tags=["scheduler"])

    return app
