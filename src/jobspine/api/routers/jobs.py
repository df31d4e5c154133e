"""
Jobs router - CRUD plus lifecycle actions for recurring jobs.

GET    /jobs
POST   /jobs
GET    /jobs/{job_id}
PATCH  /jobs/{job_id}
DELETE /jobs/{job_id}
POST   /jobs/{job_id}/pause
POST   /jobs/{job_id}/resume
POST   /jobs/{job_id}/run
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Path, Query

from jobspine.api.deps import Service
from jobspine.api.schemas import (
    CreateJobBody,
    ExecutionResultSchema,
    JobSchema,
    PagedResponse,
    PageMeta,
    SuccessResponse,
    UpdateJobBody,
)
from jobspine.core.enums import JobStatus
from jobspine.jobs.models import Job

router = APIRouter(prefix="/jobs")

JobId = Path(..., description="Job ID (ULID)")


def _schema(job: Job) -> JobSchema:
    return JobSchema(**job.to_dict())


@router.get("", response_model=PagedResponse[JobSchema])
def list_jobs(
    service: Service,
    status: JobStatus | None = Query(None, description="Filter by status"),
    type: str | None = Query(None, description="Filter by job type"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """List jobs, newest first.

    Example:
        GET /api/jobs?status=active&limit=20

        Response:
        {
            "data": [{"id": "01J0...", "name": "digest", "status": "active", ...}],
            "page": {"total": 1, "limit": 20, "offset": 0, "has_more": false}
        }
    """
    jobs, total = service.list_jobs(status=status, type=type, limit=limit, offset=offset)
    return PagedResponse(
        data=[_schema(job) for job in jobs],
        page=PageMeta.from_result(total, limit, offset),
    )


@router.post("", response_model=SuccessResponse[JobSchema], status_code=201)
def create_job(body: CreateJobBody, service: Service):
    """Create a job and schedule it immediately when active.

    Raises:
        400 VALIDATION_FAILED: Missing fields or unparseable cron expression.
        503: Scheduler shutting down.
    """
    job = service.create_job(body.model_dump(exclude_none=True))
    return SuccessResponse(data=_schema(job))


@router.get("/{job_id}", response_model=SuccessResponse[JobSchema])
def get_job(service: Service, job_id: str = JobId):
    return SuccessResponse(data=_schema(service.get_job(job_id)))


@router.patch("/{job_id}", response_model=SuccessResponse[JobSchema])
def update_job(body: UpdateJobBody, service: Service, job_id: str = JobId):
    """Patch a job. Changing ``cron_schedule`` or ``status`` re-syncs its timer."""
    job = service.update_job(job_id, body.model_dump(exclude_none=True))
    return SuccessResponse(data=_schema(job))


@router.delete("/{job_id}", response_model=SuccessResponse[dict[str, Any]])
def delete_job(service: Service, job_id: str = JobId):
    service.delete_job(job_id)
    return SuccessResponse(data={"id": job_id, "deleted": True})


@router.post("/{job_id}/pause", response_model=SuccessResponse[JobSchema])
def pause_job(service: Service, job_id: str = JobId):
    return SuccessResponse(data=_schema(service.pause_job(job_id)))


@router.post("/{job_id}/resume", response_model=SuccessResponse[JobSchema])
def resume_job(service: Service, job_id: str = JobId):
    """Reactivate a paused or failed job and put it back on its schedule."""
    return SuccessResponse(data=_schema(service.resume_job(job_id)))


@router.post("/{job_id}/run", response_model=SuccessResponse[ExecutionResultSchema])
async def run_job(service: Service, job_id: str = JobId):
    """Run a job now, outside its schedule."""
    result = await service.run_job_now(job_id)
    return SuccessResponse(data=ExecutionResultSchema(**result.to_dict()))
