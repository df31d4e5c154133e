"""
Scheduler router - coordinator status and liveness.

GET /scheduler/status
GET /health
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from jobspine import __version__
from jobspine.api.deps import Coordinator
from jobspine.api.schemas import SuccessResponse

router = APIRouter()


@router.get("/scheduler/status", response_model=SuccessResponse[dict[str, Any]])
def scheduler_status(coordinator: Coordinator):
    """Instance id, live timers, shutdown flag and discovery health.

    Example:
        GET /api/scheduler/status

        Response:
        {
            "data": {
                "instance_id": "scheduler-01J0...",
                "running": true,
                "is_shutting_down": false,
                "total_scheduled": 2,
                "scheduled_job_ids": ["01J0...", "01J1..."],
                "discovery": {"running": true, "interval_seconds": 10.0, ...}
            }
        }
    """
    return SuccessResponse(data=coordinator.get_status().to_dict())


@router.get("/health")
def health(coordinator: Coordinator) -> dict[str, Any]:
    return {
        "status": "ok" if coordinator.is_running else "degraded",
        "version": __version__,
        "instance_id": coordinator.instance_id,
    }
