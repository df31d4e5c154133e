"""Jobs: records, stores, validation and the application service."""

from .models import Job, JobCreate, JobUpdate
from .repository import JobRepository
from .service import JobService
from .store import InMemoryJobStore, JobStore
from .validator import JobValidator

__all__ = [
    "Job",
    "JobCreate",
    "JobUpdate",
    "JobStore",
    "InMemoryJobStore",
    "JobRepository",
    "JobValidator",
    "JobService",
]
