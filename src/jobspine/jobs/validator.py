"""Job payload validation.

Runs before anything reaches the store or the timer registry: a job whose
cron expression does not parse is rejected here and never registered.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from jobspine.core.enums import JobStatus
from jobspine.core.errors import InvalidExpressionError, ValidationError
from jobspine.core.logging import get_logger
from jobspine.core.protocols import Clock
from jobspine.core.scheduling.cron import CronEvaluator
from jobspine.core.timestamps import utc_now

logger = get_logger(__name__)

MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 500

_STATUS_VALUES = tuple(status.value for status in JobStatus)


def _require_text(data: Mapping[str, Any], key: str, label: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required and must be a non-empty string", field=key, value=value)
    return value


class JobValidator:
    """Checks job payloads and computes initial run times.

    Example:
        >>> validator = JobValidator()
        >>> validator.validate_job_data({"name": "A", "cron_schedule": "*/1 * * * *", "type": "email"})
        >>> validator.validate_job_data({"name": "A", "cron_schedule": "not-a-cron", "type": "email"})
        Traceback (most recent call last):
        ...
        jobspine.core.errors.InvalidExpressionError: Invalid cron expression 'not-a-cron': ...
    """

    def __init__(self, evaluator: CronEvaluator | None = None, clock: Clock = utc_now) -> None:
        self.evaluator = evaluator or CronEvaluator()
        self._clock = clock

    def validate_job_data(self, data: Mapping[str, Any] | None, *, partial: bool = False) -> None:
        """Validate a create payload, or with ``partial=True`` a patch payload.

        Raises:
            ValidationError: Naming the offending field
            InvalidExpressionError: ``cron_schedule`` does not parse
        """
        if not data:
            if partial:
                return
            raise ValidationError("Job data cannot be empty")

        if not partial or "name" in data:
            name = _require_text(data, "name", "Job name")
            if len(name) > MAX_NAME_LENGTH:
                raise ValidationError(
                    f"Job name must be at most {MAX_NAME_LENGTH} characters", field="name", value=name
                )

        if not partial or "cron_schedule" in data:
            self.validate_cron_schedule(_require_text(data, "cron_schedule", "Cron schedule"))

        if not partial or "type" in data:
            _require_text(data, "type", "Job type")

        description = data.get("description")
        if description is not None:
            if not isinstance(description, str):
                raise ValidationError("Description must be a string", field="description", value=description)
            if len(description) > MAX_DESCRIPTION_LENGTH:
                raise ValidationError(
                    f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters",
                    field="description",
                )

        status = data.get("status")
        if status is not None and status not in _STATUS_VALUES:
            raise ValidationError(
                f"Invalid job status; must be one of: {', '.join(_STATUS_VALUES)}",
                field="status",
                value=status,
            )

        payload = data.get("data")
        if payload is not None and not isinstance(payload, Mapping):
            raise ValidationError("Job data payload must be an object", field="data", value=payload)

        if data.get("type") == "email" and not (payload and payload.get("to") and payload.get("subject")):
            logger.warning("email_job_incomplete", job_name=data.get("name"))

    def validate_cron_schedule(self, cron_schedule: str) -> None:
        self.evaluator.validate(cron_schedule.strip())

    def calculate_next_run_time(self, cron_schedule: str) -> datetime:
        """Next trigger of ``cron_schedule`` after now."""
        try:
            return self.evaluator.next_trigger(cron_schedule.strip(), self._clock())
        except InvalidExpressionError:
            logger.error("next_run_calculation_failed", cron_expression=cron_schedule)
            raise


__all__ = ["JobValidator", "MAX_NAME_LENGTH", "MAX_DESCRIPTION_LENGTH"]
