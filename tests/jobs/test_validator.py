"""Tests for JobValidator."""

from datetime import UTC, datetime

import pytest

from jobspine.core.errors import InvalidExpressionError, ValidationError
from jobspine.jobs.validator import MAX_DESCRIPTION_LENGTH, MAX_NAME_LENGTH, JobValidator

VALID = {"name": "Nightly digest", "cron_schedule": "0 8 * * *", "type": "report"}


@pytest.fixture
def validator(clock):
    return JobValidator(clock=clock)


class TestCreatePayload:
    def test_valid_payload(self, validator):
        validator.validate_job_data(VALID)

    def test_empty_payload(self, validator):
        with pytest.raises(ValidationError, match="cannot be empty"):
            validator.validate_job_data({})

    @pytest.mark.parametrize("field", ["name", "cron_schedule", "type"])
    def test_required_fields(self, validator, field):
        data = {k: v for k, v in VALID.items() if k != field}
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_job_data(data)
        assert exc_info.value.field == field

    @pytest.mark.parametrize("value", ["", "   ", 42])
    def test_blank_or_non_string_name(self, validator, value):
        with pytest.raises(ValidationError):
            validator.validate_job_data({**VALID, "name": value})

    def test_name_too_long(self, validator):
        with pytest.raises(ValidationError, match=str(MAX_NAME_LENGTH)):
            validator.validate_job_data({**VALID, "name": "x" * (MAX_NAME_LENGTH + 1)})

    def test_invalid_cron(self, validator):
        with pytest.raises(InvalidExpressionError) as exc_info:
            validator.validate_job_data({**VALID, "cron_schedule": "not-a-cron"})
        assert exc_info.value.field == "cron_schedule"

    def test_description_limits(self, validator):
        validator.validate_job_data({**VALID, "description": "ok"})
        with pytest.raises(ValidationError):
            validator.validate_job_data({**VALID, "description": "x" * (MAX_DESCRIPTION_LENGTH + 1)})
        with pytest.raises(ValidationError):
            validator.validate_job_data({**VALID, "description": 5})

    def test_invalid_status(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_job_data({**VALID, "status": "sleeping"})
        assert exc_info.value.field == "status"

    def test_data_must_be_mapping(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_job_data({**VALID, "data": [1, 2]})

    def test_unknown_type_accepted(self, validator):
        validator.validate_job_data({**VALID, "type": "send-fax"})

    def test_incomplete_email_only_warns(self, validator):
        validator.validate_job_data({**VALID, "type": "email", "data": {"to": "a@b.c"}})


class TestPartialPayload:
    def test_empty_patch_ok(self, validator):
        validator.validate_job_data({}, partial=True)

    def test_patch_checks_only_present_fields(self, validator):
        validator.validate_job_data({"description": "new"}, partial=True)

    def test_patch_with_bad_cron(self, validator):
        with pytest.raises(InvalidExpressionError):
            validator.validate_job_data({"cron_schedule": "61 * * * *"}, partial=True)

    def test_patch_with_blank_name(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_job_data({"name": ""}, partial=True)


class TestNextRun:
    def test_calculate_next_run_time(self, validator):
        # clock starts at 2026-03-14 09:26:53 UTC
        assert validator.calculate_next_run_time("*/1 * * * *") == datetime(2026, 3, 14, 9, 27, tzinfo=UTC)

    def test_calculate_strips_expression(self, validator):
        assert validator.calculate_next_run_time(" 0 8 * * * ") == datetime(2026, 3, 15, 8, 0, tzinfo=UTC)

    def test_calculate_invalid(self, validator):
        with pytest.raises(InvalidExpressionError):
            validator.calculate_next_run_time("nope")
