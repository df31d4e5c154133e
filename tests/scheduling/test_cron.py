"""Tests for CronEvaluator."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from jobspine.core.errors import ConfigError, InvalidExpressionError
from jobspine.core.scheduling.cron import CronEvaluator, next_trigger, validate_expression

REF = datetime(2026, 1, 1, 12, 0, 30, tzinfo=UTC)


class TestValidate:
    @pytest.mark.parametrize(
        "expression",
        ["*/5 * * * *", "0 8 * * 1-5", "30 2 1 * *", "*/10 * * * * *", "0 0 12 * * 0"],
    )
    def test_accepts_five_and_six_fields(self, evaluator, expression):
        evaluator.validate(expression)
        assert evaluator.is_valid(expression)

    @pytest.mark.parametrize(
        "expression",
        ["not-a-cron", "", "   ", "* * * *", "* * * * * * *", "61 * * * *", "* 25 * * *", "@daily"],
    )
    def test_rejects_malformed(self, evaluator, expression):
        with pytest.raises(InvalidExpressionError):
            evaluator.validate(expression)
        assert evaluator.is_valid(expression) is False

    def test_non_string_rejected(self, evaluator):
        with pytest.raises(InvalidExpressionError):
            evaluator.validate(None)  # type: ignore[arg-type]

    def test_error_carries_expression(self, evaluator):
        with pytest.raises(InvalidExpressionError) as exc_info:
            evaluator.validate("* * * *")
        assert exc_info.value.expression == "* * * *"
        assert exc_info.value.field == "cron_schedule"
        assert "5 or 6 fields" in exc_info.value.reason

    def test_module_shortcut(self):
        validate_expression("*/5 * * * *")
        with pytest.raises(InvalidExpressionError):
            validate_expression("nope")


class TestNextTrigger:
    def test_strictly_later_than_reference(self, evaluator):
        result = evaluator.next_trigger("*/5 * * * *", REF)
        assert result > REF
        assert result == datetime(2026, 1, 1, 12, 5, tzinfo=UTC)

    def test_matching_reference_yields_following_occurrence(self, evaluator):
        ref = datetime(2026, 1, 1, 12, 5, tzinfo=UTC)
        assert evaluator.next_trigger("*/5 * * * *", ref) == datetime(2026, 1, 1, 12, 10, tzinfo=UTC)

    def test_chained_calls_advance_by_period(self, evaluator):
        current = evaluator.next_trigger("*/5 * * * *", REF)
        for _ in range(20):
            following = evaluator.next_trigger("*/5 * * * *", current)
            assert following - current == timedelta(minutes=5)
            current = following

    def test_every_minute_rounds_up_to_next_whole_minute(self, evaluator):
        result = evaluator.next_trigger("*/1 * * * *", REF)
        assert result == datetime(2026, 1, 1, 12, 1, tzinfo=UTC)

    def test_six_field_is_seconds_first(self, evaluator):
        result = evaluator.next_trigger("*/10 * * * * *", REF)
        assert result == datetime(2026, 1, 1, 12, 0, 40, tzinfo=UTC)

    def test_result_is_aware_utc(self, evaluator):
        result = evaluator.next_trigger("0 8 * * *", REF)
        assert result.utcoffset() == timedelta(0)

    def test_naive_reference_treated_as_utc(self, evaluator):
        naive = REF.replace(tzinfo=None)
        assert evaluator.next_trigger("*/5 * * * *", naive) == evaluator.next_trigger("*/5 * * * *", REF)

    def test_foreign_offset_reference(self, evaluator):
        ref = REF.astimezone(timezone(timedelta(hours=5)))
        assert evaluator.next_trigger("*/5 * * * *", ref) == datetime(2026, 1, 1, 12, 5, tzinfo=UTC)

    def test_deterministic(self, evaluator):
        assert evaluator.next_trigger("17 */3 * * *", REF) == evaluator.next_trigger("17 */3 * * *", REF)

    def test_invalid_expression_raises(self, evaluator):
        with pytest.raises(InvalidExpressionError):
            evaluator.next_trigger("not-a-cron", REF)

    def test_module_shortcut(self):
        assert next_trigger("*/5 * * * *", REF) == datetime(2026, 1, 1, 12, 5, tzinfo=UTC)


class TestTimezone:
    def test_zone_override_shifts_wall_clock(self):
        berlin = CronEvaluator("Europe/Berlin")
        # 08:00 Berlin in January is 07:00 UTC
        assert berlin.next_trigger("0 8 * * *", REF) == datetime(2026, 1, 2, 7, 0, tzinfo=UTC)

    def test_default_is_utc(self, evaluator):
        assert evaluator.timezone == "UTC"
        assert evaluator.next_trigger("0 8 * * *", REF) == datetime(2026, 1, 2, 8, 0, tzinfo=UTC)

    def test_unknown_zone_is_config_error(self):
        with pytest.raises(ConfigError):
            CronEvaluator("Mars/Olympus_Mons")


class TestUpcoming:
    def test_returns_count_ascending(self, evaluator):
        instants = evaluator.upcoming("0 * * * *", REF, count=3)
        assert instants == [
            datetime(2026, 1, 1, 13, 0, tzinfo=UTC),
            datetime(2026, 1, 1, 14, 0, tzinfo=UTC),
            datetime(2026, 1, 1, 15, 0, tzinfo=UTC),
        ]
