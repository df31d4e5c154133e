"""Cron expression evaluation.

Converts a cron expression into concrete trigger instants using croniter.
Evaluation is a pure function of ``(expression, reference, timezone)``: no
clock is read here, which keeps next-run computation reproducible in tests.

┌──────────────────────────────────────────────────────────────────────────────┐
│  ACCEPTED FORMS                                                               │
│                                                                               │
│  5 fields:  minute hour day-of-month month day-of-week                        │
│             "*/5 * * * *"      every 5 minutes                                │
│                                                                               │
│  6 fields:  second minute hour day-of-month month day-of-week                 │
│             "*/10 * * * * *"   every 10 seconds (seconds FIRST)               │
│                                                                               │
│  Anything else raises InvalidExpressionError.                                 │
│                                                                               │
│  Timezone: expressions are matched in the evaluator's zone (UTC unless a      │
│  deployment override is configured); results are always aware UTC.          │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from jobspine.core.errors import ConfigError, InvalidExpressionError
from jobspine.core.timestamps import ensure_utc

SUPPORTED_FIELD_COUNTS = (5, 6)


def _split_fields(expression: object) -> list[str]:
    if not isinstance(expression, str) or not expression.strip():
        raise InvalidExpressionError(expression, reason="expression must be a non-empty string")
    fields = expression.split()
    if len(fields) not in SUPPORTED_FIELD_COUNTS:
        raise InvalidExpressionError(
            expression,
            reason=f"expected 5 or 6 fields, got {len(fields)}",
        )
    return fields


class CronEvaluator:
    """Parses cron expressions and computes trigger instants.

    Example:
        >>> evaluator = CronEvaluator()
        >>> ref = datetime(2026, 1, 1, 12, 0, 30, tzinfo=UTC)
        >>> evaluator.next_trigger("*/5 * * * *", ref)
        datetime.datetime(2026, 1, 1, 12, 5, tzinfo=datetime.timezone.utc)
    """

    def __init__(self, timezone: str = "UTC") -> None:
        try:
            self._zone = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown timezone: {timezone!r}", cause=exc) from exc
        self.timezone = timezone

    def validate(self, expression: str) -> None:
        """Raise :class:`InvalidExpressionError` unless ``expression`` is usable."""
        fields = _split_fields(expression)
        seconds_first = len(fields) == 6
        if not croniter.is_valid(expression, second_at_beginning=seconds_first):
            raise InvalidExpressionError(expression, reason="field value out of range or malformed")

    def is_valid(self, expression: str) -> bool:
        try:
            self.validate(expression)
        except InvalidExpressionError:
            return False
        return True

    def next_trigger(self, expression: str, reference: datetime) -> datetime:
        """Earliest instant strictly after ``reference`` matching ``expression``.

        Args:
            expression: 5- or 6-field cron expression
            reference: Reference instant (naive values are taken as UTC)

        Returns:
            Aware UTC datetime

        Raises:
            InvalidExpressionError: Malformed expression or field ranges
        """
        return self.upcoming(expression, reference, count=1)[0]

    def upcoming(self, expression: str, reference: datetime, count: int = 5) -> list[datetime]:
        """The next ``count`` trigger instants after ``reference``."""
        self.validate(expression)
        seconds_first = len(expression.split()) == 6
        reference = ensure_utc(reference)
        local_reference = reference.astimezone(self._zone)

        try:
            itr = croniter(expression, local_reference, second_at_beginning=seconds_first)
            results: list[datetime] = []
            while len(results) < count:
                candidate = ensure_utc(itr.get_next(datetime))
                # croniter drops sub-second precision from the start time
                if candidate <= reference:
                    continue
                results.append(candidate)
        except (ValueError, KeyError) as exc:
            raise InvalidExpressionError(expression, reason=str(exc), cause=exc) from exc
        return results


_default_evaluator = CronEvaluator()


def next_trigger(expression: str, reference: datetime, timezone: str = "UTC") -> datetime:
    """Module-level shortcut for :meth:`CronEvaluator.next_trigger`."""
    evaluator = _default_evaluator if timezone == "UTC" else CronEvaluator(timezone)
    return evaluator.next_trigger(expression, reference)


def validate_expression(expression: str) -> None:
    """Module-level shortcut for :meth:`CronEvaluator.validate`."""
    _default_evaluator.validate(expression)


__all__ = ["CronEvaluator", "next_trigger", "validate_expression", "SUPPORTED_FIELD_COUNTS"]
