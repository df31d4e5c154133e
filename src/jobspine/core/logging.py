"""
Structured logging for the scheduler, the API and the CLI.

A job that fails is visible through two things: its ``failed`` status and
the log line written when it failed. Events are therefore snake_case names
with key/value fields (``job_id``, ``instance_id``, ``cron_expression``)
that an aggregator can filter on::

    {"event": "job_execution_failed", "job_id": "01J...", "error": "...",
     "level": "error", "logger_name": "jobspine.core.scheduling.executor",
     "service": "jobspine", "timestamp": "2026-03-14T09:27:00.000000Z"}

Processor chain: timestamp, contextvars (per-execution bindings), level,
stack/exception info, service tag, then JSON (non-tty) or console (tty).

Examples:
    >>> configure_logging(level="DEBUG")
    >>> log = get_logger(__name__)
    >>> log.info("job_scheduled", job_id="01J0...", cron_expression="*/5 * * * *")
    >>> with LogContext(job_id="01J0...", instance_id="scheduler-01J0..."):
    ...     log.info("job_execution_started")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


class _ServiceTag:
    """Processor stamping ``service`` on every event that lacks one."""

    def __init__(self, service: str) -> None:
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", self.service)
        return event_dict


class _SysStream:
    """File-like proxy for ``sys.stdout`` / ``sys.stderr`` looked up on every write.

    Test runners and Typer's CliRunner swap the sys streams after logging is
    configured; a cached logger must still follow them.
    """

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def _target(self):
        return getattr(sys, self._name)

    def write(self, text: str) -> int:
        return self._target.write(text)

    def flush(self) -> None:
        self._target.flush()

    def isatty(self) -> bool:
        return self._target.isatty()


def _processors(service: str, json_format: bool, add_timestamp: bool) -> list[Processor]:
    chain: list[Processor] = []
    if add_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    chain += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _ServiceTag(service),
    ]
    if json_format:
        chain += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=True))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "jobspine",
    add_timestamp: bool = True,
    stream: str = "stdout",
) -> None:
    """Configure structlog (and the stdlib root logger) for this process.

    Args:
        level: DEBUG, INFO, WARNING or ERROR, any case
        json_format: None picks JSON when ``stream`` is not a terminal
        service: Value of the ``service`` field on every event
        add_timestamp: Prefix events with an ISO-8601 UTC timestamp
        stream: ``"stdout"`` or ``"stderr"``; the CLI uses stderr so command
            output stays parseable
    """
    sink = _SysStream(stream)
    numeric_level = getattr(logging, level.upper())
    if json_format is None:
        json_format = not sink.isatty()

    structlog.configure(
        processors=_processors(service, json_format, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sink),
        cache_logger_on_first_use=True,
    )

    # Timing backends log through the stdlib
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sink,
        level=numeric_level,
    )


def get_logger(name: str | None = None) -> Any:
    """structlog logger, tagged ``logger_name=<name>`` when a name is given.

    ``logger`` itself cannot be an initial value: it is the first positional
    parameter of ``structlog.wrap_logger``.
    """
    if name:
        return structlog.get_logger(name, logger_name=name)
    return structlog.get_logger()


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind keys for the duration of a block, sync or async.

    Previous values of the same keys are restored on exit, so nested
    contexts (a manual run inside a request) unwind correctly.

    Example:
        async with LogContext(job_id=job.id, instance_id=coordinator.instance_id):
            await executor.execute(job)
    """

    def __init__(self, **kwargs: Any):
        self._values = kwargs
        self._scopes: list[Any] = []

    def __enter__(self) -> LogContext:
        scope = structlog.contextvars.bound_contextvars(**self._values)
        scope.__enter__()
        self._scopes.append(scope)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._scopes.pop().__exit__(*exc_info)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
