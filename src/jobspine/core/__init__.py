"""jobspine core -- errors, logging, settings and the scheduling engine.

Architecture::

    errors.py          Structured error hierarchy (JobSpineError and friends)
    enums.py           JobStatus, JobType, FailurePolicy, ExecutionOutcome
    protocols.py       Connection protocol, Clock alias
    timestamps.py      ULID generation + UTC helpers (stdlib-only)
    logging.py         structlog configuration
    settings.py        JobSpineSettings (pydantic-settings)
    sqlite_conn.py     Thread-safe sqlite3 connection
    scheduling/        Cron evaluation, timers, executor, discovery, coordinator
"""
