"""
Protocol definitions for the seams between the scheduler and its collaborators.

The scheduling core never imports a concrete store: it depends on the
:class:`~jobspine.jobs.store.JobStore` protocol, and the SQLite repository
depends on :class:`Connection` rather than on ``sqlite3`` directly.
Protocols give structural typing, so test doubles satisfy them without
inheriting anything.

Tags:
    protocols, typing, structural-subtyping, jobspine
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNC DB-API style connection interface.

    ``execute`` leaves its result set on the connection; ``fetchone`` and
    ``fetchall`` read from it. :class:`~jobspine.core.sqlite_conn.SqliteConnection`
    adapts ``sqlite3`` to this shape.
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement."""
        ...

    def fetchone(self) -> Any:
        """Fetch one row from the last execute."""
        ...

    def fetchall(self) -> list:
        """Fetch all rows from the last execute."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back current transaction."""
        ...


Clock = Callable[[], datetime]
"""Zero-argument callable returning the current aware UTC instant."""
