"""SQLite connection adapter.

Wraps a raw :class:`sqlite3.Connection` to satisfy the
:class:`~jobspine.core.protocols.Connection` protocol, and serialises access
with a lock: the job repository is called concurrently from the API thread,
the discovery loop and every timer firing.

Usage::

    conn = SqliteConnection(":memory:")
    with conn.locked():
        conn.execute("SELECT 1")
        row = conn.fetchone()
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol.

    Maintains a single cursor so that ``execute`` / ``fetchone`` /
    ``fetchall`` operate on the same result set. Callers that need a
    statement and its fetch to be paired hold :meth:`locked` around both.
    """

    def __init__(self, path: str = ":memory:", *, row_factory: Any = sqlite3.Row) -> None:
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = row_factory
        self._cursor = self._conn.cursor()
        self._lock = threading.RLock()

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        with self._lock:
            self._cursor.execute(sql, params)
            return self._cursor

    def executescript(self, script: str) -> None:
        with self._lock:
            self._conn.executescript(script)

    def fetchone(self) -> Any:
        with self._lock:
            return self._cursor.fetchone()

    def fetchall(self) -> list:
        with self._lock:
            return self._cursor.fetchall()

    def commit(self) -> None:
        with self._lock:
            self._conn.commit()

    def rollback(self) -> None:
        with self._lock:
            self._conn.rollback()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # -- convenience -------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[SqliteConnection]:
        """Hold the connection for a multi-statement unit of work."""
        with self._lock:
            yield self

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self.path!r})"
