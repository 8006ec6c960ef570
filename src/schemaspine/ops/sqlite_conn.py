"""SQLite connection adapter.

Wraps a raw :class:`sqlite3.Connection` to satisfy the
:class:`~schemaspine.core.protocols.Connection` protocol, and adds an
explicit ``begin()`` so a migration body (DDL included) and its history
row can share one transaction.

A bare ``sqlite3.Connection`` exposes ``execute()`` (returns a cursor)
but not ``fetchone()`` / ``fetchall()`` at the connection level.  This
adapter bridges the gap so store code using the ``Connection`` protocol
works identically on SQLite and PostgreSQL.

Usage::

    from schemaspine.ops.sqlite_conn import SqliteConnection

    conn = SqliteConnection(":memory:")
    conn.begin()
    conn.execute("CREATE TABLE t (id INTEGER)")
    conn.execute("INSERT INTO t VALUES (?)", (1,))
    conn.commit()
    conn.close()
"""

from __future__ import annotations

import sqlite3
from typing import Any


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol.

    Maintains a single cursor so that ``execute`` / ``fetchone`` /
    ``fetchall`` operate on the same result set.

    The underlying connection runs in autocommit mode
    (``isolation_level=None``); transactions are opened only by
    :meth:`begin`. In sqlite3's default mode DDL is committed implicitly,
    which would split a migration from its history row.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        row_factory: Any = sqlite3.Row,
        timeout: float = 5.0,
    ) -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None, timeout=timeout)
        self._conn.row_factory = row_factory
        self._cursor = self._conn.cursor()

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor.execute(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def begin(self) -> None:
        """Open an explicit write transaction (no-op if one is already open).

        ``BEGIN IMMEDIATE`` takes the write lock up front; a competing
        writer waits in the busy handler for up to ``timeout`` seconds.
        """
        if not self._conn.in_transaction:
            self._cursor.execute("BEGIN IMMEDIATE")

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    # -- convenience -------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"
