"""SQLAlchemy engine factory and Connection bridge.

Manifesto:
    The migration store talks to every backend through the
    ``schemaspine.core.protocols.Connection`` protocol.  For PostgreSQL the
    connection is a SQLAlchemy ``Session`` wrapped by ``SAConnectionBridge``
    so the same store code (and the same transaction boundaries) work on
    SQLite and PostgreSQL alike.

This module provides:

* ``create_schemaspine_engine`` -- Create a SA engine from a URL.
* ``SchemaSpineSession``        -- A pre-configured ``Session`` subclass.
* ``SAConnectionBridge``        -- Wraps a SA ``Session`` to satisfy the
  ``Connection`` protocol, plus ``begin()`` for explicit transactions.

Tags:
    schemaspine, orm, sqlalchemy, session, engine, bridge, connection

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session


def create_schemaspine_engine(
    url: str = "sqlite:///schemaspine.db",
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_timeout: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql://…``, etc.)
    echo:
        If ``True``, log all SQL to stdout.
    pool_size, max_overflow, pool_timeout:
        Connection pool parameters (ignored for SQLite).
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """

    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow
    if pool_timeout is not None:
        pool_kwargs["pool_timeout"] = pool_timeout

    return _sa_create_engine(url, echo=echo, **pool_kwargs, **kwargs)


class SchemaSpineSession(Session):
    """Pre-configured session with ``expire_on_commit=False``."""

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def _rewrite_placeholders(sql: str) -> str:
    """Rewrite positional ``?`` placeholders to ``:p0, :p1, …`` bind names."""
    rewritten, idx = [], 0
    for ch in sql:
        if ch == "?":
            rewritten.append(f":p{idx}")
            idx += 1
        else:
            rewritten.append(ch)
    return "".join(rewritten)


class SAConnectionBridge:
    """Adapter that makes a SQLAlchemy ``Session`` look like ``schemaspine.core.protocols.Connection``.

    Statements without parameters (migration DDL) go straight to the driver
    so that ``:`` casts, ``%`` and ``?`` inside the SQL are left alone.
    Parameterised statements use ``?`` placeholders, rewritten to bind
    parameters for ``text()``.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._last_result: Any = None

    # --- execute ---

    def execute(self, sql: str, parameters: Sequence[Any] | None = None) -> SAConnectionBridge:
        if parameters:
            mapping = {f"p{i}": v for i, v in enumerate(parameters)}
            self._last_result = self._session.execute(text(_rewrite_placeholders(sql)), mapping)
        else:
            self._last_result = self._session.connection().exec_driver_sql(
                sql, execution_options={"no_parameters": True}
            )
        return self

    # --- fetch ---

    def fetchone(self) -> tuple[Any, ...] | None:
        if self._last_result is None or not self._last_result.returns_rows:
            return None
        row = self._last_result.fetchone()
        return tuple(row) if row is not None else None

    def fetchall(self) -> list[tuple[Any, ...]]:
        if self._last_result is None or not self._last_result.returns_rows:
            return []
        return [tuple(r) for r in self._last_result.fetchall()]

    # --- transaction ---

    def begin(self) -> None:
        """Start a transaction unless the session already has one."""
        if not self._session.in_transaction():
            self._session.begin()

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()

    def close(self) -> None:
        self._session.close()

    # --- properties ---

    @property
    def rowcount(self) -> int:
        """Rows affected by the last statement (``-1`` if unknown)."""
        if self._last_result is None:
            return -1
        return self._last_result.rowcount

    @property
    def session(self) -> Session:
        """Access the underlying SA session."""
        return self._session
