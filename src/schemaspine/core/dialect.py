"""SQL dialect abstraction for the migration store.

The history table, the lock table and their queries differ slightly
between backends (placeholders, timestamp defaults, conflict handling).
The store generates those fragments through a ``Dialect`` so it never
imports a database driver.

Architecture::

    ┌──────────┐ ┌──────────────┐
    │ SQLite   │ │ PostgreSQL   │
    │ ?, ?, ?  │ │ ?, ?, ?      │  (bridge rewrites to bind params)
    │ datetime │ │ NOW()        │
    └──────────┘ └──────────────┘

PostgreSQL is reached through the SQLAlchemy session bridge, which
accepts ``?`` placeholders and rewrites them to bind parameters, so both
dialects emit ``?``.

Examples:
    >>> from schemaspine.core.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.insert_or_ignore("locks", ["k", "v"])
    'INSERT OR IGNORE INTO locks (k, v) VALUES (?, ?)'

Tags:
    dialect, sql, portability, database, schemaspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL fragment generator for one database backend."""

    @property
    def name(self) -> str:
        """Backend name (``sqlite``, ``postgresql``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Parameter placeholder at 0-based position ``index``."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholders for ``count`` parameters."""
        ...

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        """INSERT that silently does nothing on a key conflict."""
        ...

    def timestamp_type(self) -> str:
        """Column type for timestamps."""
        ...

    def timestamp_default_now(self) -> str:
        """Column DEFAULT clause producing the current time."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect — ``?`` placeholders, ``datetime('now')``."""

    @property
    def name(self) -> str:
        return "sqlite"

    # -- Placeholders ------------------------------------------------------

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    # -- DML ---------------------------------------------------------------

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT OR IGNORE INTO {table} ({cols}) VALUES ({ph})"

    # -- DDL ---------------------------------------------------------------

    def timestamp_type(self) -> str:
        return "TEXT"

    def timestamp_default_now(self) -> str:
        return "DEFAULT (datetime('now'))"


class PostgreSQLDialect:
    """PostgreSQL dialect — ``NOW()``, ``ON CONFLICT DO NOTHING``."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT INTO {table} ({cols}) VALUES ({ph}) ON CONFLICT DO NOTHING"

    def timestamp_type(self) -> str:
        return "TIMESTAMPTZ"

    def timestamp_default_now(self) -> str:
        return "DEFAULT NOW()"


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "get_dialect",
]
