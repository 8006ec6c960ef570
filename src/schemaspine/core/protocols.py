"""
Canonical protocol definitions for schemaspine.

Every protocol lives here exactly once. Implementations live elsewhere
(``schemaspine.ops.sqlite_conn``, ``schemaspine.core.orm.session``,
``schemaspine.migrations.store``, ``schemaspine.migrations.memory``).

Protocols:
    Connection       Synchronous DB-API-like connection (SQLite, SQLAlchemy bridge)
    MigrationStore   Persistence the migration runner depends on
    LockingStore     A MigrationStore that can also hold a run-wide advisory lock

Guardrails:
    ❌ DON'T: Duplicate Connection(Protocol) in other modules
    ✅ DO: Import from schemaspine.core.protocols

    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts

Tags:
    protocol, connection, store, migrations, schemaspine, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from schemaspine.migrations.definition import ExecutionRecord, MigrationDefinition

# ---------------------------------------------------------------------------
# Database Connection Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous database connection.

    ``sqlite3``-style: ``execute`` returns a cursor-like object (with
    ``rowcount``), and ``fetchone``/``fetchall`` read the last result.
    Satisfied by :class:`~schemaspine.ops.sqlite_conn.SqliteConnection`
    and :class:`~schemaspine.core.orm.session.SAConnectionBridge`.

    Example:
        >>> def count_rows(conn: Connection, table: str) -> int:
        ...     conn.execute(f"SELECT COUNT(*) FROM {table}")
        ...     return conn.fetchone()[0]
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute one SQL statement with positional parameters."""
        ...

    def fetchone(self) -> Any:
        """Fetch one row from the last executed statement."""
        ...

    def fetchall(self) -> list:
        """Fetch all rows from the last executed statement."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...


# ---------------------------------------------------------------------------
# Migration Store Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class MigrationStore(Protocol):
    """
    Everything the migration runner needs from persistence.

    ``supports_atomic_apply`` tells the runner whether
    ``apply_and_record`` executes the migration body and writes its
    execution record in one transaction. When it is ``False``, the store
    must raise :class:`~schemaspine.core.errors.HistoryWriteFailure` (not a
    plain exception) when the body succeeded but the record write failed.
    """

    supports_atomic_apply: bool

    @property
    def backend(self) -> str:
        """Short backend name for logging (``sqlite``, ``postgresql``, ``memory``)."""
        ...

    def ensure_history(self) -> None:
        """Create the history structure if absent. Safe to call on every run."""
        ...

    def read_history(self) -> list[ExecutionRecord]:
        """Return every execution record, ordered by identifier."""
        ...

    def apply_and_record(self, definition: MigrationDefinition) -> ExecutionRecord:
        """Apply one migration and persist its execution record."""
        ...


@runtime_checkable
class LockingStore(MigrationStore, Protocol):
    """A store that can hold a cooperative, run-wide advisory lock."""

    def acquire_lock(self, owner: str, ttl_seconds: int) -> bool:
        """Try once to take the lock. ``True`` if held by ``owner`` afterwards."""
        ...

    def release_lock(self, owner: str) -> bool:
        """Release the lock if ``owner`` holds it."""
        ...

    def lock_holder(self) -> str | None:
        """Current unexpired lock holder, if any."""
        ...


__all__ = [
    "Connection",
    "MigrationStore",
    "LockingStore",
]
