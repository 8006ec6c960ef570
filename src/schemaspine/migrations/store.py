"""SQL migration store — history table and run lock inside the migrated database.

Manifesto:
    The history of applied migrations must live in the store being
    migrated, so that "is migration 003 applied?" and "does table X
    exist?" can never disagree. On SQLite and PostgreSQL DDL is
    transactional, so a migration body and its history row are committed
    together or not at all.

Tables (names configurable)::

    _schema_migrations
        identifier   TEXT PRIMARY KEY      -- one row per applied migration
        description  TEXT
        checksum     TEXT
        applied_at   TEXT | TIMESTAMPTZ

    _schema_migration_locks
        lock_key     TEXT PRIMARY KEY
        locked_by    TEXT                  -- runner owner id
        locked_at    TEXT                  -- ISO-8601 UTC
        expires_at   TEXT                  -- ISO-8601 UTC

Lock protocol (one row per lock key):
    acquire  delete the row if expired, then INSERT-or-ignore; success if a
             row was inserted or the caller already holds it (expiry refreshed)
    release  delete the row only if the caller holds it
    busy     a conflicting write transaction on another connection counts
             as "not acquired"; the caller keeps polling

Tags:
    migrations, store, history, advisory-lock, TTL, transactions, schemaspine

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from schemaspine.core.dialect import Dialect, get_dialect
from schemaspine.core.errors import InvalidConfigError
from schemaspine.core.logging import get_logger
from schemaspine.core.protocols import Connection
from schemaspine.migrations.definition import (
    CallableOperation,
    ExecutionRecord,
    MigrationDefinition,
    SqlOperation,
    utcnow,
)
from schemaspine.migrations.sql import split_sql

logger = get_logger(__name__)

DEFAULT_HISTORY_TABLE = "_schema_migrations"
DEFAULT_LOCK_TABLE = "_schema_migration_locks"
RUN_LOCK_KEY = "schema_migrations"

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Driver messages for lock contention (SQLite busy timeout, PostgreSQL lock_timeout / NOWAIT)
_BUSY_MARKERS = ("database is locked", "database is busy", "lock timeout", "could not obtain lock")


def _check_table(name: str, key: str) -> str:
    if not _TABLE_NAME.match(name):
        raise InvalidConfigError(key, name, f"Invalid table name for {key}: {name!r}")
    return name


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value).replace(" ", "T", 1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_busy_error(exc: BaseException) -> bool:
    """True if ``exc`` reports that another connection holds a conflicting lock."""
    text = str(exc).lower()
    return any(marker in text for marker in _BUSY_MARKERS)


def execute_operation(conn: Connection, definition: MigrationDefinition) -> None:
    """Run a migration body against ``conn`` (no transaction handling)."""
    operation = definition.apply
    if isinstance(operation, SqlOperation):
        for statement in split_sql(operation.sql):
            conn.execute(statement)
    elif isinstance(operation, CallableOperation):
        operation.fn(conn)
    else:
        raise TypeError(f"Unsupported migration body: {type(operation).__name__}")


class SqlMigrationStore:
    """Migration store over a ``Connection`` (SQLite or PostgreSQL).

    ``apply_and_record`` is atomic when the connection can open an
    explicit transaction (``begin()``), which both
    :class:`~schemaspine.ops.sqlite_conn.SqliteConnection` and
    :class:`~schemaspine.core.orm.session.SAConnectionBridge` provide.

    Example:
        >>> from schemaspine.ops.sqlite_conn import SqliteConnection
        >>> store = SqlMigrationStore(SqliteConnection())
        >>> store.ensure_history()
        >>> store.read_history()
        []
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | str = "sqlite",
        *,
        history_table: str = DEFAULT_HISTORY_TABLE,
        lock_table: str = DEFAULT_LOCK_TABLE,
    ) -> None:
        self.conn = conn
        self.dialect = get_dialect(dialect) if isinstance(dialect, str) else dialect
        self.history_table = _check_table(history_table, "history_table")
        self.lock_table = _check_table(lock_table, "lock_table")
        self.supports_atomic_apply = callable(getattr(conn, "begin", None))
        self._lock_table_ready = False

    @property
    def backend(self) -> str:
        return self.dialect.name

    def _ph(self, index: int) -> str:
        """Dialect placeholder at 1-based position."""
        return self.dialect.placeholder(index - 1)

    def _begin(self) -> None:
        if self.supports_atomic_apply:
            self.conn.begin()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def ensure_history(self) -> None:
        """Create the history table if it does not exist."""
        ts = self.dialect.timestamp_type()
        try:
            self._begin()
            self.conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.history_table} (
                    identifier TEXT PRIMARY KEY,
                    description TEXT NOT NULL DEFAULT '',
                    checksum TEXT,
                    applied_at {ts} NOT NULL {self.dialect.timestamp_default_now()}
                )
                """
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def _ensure_lock_table(self) -> None:
        if self._lock_table_ready:
            return
        try:
            self._begin()
            self.conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.lock_table} (
                    lock_key TEXT PRIMARY KEY,
                    locked_by TEXT NOT NULL,
                    locked_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
                """
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        self._lock_table_ready = True

    def read_history(self) -> list[ExecutionRecord]:
        try:
            cursor = self.conn.execute(f"SELECT identifier, applied_at FROM {self.history_table}")
            rows = cursor.fetchall()
        except Exception:
            self.conn.rollback()
            raise
        # Read-only, but PostgreSQL keeps the transaction open until told otherwise
        self.conn.commit()
        records = [ExecutionRecord(identifier=row[0], applied_at=_parse_timestamp(row[1])) for row in rows]
        return sorted(records, key=lambda r: int(r.identifier))

    def apply_and_record(self, definition: MigrationDefinition) -> ExecutionRecord:
        """Execute ``definition`` and insert its history row in one transaction.

        On any error the transaction is rolled back, so neither the schema
        change nor the history row persists, and the error propagates.
        """
        applied_at = utcnow()
        try:
            self._begin()
            execute_operation(self.conn, definition)
            self.conn.execute(
                f"INSERT INTO {self.history_table} (identifier, description, checksum, applied_at) "
                f"VALUES ({self.dialect.placeholders(4)})",
                (definition.identifier, definition.description, definition.checksum, applied_at.isoformat()),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return ExecutionRecord(identifier=definition.identifier, applied_at=applied_at)

    # ------------------------------------------------------------------
    # Run lock
    # ------------------------------------------------------------------

    def acquire_lock(self, owner: str, ttl_seconds: int, *, key: str = RUN_LOCK_KEY) -> bool:
        """Try once to take the run lock for ``owner``.

        Returns:
            True if ``owner`` holds the lock afterwards. False if another
            owner holds an unexpired lock, or if another connection's write
            transaction kept the lock table busy past the driver's timeout.
        """
        now = utcnow()
        expires = now + timedelta(seconds=ttl_seconds)
        try:
            self._ensure_lock_table()
            self._begin()
            # Clean up an expired lock left by a crashed runner
            self.conn.execute(
                f"DELETE FROM {self.lock_table} WHERE lock_key = {self._ph(1)} AND expires_at < {self._ph(2)}",
                (key, now.isoformat()),
            )
            insert_sql = self.dialect.insert_or_ignore(
                self.lock_table, ["lock_key", "locked_by", "locked_at", "expires_at"]
            )
            cursor = self.conn.execute(insert_sql, (key, owner, now.isoformat(), expires.isoformat()))
            if cursor.rowcount > 0:
                self.conn.commit()
                return True

            # Check if we already hold the lock
            cursor = self.conn.execute(
                f"SELECT locked_by FROM {self.lock_table} WHERE lock_key = {self._ph(1)} AND locked_by = {self._ph(2)}",
                (key, owner),
            )
            if cursor.fetchone():
                self.conn.execute(
                    f"UPDATE {self.lock_table} SET expires_at = {self._ph(1)} "
                    f"WHERE lock_key = {self._ph(2)} AND locked_by = {self._ph(3)}",
                    (expires.isoformat(), key, owner),
                )
                self.conn.commit()
                logger.debug("lock.refreshed", lock_key=key, owner=owner)
                return True

            self.conn.commit()
            return False
        except Exception as e:
            self.conn.rollback()
            if is_busy_error(e):
                logger.debug("lock.busy", lock_key=key, owner=owner, error=str(e))
                return False
            raise

    def release_lock(self, owner: str, *, key: str = RUN_LOCK_KEY) -> bool:
        """Release the run lock if ``owner`` holds it."""
        self._ensure_lock_table()
        try:
            self._begin()
            cursor = self.conn.execute(
                f"DELETE FROM {self.lock_table} WHERE lock_key = {self._ph(1)} AND locked_by = {self._ph(2)}",
                (key, owner),
            )
            released = cursor.rowcount > 0
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return released

    def lock_holder(self, *, key: str = RUN_LOCK_KEY) -> str | None:
        """Owner of the unexpired run lock, or ``None`` (also when the lock
        table is too busy to read)."""
        try:
            self._ensure_lock_table()
            cursor = self.conn.execute(
                f"SELECT locked_by FROM {self.lock_table} WHERE lock_key = {self._ph(1)} AND expires_at >= {self._ph(2)}",
                (key, utcnow().isoformat()),
            )
            row = cursor.fetchone()
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            if is_busy_error(e):
                logger.debug("lock.busy", lock_key=key, error=str(e))
                return None
            raise
        return row[0] if row else None

    def __repr__(self) -> str:
        return f"SqlMigrationStore(backend={self.backend!r}, history_table={self.history_table!r})"


__all__ = [
    "DEFAULT_HISTORY_TABLE",
    "DEFAULT_LOCK_TABLE",
    "RUN_LOCK_KEY",
    "SqlMigrationStore",
    "execute_operation",
    "is_busy_error",
]
