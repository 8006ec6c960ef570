"""Tests for SqlMigrationStore on SQLite: atomic apply and the run lock."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from schemaspine.core.errors import InvalidConfigError, MigrationLockError
from schemaspine.migrations.definition import MigrationDefinition
from schemaspine.migrations.lock import RunLock
from schemaspine.migrations.store import RUN_LOCK_KEY, SqlMigrationStore, is_busy_error
from schemaspine.ops.sqlite_conn import SqliteConnection


class TestHistory:
    def test_read_history_empty_after_bootstrap(self, sqlite_store):
        sqlite_store.ensure_history()
        assert sqlite_store.read_history() == []

    def test_apply_and_record_persists_body_and_record(self, sqlite_store, sqlite_conn, table_names):
        sqlite_store.ensure_history()
        record = sqlite_store.apply_and_record(
            MigrationDefinition.sql("001", "create users", "CREATE TABLE users (id INTEGER PRIMARY KEY);")
        )

        assert record.identifier == "001"
        assert record.applied_at.tzinfo is not None
        assert "users" in table_names(sqlite_conn)
        assert [r.identifier for r in sqlite_store.read_history()] == ["001"]

    def test_record_stores_description_and_checksum(self, sqlite_store, sqlite_conn):
        sqlite_store.ensure_history()
        definition = MigrationDefinition.sql("001", "create users", "CREATE TABLE users (id INTEGER);")
        sqlite_store.apply_and_record(definition)

        sqlite_conn.execute("SELECT description, checksum FROM _schema_migrations WHERE identifier = ?", ("001",))
        row = sqlite_conn.fetchone()
        assert row[0] == "create users"
        assert row[1] == definition.checksum

    def test_history_survives_reconnect(self, db_path, sqlite_store):
        from schemaspine.ops.sqlite_conn import SqliteConnection

        sqlite_store.ensure_history()
        sqlite_store.apply_and_record(MigrationDefinition.sql("001", "t", "CREATE TABLE t (x TEXT);"))

        conn = SqliteConnection(str(db_path))
        try:
            assert [r.identifier for r in SqlMigrationStore(conn).read_history()] == ["001"]
        finally:
            conn.close()

    def test_history_sorted_numerically(self, sqlite_store):
        sqlite_store.ensure_history()
        for identifier in ("10", "9", "100"):
            sqlite_store.apply_and_record(MigrationDefinition.sql(identifier, "noop", "SELECT 1;"))
        assert [r.identifier for r in sqlite_store.read_history()] == ["9", "10", "100"]

    def test_duplicate_record_rejected_by_primary_key(self, sqlite_store):
        sqlite_store.ensure_history()
        definition = MigrationDefinition.sql("001", "noop", "SELECT 1;")
        sqlite_store.apply_and_record(definition)
        with pytest.raises(Exception):
            sqlite_store.apply_and_record(definition)
        assert len(sqlite_store.read_history()) == 1

    def test_custom_table_names(self, sqlite_conn, table_names):
        store = SqlMigrationStore(sqlite_conn, history_table="schema_history", lock_table="schema_lock")
        store.ensure_history()
        store.acquire_lock("me", 60)
        assert {"schema_history", "schema_lock"} <= table_names(sqlite_conn)

    def test_invalid_table_name_rejected(self, sqlite_conn):
        with pytest.raises(InvalidConfigError):
            SqlMigrationStore(sqlite_conn, history_table="history; DROP TABLE users")


class TestAtomicApply:
    def test_sqlite_store_is_atomic(self, sqlite_store):
        assert sqlite_store.supports_atomic_apply is True

    def test_failed_body_leaves_no_trace(self, sqlite_store, sqlite_conn, table_names):
        sqlite_store.ensure_history()
        broken = MigrationDefinition.sql(
            "001",
            "half-broken",
            "CREATE TABLE widgets (id INTEGER);\nINSERT INTO no_such_table VALUES (1);",
        )

        with pytest.raises(Exception, match="no_such_table"):
            sqlite_store.apply_and_record(broken)

        assert "widgets" not in table_names(sqlite_conn)
        assert sqlite_store.read_history() == []
        assert sqlite_conn.in_transaction is False

    def test_failed_callable_rolls_back_its_writes(self, sqlite_store, sqlite_conn):
        sqlite_store.ensure_history()
        sqlite_store.apply_and_record(MigrationDefinition.sql("001", "t", "CREATE TABLE t (x TEXT);"))

        def seed_then_fail(conn) -> None:
            conn.execute("INSERT INTO t (x) VALUES (?)", ("partial",))
            raise ValueError("bad data")

        with pytest.raises(ValueError):
            sqlite_store.apply_and_record(MigrationDefinition.callable("002", "seed", seed_then_fail))

        sqlite_conn.execute("SELECT COUNT(*) FROM t")
        assert sqlite_conn.fetchone()[0] == 0
        assert [r.identifier for r in sqlite_store.read_history()] == ["001"]

    def test_multi_statement_body_with_trigger(self, sqlite_store, sqlite_conn):
        sqlite_store.ensure_history()
        sql = """
            CREATE TABLE items (id INTEGER PRIMARY KEY, updated TEXT);
            CREATE TABLE audit (item_id INTEGER);
            CREATE TRIGGER items_audit AFTER UPDATE ON items
            BEGIN
                INSERT INTO audit (item_id) VALUES (NEW.id);
            END;
        """
        sqlite_store.apply_and_record(MigrationDefinition.sql("001", "items", sql))

        sqlite_conn.execute("INSERT INTO items (id, updated) VALUES (1, 'a')")
        sqlite_conn.execute("UPDATE items SET updated = 'b' WHERE id = 1")
        sqlite_conn.execute("SELECT item_id FROM audit")
        assert [row[0] for row in sqlite_conn.fetchall()] == [1]


class TestRunLock:
    def test_acquire_and_release(self, sqlite_store):
        assert sqlite_store.acquire_lock("a", 60) is True
        assert sqlite_store.lock_holder() == "a"
        assert sqlite_store.release_lock("a") is True
        assert sqlite_store.lock_holder() is None

    def test_second_owner_rejected(self, sqlite_store):
        assert sqlite_store.acquire_lock("a", 60)
        assert sqlite_store.acquire_lock("b", 60) is False
        assert sqlite_store.lock_holder() == "a"

    def test_reacquire_by_holder_refreshes(self, sqlite_store):
        assert sqlite_store.acquire_lock("a", 60)
        assert sqlite_store.acquire_lock("a", 60) is True

    def test_release_by_non_holder_is_noop(self, sqlite_store):
        sqlite_store.acquire_lock("a", 60)
        assert sqlite_store.release_lock("b") is False
        assert sqlite_store.lock_holder() == "a"

    def test_expired_lock_is_taken_over(self, sqlite_store, sqlite_conn):
        sqlite_store.acquire_lock("crashed", 60)
        past = (datetime.now(UTC) - timedelta(minutes=5)).isoformat()
        sqlite_conn.execute(
            "UPDATE _schema_migration_locks SET expires_at = ? WHERE lock_key = ?",
            (past, RUN_LOCK_KEY),
        )

        assert sqlite_store.lock_holder() is None
        assert sqlite_store.acquire_lock("b", 60) is True
        assert sqlite_store.lock_holder() == "b"



@pytest.fixture()
def writer(db_path):
    """Second connection on the same file, for holding a write transaction open."""
    conn = SqliteConnection(str(db_path))
    yield conn
    conn.rollback()
    conn.close()


@pytest.fixture()
def impatient_store(db_path):
    conn = SqliteConnection(str(db_path), timeout=0.1)
    yield SqlMigrationStore(conn, "sqlite")
    conn.close()


class TestBusyLockTable:
    def test_acquire_is_refused_while_another_connection_writes(self, impatient_store, writer):
        assert impatient_store.acquire_lock("a", 60)
        assert impatient_store.release_lock("a")

        writer.begin()
        writer.execute("CREATE TABLE big (id INTEGER)")

        assert impatient_store.acquire_lock("b", 60) is False
        assert impatient_store.lock_holder() is None

        writer.rollback()
        assert impatient_store.acquire_lock("b", 60) is True

    def test_busy_before_lock_table_exists(self, impatient_store, writer):
        writer.begin()
        writer.execute("CREATE TABLE big (id INTEGER)")

        assert impatient_store.acquire_lock("b", 60) is False
        assert impatient_store.lock_holder() is None

        writer.rollback()
        assert impatient_store.acquire_lock("b", 60) is True
        assert impatient_store.lock_holder() == "b"

    def test_run_lock_gives_up_with_lock_error(self, impatient_store, writer):
        writer.begin()
        writer.execute("CREATE TABLE big (id INTEGER)")

        with pytest.raises(MigrationLockError) as exc_info:
            RunLock(impatient_store, "b", wait_seconds=0).acquire()

        assert exc_info.value.context.store == "sqlite"

    def test_run_lock_waits_out_a_short_write(self, impatient_store, writer):
        writer.begin()
        writer.execute("CREATE TABLE big (id INTEGER)")
        calls = []

        def sleep(seconds: float) -> None:
            calls.append(seconds)
            writer.commit()

        lock = RunLock(impatient_store, "b", wait_seconds=5, poll_interval=0.01, sleep=sleep)
        lock.acquire()

        assert lock.held is True
        assert calls == [0.01]

    @pytest.mark.parametrize(
        "error,expected",
        [
            (sqlite3.OperationalError("database is locked"), True),
            (RuntimeError("canceling statement due to lock timeout"), True),
            (sqlite3.OperationalError("no such table: users"), False),
        ],
    )
    def test_is_busy_error(self, error, expected):
        assert is_busy_error(error) is expected


class TestInMemoryStore:
    def test_sql_bodies_are_split_not_executed(self, memory_store):
        memory_store.apply_and_record(
            MigrationDefinition.sql("001", "two tables", "CREATE TABLE a (x INT);\nCREATE TABLE b (y INT);")
        )
        assert memory_store.statements == ["CREATE TABLE a (x INT)", "CREATE TABLE b (y INT)"]

    def test_callable_receives_the_store(self, memory_store):
        def add_flag(store) -> None:
            store.state["flag"] = True

        memory_store.apply_and_record(MigrationDefinition.callable("001", "flag", add_flag))
        assert memory_store.state == {"flag": True}

    def test_record_is_written_once(self, memory_store):
        memory_store.record("001")
        with pytest.raises(KeyError):
            memory_store.record("001")

    def test_not_atomic(self, memory_store):
        assert memory_store.supports_atomic_apply is False
