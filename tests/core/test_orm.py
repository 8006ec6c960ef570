"""Tests for the SQLAlchemy connection bridge (exercised on SQLite)."""

from __future__ import annotations

import pytest

from schemaspine.core.orm.session import (
    SAConnectionBridge,
    SchemaSpineSession,
    _rewrite_placeholders,
    create_schemaspine_engine,
)
from schemaspine.core.protocols import Connection
from schemaspine.migrations.definition import MigrationDefinition
from schemaspine.migrations.store import SqlMigrationStore


@pytest.fixture()
def bridge(tmp_path):
    engine = create_schemaspine_engine(f"sqlite:///{tmp_path / 'orm.db'}")
    conn = SAConnectionBridge(SchemaSpineSession(bind=engine))
    yield conn
    conn.close()
    engine.dispose()


class TestRewritePlaceholders:
    def test_positional_to_named(self):
        assert _rewrite_placeholders("SELECT * FROM t WHERE a = ? AND b = ?") == (
            "SELECT * FROM t WHERE a = :p0 AND b = :p1"
        )


class TestBridge:
    def test_satisfies_connection_protocol(self, bridge):
        assert isinstance(bridge, Connection)

    def test_execute_and_fetch(self, bridge):
        bridge.execute("CREATE TABLE t (id INTEGER, name TEXT)")
        bridge.execute("INSERT INTO t (id, name) VALUES (?, ?)", (1, "a"))
        bridge.execute("INSERT INTO t (id, name) VALUES (?, ?)", (2, "b"))
        bridge.commit()

        bridge.execute("SELECT id, name FROM t WHERE id = ?", (2,))
        assert bridge.fetchone() == (2, "b")

        bridge.execute("SELECT id FROM t ORDER BY id")
        assert bridge.fetchall() == [(1,), (2,)]

    def test_rowcount_and_non_row_results(self, bridge):
        bridge.execute("CREATE TABLE t (id INTEGER)")
        for i in (1, 2, 3):
            bridge.execute("INSERT INTO t (id) VALUES (?)", (i,))
        bridge.execute("DELETE FROM t WHERE id > ?", (1,))
        assert bridge.rowcount == 2
        assert bridge.fetchone() is None
        assert bridge.fetchall() == []

    def test_rollback_discards_dml(self, bridge):
        bridge.execute("CREATE TABLE t (id INTEGER)")
        bridge.commit()

        bridge.begin()
        bridge.execute("INSERT INTO t (id) VALUES (?)", (1,))
        bridge.rollback()

        bridge.execute("SELECT COUNT(*) FROM t")
        assert bridge.fetchone() == (0,)

    def test_literal_question_mark_without_parameters(self, bridge):
        bridge.execute("CREATE TABLE t (note TEXT DEFAULT 'why?')")
        bridge.execute("INSERT INTO t DEFAULT VALUES")
        bridge.execute("SELECT note FROM t")
        assert bridge.fetchone() == ("why?",)


class TestStoreOverBridge:
    def test_history_and_lock(self, bridge):
        store = SqlMigrationStore(bridge, "sqlite")
        assert store.supports_atomic_apply is True

        store.ensure_history()
        store.apply_and_record(MigrationDefinition.sql("001", "create t", "CREATE TABLE t (x TEXT);"))
        history = store.read_history()
        assert [r.identifier for r in history] == ["001"]
        assert history[0].applied_at.tzinfo is not None

        assert store.acquire_lock("a", 60) is True
        assert store.acquire_lock("b", 60) is False
        assert store.lock_holder() == "a"
        assert store.release_lock("a") is True
