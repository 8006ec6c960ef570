"""
Shared pytest fixtures for schemaspine tests.

- SQLite connection/store fixtures backed by ``tmp_path``
- In-memory store fixture
- Registry builders for the common "users" migration sequence
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from schemaspine.core.settings import MigrationSettings
from schemaspine.migrations.definition import MigrationDefinition
from schemaspine.migrations.memory import InMemoryMigrationStore
from schemaspine.migrations.registry import MigrationRegistry
from schemaspine.migrations.store import SqlMigrationStore
from schemaspine.ops.sqlite_conn import SqliteConnection

# =============================================================================
# Migration sets
# =============================================================================

USERS_SQL = {
    "001": ("create table users", "CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT NOT NULL);"),
    "002": ("add column users.name", "ALTER TABLE users ADD COLUMN name TEXT;"),
    "003": ("create index on users.email", "CREATE INDEX ix_users_email ON users (email);"),
    "004": ("create table sessions", "CREATE TABLE sessions (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id));"),
}


def users_definitions(*identifiers: str) -> list[MigrationDefinition]:
    """Definitions from ``USERS_SQL`` (all four when none given)."""
    ids = identifiers or tuple(USERS_SQL)
    return [MigrationDefinition.sql(i, USERS_SQL[i][0], USERS_SQL[i][1]) for i in ids]


@pytest.fixture()
def users_defs() -> Callable[..., list[MigrationDefinition]]:
    return users_definitions


@pytest.fixture()
def users_registry() -> Callable[..., MigrationRegistry]:
    """Factory: ``users_registry("001", "002")`` → registry of those migrations."""

    def _make(*identifiers: str) -> MigrationRegistry:
        return MigrationRegistry(users_definitions(*identifiers))

    return _make


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "app.db"


@pytest.fixture()
def sqlite_conn(db_path: Path) -> Generator[SqliteConnection, None, None]:
    conn = SqliteConnection(str(db_path))
    yield conn
    conn.close()


@pytest.fixture()
def sqlite_store(sqlite_conn: SqliteConnection) -> SqlMigrationStore:
    return SqlMigrationStore(sqlite_conn, "sqlite")


@pytest.fixture()
def memory_store() -> InMemoryMigrationStore:
    return InMemoryMigrationStore()


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    """Each runner property is checked against both store kinds."""
    if request.param == "memory":
        yield InMemoryMigrationStore()
        return
    conn = SqliteConnection(str(tmp_path / "param.db"))
    yield SqlMigrationStore(conn, "sqlite")
    conn.close()


def _table_names(conn: SqliteConnection) -> set[str]:
    conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'index')")
    return {row[0] for row in conn.fetchall()}


@pytest.fixture()
def table_names() -> Callable[[SqliteConnection], set[str]]:
    """Names of the tables and indexes in a SQLite database."""
    return _table_names


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep SCHEMASPINE_* variables and .env files of the host out of tests."""
    import os

    for key in list(os.environ):
        if key.startswith("SCHEMASPINE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def migration_settings(db_path: Path) -> MigrationSettings:
    return MigrationSettings(database_url=f"sqlite:///{db_path}", lock_wait_seconds=0)
