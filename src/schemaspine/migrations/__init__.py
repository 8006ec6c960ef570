"""Schema migration engine.

Modules
-------
definition   MigrationDefinition, ExecutionRecord, run summary and status types
registry     MigrationRegistry (validated, ordered catalog)
runner       MigrationRunner (applies pending migrations)
store        SqlMigrationStore (SQLite / PostgreSQL history and run lock)
memory       InMemoryMigrationStore (non-transactional, for tests)
lock         RunLock (run-wide advisory lock with wait/poll)
sql          split_sql (statement splitter for .sql bodies)
"""

from __future__ import annotations

from schemaspine.migrations.definition import (
    CallableOperation,
    ExecutionRecord,
    MigrationDefinition,
    MigrationRunSummary,
    MigrationStatus,
    SqlOperation,
)
from schemaspine.migrations.lock import RunLock
from schemaspine.migrations.memory import InMemoryMigrationStore
from schemaspine.migrations.registry import MigrationRegistry
from schemaspine.migrations.runner import MigrationRunner, run_pending
from schemaspine.migrations.sql import split_sql
from schemaspine.migrations.store import SqlMigrationStore

__all__ = [
    "CallableOperation",
    "ExecutionRecord",
    "InMemoryMigrationStore",
    "MigrationDefinition",
    "MigrationRegistry",
    "MigrationRunSummary",
    "MigrationRunner",
    "MigrationStatus",
    "RunLock",
    "SqlMigrationStore",
    "SqlOperation",
    "run_pending",
    "split_sql",
]
