"""
schemaspine - schema migration engine.

Applies an ordered, versioned set of schema changes to a SQLite or
PostgreSQL store exactly once each, recording history in the store
itself, with a run-wide advisory lock and an HTTP trigger.
"""

__version__ = "0.1.0"

from schemaspine.migrations import (  # noqa: E402
    InMemoryMigrationStore,
    MigrationDefinition,
    MigrationRegistry,
    MigrationRunner,
    MigrationRunSummary,
    SqlMigrationStore,
)

__all__ = [
    "InMemoryMigrationStore",
    "MigrationDefinition",
    "MigrationRegistry",
    "MigrationRunSummary",
    "MigrationRunner",
    "SqlMigrationStore",
    "__version__",
]
