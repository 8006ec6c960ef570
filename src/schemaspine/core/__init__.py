"""schemaspine core -- errors, logging, settings, connections, dialects.

Architecture::

    errors.py          Structured error hierarchy (SchemaSpineError, migration errors)
    logging.py         structlog configuration, LogContext
    settings.py        pydantic-settings (SchemaSpineBaseSettings, MigrationSettings)
    protocols.py       Connection, MigrationStore, LockingStore
    dialect.py         SQL fragments for SQLite / PostgreSQL
    connection.py      Connection factory (create_connection)
    orm/               SQLAlchemy engine + Connection bridge (PostgreSQL)
"""

from schemaspine.core.connection import ConnectionInfo, create_connection
from schemaspine.core.dialect import Dialect, get_dialect
from schemaspine.core.errors import (
    ApplyFailure,
    BootstrapError,
    DuplicateIdentifierError,
    ErrorCategory,
    HistoryWriteFailure,
    MalformedIdentifierError,
    MigrationError,
    MigrationLockError,
    RegistryIntegrityError,
    SchemaSpineError,
)
from schemaspine.core.logging import LogContext, configure_logging, get_logger
from schemaspine.core.protocols import Connection, LockingStore, MigrationStore
from schemaspine.core.settings import MigrationSettings, SchemaSpineBaseSettings

__all__ = [
    "ApplyFailure",
    "BootstrapError",
    "Connection",
    "ConnectionInfo",
    "Dialect",
    "DuplicateIdentifierError",
    "ErrorCategory",
    "HistoryWriteFailure",
    "LockingStore",
    "LogContext",
    "MalformedIdentifierError",
    "MigrationError",
    "MigrationLockError",
    "MigrationSettings",
    "MigrationStore",
    "RegistryIntegrityError",
    "SchemaSpineBaseSettings",
    "SchemaSpineError",
    "configure_logging",
    "create_connection",
    "get_dialect",
    "get_logger",
]
