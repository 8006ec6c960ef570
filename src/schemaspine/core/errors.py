"""
Structured error types for schemaspine.

Provides a typed error hierarchy with metadata for retry decisions, error
categorization, and root cause analysis through error chaining. The
migration engine raises the errors in the ``MIGRATION ERRORS`` section;
the remaining classes cover the ambient layers (configuration and database
access).

Every SchemaSpineError carries:
- **Category:** What kind of error (database, config, migration, ...)
- **Retryable:** Whether the operation can be retried automatically
- **Context:** Structured metadata (migration identifier, run id, ...)
- **Cause:** Chained underlying exception for root cause analysis

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different failure modes
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry metadata for logging and operator action
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      SchemaSpineError                            │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  MigrationError            ConfigError       DatabaseError       │
        │  (MIGRATION)               (CONFIG)          (DATABASE)          │
        │       │                        │                                 │
        │  RegistryIntegrityError   InvalidConfig                          │
        │    DuplicateIdentifier                                           │
        │    MalformedIdentifier                                           │
        │  BootstrapError                                                  │
        │  ApplyFailure                                                    │
        │  HistoryWriteFailure                                             │
        │  MigrationLockError (retryable)                                  │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ApplyFailure("002", RuntimeError("no such table"), executed=["001"])
    >>> error.identifier
    '002'
    >>> error.to_dict()["executed"]
    ['001']

Guardrails:
    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

    ❌ DON'T: Report HistoryWriteFailure as a plain ApplyFailure
    ✅ DO: Keep them distinct; a retry after a lost history write re-runs
       an already-applied migration body

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    schemaspine, migrations

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories map directly to the ``category`` field of serialized errors
    and to the ops-layer error codes surfaced by the administrative trigger.

    Attributes:
        DATABASE: Connection, query, transaction errors
        MIGRATION: Registry, bootstrap, apply and history errors
        CONFIG: Missing config, invalid settings
        CONCURRENCY: Lock contention
        INTERNAL: Bugs, unexpected state

    Tags:
        error-category, classification, schemaspine
    """

    DATABASE = "DATABASE"         # Connection, query, transaction
    MIGRATION = "MIGRATION"       # Registry, bootstrap, apply, history
    CONFIG = "CONFIG"             # Missing config, invalid settings
    CONCURRENCY = "CONCURRENCY"   # Lock contention
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields for the metadata the migration engine attaches most often;
    anything else goes into ``metadata``. ``to_dict()`` serializes only the
    fields that are set.

    Examples:
        >>> ctx = ErrorContext(migration="003", run_id="abc-123")
        >>> ctx.to_dict()
        {'migration': '003', 'run_id': 'abc-123'}

    Attributes:
        migration: Identifier of the migration involved
        run_id: Identifier of the runner invocation
        store: Store backend name (``sqlite``, ``postgresql``, ``memory``)
        table: Table involved (history or lock table)
        metadata: Additional key-value pairs
    """

    migration: str | None = None
    run_id: str | None = None
    store: str | None = None
    table: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["migration", "run_id", "store", "table"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SchemaSpineError(Exception):
    """
    Base exception for all schemaspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` class
    attributes to provide sensible defaults for their domain.

    Examples:
        >>> error = SchemaSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(migration="001").context.migration
        '001'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SchemaSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise BootstrapError("History table missing").with_context(
                store="postgresql", table="_schema_migrations"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.context:
            context_dict = self.context.to_dict()
            if context_dict:
                result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# MIGRATION ERRORS
# =============================================================================


class MigrationError(SchemaSpineError):
    """Base class for schema migration engine errors."""

    default_category = ErrorCategory.MIGRATION
    default_retryable = False


class RegistryIntegrityError(MigrationError):
    """
    The migration registry cannot be built into a single total order.

    Raised at registry construction time, before the runner touches the
    store. The runner refuses to run an ambiguous sequence.
    """

    def __init__(self, message: str, *, identifier: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.identifier = identifier
        if identifier is not None:
            self.context.migration = identifier


class DuplicateIdentifierError(RegistryIntegrityError):
    """Two migration definitions share an identifier."""

    def __init__(self, identifier: str, message: str | None = None):
        super().__init__(
            message or f"Duplicate migration identifier: {identifier!r}",
            identifier=identifier,
        )


class MalformedIdentifierError(RegistryIntegrityError):
    """A migration identifier cannot be ordered against the others."""

    def __init__(self, identifier: str, message: str | None = None):
        super().__init__(
            message or f"Malformed migration identifier: {identifier!r} (expected digits, e.g. '001')",
            identifier=identifier,
        )


class BootstrapError(MigrationError):
    """The history-tracking structure could not be created or read."""


class _RunProgressError(MigrationError):
    """Failure that carries how far the current run got."""

    def __init__(
        self,
        message: str,
        *,
        identifier: str,
        executed: list[str] | None = None,
        skipped: list[str] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.identifier = identifier
        self.executed = list(executed or [])
        self.skipped = list(skipped or [])
        self.context.migration = identifier

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["identifier"] = self.identifier
        result["executed"] = list(self.executed)
        result["skipped"] = list(self.skipped)
        return result


class ApplyFailure(_RunProgressError):
    """
    A migration's apply operation failed.

    No execution record exists for ``identifier``; re-invoking the runner
    retries exactly this migration and everything after it.
    """

    def __init__(
        self,
        identifier: str,
        cause: BaseException | None = None,
        *,
        executed: list[str] | None = None,
        skipped: list[str] | None = None,
    ):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Migration {identifier} failed{detail}",
            identifier=identifier,
            executed=executed,
            skipped=skipped,
            cause=cause,
        )


class HistoryWriteFailure(_RunProgressError):
    """
    A migration was applied but its execution record could not be written.

    The store has been mutated without being recorded as such. Re-running
    would execute the migration body a second time; an operator has to
    insert the missing history row (or revert the change) by hand.
    """

    def __init__(
        self,
        identifier: str,
        cause: BaseException | None = None,
        *,
        executed: list[str] | None = None,
        skipped: list[str] | None = None,
    ):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Migration {identifier} was applied but recording it failed{detail}; "
            "manual intervention required before re-running",
            identifier=identifier,
            executed=executed,
            skipped=skipped,
            cause=cause,
        )


class MigrationLockError(MigrationError):
    """Another runner holds the migration lock."""

    default_category = ErrorCategory.CONCURRENCY
    default_retryable = True

    def __init__(self, message: str, *, holder: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.holder = holder
        if holder is not None:
            self.context.metadata["holder"] = holder


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(SchemaSpineError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(SchemaSpineError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


__all__ = [
    # Category enum
    "ErrorCategory",
    # Context
    "ErrorContext",
    # Base
    "SchemaSpineError",
    # Migration
    "MigrationError",
    "RegistryIntegrityError",
    "DuplicateIdentifierError",
    "MalformedIdentifierError",
    "BootstrapError",
    "ApplyFailure",
    "HistoryWriteFailure",
    "MigrationLockError",
    # Config
    "ConfigError",
    "InvalidConfigError",
    # Database
    "DatabaseError",
]
