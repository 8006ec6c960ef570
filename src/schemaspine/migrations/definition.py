"""Migration data model.

Types:
    SqlOperation         Migration body given as SQL text
    CallableOperation    Migration body given as ``fn(conn)``
    MigrationDefinition  One versioned, named schema change
    ExecutionRecord      Proof that a definition was applied (one per identifier)
    MigrationStatus      Applied/pending view of one definition
    MigrationRunSummary  ``executed`` / ``skipped`` lists returned by a run

Identifiers are non-empty ASCII digit strings (``"001"``,
``"20250101120000"``) ordered by integer value, so ``"2"`` sorts before
``"010"`` and ``"3"`` collides with ``"003"``.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from schemaspine.core.errors import MalformedIdentifierError

_IDENTIFIER = re.compile(r"^[0-9]+$")


def parse_identifier(identifier: str) -> int:
    """Return the ordering key of ``identifier``.

    Raises:
        MalformedIdentifierError: If it is not a non-empty digit string.
    """
    if not isinstance(identifier, str) or not _IDENTIFIER.match(identifier):
        raise MalformedIdentifierError(str(identifier))
    return int(identifier)


def utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Migration bodies
# =============================================================================


@dataclass(frozen=True)
class SqlOperation:
    """Raw SQL, possibly several ``;``-terminated statements."""

    sql: str
    kind: Literal["sql"] = field(default="sql", init=False)

    @property
    def fingerprint(self) -> str:
        return self.sql


@dataclass(frozen=True)
class CallableOperation:
    """Python migration body, called as ``fn(conn)`` with a ``Connection``."""

    fn: Callable[[Any], None]
    kind: Literal["callable"] = field(default="callable", init=False)

    @property
    def fingerprint(self) -> str:
        module = getattr(self.fn, "__module__", "") or ""
        name = getattr(self.fn, "__qualname__", repr(self.fn))
        return f"{module}.{name}"


Operation = SqlOperation | CallableOperation


# =============================================================================
# Definitions and records
# =============================================================================


@dataclass(frozen=True)
class MigrationDefinition:
    """A single versioned schema change.

    The ``apply`` body is deterministic but not assumed idempotent; the
    runner guarantees it executes at most once per store.

    Example:
        >>> m = MigrationDefinition("001", "create users", SqlOperation("CREATE TABLE users (id INTEGER)"))
        >>> m.order_key
        1
    """

    identifier: str
    description: str
    apply: Operation
    source: str | None = None

    def __post_init__(self) -> None:
        parse_identifier(self.identifier)
        if not isinstance(self.apply, (SqlOperation, CallableOperation)):
            raise TypeError(
                f"Migration {self.identifier}: apply must be SqlOperation or CallableOperation, "
                f"got {type(self.apply).__name__}"
            )

    @property
    def order_key(self) -> int:
        return int(self.identifier)

    @property
    def checksum(self) -> str:
        """SHA-256 of the SQL text, or of the callable's qualified name."""
        return hashlib.sha256(self.apply.fingerprint.encode("utf-8")).hexdigest()

    @classmethod
    def sql(cls, identifier: str, description: str, sql: str, *, source: str | None = None) -> MigrationDefinition:
        return cls(identifier, description, SqlOperation(sql), source=source)

    @classmethod
    def callable(
        cls, identifier: str, description: str, fn: Callable[[Any], None], *, source: str | None = None
    ) -> MigrationDefinition:
        return cls(identifier, description, CallableOperation(fn), source=source)

    def __repr__(self) -> str:
        return f"MigrationDefinition({self.identifier!r}, {self.description!r}, kind={self.apply.kind})"


@dataclass(frozen=True)
class ExecutionRecord:
    """A migration that has been fully applied. Never mutated or deleted."""

    identifier: str
    applied_at: datetime


@dataclass(frozen=True)
class MigrationStatus:
    """Per-migration state, as reported by ``MigrationRunner.status()``."""

    identifier: str
    description: str
    state: Literal["applied", "pending"]
    applied_at: datetime | None = None
    checksum: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "description": self.description,
            "state": self.state,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
            "checksum": self.checksum,
        }


@dataclass
class MigrationRunSummary:
    """Outcome of a successful run.

    ``executed`` holds identifiers applied during this run, ``skipped``
    those already applied beforehand. Both are in ascending order.
    """

    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"executed": list(self.executed), "skipped": list(self.skipped), "dry_run": self.dry_run}


__all__ = [
    "CallableOperation",
    "ExecutionRecord",
    "MigrationDefinition",
    "MigrationRunSummary",
    "MigrationStatus",
    "Operation",
    "SqlOperation",
    "parse_identifier",
    "utcnow",
]
