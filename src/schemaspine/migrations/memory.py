"""In-memory migration store.

A non-transactional store for tests and for embedding the runner in
processes that keep their "schema" in Python objects. Because the body
and the history write are separate steps here, it is also the store that
can produce :class:`~schemaspine.core.errors.HistoryWriteFailure`.

Failure injection::

    store = InMemoryMigrationStore()
    store.fail_history_write_for.add("003")   # body runs, record write fails
    store.fail_bootstrap = True               # ensure_history() raises
"""

from __future__ import annotations

import threading
import time
from typing import Any

from schemaspine.core.errors import HistoryWriteFailure
from schemaspine.migrations.definition import (
    CallableOperation,
    ExecutionRecord,
    MigrationDefinition,
    SqlOperation,
    utcnow,
)
from schemaspine.migrations.sql import split_sql


class InMemoryMigrationStore:
    """Dict-backed store. Thread-safe; the run lock is a TTL'd owner slot.

    SQL bodies are not executed, only recorded in ``statements``.
    Callable bodies receive the store itself as their connection, so a
    test migration can mutate ``store.state``.
    """

    supports_atomic_apply = False

    def __init__(self, records: list[ExecutionRecord] | None = None) -> None:
        self._mutex = threading.Lock()
        self._history: dict[str, ExecutionRecord] = {}
        self._bootstrapped = False
        self._lock_owner: str | None = None
        self._lock_expires: float = 0.0

        self.state: dict[str, Any] = {}
        self.statements: list[str] = []
        self.apply_calls: list[str] = []

        self.fail_bootstrap = False
        self.fail_history_write_for: set[str] = set()

        for record in records or []:
            self._history[record.identifier] = record

    @property
    def backend(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def ensure_history(self) -> None:
        if self.fail_bootstrap:
            raise RuntimeError("history store unavailable")
        self._bootstrapped = True

    def read_history(self) -> list[ExecutionRecord]:
        with self._mutex:
            return sorted(self._history.values(), key=lambda r: int(r.identifier))

    def apply_and_record(self, definition: MigrationDefinition) -> ExecutionRecord:
        identifier = definition.identifier
        self.apply_calls.append(identifier)

        operation = definition.apply
        if isinstance(operation, SqlOperation):
            self.statements.extend(split_sql(operation.sql))
        elif isinstance(operation, CallableOperation):
            operation.fn(self)

        try:
            return self.record(identifier)
        except Exception as e:
            raise HistoryWriteFailure(identifier, e) from e

    def record(self, identifier: str) -> ExecutionRecord:
        """Insert an execution record. Raises if one already exists."""
        if identifier in self.fail_history_write_for:
            raise RuntimeError(f"history write rejected for {identifier}")
        with self._mutex:
            if identifier in self._history:
                raise KeyError(f"execution record {identifier} already exists")
            record = ExecutionRecord(identifier=identifier, applied_at=utcnow())
            self._history[identifier] = record
            return record

    @property
    def bootstrapped(self) -> bool:
        return self._bootstrapped

    # ------------------------------------------------------------------
    # Run lock
    # ------------------------------------------------------------------

    def acquire_lock(self, owner: str, ttl_seconds: int) -> bool:
        with self._mutex:
            now = time.monotonic()
            if self._lock_owner is None or self._lock_owner == owner or self._lock_expires < now:
                self._lock_owner = owner
                self._lock_expires = now + ttl_seconds
                return True
            return False

    def release_lock(self, owner: str) -> bool:
        with self._mutex:
            if self._lock_owner != owner:
                return False
            self._lock_owner = None
            return True

    def lock_holder(self) -> str | None:
        with self._mutex:
            if self._lock_owner is not None and self._lock_expires >= time.monotonic():
                return self._lock_owner
            return None


__all__ = ["InMemoryMigrationStore"]
