"""Migration runner.

Reads the registry and the store's execution history, applies every
pending migration in ascending identifier order, records each one, and
returns which identifiers were executed and which were skipped.

Run sequence::

    acquire run lock (optional)      -> MigrationLockError
    store.ensure_history()           -> BootstrapError
    store.read_history()             -> BootstrapError
    for each definition, ascending:
        applied?  -> skipped
        pending?  -> refresh run lock    -> MigrationLockError (stop)
                     store.apply_and_record()
                       body failed     -> ApplyFailure   (stop)
                       record failed   -> HistoryWriteFailure (stop)
    release run lock

A failed run leaves every earlier migration recorded, so invoking the
runner again resumes exactly at the failed migration.
"""

from __future__ import annotations

import os
import socket
from uuid import uuid4

from schemaspine.core.errors import (
    ApplyFailure,
    BootstrapError,
    HistoryWriteFailure,
)
from schemaspine.core.logging import LogContext, get_logger
from schemaspine.core.protocols import MigrationStore
from schemaspine.migrations.definition import (
    ExecutionRecord,
    MigrationDefinition,
    MigrationRunSummary,
    MigrationStatus,
)
from schemaspine.migrations.lock import RunLock, supports_locking
from schemaspine.migrations.registry import MigrationRegistry

logger = get_logger(__name__)


def default_owner() -> str:
    """Lock owner id: ``host:pid:random``."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:8]}"


class MigrationRunner:
    """Applies pending migrations from a registry to a store.

    Parameters
    ----------
    registry
        The validated, ordered set of migrations.
    store
        Where history lives and where migrations are applied.
    use_lock
        Hold the store's run lock for the whole run (ignored when the
        store has no lock support).
    lock_ttl_seconds, lock_wait_seconds, poll_interval
        Lock expiry, how long to wait for a competing runner, and how
        often to retry meanwhile.
    owner
        Lock owner id. Defaults to ``host:pid:random``.

    Example::

        from schemaspine.migrations import MigrationRegistry, MigrationRunner, SqlMigrationStore
        from schemaspine.ops.sqlite_conn import SqliteConnection

        registry = MigrationRegistry.from_directory("migrations")
        runner = MigrationRunner(registry, SqlMigrationStore(SqliteConnection("app.db")))
        summary = runner.run()
        print(f"Applied {len(summary.executed)} migrations")
    """

    def __init__(
        self,
        registry: MigrationRegistry,
        store: MigrationStore,
        *,
        use_lock: bool = True,
        lock_ttl_seconds: int = 300,
        lock_wait_seconds: float = 30.0,
        poll_interval: float = 0.5,
        owner: str | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.use_lock = use_lock
        self.lock_ttl_seconds = lock_ttl_seconds
        self.lock_wait_seconds = lock_wait_seconds
        self.poll_interval = poll_interval
        self.owner = owner or default_owner()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, *, dry_run: bool = False) -> MigrationRunSummary:
        """Apply all pending migrations in order.

        With ``dry_run=True`` nothing is applied or recorded; ``executed``
        lists what a real run would apply.

        Raises:
            MigrationLockError: The run lock could not be acquired in time,
                or expired mid-run and was taken by another runner.
            BootstrapError: History could not be ensured or read.
            ApplyFailure: A migration body failed; nothing of it persisted.
            HistoryWriteFailure: A body succeeded but its record was not written.
        """
        run_id = uuid4().hex[:12]
        with LogContext(run_id=run_id):
            logger.info(
                "migration.run_started",
                store=self.store.backend,
                registered=len(self.registry),
                dry_run=dry_run,
            )
            lock = self._make_lock()
            if lock is not None:
                lock.acquire()
            try:
                summary = self._run(dry_run=dry_run, lock=lock)
            finally:
                if lock is not None:
                    lock.release()

            logger.info(
                "migration.run_completed",
                executed=summary.executed,
                skipped_count=len(summary.skipped),
                dry_run=dry_run,
            )
            return summary

    def history(self) -> list[ExecutionRecord]:
        """Execution records in the store, ascending."""
        self._bootstrap()
        return self._read_history()

    def pending(self) -> list[MigrationDefinition]:
        """Registered migrations with no execution record, ascending."""
        applied = {r.identifier for r in self.history()}
        return [d for d in self.registry if d.identifier not in applied]

    def status(self) -> list[MigrationStatus]:
        """Applied/pending state of every registered migration."""
        records = {r.identifier: r for r in self.history()}
        statuses = []
        for definition in self.registry:
            record = records.get(definition.identifier)
            statuses.append(
                MigrationStatus(
                    identifier=definition.identifier,
                    description=definition.description,
                    state="applied" if record else "pending",
                    applied_at=record.applied_at if record else None,
                    checksum=definition.checksum,
                )
            )
        return statuses

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _make_lock(self) -> RunLock | None:
        if not self.use_lock:
            return None
        if not supports_locking(self.store):
            logger.debug("migration.lock_unsupported", store=self.store.backend)
            return None
        return RunLock(
            self.store,
            self.owner,
            ttl_seconds=self.lock_ttl_seconds,
            wait_seconds=self.lock_wait_seconds,
            poll_interval=self.poll_interval,
        )

    def _bootstrap(self) -> None:
        try:
            self.store.ensure_history()
        except Exception as e:
            raise BootstrapError(f"Could not create migration history: {e}", cause=e).with_context(
                store=self.store.backend
            ) from e

    def _read_history(self) -> list[ExecutionRecord]:
        try:
            return self.store.read_history()
        except Exception as e:
            raise BootstrapError(f"Could not read migration history: {e}", cause=e).with_context(
                store=self.store.backend
            ) from e

    def _run(self, *, dry_run: bool, lock: RunLock | None = None) -> MigrationRunSummary:
        self._bootstrap()
        applied = {r.identifier for r in self._read_history()}

        summary = MigrationRunSummary(dry_run=dry_run)
        for definition in self.registry:
            identifier = definition.identifier
            if identifier in applied:
                summary.skipped.append(identifier)
                logger.debug("migration.skipped", migration=identifier)
                continue

            if dry_run:
                summary.executed.append(identifier)
                logger.info("migration.would_apply", migration=identifier, description=definition.description)
                continue

            if lock is not None:
                lock.refresh()

            try:
                self.store.apply_and_record(definition)
            except HistoryWriteFailure as e:
                logger.error("migration.history_write_failed", migration=identifier, error=str(e.cause or e))
                raise HistoryWriteFailure(
                    identifier, e.cause, executed=summary.executed, skipped=summary.skipped
                ) from (e.cause or e)
            except Exception as e:
                logger.error(
                    "migration.failed",
                    migration=identifier,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ApplyFailure(
                    identifier, e, executed=summary.executed, skipped=summary.skipped
                ) from e

            summary.executed.append(identifier)
            logger.info("migration.applied", migration=identifier, description=definition.description)

        return summary


def run_pending(registry: MigrationRegistry, store: MigrationStore, **kwargs) -> MigrationRunSummary:
    """Shortcut for ``MigrationRunner(registry, store, **kwargs).run()``."""
    return MigrationRunner(registry, store, **kwargs).run()


__all__ = [
    "MigrationRunner",
    "default_owner",
    "run_pending",
]
