"""
Migration operations.

The single seam between the administrative trigger and the engine.
Wraps :class:`~schemaspine.migrations.runner.MigrationRunner` and turns its
exceptions into :class:`~schemaspine.ops.result.OperationResult` failures
with stable error codes:

=====================  ==========================  ===========
Exception              Code                        Retryable
=====================  ==========================  ===========
ApplyFailure           ``APPLY_FAILED``            no
HistoryWriteFailure    ``HISTORY_WRITE_FAILED``    no
BootstrapError         ``BOOTSTRAP_FAILED``        no
RegistryIntegrityError ``REGISTRY_INVALID``        no
MigrationLockError     ``LOCKED``                  yes
=====================  ==========================  ===========
"""

from __future__ import annotations

from typing import Any

from schemaspine.core.errors import (
    ApplyFailure,
    BootstrapError,
    ErrorCategory,
    HistoryWriteFailure,
    MigrationLockError,
    RegistryIntegrityError,
    SchemaSpineError,
)
from schemaspine.core.logging import get_logger
from schemaspine.core.protocols import MigrationStore
from schemaspine.core.settings import MigrationSettings
from schemaspine.migrations.definition import MigrationRunSummary, MigrationStatus
from schemaspine.migrations.registry import MigrationRegistry
from schemaspine.migrations.runner import MigrationRunner
from schemaspine.migrations.store import SqlMigrationStore
from schemaspine.ops.context import OperationContext
from schemaspine.ops.result import OperationResult, PagedResult, start_timer

logger = get_logger(__name__)

_ERROR_CODES: list[tuple[type[SchemaSpineError], str]] = [
    (HistoryWriteFailure, "HISTORY_WRITE_FAILED"),
    (ApplyFailure, "APPLY_FAILED"),
    (BootstrapError, "BOOTSTRAP_FAILED"),
    (RegistryIntegrityError, "REGISTRY_INVALID"),
    (MigrationLockError, "LOCKED"),
]


def _store(ctx: OperationContext, settings: MigrationSettings | None) -> SqlMigrationStore:
    settings = settings or MigrationSettings()
    return SqlMigrationStore(
        ctx.conn,
        ctx.backend,
        history_table=settings.history_table,
        lock_table=settings.lock_table,
    )


def _runner(
    ctx: OperationContext,
    registry: MigrationRegistry,
    store: MigrationStore | None,
    settings: MigrationSettings | None,
) -> MigrationRunner:
    settings = settings or MigrationSettings()
    return MigrationRunner(
        registry,
        store if store is not None else _store(ctx, settings),
        use_lock=settings.use_lock,
        lock_ttl_seconds=settings.lock_ttl_seconds,
        lock_wait_seconds=settings.lock_wait_seconds,
    )


def error_code_for(exc: BaseException) -> str:
    for exc_type, code in _ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return "INTERNAL"


def _fail(
    exc: Exception, elapsed_ms: float, result_cls: type[OperationResult] = OperationResult
) -> OperationResult[Any]:
    details: dict[str, Any] = {}
    if isinstance(exc, (ApplyFailure, HistoryWriteFailure)):
        details = {
            "failed_identifier": exc.identifier,
            "executed": list(exc.executed),
            "skipped": list(exc.skipped),
        }
    elif isinstance(exc, RegistryIntegrityError) and exc.identifier is not None:
        details = {"failed_identifier": exc.identifier}
    elif isinstance(exc, MigrationLockError) and exc.holder is not None:
        details = {"holder": exc.holder}

    if isinstance(exc, SchemaSpineError):
        category, retryable, message = exc.category, exc.retryable, exc.message
    else:
        category, retryable, message = ErrorCategory.INTERNAL, False, f"Migration run failed: {exc}"

    return result_cls.fail(
        error_code_for(exc),
        message,
        category=category,
        details=details,
        retryable=retryable,
        elapsed_ms=elapsed_ms,
    )


def run_migrations(
    ctx: OperationContext,
    registry: MigrationRegistry,
    *,
    store: MigrationStore | None = None,
    settings: MigrationSettings | None = None,
) -> OperationResult[MigrationRunSummary]:
    """Apply every pending migration in ``registry``.

    Honours ``ctx.dry_run``. ``store`` defaults to a
    :class:`SqlMigrationStore` over ``ctx.conn``.
    """
    timer = start_timer()
    try:
        summary = _runner(ctx, registry, store, settings).run(dry_run=ctx.dry_run)
    except Exception as exc:
        if not isinstance(exc, SchemaSpineError):
            logger.exception("op_failed", op="run_migrations", error=str(exc))
        return _fail(exc, timer.elapsed_ms)

    return OperationResult.ok(
        summary,
        elapsed_ms=timer.elapsed_ms,
        metadata={"request_id": ctx.request_id, "caller": ctx.caller},
    )


def get_migration_status(
    ctx: OperationContext,
    registry: MigrationRegistry,
    *,
    store: MigrationStore | None = None,
    settings: MigrationSettings | None = None,
) -> PagedResult[MigrationStatus]:
    """Applied/pending state of every registered migration."""
    timer = start_timer()
    try:
        statuses = _runner(ctx, registry, store, settings).status()
    except Exception as exc:
        if not isinstance(exc, SchemaSpineError):
            logger.exception("op_failed", op="get_migration_status", error=str(exc))
        return _fail(exc, timer.elapsed_ms, PagedResult)

    return PagedResult.from_items(statuses, elapsed_ms=timer.elapsed_ms)


__all__ = [
    "error_code_for",
    "get_migration_status",
    "run_migrations",
]
