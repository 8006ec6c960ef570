"""
FastAPI dependency injection — shared singletons and per-request factories.

Usage in routers::

    from schemaspine.api.deps import OpContext, Registry, Settings

    @router.post("/migrate")
    def migrate(ctx: OpContext, registry: Registry, settings: Settings):
        ...

Tags:
    schemaspine, api, dependency-injection, singletons, OpContext

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid
from collections.abc import Generator
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, Request

from schemaspine.api.settings import SchemaSpineAPISettings
from schemaspine.core.connection import ConnectionInfo, create_connection
from schemaspine.migrations.registry import MigrationRegistry
from schemaspine.ops.context import OperationContext

# ── Settings (singleton) ─────────────────────────────────────────────────


@lru_cache(maxsize=1)
def get_settings() -> SchemaSpineAPISettings:
    """Cached settings — loaded once per process."""
    return SchemaSpineAPISettings()


# ── Database connection (per-request) ────────────────────────────────────


def get_connection(
    settings: Annotated[SchemaSpineAPISettings, Depends(get_settings)],
) -> Generator[tuple[Any, ConnectionInfo], None, None]:
    """Yield ``(conn, info)`` for the request lifespan."""
    conn, info = create_connection(
        settings.database_url,
        data_dir=settings.data_dir,
    )

    try:
        yield conn, info
    finally:
        if hasattr(conn, "close"):
            conn.close()


# ── Registry ─────────────────────────────────────────────────────────────


def get_registry(
    request: Request,
    settings: Annotated[SchemaSpineAPISettings, Depends(get_settings)],
    connection: Annotated[tuple[Any, ConnectionInfo], Depends(get_connection)],
) -> MigrationRegistry:
    """The registry given to ``create_app()``, else ``settings.migrations_dir``.

    Directory registries are built per request so that the dialect
    variant matches the configured backend.
    """
    registry = getattr(request.app.state, "registry", None)
    if registry is not None:
        return registry
    _conn, info = connection
    directory = settings.migrations_dir
    if not directory.is_absolute():
        directory = settings.data_dir / directory
    return MigrationRegistry.from_directory(directory, dialect=info.backend)


# ── Operation context (per-request) ──────────────────────────────────────


def get_operation_context(
    request: Request,
    connection: Annotated[tuple[Any, ConnectionInfo], Depends(get_connection)],
) -> OperationContext:
    """Build an :class:`OperationContext` from the current request."""
    conn, info = connection
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    return OperationContext(
        conn=conn,
        backend=info.backend,
        request_id=request_id,
        caller="api",
    )


# ── Convenience type aliases ─────────────────────────────────────────────

Settings = Annotated[SchemaSpineAPISettings, Depends(get_settings)]
OpContext = Annotated[OperationContext, Depends(get_operation_context)]
Registry = Annotated[MigrationRegistry, Depends(get_registry)]
