"""
FastAPI application factory.

``create_app()`` wires middleware, routers, error handlers, and
lifespan events into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root — all middleware,
    routers, and lifecycle hooks are wired here so the rest of the
    codebase never touches ``FastAPI`` directly.

Tags:
    schemaspine, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schemaspine.api.deps import get_settings
from schemaspine.api.middleware.auth import AuthMiddleware
from schemaspine.api.middleware.errors import schemaspine_error_handler, unhandled_exception_handler
from schemaspine.api.middleware.request_id import RequestIDMiddleware
from schemaspine.api.middleware.timing import TimingMiddleware
from schemaspine.api.settings import SchemaSpineAPISettings
from schemaspine.core.errors import SchemaSpineError
from schemaspine.core.logging import configure_logging, get_logger
from schemaspine.migrations.registry import MigrationRegistry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup / shutdown hooks."""
    settings: SchemaSpineAPISettings = app.state.settings
    configure_logging(level=settings.log_level, json_format=not settings.debug)

    log = get_logger("schemaspine.api")
    registry = app.state.registry
    log.info(
        "api.starting",
        version=app.version,
        migrations=len(registry) if registry is not None else str(settings.migrations_dir),
    )
    yield
    log.info("api.stopping")


def create_app(
    *,
    settings: SchemaSpineAPISettings | None = None,
    registry: MigrationRegistry | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : SchemaSpineAPISettings | None
        Override settings (useful for testing).  When ``None`` the cached
        singleton from :func:`get_settings` is used.
    registry : MigrationRegistry | None
        Fixed migration set. When ``None`` migrations are discovered from
        ``settings.migrations_dir`` on each request.
    """

    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.state.settings = settings
    app.state.registry = registry

    # Override DI so endpoints use the provided settings
    app.dependency_overrides[get_settings] = lambda: settings

    # ── Middleware (outermost → innermost) ────────────────────────────
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(AuthMiddleware, api_key=settings.api_key)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(SchemaSpineError, schemaspine_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from schemaspine.api.routers import migrations

    app.include_router(migrations.router, prefix=settings.api_prefix, tags=["migrations"])

    return app
