"""Shared settings for schemaspine.

``SchemaSpineBaseSettings`` carries the fields every entry point needs
(host, port, log level, debug mode, data directory). ``MigrationSettings``
adds the knobs of the migration engine itself: where the store lives,
where migration files are discovered, and how the run-wide lock behaves.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not runtime
    - **Environment-driven:** Reads from env vars and .env files
    - **Namespaced:** ``SCHEMASPINE_`` prefix for engine settings
    - **Sensible defaults:** Works out of the box against a local SQLite file

Examples:
    >>> from schemaspine.core.settings import MigrationSettings
    >>> s = MigrationSettings(database_url="sqlite:///:memory:")
    >>> s.history_table
    '_schema_migrations'

Tags:
    settings, configuration, pydantic, environment, schemaspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaSpineBaseSettings(BaseSettings):
    """Common settings shared across schemaspine entry points.

    Fields
    ──────
    host         : Bind address for the HTTP trigger
    port         : Bind port for the HTTP trigger
    debug        : Enable debug mode (error details in responses, etc.)
    log_level    : Structlog log level
    data_dir     : Directory relative SQLite paths are resolved against
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Network ──────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"

    # ── Storage ──────────────────────────────────────────────────
    data_dir: Path = Field(
        default_factory=lambda: Path.cwd(),
        description="Directory relative SQLite paths are resolved against",
    )


class MigrationSettings(SchemaSpineBaseSettings):
    """Settings for the migration engine.

    All values can be overridden with ``SCHEMASPINE_``-prefixed environment
    variables, e.g. ``SCHEMASPINE_DATABASE_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEMASPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Store ────────────────────────────────────────────────────
    database_url: str = Field(
        default="sqlite:///schemaspine.db",
        description="SQLAlchemy-style connection URL or SQLite file path",
    )
    migrations_dir: Path = Field(
        default=Path("migrations"),
        description="Directory holding NNN_description.sql migration files",
    )
    history_table: str = Field(
        default="_schema_migrations",
        description="Table recording applied migrations",
    )

    # ── Locking ──────────────────────────────────────────────────
    use_lock: bool = Field(default=True, description="Hold an advisory lock for the whole run")
    lock_table: str = Field(default="_schema_migration_locks")
    lock_ttl_seconds: int = Field(default=300, ge=1, description="Lock expiry for crashed holders")
    lock_wait_seconds: float = Field(default=30.0, ge=0, description="How long to wait for a held lock")

    @field_validator("history_table", "lock_table")
    @classmethod
    def _check_table_name(cls, value: str) -> str:
        # Table names are interpolated into DDL
        if not value.replace("_", "").isalnum():
            raise ValueError(f"table name must be alphanumeric/underscore, got {value!r}")
        return value
