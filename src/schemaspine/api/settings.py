"""
API-specific settings.

Extends :class:`~schemaspine.core.settings.MigrationSettings` with the
parameters that govern the HTTP trigger (prefix, OpenAPI metadata, auth,
CORS).

All values can be overridden via ``SCHEMASPINE_``-prefixed environment
variables, e.g. ``SCHEMASPINE_API_KEY``.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from schemaspine.core.settings import MigrationSettings


class SchemaSpineAPISettings(MigrationSettings):
    """Settings for the schemaspine HTTP trigger.

    Order of precedence (highest → lowest):
        1. Environment variables (``SCHEMASPINE_API_PREFIX``, etc.)
        2. ``.env`` file
        3. Defaults below
    """

    # ── API ──────────────────────────────────────────────────────────────
    api_prefix: str = Field(default="/api", description="URL prefix for all endpoints")
    api_title: str = Field(default="schemaspine", description="OpenAPI title")
    api_version: str = Field(default="0.1.0", description="OpenAPI version string")

    # ── CORS ─────────────────────────────────────────────────────────────
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # ── Auth ─────────────────────────────────────────────────────────────
    api_key: str | None = Field(default=None, description="Optional API key gating the trigger")

    model_config = SettingsConfigDict(
        env_prefix="SCHEMASPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )
