"""Schemas for the migration trigger and status endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from schemaspine.api.schemas.common import ProblemDetail


class MigrateResponse(BaseModel):
    """Body of a successful ``/migrate`` call."""

    success: bool = Field(default=True)
    message: str = Field(default="Migrations completed")
    executed: list[str] = Field(default_factory=list, description="Identifiers applied by this run, ascending")
    skipped: list[str] = Field(default_factory=list, description="Identifiers already applied, ascending")
    dry_run: bool = Field(default=False, description="True if nothing was applied")
    elapsed_ms: float = Field(default=0.0)


class MigrationProblem(ProblemDetail):
    """Problem body of a failed ``/migrate`` call."""

    code: str = Field(description="Ops error code, e.g. APPLY_FAILED")
    failed_identifier: str | None = Field(default=None, description="Migration the run stopped at")
    executed: list[str] = Field(default_factory=list, description="Applied before the failure")
    skipped: list[str] = Field(default_factory=list, description="Already applied before the run")


class MigrationStatusSchema(BaseModel):
    """Applied/pending state of one registered migration."""

    identifier: str
    description: str
    state: Literal["applied", "pending"]
    applied_at: datetime | None = None
    checksum: str | None = None
