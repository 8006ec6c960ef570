"""
Common API schemas — shared envelopes and RFC 7807 errors.

Every endpoint returns either a success model (200) or
:class:`ProblemDetail` (4xx/5xx). List endpoints embed :class:`PageMeta`
alongside the item list.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


# ── RFC 7807 Problem Detail ─────────────────────────────────────────────


class ErrorDetail(BaseModel):
    """Structured error detail for nested errors."""

    code: str = Field(description="Machine-readable error code (e.g., 'APPLY_FAILED')")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field path if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Used as the canonical error envelope for all non-2xx responses.

    Error Codes:
        - ``APPLY_FAILED`` (500): A migration body failed and was rolled back
        - ``HISTORY_WRITE_FAILED`` (500): Applied but not recorded; needs an operator
        - ``REGISTRY_INVALID`` (500): Duplicate or malformed migration identifiers
        - ``BOOTSTRAP_FAILED`` (503): History table could not be created or read
        - ``UNAVAILABLE`` (503): Database unreachable
        - ``LOCKED`` (423): Another runner holds the migration lock
        - ``INTERNAL`` (500): Unexpected server error
    """

    type: str = Field(default="about:blank", description="Error type URI (usually 'about:blank')")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code (e.g., 423, 500)")
    detail: str = Field(default="", description="Human-readable explanation of the error")
    instance: str = Field(default="", description="URI of the failing request")
    errors: list[ErrorDetail] = Field(
        default_factory=list,
        description="List of nested error details",
    )


# ── Success Envelopes ────────────────────────────────────────────────────


class PageMeta(BaseModel):
    """Count metadata for list responses."""

    total: int = Field(description="Total items")
    limit: int = Field(description="Items per page")
    offset: int = Field(description="Current offset (0-based)")
    has_more: bool = Field(description="True if more pages exist after current")


class PagedResponse(BaseModel, Generic[T]):
    """Success envelope for list responses."""

    data: list[T] = Field(description="List of items")
    page: PageMeta = Field(description="Count metadata")
    elapsed_ms: float = Field(default=0.0, description="Server-side processing time in milliseconds")
    warnings: list[str] = Field(default_factory=list, description="Non-fatal warnings")
