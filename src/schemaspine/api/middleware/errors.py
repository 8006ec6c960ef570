"""
Error-handling middleware — maps ops-layer errors to RFC 7807 responses.

Migration failures carry extension members next to the standard problem
fields, so an operator can see how far the run got::

    {
        "type": "about:blank",
        "title": "Migration 003 failed: no such table: users",
        "status": 500,
        "detail": "...",
        "code": "APPLY_FAILED",
        "failed_identifier": "003",
        "executed": ["002"],
        "skipped": ["001"],
        "errors": [...]
    }
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from schemaspine.api.schemas.common import ErrorDetail, ProblemDetail
from schemaspine.core.errors import DatabaseError, SchemaSpineError
from schemaspine.core.logging import get_logger
from schemaspine.ops.migrations import error_code_for

logger = get_logger(__name__)

# ── Error code → HTTP status mapping ─────────────────────────────────────

ERROR_CODE_TO_STATUS: dict[str, int] = {
    "APPLY_FAILED": 500,
    "HISTORY_WRITE_FAILED": 500,
    "REGISTRY_INVALID": 500,
    "BOOTSTRAP_FAILED": 503,
    "UNAVAILABLE": 503,
    "LOCKED": 423,
    "INTERNAL": 500,
}

_TITLES: dict[str, str] = {
    "APPLY_FAILED": "Migration failed",
    "HISTORY_WRITE_FAILED": "Migration applied but not recorded",
    "REGISTRY_INVALID": "Invalid migration registry",
    "BOOTSTRAP_FAILED": "Migration history unavailable",
    "UNAVAILABLE": "Database unavailable",
    "LOCKED": "Migrations already running",
    "INTERNAL": "Internal Server Error",
}


def status_for_error_code(code: str) -> int:
    """Resolve an ops error code to HTTP status, defaulting to 500."""
    return ERROR_CODE_TO_STATUS.get(code, 500)


def title_for_error_code(code: str) -> str:
    return _TITLES.get(code, "Operation failed")


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
    **extensions: Any,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response.

    Keyword arguments beyond the standard members become extension
    members of the problem object.
    """
    body = ProblemDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance,
    )
    if errors:
        body.errors = [ErrorDetail(**e) for e in errors]
    content = body.model_dump()
    content.update({k: v for k, v in extensions.items() if v is not None})
    return JSONResponse(status_code=status, content=content, headers=headers)


def _code_for_exception(exc: Exception) -> str:
    code = error_code_for(exc)
    if code == "INTERNAL" and isinstance(exc, DatabaseError):
        return "UNAVAILABLE"
    return code


async def schemaspine_error_handler(request: Request, exc: SchemaSpineError) -> JSONResponse:
    """Errors raised outside an operation (registry discovery, connecting)."""
    code = _code_for_exception(exc)
    logger.error("api.request_failed", code=code, error=exc.message, path=request.url.path)
    return problem_response(
        status=status_for_error_code(code),
        title=title_for_error_code(code),
        detail=exc.message,
        instance=str(request.url.path),
        errors=[{"code": code, "message": exc.message}],
        code=code,
        failed_identifier=getattr(exc, "identifier", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — returns 500 with ProblemDetail."""
    logger.exception("api.unhandled_exception", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail=str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        instance=str(request.url.path),
    )
