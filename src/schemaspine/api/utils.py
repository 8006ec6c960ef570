"""
Shared API router utilities.

- ``_dc()`` — convert a dataclass or dict to a plain dict
- ``_handle_error()`` — convert a failed OperationResult to a ``problem_response``
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi.responses import JSONResponse

from schemaspine.api.middleware.errors import problem_response, status_for_error_code, title_for_error_code
from schemaspine.ops.result import OperationResult


def _dc(obj: Any) -> dict[str, Any]:
    """Convert a dataclass (or dict) to a plain dict.

    Returns an empty dict for objects that are neither dataclasses nor dicts.
    """
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    return obj if isinstance(obj, dict) else {}


def _handle_error(result: OperationResult[Any], *, instance: str = "") -> JSONResponse:
    """Convert a failed ``OperationResult`` into a Problem Details response.

    ``failed_identifier``, ``executed`` and ``skipped`` from the error
    details become extension members of the problem body.
    """
    error = result.error
    code = error.code if error else "INTERNAL"
    message = error.message if error else "Operation failed"
    details = dict(error.details) if error else {}

    headers = {"Retry-After": "5"} if error is not None and error.retryable else None
    return problem_response(
        status=status_for_error_code(code),
        title=title_for_error_code(code),
        detail=message,
        instance=instance,
        errors=[{"code": code, "message": message}],
        headers=headers,
        code=code,
        **details,
    )
