"""
API-key authentication middleware.

The migration trigger mutates the production schema, so when
``SCHEMASPINE_API_KEY`` is set every request must carry a matching
``X-API-Key`` header (or ``Authorization: Bearer <key>``). Anything else
receives a 401 problem response.

Bypass paths (no auth required): ``/docs``, ``/redoc``, ``/openapi.json``.
"""

from __future__ import annotations

import hmac
import re

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

_BYPASS_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"/docs$"),
    re.compile(r"/redoc$"),
    re.compile(r"/openapi\.json$"),
]


def _is_bypass(path: str) -> bool:
    return any(p.search(path) for p in _BYPASS_PATTERNS)


def _provided_key(request: Request) -> str | None:
    key = request.headers.get("X-API-Key")
    if key:
        return key
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return None


class AuthMiddleware(BaseHTTPMiddleware):
    """Reject requests that lack a valid API key.

    If ``api_key`` is ``None`` authentication is disabled.
    """

    def __init__(self, app: object, api_key: str | None = None) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._api_key = api_key

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self._api_key is None or _is_bypass(request.url.path):
            return await call_next(request)

        provided = _provided_key(request)
        if provided is None or not hmac.compare_digest(provided, self._api_key):
            return JSONResponse(
                status_code=401,
                content={
                    "type": "about:blank",
                    "title": "Unauthorized",
                    "status": 401,
                    "detail": "Missing or invalid API key. Provide X-API-Key header.",
                    "instance": str(request.url.path),
                    "errors": [],
                },
            )

        return await call_next(request)
