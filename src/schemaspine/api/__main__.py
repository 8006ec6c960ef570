"""Serve the HTTP trigger: ``python -m schemaspine.api``.

Host, port and log level come from ``SCHEMASPINE_*`` settings.
"""

from __future__ import annotations

import uvicorn

from schemaspine.api.deps import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "schemaspine.api:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
