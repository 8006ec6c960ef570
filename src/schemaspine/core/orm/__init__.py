"""SQLAlchemy integration for schemaspine.

Used for PostgreSQL stores: a SQLAlchemy ``Session`` wrapped in
``SAConnectionBridge`` satisfies the ``Connection`` protocol.

Modules
-------
session     Engine factory, SchemaSpineSession, SAConnectionBridge
"""

from __future__ import annotations

from schemaspine.core.orm.session import (
    SAConnectionBridge,
    SchemaSpineSession,
    create_schemaspine_engine,
)

__all__ = [
    "SAConnectionBridge",
    "SchemaSpineSession",
    "create_schemaspine_engine",
]
