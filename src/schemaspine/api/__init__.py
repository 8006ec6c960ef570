"""HTTP trigger for the migration engine.

Modules
-------
app         create_app() factory
deps        settings / connection / registry dependencies
settings    SchemaSpineAPISettings
routers     /migrate, /migrations
middleware  auth, request id, timing, RFC 7807 errors
"""

from schemaspine.api.app import create_app

__all__ = ["create_app"]
