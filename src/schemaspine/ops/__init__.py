"""
Operations layer.

Plain functions taking an :class:`OperationContext` and returning an
:class:`OperationResult`. The HTTP trigger calls these and nothing else.
"""

from schemaspine.ops.context import OperationContext
from schemaspine.ops.migrations import get_migration_status, run_migrations
from schemaspine.ops.result import OperationError, OperationResult, PagedResult, start_timer

__all__ = [
    "OperationContext",
    "OperationError",
    "OperationResult",
    "PagedResult",
    "get_migration_status",
    "run_migrations",
    "start_timer",
]
