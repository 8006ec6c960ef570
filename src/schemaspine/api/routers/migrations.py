"""
Migrations router — the administrative trigger.

GET|POST /migrate          apply pending migrations (``?dry_run=true`` to preview)
GET      /migrations       applied/pending status of every registered migration

Both methods of ``/migrate`` do the same thing, so a deploy hook can use
whichever its tooling makes easier. Repeated calls are safe: a second
call reports everything as skipped.

Tags:
    schemaspine, api, migrations, admin, trigger

Doc-Types:
    api-reference
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request

from schemaspine.api.deps import OpContext, Registry, Settings
from schemaspine.api.schemas.common import PagedResponse, PageMeta
from schemaspine.api.schemas.migrations import MigrateResponse, MigrationProblem, MigrationStatusSchema
from schemaspine.api.utils import _dc, _handle_error
from schemaspine.ops.migrations import get_migration_status, run_migrations

router = APIRouter()

_PROBLEM_RESPONSES = {
    423: {"model": MigrationProblem, "description": "Another runner holds the migration lock"},
    500: {"model": MigrationProblem, "description": "A migration failed or the registry is invalid"},
    503: {"model": MigrationProblem, "description": "Migration history could not be created or read"},
}


@router.api_route(
    "/migrate",
    methods=["GET", "POST"],
    response_model=MigrateResponse,
    responses=_PROBLEM_RESPONSES,
)
def migrate(
    request: Request,
    ctx: OpContext,
    registry: Registry,
    settings: Settings,
    dry_run: bool = Query(False, description="Report what would run without applying anything"),
):
    """Apply every pending migration, in order, exactly once."""
    ctx.dry_run = dry_run
    result = run_migrations(ctx, registry, settings=settings)
    if not result.success:
        return _handle_error(result, instance=str(request.url.path))

    summary = result.data
    return MigrateResponse(
        message="Dry run completed" if summary.dry_run else "Migrations completed",
        executed=summary.executed,
        skipped=summary.skipped,
        dry_run=summary.dry_run,
        elapsed_ms=round(result.elapsed_ms, 2),
    )


@router.get(
    "/migrations",
    response_model=PagedResponse[MigrationStatusSchema],
    responses={503: {"model": MigrationProblem}},
)
def list_migrations(request: Request, ctx: OpContext, registry: Registry, settings: Settings):
    """Applied/pending status of every registered migration, ascending."""
    result = get_migration_status(ctx, registry, settings=settings)
    if not result.success:
        return _handle_error(result, instance=str(request.url.path))

    return PagedResponse(
        data=[MigrationStatusSchema(**_dc(s)) for s in result.data],
        page=PageMeta(total=result.total, limit=result.limit, offset=result.offset, has_more=result.has_more),
        elapsed_ms=round(result.elapsed_ms, 2),
    )
