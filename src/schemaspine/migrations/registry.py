"""Migration registry — the ordered, immutable catalog of known migrations.

Manifesto:
    The set of migrations is fixed when the application is built. The
    registry validates that set once, at construction, so that a runner
    never starts on an ambiguous sequence: two definitions sharing an
    identifier, or an identifier that cannot be ordered, are fatal before
    the store is touched.

Sources:
    ``MigrationRegistry(definitions)``       explicit list
    ``MigrationRegistry.from_directory()``   ``NNN_description.sql`` files
    ``MigrationRegistry.from_modules()``     Python modules in a package

Dialect variants (directory source):
    ``003_add_index_sqlite.sql`` is the SQLite-only variant of
    migration ``003``. For SQLite it replaces the plain file with the same
    numeric identifier (``003_*.sql`` or ``3_*.sql``); for every other
    dialect it is ignored.

Tags:
    migrations, registry, ordering, validation, schemaspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import importlib
import pkgutil
import re
from collections.abc import Iterable, Iterator
from pathlib import Path
from types import ModuleType

from schemaspine.core.errors import DuplicateIdentifierError, MalformedIdentifierError
from schemaspine.core.logging import get_logger
from schemaspine.migrations.definition import (
    CallableOperation,
    MigrationDefinition,
    SqlOperation,
    parse_identifier,
)

logger = get_logger(__name__)

_SQL_FILE = re.compile(r"^(?P<identifier>[0-9]+)(?:[_-](?P<label>.*))?$")
_SQLITE_SUFFIX = "_sqlite"


class MigrationRegistry:
    """Ordered, validated, read-only collection of migration definitions.

    Example:
        >>> registry = MigrationRegistry([
        ...     MigrationDefinition.sql("002", "add index", "CREATE INDEX ix ON t (x)"),
        ...     MigrationDefinition.sql("001", "create t", "CREATE TABLE t (x TEXT)"),
        ... ])
        >>> registry.identifiers
        ('001', '002')
    """

    __slots__ = ("_definitions", "_by_identifier")

    def __init__(self, definitions: Iterable[MigrationDefinition] = ()) -> None:
        by_key: dict[int, MigrationDefinition] = {}
        for definition in definitions:
            key = parse_identifier(definition.identifier)
            if key in by_key:
                existing = by_key[key]
                if existing.identifier == definition.identifier:
                    raise DuplicateIdentifierError(definition.identifier)
                raise DuplicateIdentifierError(
                    definition.identifier,
                    f"Duplicate migration identifier: {definition.identifier!r} "
                    f"has the same order as {existing.identifier!r}",
                )
            by_key[key] = definition

        self._definitions: tuple[MigrationDefinition, ...] = tuple(by_key[k] for k in sorted(by_key))
        self._by_identifier = {d.identifier: d for d in self._definitions}

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def list(self) -> tuple[MigrationDefinition, ...]:
        """All definitions, ascending by identifier."""
        return self._definitions

    @property
    def identifiers(self) -> tuple[str, ...]:
        return tuple(d.identifier for d in self._definitions)

    def get(self, identifier: str) -> MigrationDefinition | None:
        return self._by_identifier.get(identifier)

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[MigrationDefinition]:
        return iter(self._definitions)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._by_identifier

    def __repr__(self) -> str:
        return f"MigrationRegistry({list(self.identifiers)!r})"

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @classmethod
    def from_directory(cls, path: Path | str, *, dialect: str = "sqlite") -> MigrationRegistry:
        """Build a registry from the ``.sql`` files in ``path``.

        File names are ``<digits>_<description>.sql``. A missing directory
        yields an empty registry.

        Raises:
            MalformedIdentifierError: A file name has no numeric prefix.
            DuplicateIdentifierError: Two files of the same variant share an identifier.
        """
        directory = Path(path)
        if not directory.is_dir():
            logger.debug("registry.directory_missing", path=str(directory))
            return cls()

        is_sqlite = dialect.lower() == "sqlite"
        # Keyed by numeric value, so 3_x_sqlite.sql is the variant of 003_x.sql
        plain: dict[int, MigrationDefinition] = {}
        variants: dict[int, MigrationDefinition] = {}

        for sql_file in sorted(directory.glob("*.sql")):
            stem = sql_file.stem
            sqlite_only = stem.endswith(_SQLITE_SUFFIX)
            if sqlite_only:
                if not is_sqlite:
                    continue
                stem = stem[: -len(_SQLITE_SUFFIX)]

            match = _SQL_FILE.match(stem)
            if match is None:
                raise MalformedIdentifierError(
                    stem, f"Migration file {sql_file.name!r} has no numeric identifier prefix"
                )

            identifier = match.group("identifier")
            label = (match.group("label") or "").replace("_", " ").strip()
            definition = MigrationDefinition(
                identifier,
                label or sql_file.stem,
                SqlOperation(sql_file.read_text(encoding="utf-8")),
                source=sql_file.name,
            )

            bucket = variants if sqlite_only else plain
            key = parse_identifier(identifier)
            if key in bucket:
                raise DuplicateIdentifierError(
                    identifier,
                    f"Duplicate migration identifier {identifier!r}: "
                    f"{bucket[key].source} and {sql_file.name}",
                )
            bucket[key] = definition

        merged = {**plain, **variants}
        logger.debug(
            "registry.loaded",
            path=str(directory),
            dialect=dialect,
            count=len(merged),
            sqlite_variants=len(variants),
        )
        return cls(merged.values())

    @classmethod
    def from_modules(cls, package: ModuleType | str) -> MigrationRegistry:
        """Build a registry from the Python modules of ``package``.

        Each non-private module exposes ``VERSION`` (or ``IDENTIFIER``),
        an optional ``DESCRIPTION``, and either ``UP_SQL`` or
        ``upgrade(conn)``. Modules with neither body are ignored.
        """
        if isinstance(package, str):
            package = importlib.import_module(package)

        definitions: list[MigrationDefinition] = []
        for _, modname, _ in pkgutil.iter_modules(package.__path__):
            if modname.startswith("_"):
                continue
            module = importlib.import_module(f"{package.__name__}.{modname}")

            raw_id = getattr(module, "IDENTIFIER", getattr(module, "VERSION", None))
            if raw_id is None:
                raise MalformedIdentifierError(
                    modname, f"Migration module {modname!r} defines neither VERSION nor IDENTIFIER"
                )
            identifier = str(raw_id)
            doc = (module.__doc__ or "").strip()
            description = getattr(module, "DESCRIPTION", "") or (doc.splitlines()[0] if doc else modname)

            if hasattr(module, "UP_SQL"):
                operation = SqlOperation(module.UP_SQL)
            elif callable(getattr(module, "upgrade", None)):
                operation = CallableOperation(module.upgrade)
            else:
                logger.warning("registry.module_without_body", module=modname)
                continue

            definitions.append(MigrationDefinition(identifier, description, operation, source=modname))

        return cls(definitions)


__all__ = ["MigrationRegistry"]
