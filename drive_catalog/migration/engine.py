"""Identity re-keying and deduplication of the drive catalog.

The whole run happens on one connection inside one transaction:

1. deduplicate categories, drives and file entries, rewriting foreign keys to
   the canonical (lowest id) row before any duplicate is deleted;
2. mint a random identifier for every surviving row of each table;
3. copy the catalog into string-keyed tables and swap them in under the
   original names.

Any exception leaves the caller's transaction to be rolled back, which
restores the integer-keyed catalog untouched.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from drive_catalog.db import transaction_scope
from drive_catalog.errors import CatalogMigrationError
from drive_catalog.migration.cutover import (
    assert_ready_for_cutover,
    copy_translated_rows,
    create_next_generation_tables,
    drop_translation_tables,
    swap_tables,
)
from drive_catalog.migration.dedup import build_canonical_map, delete_duplicates, drop_temporary_table
from drive_catalog.migration.remap import IdentifierFactory, build_identity_map, new_identifier
from drive_catalog.migration.rewrite import assert_references_resolve, rewrite_references
from drive_catalog.schema import CATEGORY_TABLE, ENTITIES
from drive_catalog.timing import stage_timing

logger = logging.getLogger(__name__)


@dataclass
class EntityStats:
    rows_before: int = 0
    duplicates_removed: int = 0
    rows_migrated: int = 0


@dataclass
class MigrationReport:
    entities: Dict[str, EntityStats] = field(
        default_factory=lambda: {entity.name: EntityStats() for entity in ENTITIES}
    )
    references_rewritten: Dict[str, int] = field(default_factory=dict)
    identities_migrated: bool = False
    dry_run: bool = False

    def entity(self, name: str) -> EntityStats:
        return self.entities[name]

    @property
    def duplicates_removed(self) -> int:
        return sum(stats.duplicates_removed for stats in self.entities.values())

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def assert_legacy_schema(connection: Connection) -> None:
    inspector = sa.inspect(connection)
    if not inspector.has_table(CATEGORY_TABLE):
        raise CatalogMigrationError(f"Catalog table {CATEGORY_TABLE} does not exist; nothing to migrate.")
    id_column = next(
        (column for column in inspector.get_columns(CATEGORY_TABLE) if column["name"] == "id"),
        None,
    )
    if id_column is None or not isinstance(id_column["type"], sa.Integer):
        raise CatalogMigrationError(
            f"{CATEGORY_TABLE}.id is not an integer key "
            f"({id_column['type'] if id_column else 'missing'}); the catalog was already migrated."
        )


def deduplicate_catalog(connection: Connection, report: MigrationReport | None = None) -> MigrationReport:
    """Collapse duplicate categories, then drives, then file entries.

    Each entity's canonical map is applied to its dependents before its
    duplicates are deleted, so the next entity groups on canonical parent ids.
    """
    report = report or MigrationReport()
    for entity in ENTITIES:
        with stage_timing("dedup", entity=entity.name):
            canonical_map = build_canonical_map(connection, entity)
            report.references_rewritten.update(rewrite_references(connection, canonical_map))
            removed = delete_duplicates(connection, canonical_map)
            assert_references_resolve(connection, entity)
            drop_temporary_table(connection, canonical_map.table)

        stats = report.entity(entity.name)
        stats.rows_before = canonical_map.total
        stats.duplicates_removed = removed
    return report


def run_identity_migration(
    connection: Connection,
    id_factory: IdentifierFactory = new_identifier,
) -> MigrationReport:
    """Deduplicate and re-key the catalog on ``connection``.

    The caller owns the transaction; nothing here commits.
    """
    with stage_timing("identity_migration"):
        assert_legacy_schema(connection)
        report = deduplicate_catalog(connection)

        with stage_timing("remap"):
            identity_maps = {
                entity.name: build_identity_map(connection, entity, id_factory) for entity in ENTITIES
            }

        with stage_timing("cutover"):
            assert_ready_for_cutover(connection, identity_maps)
            create_next_generation_tables(connection)
            copied = copy_translated_rows(connection, identity_maps)
            swap_tables(connection)
            drop_translation_tables(connection)

    for name, count in copied.items():
        report.entity(name).rows_migrated = count
    report.identities_migrated = True
    logger.info(
        "catalog.migration done duplicates_removed=%d categories=%d drives=%d file_entries=%d",
        report.duplicates_removed,
        copied.get("category", 0),
        copied.get("drive", 0),
        copied.get("file_entry", 0),
    )
    return report


def migrate_catalog(
    engine: Engine,
    *,
    dry_run: bool = False,
    id_factory: IdentifierFactory = new_identifier,
) -> MigrationReport:
    """Run the identity migration in its own transaction.

    With ``dry_run`` the full migration is executed and then rolled back, so the
    report describes what a real run would do.
    """
    with transaction_scope(engine, commit=not dry_run) as connection:
        report = run_identity_migration(connection, id_factory=id_factory)
    report.dry_run = dry_run
    return report
