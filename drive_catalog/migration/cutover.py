from __future__ import annotations

import logging
from typing import Dict, Mapping

import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from drive_catalog.errors import (
    DuplicateSurvivesCutover,
    ReferentialIntegrityViolation,
    format_sample,
)
from drive_catalog.migration.dedup import drop_temporary_table, find_duplicate_groups, format_duplicate_groups
from drive_catalog.migration.remap import IdentityMap
from drive_catalog.schema import (
    CATEGORY,
    DRIVE,
    ENTITIES,
    FILE_ENTRY,
    IDENTIFIER_LENGTH,
    NEXT_GENERATION_SUFFIX,
    REFERENCES,
    define_catalog_tables,
)

logger = logging.getLogger(__name__)

# Children first so that no drop ever leaves a live reference behind.
DROP_ORDER = (FILE_ENTRY, DRIVE, CATEGORY)
RENAME_ORDER = (CATEGORY, DRIVE, FILE_ENTRY)


def create_next_generation_tables(connection: Connection) -> sa.MetaData:
    metadata = sa.MetaData()
    define_catalog_tables(
        metadata,
        id_type=sa.String(IDENTIFIER_LENGTH),
        dialect_name=connection.dialect.name,
        suffix=NEXT_GENERATION_SUFFIX,
        natural_keys=True,
    )
    metadata.create_all(connection, checkfirst=False)
    logger.info("catalog.cutover created=%s", ",".join(sorted(metadata.tables)))
    return metadata


def _missing_translations(connection: Connection, table: str, column: str, map_table: str) -> list:
    return connection.execute(
        text(
            f"""
            SELECT t.id AS row_id, t.{column} AS missing_id
            FROM {table} t
            LEFT JOIN {map_table} m ON m.old_id = t.{column}
            WHERE m.old_id IS NULL
            ORDER BY t.id
            LIMIT 10
            """
        )
    ).mappings().all()


def assert_ready_for_cutover(connection: Connection, identity_maps: Mapping[str, IdentityMap]) -> None:
    """Fail before any copy if a row would be dropped or a duplicate would survive."""
    for entity in ENTITIES:
        missing = _missing_translations(connection, entity.table, "id", identity_maps[entity.name].table)
        if missing:
            raise ReferentialIntegrityViolation(
                f"{entity.table} rows have no identifier translation. "
                f"Sample ids: {format_sample(row['row_id'] for row in missing)}"
            )

    for reference in REFERENCES:
        missing = _missing_translations(
            connection,
            reference.child.table,
            reference.column,
            identity_maps[reference.parent.name].table,
        )
        if missing:
            sample = format_sample(f"{row['row_id']} -> {row['missing_id']}" for row in missing)
            raise ReferentialIntegrityViolation(
                f"{reference.child.table}.{reference.column} references {reference.parent.table} "
                f"rows that did not survive deduplication. Sample: {sample}"
            )

    for entity in ENTITIES:
        groups = find_duplicate_groups(connection, entity)
        if groups:
            raise DuplicateSurvivesCutover(
                f"{entity.table} still holds duplicate natural keys after deduplication. "
                f"Sample conflicts: {format_duplicate_groups(entity, groups)}"
            )


def _translate_integrity_error(exc: IntegrityError, table: str) -> Exception:
    message = str(exc.orig or exc)
    if "foreign key" in message.lower():
        return ReferentialIntegrityViolation(f"Copy into {table} broke a foreign key: {message}")
    return DuplicateSurvivesCutover(f"Copy into {table} violated a uniqueness constraint: {message}")


def copy_translated_rows(connection: Connection, identity_maps: Mapping[str, IdentityMap]) -> Dict[str, int]:
    category_map = identity_maps[CATEGORY.name].table
    drive_map = identity_maps[DRIVE.name].table
    file_map = identity_maps[FILE_ENTRY.name].table

    statements = (
        (
            CATEGORY,
            f"""
            INSERT INTO {CATEGORY.next_table} (id, name)
            SELECT cm.new_id, c.name
            FROM {CATEGORY.table} c
            JOIN {category_map} cm ON cm.old_id = c.id
            """,
        ),
        (
            DRIVE,
            f"""
            INSERT INTO {DRIVE.next_table} (id, category_id, name, available_space, insertion_time)
            SELECT dm.new_id, cm.new_id, d.name, d.available_space, d.insertion_time
            FROM {DRIVE.table} d
            JOIN {drive_map} dm ON dm.old_id = d.id
            JOIN {category_map} cm ON cm.old_id = d.category_id
            """,
        ),
        (
            FILE_ENTRY,
            f"""
            INSERT INTO {FILE_ENTRY.next_table} (id, drive_id, path, weight)
            SELECT fm.new_id, dm.new_id, f.path, f.weight
            FROM {FILE_ENTRY.table} f
            JOIN {file_map} fm ON fm.old_id = f.id
            JOIN {drive_map} dm ON dm.old_id = f.drive_id
            """,
        ),
    )

    copied: Dict[str, int] = {}
    for entity, statement in statements:
        try:
            connection.execute(text(statement))
        except IntegrityError as exc:
            raise _translate_integrity_error(exc, entity.next_table) from exc

        source_count = connection.execute(text(f"SELECT COUNT(*) FROM {entity.table}")).scalar_one()
        target_count = connection.execute(text(f"SELECT COUNT(*) FROM {entity.next_table}")).scalar_one()
        if source_count != target_count:
            raise ReferentialIntegrityViolation(
                f"Copied {target_count} of {source_count} {entity.table} rows; "
                "some rows lost their translation during the copy."
            )
        copied[entity.name] = int(target_count)
        logger.info("catalog.cutover copied entity=%s rows=%d", entity.name, target_count)
    return copied


def swap_tables(connection: Connection) -> None:
    for entity in DROP_ORDER:
        connection.execute(text(f"DROP TABLE {entity.table}"))
    for entity in RENAME_ORDER:
        connection.execute(text(f"ALTER TABLE {entity.next_table} RENAME TO {entity.table}"))
    logger.info("catalog.cutover swapped tables=%s", ",".join(entity.table for entity in RENAME_ORDER))


def drop_translation_tables(connection: Connection) -> None:
    for entity in ENTITIES:
        drop_temporary_table(connection, entity.canonical_map_table)
        drop_temporary_table(connection, entity.id_map_table)
