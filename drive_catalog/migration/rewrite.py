from __future__ import annotations

import logging
from typing import Dict, List

from sqlalchemy import text
from sqlalchemy.engine import Connection

from drive_catalog.errors import ReferentialIntegrityViolation, format_sample
from drive_catalog.migration.dedup import CanonicalMap
from drive_catalog.schema import Entity, Reference, references_from, references_to

logger = logging.getLogger(__name__)


def _reference_label(reference: Reference) -> str:
    return f"{reference.child.table}.{reference.column}"


def rewrite_references(connection: Connection, canonical_map: CanonicalMap) -> Dict[str, int]:
    """Point every foreign key at the canonical row of its duplicate group.

    Canonical ids are original ids, so each reference needs a single lookup.
    Returns the number of rewritten rows per ``table.column``.
    """
    rewritten: Dict[str, int] = {}
    for reference in references_to(canonical_map.entity):
        child = reference.child.table
        column = reference.column
        result = connection.execute(
            text(
                f"""
                UPDATE {child}
                SET {column} = (
                    SELECT m.canonical_id
                    FROM {canonical_map.table} m
                    WHERE m.old_id = {child}.{column}
                )
                WHERE {column} IN (
                    SELECT old_id
                    FROM {canonical_map.table}
                    WHERE old_id <> canonical_id
                )
                """
            )
        )
        count = int(result.rowcount or 0)
        rewritten[_reference_label(reference)] = count
        logger.info(
            "catalog.rewrite reference=%s parent=%s rows=%d",
            _reference_label(reference),
            reference.parent.table,
            count,
        )
    return rewritten


def find_dangling_references(connection: Connection, reference: Reference, limit: int = 10) -> List[Dict[str, object]]:
    rows = connection.execute(
        text(
            f"""
            SELECT c.id AS child_id, c.{reference.column} AS missing_id
            FROM {reference.child.table} c
            LEFT JOIN {reference.parent.table} p ON p.id = c.{reference.column}
            WHERE p.id IS NULL
            ORDER BY c.id
            LIMIT :limit
            """
        ),
        {"limit": limit},
    ).mappings().all()
    return [dict(row) for row in rows]


def assert_references_resolve(connection: Connection, entity: Entity) -> None:
    """Raise when any row referencing or referenced as ``entity`` is orphaned."""
    references = references_to(entity) + references_from(entity)
    for reference in references:
        dangling = find_dangling_references(connection, reference)
        if dangling:
            sample = format_sample(
                f"{reference.child.name}={row['child_id']} -> {reference.parent.name}={row['missing_id']}"
                for row in dangling
            )
            raise ReferentialIntegrityViolation(
                f"{_reference_label(reference)} does not resolve to a surviving "
                f"{reference.parent.table} row. Sample: {sample}"
            )
