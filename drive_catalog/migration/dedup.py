from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from drive_catalog.errors import ReferentialIntegrityViolation
from drive_catalog.schema import Entity, references_to

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CanonicalMap:
    """Temporary old-id -> canonical-id table covering every row of one entity."""

    entity: Entity
    table: str
    total: int
    survivors: int

    @property
    def duplicates(self) -> int:
        return self.total - self.survivors

    def as_dict(self, connection: Connection) -> Dict[Any, Any]:
        rows = connection.execute(text(f"SELECT old_id, canonical_id FROM {self.table}")).all()
        return {row.old_id: row.canonical_id for row in rows}


def _group_by_clause(entity: Entity) -> str:
    return ", ".join(entity.natural_key)


def drop_temporary_table(connection: Connection, table: str) -> None:
    connection.execute(text(f"DROP TABLE IF EXISTS {table}"))


def build_canonical_map(connection: Connection, entity: Entity) -> CanonicalMap:
    """Map each row of ``entity`` to the lowest id sharing its natural key."""
    table = entity.canonical_map_table
    drop_temporary_table(connection, table)
    connection.execute(
        text(
            f"""
            CREATE TEMPORARY TABLE {table} (
                old_id       INTEGER PRIMARY KEY,
                canonical_id INTEGER NOT NULL
            )
            """
        )
    )
    connection.execute(
        text(
            f"""
            INSERT INTO {table} (old_id, canonical_id)
            SELECT id, MIN(id) OVER (PARTITION BY {_group_by_clause(entity)})
            FROM {entity.table}
            """
        )
    )
    counts = connection.execute(
        text(
            f"""
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(CASE WHEN old_id = canonical_id THEN 1 ELSE 0 END), 0) AS survivors
            FROM {table}
            """
        )
    ).one()
    canonical_map = CanonicalMap(
        entity=entity,
        table=table,
        total=int(counts.total),
        survivors=int(counts.survivors),
    )
    logger.info(
        "catalog.dedup entity=%s rows=%d survivors=%d duplicates=%d",
        entity.name,
        canonical_map.total,
        canonical_map.survivors,
        canonical_map.duplicates,
    )
    return canonical_map


def delete_duplicates(connection: Connection, canonical_map: CanonicalMap) -> int:
    """Delete every non-canonical row. References must already be rewritten."""
    entity = canonical_map.entity
    try:
        result = connection.execute(
            text(
                f"""
                DELETE FROM {entity.table}
                WHERE id IN (
                    SELECT old_id
                    FROM {canonical_map.table}
                    WHERE old_id <> canonical_id
                )
                """
            )
        )
    except IntegrityError as exc:
        dependents = ", ".join(f"{ref.child.table}.{ref.column}" for ref in references_to(entity))
        raise ReferentialIntegrityViolation(
            f"Deleting duplicate {entity.name} rows would orphan rows in {dependents}; "
            "references must be rewritten before duplicates are removed."
        ) from exc
    removed = int(result.rowcount or 0)
    logger.info("catalog.dedup entity=%s removed=%d", entity.name, removed)
    return removed


def find_duplicate_groups(connection: Connection, entity: Entity, limit: int = 10) -> List[Dict[str, Any]]:
    key_columns = ", ".join(
        f"{expression} AS key_{index}" for index, expression in enumerate(entity.natural_key)
    )
    rows = connection.execute(
        text(
            f"""
            SELECT
                {key_columns},
                COUNT(*) AS row_count,
                MIN(id) AS canonical_id,
                MAX(id) AS last_id
            FROM {entity.table}
            GROUP BY {_group_by_clause(entity)}
            HAVING COUNT(*) > 1
            ORDER BY MIN(id)
            LIMIT :limit
            """
        ),
        {"limit": limit},
    ).mappings().all()
    return [dict(row) for row in rows]


def format_duplicate_groups(entity: Entity, groups: List[Dict[str, Any]]) -> str:
    formatted = []
    for group in groups:
        key = ", ".join(
            f"{expression}=`{group.get(f'key_{index}')}`"
            for index, expression in enumerate(entity.natural_key)
        )
        formatted.append(
            f"{key} rows={group.get('row_count')} ids=[{group.get('canonical_id')}..{group.get('last_id')}]"
        )
    return "; ".join(formatted) if formatted else "none"
