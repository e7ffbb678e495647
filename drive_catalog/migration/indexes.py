from __future__ import annotations

import logging
from typing import Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection

from drive_catalog.schema import DRIVE_TABLE, FILE_ENTRY_TABLE

logger = logging.getLogger(__name__)

SECONDARY_INDEXES: Tuple[Tuple[str, str, Tuple[str, ...]], ...] = (
    ("idx_drive_entries_category_id", DRIVE_TABLE, ("category_id",)),
    ("idx_file_entries_drive_id", FILE_ENTRY_TABLE, ("drive_id",)),
    ("idx_file_entries_path", FILE_ENTRY_TABLE, ("path",)),
    ("idx_file_entries_drive_path", FILE_ENTRY_TABLE, ("drive_id", "path")),
)


def ensure_secondary_indexes(connection: Connection, *, analyze: bool = True) -> list[str]:
    """Create the join and search indexes if missing. Safe to re-run."""
    for name, table, columns in SECONDARY_INDEXES:
        connection.execute(
            text(f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({', '.join(columns)})")
        )
    if analyze:
        connection.execute(text("ANALYZE"))
    names = [name for name, _table, _columns in SECONDARY_INDEXES]
    logger.info("catalog.indexes ensured=%s", ",".join(names))
    return names


def drop_secondary_indexes(connection: Connection) -> None:
    for name, _table, _columns in SECONDARY_INDEXES:
        connection.execute(text(f"DROP INDEX IF EXISTS {name}"))
