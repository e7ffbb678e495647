from __future__ import annotations

import logging
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.engine import Connection

from drive_catalog.schema import DRIVE_TABLE, LEGACY_INSERTION_TIME

logger = logging.getLogger(__name__)


def _has_column(connection: Connection, table: str, column: str) -> bool:
    columns = sa.inspect(connection).get_columns(table)
    return any(item["name"] == column for item in columns)


def add_insertion_time_column(connection: Connection) -> bool:
    """Add ``drive_entries.insertion_time`` with a constant default.

    A constant default keeps the ALTER cheap; real values come from
    :func:`backfill_insertion_time`. Returns False when the column exists.
    """
    if _has_column(connection, DRIVE_TABLE, "insertion_time"):
        logger.info("catalog.columns table=%s column=insertion_time already present", DRIVE_TABLE)
        return False
    connection.execute(
        text(
            f"""
            ALTER TABLE {DRIVE_TABLE}
            ADD COLUMN insertion_time TIMESTAMP NOT NULL DEFAULT '{LEGACY_INSERTION_TIME}'
            """
        )
    )
    logger.info("catalog.columns table=%s column=insertion_time added", DRIVE_TABLE)
    return True


def backfill_insertion_time(connection: Connection, value: datetime | None = None) -> int:
    """Replace the placeholder insertion time with a real one.

    Only rows still holding the constant default are touched, so the backfill
    can be repeated. ``value`` defaults to the current time.
    """
    placeholder = {"placeholder": LEGACY_INSERTION_TIME}
    if value is None:
        result = connection.execute(
            text(
                f"""
                UPDATE {DRIVE_TABLE}
                SET insertion_time = CURRENT_TIMESTAMP
                WHERE insertion_time = :placeholder
                """
            ),
            placeholder,
        )
    else:
        result = connection.execute(
            text(
                f"""
                UPDATE {DRIVE_TABLE}
                SET insertion_time = :value
                WHERE insertion_time = :placeholder
                """
            ),
            {"value": value.strftime("%Y-%m-%d %H:%M:%S"), **placeholder},
        )
    count = int(result.rowcount or 0)
    logger.info("catalog.columns table=%s column=insertion_time backfilled=%d", DRIVE_TABLE, count)
    return count
