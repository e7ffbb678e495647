from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import text

from conftest import fetch_all
from drive_catalog.migration.columns import add_insertion_time_column, backfill_insertion_time
from drive_catalog.migration.indexes import drop_secondary_indexes, ensure_secondary_indexes
from drive_catalog.schema import LEGACY_INSERTION_TIME


def _create_catalog_without_insertion_time(connection):
    connection.execute(text("CREATE TABLE file_categories (id INTEGER PRIMARY KEY, name TEXT NOT NULL)"))
    connection.execute(
        text(
            """
            CREATE TABLE drive_entries (
                id INTEGER PRIMARY KEY,
                category_id INTEGER NOT NULL REFERENCES file_categories (id),
                name TEXT NOT NULL,
                available_space BIGINT NOT NULL DEFAULT 0
            )
            """
        )
    )


def test_add_column_then_backfill_are_separate_steps(db_path):
    from drive_catalog.db import create_catalog_engine

    engine = create_catalog_engine(f"sqlite:///{db_path}")
    try:
        with engine.begin() as connection:
            _create_catalog_without_insertion_time(connection)
            connection.execute(text("INSERT INTO file_categories (id, name) VALUES (1, 'docs')"))
            connection.execute(text("INSERT INTO drive_entries (id, category_id, name) VALUES (10, 1, 'D:')"))
            assert add_insertion_time_column(connection) is True
            assert add_insertion_time_column(connection) is False

        assert fetch_all(engine, "SELECT insertion_time FROM drive_entries") == [
            {"insertion_time": LEGACY_INSERTION_TIME}
        ]

        with engine.begin() as connection:
            assert backfill_insertion_time(connection, datetime(2025, 10, 1, 9, 30)) == 1
            connection.execute(text("INSERT INTO drive_entries (id, category_id, name) VALUES (11, 1, 'E:')"))
            # Already backfilled rows are left alone on a retry.
            assert backfill_insertion_time(connection, datetime(2026, 1, 1)) == 1

        assert fetch_all(engine, "SELECT id, insertion_time FROM drive_entries ORDER BY id") == [
            {"id": 10, "insertion_time": "2025-10-01 09:30:00"},
            {"id": 11, "insertion_time": "2026-01-01 00:00:00"},
        ]
    finally:
        engine.dispose()


def test_backfill_defaults_to_current_time(engine):
    with engine.begin() as connection:
        connection.execute(text("INSERT INTO file_categories (id, name) VALUES (1, 'docs')"))
        connection.execute(text("INSERT INTO drive_entries (id, category_id, name) VALUES (10, 1, 'D:')"))
        assert backfill_insertion_time(connection) == 1

    value = fetch_all(engine, "SELECT insertion_time FROM drive_entries")[0]["insertion_time"]
    assert value != LEGACY_INSERTION_TIME


def test_secondary_indexes_are_idempotent(scenario_engine):
    with scenario_engine.begin() as connection:
        first = ensure_secondary_indexes(connection)
        second = ensure_secondary_indexes(connection, analyze=False)

    assert first == second
    inspector = sa.inspect(scenario_engine)
    file_indexes = {index["name"]: index["column_names"] for index in inspector.get_indexes("file_entries")}
    assert file_indexes["idx_file_entries_drive_path"] == ["drive_id", "path"]
    assert file_indexes["idx_file_entries_path"] == ["path"]
    assert "idx_drive_entries_category_id" in {index["name"] for index in inspector.get_indexes("drive_entries")}

    with scenario_engine.begin() as connection:
        drop_secondary_indexes(connection)
    assert sa.inspect(scenario_engine).get_indexes("file_entries") == []
