from __future__ import annotations

from typing import Iterable, Sequence

import pytest
import sqlalchemy as sa
from sqlalchemy import text

from drive_catalog.db import create_catalog_engine
from drive_catalog.schema import define_catalog_tables

SCENARIO_CATEGORIES = [(1, "docs"), (2, "docs"), (3, "media")]
SCENARIO_DRIVES = [(10, 1, "D:", 111), (11, 2, "D:", 222), (12, 3, "E:", 333)]
SCENARIO_FILES = [(100, 10, "a.txt", 5), (101, 11, "A.TXT", 5)]


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "catalog.db"


@pytest.fixture
def engine(db_path):
    engine = create_catalog_engine(f"sqlite:///{db_path}")
    metadata = sa.MetaData()
    define_catalog_tables(metadata, id_type=sa.Integer(), natural_keys=False)
    with engine.begin() as connection:
        metadata.create_all(connection)
    yield engine
    engine.dispose()


def seed_catalog(
    connection,
    categories: Iterable[Sequence] = (),
    drives: Iterable[Sequence] = (),
    files: Iterable[Sequence] = (),
) -> None:
    for category_id, name in categories:
        connection.execute(
            text("INSERT INTO file_categories (id, name) VALUES (:id, :name)"),
            {"id": category_id, "name": name},
        )
    for drive in drives:
        drive_id, category_id, name = drive[:3]
        available_space = drive[3] if len(drive) > 3 else 0
        connection.execute(
            text(
                """
                INSERT INTO drive_entries (id, category_id, name, available_space, insertion_time)
                VALUES (:id, :category_id, :name, :available_space, :insertion_time)
                """
            ),
            {
                "id": drive_id,
                "category_id": category_id,
                "name": name,
                "available_space": available_space,
                "insertion_time": f"2025-10-{(drive_id % 28) + 1:02d} 12:00:00",
            },
        )
    for file_id, drive_id, path, weight in files:
        connection.execute(
            text("INSERT INTO file_entries (id, drive_id, path, weight) VALUES (:id, :drive_id, :path, :weight)"),
            {"id": file_id, "drive_id": drive_id, "path": path, "weight": weight},
        )


def fetch_all(engine, sql: str) -> list:
    with engine.connect() as connection:
        return [dict(row) for row in connection.execute(text(sql)).mappings().all()]


@pytest.fixture
def scenario_engine(engine):
    with engine.begin() as connection:
        seed_catalog(connection, SCENARIO_CATEGORIES, SCENARIO_DRIVES, SCENARIO_FILES)
    return engine
