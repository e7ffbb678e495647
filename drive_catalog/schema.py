from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import sqlalchemy as sa

CATEGORY_TABLE = "file_categories"
DRIVE_TABLE = "drive_entries"
FILE_ENTRY_TABLE = "file_entries"

IDENTIFIER_LENGTH = 36
LEGACY_INSERTION_TIME = "2025-09-16 08:40:03"
NEXT_GENERATION_SUFFIX = "_new"


@dataclass(frozen=True)
class Entity:
    """One tier of the catalog and the natural key its rows are deduplicated on."""

    name: str
    table: str
    natural_key: Tuple[str, ...]

    @property
    def next_table(self) -> str:
        return f"{self.table}{NEXT_GENERATION_SUFFIX}"

    @property
    def canonical_map_table(self) -> str:
        return f"{self.name}_canonical_map"

    @property
    def id_map_table(self) -> str:
        return f"{self.name}_id_map"


@dataclass(frozen=True)
class Reference:
    child: Entity
    column: str
    parent: Entity


CATEGORY = Entity("category", CATEGORY_TABLE, ("name",))
DRIVE = Entity("drive", DRIVE_TABLE, ("name", "category_id"))
# Paths compare case-insensitively.
FILE_ENTRY = Entity("file_entry", FILE_ENTRY_TABLE, ("drive_id", "LOWER(path)"))

ENTITIES = (CATEGORY, DRIVE, FILE_ENTRY)

DRIVE_CATEGORY = Reference(DRIVE, "category_id", CATEGORY)
FILE_ENTRY_DRIVE = Reference(FILE_ENTRY, "drive_id", DRIVE)

REFERENCES = (DRIVE_CATEGORY, FILE_ENTRY_DRIVE)


def references_to(entity: Entity) -> Tuple[Reference, ...]:
    return tuple(ref for ref in REFERENCES if ref.parent == entity)


def references_from(entity: Entity) -> Tuple[Reference, ...]:
    return tuple(ref for ref in REFERENCES if ref.child == entity)


def _path_type(dialect_name: str) -> sa.Text:
    if dialect_name == "sqlite":
        return sa.Text(collation="NOCASE")
    return sa.Text()


def define_catalog_tables(
    metadata: sa.MetaData,
    *,
    id_type: sa.types.TypeEngine,
    dialect_name: str = "sqlite",
    suffix: str = "",
    natural_keys: bool = True,
    insertion_time: bool = True,
) -> Tuple[sa.Table, sa.Table, sa.Table]:
    """Declare the three catalog tables on ``metadata``.

    ``suffix`` names a table generation (``""`` for live tables, ``"_new"`` for
    the cutover copies). Unique constraints on the natural keys are only added
    when ``natural_keys`` is set; the legacy schema never had them.
    ``insertion_time=False`` gives the drive table as it was before that column
    was added.
    """
    integer_ids = isinstance(id_type, sa.Integer)
    category_table = f"{CATEGORY_TABLE}{suffix}"
    drive_table = f"{DRIVE_TABLE}{suffix}"
    file_table = f"{FILE_ENTRY_TABLE}{suffix}"

    category_args: list = [
        sa.Column("id", id_type, primary_key=True, autoincrement=integer_ids),
        sa.Column("name", sa.Text(), nullable=False),
    ]
    drive_args: list = [
        sa.Column("id", id_type, primary_key=True, autoincrement=integer_ids),
        sa.Column("category_id", id_type, sa.ForeignKey(f"{category_table}.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("available_space", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
    ]
    if insertion_time:
        drive_args.append(
            sa.Column(
                "insertion_time",
                sa.TIMESTAMP(),
                nullable=False,
                server_default=sa.text(f"'{LEGACY_INSERTION_TIME}'"),
            )
        )
    file_args: list = [
        sa.Column("id", id_type, primary_key=True, autoincrement=integer_ids),
        sa.Column("drive_id", id_type, sa.ForeignKey(f"{drive_table}.id"), nullable=False),
        sa.Column("path", _path_type(dialect_name), nullable=False),
        sa.Column("weight", sa.BigInteger(), nullable=False),
    ]

    if natural_keys:
        category_args.append(sa.UniqueConstraint("name", name=f"uq_{CATEGORY_TABLE}_name"))
        drive_args.append(
            sa.UniqueConstraint("name", "category_id", name=f"uq_{DRIVE_TABLE}_name_category")
        )
        file_args.append(
            sa.UniqueConstraint("drive_id", "path", name=f"uq_{FILE_ENTRY_TABLE}_drive_path")
        )

    table_kwargs = {"sqlite_autoincrement": True} if integer_ids else {}
    categories = sa.Table(category_table, metadata, *category_args, **table_kwargs)
    drives = sa.Table(drive_table, metadata, *drive_args, **table_kwargs)
    files = sa.Table(file_table, metadata, *file_args, **table_kwargs)
    return categories, drives, files
