#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from drive_catalog.db import check_connectivity, create_catalog_engine, transaction_scope
from drive_catalog.errors import CatalogMigrationError
from drive_catalog.migration.engine import MigrationReport, migrate_catalog
from drive_catalog.migration.indexes import ensure_secondary_indexes


def _print_summary(report: MigrationReport) -> None:
    mode = "dry run (rolled back)" if report.dry_run else "committed"
    print(f"Catalog identity migration {mode}:")
    for name, stats in report.entities.items():
        print(
            f"- {name}: rows before {stats.rows_before}, "
            f"duplicates removed {stats.duplicates_removed}, rows migrated {stats.rows_migrated}"
        )
    if report.references_rewritten:
        print("- references rewritten:")
        for reference, count in report.references_rewritten.items():
            print(f"  - {reference}: {count}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Deduplicate the drive catalog and re-key it with random string identifiers.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL of the catalog. Defaults to CATALOG_DATABASE_URL / CATALOG_DB_PATH.",
    )
    parser.add_argument(
        "--env-file",
        default="",
        help="dotenv file to load before resolving the database URL.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the whole migration, print the summary, then roll everything back.",
    )
    parser.add_argument(
        "--indexes-only",
        action="store_true",
        help="Only (re)create the secondary indexes; safe to repeat.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)-5.5s [%(name)s] %(message)s")
    if args.env_file:
        env_path = Path(args.env_file)
        if not env_path.exists():
            print(f"Could not find environment file '{env_path}'.")
            return 1
        load_dotenv(env_path, override=True)

    engine = create_catalog_engine(args.database_url)
    try:
        try:
            check_connectivity(engine)
        except SQLAlchemyError as exc:
            print(f"Could not connect to the catalog database: {exc}")
            return 1

        if not args.indexes_only:
            try:
                report = migrate_catalog(engine, dry_run=args.dry_run)
            except (CatalogMigrationError, SQLAlchemyError) as exc:
                print(f"Migration failed: {exc}")
                return 1
            _print_summary(report)
            if args.dry_run:
                return 0

        try:
            with transaction_scope(engine) as connection:
                names = ensure_secondary_indexes(connection)
        except SQLAlchemyError as exc:
            print(f"Index creation failed: {exc}. Re-run with --indexes-only.")
            return 1
        print(f"Secondary indexes ensured: {', '.join(names)}")
        return 0
    finally:
        engine.dispose()


if __name__ == "__main__":
    raise SystemExit(main())
