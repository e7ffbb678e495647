"""Bring a catalog database up to the latest Alembic revision."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]


def build_config(db_url: str) -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--env-file", default="", help="dotenv file to load before resolving the database URL.")
    parser.add_argument("--revision", default="head", help="Target Alembic revision.")
    args = parser.parse_args()

    if args.env_file:
        load_dotenv(args.env_file, override=True)

    db_url = os.getenv("CATALOG_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not db_url:
        db_path = os.getenv("CATALOG_DB_PATH")
        if not db_path:
            raise SystemExit("CATALOG_DATABASE_URL or CATALOG_DB_PATH must be set before running this script")
        db_url = f"sqlite:///{Path(db_path).expanduser()}"

    command.upgrade(build_config(db_url), args.revision)
    print(f"Catalog database migrated to {args.revision}")


if __name__ == "__main__":
    main()
