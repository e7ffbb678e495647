from __future__ import annotations

from logging.config import fileConfig

from alembic import context

from drive_catalog.db import create_catalog_engine, resolve_database_url

config = context.config

if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = None


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or resolve_database_url()


def run_migrations_online() -> None:
    engine = create_catalog_engine(_database_url())
    try:
        with engine.connect() as connection:
            # Each revision commits on its own; DDL rolls back with the data on failure.
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                transactional_ddl=True,
                transaction_per_migration=True,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    # Revisions read catalog rows and inspect live tables.
    raise RuntimeError("Catalog revisions need a live connection; offline (--sql) mode is not supported.")
run_migrations_online()
