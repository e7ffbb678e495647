from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.url import URL, make_url

from drive_catalog.timing import has_active_timing, record_sql_time

logger = logging.getLogger(__name__)
timing_logger = logging.getLogger("drive_catalog.timing")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DB_PATH = PROJECT_ROOT / "catalog.db"

# Applied on every new SQLite connection, before any transaction starts.
SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
)

_ENGINE: Engine | None = None
_QUERY_START_KEY = "stage_timing_query_start"


def _format_sql_for_log(statement: str) -> str:
    compact = " ".join((statement or "").split())
    if len(compact) <= 180:
        return compact
    return f"{compact[:177]}..."


def _log_duration(event_name: str, start: float, **fields: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    if fields:
        field_text = " ".join(f"{key}={value}" for key, value in fields.items())
        timing_logger.info("db.timing event=%s ms=%.2f %s", event_name, elapsed_ms, field_text)
        return
    timing_logger.info("db.timing event=%s ms=%.2f", event_name, elapsed_ms)


def _sanitize_url(url: URL) -> str:
    if url.password is None:
        return str(url)
    return url.render_as_string(hide_password=True)


def resolve_database_url() -> str:
    explicit_url = os.getenv("CATALOG_DATABASE_URL") or os.getenv("DATABASE_URL")
    if explicit_url:
        return explicit_url

    db_path = os.getenv("CATALOG_DB_PATH", "").strip()
    if db_path:
        return f"sqlite:///{Path(db_path).expanduser()}"

    return f"sqlite:///{DEFAULT_DB_PATH}"


def _attach_sql_timing(engine: Engine) -> None:
    if getattr(engine, "_stage_timing_attached", False):
        return
    setattr(engine, "_stage_timing_attached", True)

    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if not has_active_timing():
            return
        conn.info.setdefault(_QUERY_START_KEY, []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_times = conn.info.get(_QUERY_START_KEY)
        if not start_times:
            return
        start = start_times.pop()
        elapsed = time.perf_counter() - start
        record_sql_time(elapsed)
        timing_logger.debug(
            "db.query.timing ms=%.2f rows=%s stmt=%s",
            elapsed * 1000.0,
            getattr(cursor, "rowcount", None),
            _format_sql_for_log(statement),
        )


def _attach_connection_defaults(engine: Engine) -> None:
    if getattr(engine, "_connection_defaults_attached", False):
        return
    setattr(engine, "_connection_defaults_attached", True)

    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Hand transaction control to SQLAlchemy so DDL joins the transaction.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            for pragma in SQLITE_PRAGMAS:
                cursor.execute(pragma)
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_catalog_engine(url: str | URL | None = None) -> Engine:
    build_start = time.perf_counter()
    resolved = make_url(url) if url is not None else make_url(resolve_database_url())
    logger.info("Catalog database target: %s", _sanitize_url(resolved))
    engine = create_engine(resolved, pool_pre_ping=True, future=True)
    _attach_sql_timing(engine)
    _attach_connection_defaults(engine)
    _log_duration("build_engine.total", build_start, dialect=engine.dialect.name)
    return engine


def get_engine() -> Engine:
    global _ENGINE
    if _ENGINE is None:
        start = time.perf_counter()
        _ENGINE = create_catalog_engine()
        _log_duration("get_engine.initialize", start)
    return _ENGINE


def check_connectivity(engine: Engine) -> None:
    start = time.perf_counter()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Database connectivity check failed: %s", exc)
        raise
    _log_duration("connectivity_check", start)


@contextmanager
def transaction_scope(engine: Engine | None = None, *, commit: bool = True) -> Iterator[Connection]:
    """Yield a connection inside one transaction.

    The transaction is committed when the block exits cleanly and ``commit`` is
    true; it is rolled back otherwise. Errors are logged and re-raised.
    """
    scope_start = time.perf_counter()
    resolved_engine = engine or get_engine()
    connection = resolved_engine.connect()
    transaction = connection.begin()
    try:
        yield connection
        if commit:
            commit_start = time.perf_counter()
            transaction.commit()
            _log_duration("transaction_scope.commit", commit_start)
        else:
            rollback_start = time.perf_counter()
            transaction.rollback()
            _log_duration("transaction_scope.discard", rollback_start)
    except Exception as exc:
        rollback_start = time.perf_counter()
        transaction.rollback()
        _log_duration("transaction_scope.rollback", rollback_start)
        logger.error("Database transaction rolled back: %s", exc, exc_info=True)
        raise
    finally:
        connection.close()
        _log_duration("transaction_scope.total", scope_start)
