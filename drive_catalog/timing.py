from __future__ import annotations

from contextlib import contextmanager
import contextvars
from dataclasses import dataclass
import logging
import time
from typing import Generator, Optional

DEFAULT_LOGGER_NAME = "drive_catalog.migration"
logger = logging.getLogger(DEFAULT_LOGGER_NAME)

_CURRENT_TIMING: contextvars.ContextVar["StageTiming | None"] = contextvars.ContextVar(
    "stage_timing", default=None
)


@dataclass
class StageTiming:
    stage: str
    start: float
    sql_seconds: float = 0.0
    statements: int = 0

    def add_sql(self, seconds: float) -> None:
        self.sql_seconds += seconds
        self.statements += 1


def has_active_timing() -> bool:
    return _CURRENT_TIMING.get() is not None


def record_sql_time(seconds: float) -> None:
    timing = _CURRENT_TIMING.get()
    if timing is None:
        return
    timing.add_sql(seconds)


@contextmanager
def stage_timing(
    stage: str, log: Optional[logging.Logger] = None, **fields: object
) -> Generator[StageTiming, None, None]:
    """Time one migration stage and log total and SQL time when it ends.

    Nested stages are allowed; SQL time is only attributed to the innermost one.
    """
    start = time.perf_counter()
    timing = StageTiming(stage=stage, start=start)
    token = _CURRENT_TIMING.set(timing)
    try:
        yield timing
    finally:
        total = time.perf_counter() - start
        resolved_log = log or logger
        field_text = " ".join(f"{key}={value}" for key, value in fields.items())
        resolved_log.info(
            "migration.timing stage=%s total_ms=%.2f sql_ms=%.2f statements=%d %s",
            stage,
            total * 1000,
            timing.sql_seconds * 1000,
            timing.statements,
            field_text,
        )
        _CURRENT_TIMING.reset(token)
