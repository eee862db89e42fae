"""Slow query logging for SQLAlchemy engines."""

from __future__ import annotations

import hashlib
import logging
import os
import time

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine

SLOW_QUERY_MS = int(os.getenv("DB_SLOW_QUERY_MS", "200"))

logger = logging.getLogger("pos.db")


def _shorten(statement: str, limit: int = 200) -> str:
    sql = " ".join(statement.split())
    return sql if len(sql) <= limit else sql[: limit - 3] + "..."


def add_query_logger(
    engine: Engine | AsyncEngine, label: str, threshold_ms: int | None = None
) -> None:
    """Warn about statements on ``engine`` slower than ``threshold_ms``.

    Parameters are never logged, only a short hash so repeated calls can be
    grouped.
    """

    target = engine.sync_engine if isinstance(engine, AsyncEngine) else engine
    limit = SLOW_QUERY_MS if threshold_ms is None else threshold_ms

    @event.listens_for(target, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        context._pos_query_start = time.perf_counter()

    @event.listens_for(target, "after_cursor_execute")
    def _finish(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        elapsed_ms = (time.perf_counter() - context._pos_query_start) * 1000
        if elapsed_ms <= limit:
            return
        logger.warning(
            "slow query %dms db=%s sql=%s params=%s",
            int(elapsed_ms),
            label,
            _shorten(statement),
            hashlib.sha256(repr(parameters).encode()).hexdigest()[:8],
        )
