"""Dashboard route."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import get_settings

from .auth import Caller, get_current_caller
from .deps import get_sessionmaker
from .repos_sqlalchemy import OrdersRepoSQL
from .routes_metrics import dashboard_cache_hits_total
from .services.reporting import load_dashboard
from .utils.responses import encode, ok

router = APIRouter()
logger = logging.getLogger("api")
orders_repo = OrdersRepoSQL()


def _cache_key(start: Optional[datetime], end: Optional[datetime]) -> str:
    return "dash:orders:{}:{}".format(
        start.isoformat() if start else "-", end.isoformat() if end else "-"
    )


@router.get("/api/dashboard")
async def dashboard(
    request: Request,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    force: bool = False,
    caller: Caller = Depends(get_current_caller),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    """Statistics for orders created in ``[start, end)``, or for all orders.

    Results are cached in Redis for ``dashboard_cache_ttl`` seconds; pass
    ``force=true`` to recompute.
    """

    settings = get_settings()
    redis = getattr(request.app.state, "redis", None)
    ttl = settings.dashboard_cache_ttl
    key = _cache_key(start, end)
    if redis is not None and ttl > 0 and not force:
        try:
            cached = await redis.get(key)
        except RedisError as exc:
            logger.warning("dashboard cache read failed: %s", exc)
            cached = None
        if cached:
            dashboard_cache_hits_total.inc()
            return ok(json.loads(cached))

    async with sessionmaker() as session:
        data = await load_dashboard(
            session,
            orders_repo,
            start=start,
            end=end,
            tz=settings.business_timezone,
            cutover_hour=settings.day_cutover_hour,
            top_n=settings.dashboard_top_n,
        )
    payload = encode(data)
    if redis is not None and ttl > 0:
        try:
            await redis.set(key, json.dumps(payload), ex=ttl)
        except RedisError as exc:
            logger.warning("dashboard cache write failed: %s", exc)
    return ok(payload)
