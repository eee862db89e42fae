# main.py

"""FastAPI application for order entry, order lifecycle and the dashboard."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.asyncio import from_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings

from . import db as app_db
from .domain import OrderError
from .middlewares import LoggingMiddleware, RequestIdMiddleware
from .obs import capture_exception, init_sentry
from .obs.logging import configure_logging
from .routes_auth import router as auth_router
from .routes_catalog import router as catalog_router
from .routes_dashboard import router as dashboard_router
from .routes_metrics import router as metrics_router
from .routes_orders import router as orders_router
from .services.order_lifecycle import OrderLifecycleManager
from .utils.responses import err, ok, order_error

logger = logging.getLogger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    redis = getattr(app.state, "redis", None)
    if redis is not None:
        await redis.aclose()
    await app_db.dispose()


def create_app(
    sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None,
    redis: Any = None,
) -> FastAPI:
    """Build the application.

    Tests pass their own session factory and a fake Redis client; otherwise
    both are created from settings.
    """

    settings = get_settings()
    configure_logging(settings.log_level.upper())
    init_sentry(settings.error_dsn, env=os.getenv("ENV"))

    app = FastAPI(title="POS API", version="1.0.0", lifespan=lifespan)
    app.state.sessionmaker = sessionmaker or app_db.init_db()
    app.state.redis = redis if redis is not None else from_url(
        settings.redis_url, decode_responses=True
    )
    app.state.lifecycle = OrderLifecycleManager(app.state.sessionmaker)

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(LoggingMiddleware)

    @app.exception_handler(OrderError)
    async def order_error_handler(request: Request, exc: OrderError):
        logger.warning(
            exc.message,
            extra={"status": exc.status_code, "route": request.url.path},
        )
        return JSONResponse(
            order_error(exc),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            err(
                "VALIDATION_ERROR",
                "Invalid request",
                {"errors": jsonable_encoder(exc.errors())},
            ),
            status_code=422,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(
            exc.detail,
            extra={"status": exc.status_code, "route": request.url.path},
        )
        return JSONResponse(
            err(exc.status_code, exc.detail),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_error", extra={"status": 500, "route": request.url.path}
        )
        capture_exception(exc)
        return JSONResponse(err(500, "Internal Server Error"), status_code=500)

    # catalog paths must be matched before /api/orders/{order_id}
    app.include_router(auth_router)
    app.include_router(catalog_router)
    app.include_router(orders_router)
    app.include_router(dashboard_router)
    app.include_router(metrics_router)

    @app.get("/health")
    async def health() -> dict:
        return ok({"status": "ok"})

    return app


app = create_app()
