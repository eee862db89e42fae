"""Async engine and session factory shared by the application.

``init_db`` builds the engine from settings (or an explicit URL) and stores the
session factory in module globals so routes and scripts resolve the same
instance. Tests call it with an in-memory SQLite URL.
"""

from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import get_settings

from ..models import Base
from ..obs import add_query_logger

engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str) -> AsyncEngine:
    """Create an :class:`AsyncEngine` for ``url`` with query logging attached.

    In-memory SQLite databases use a static pool so every session sees the
    same data.
    """

    kwargs: dict = {}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    eng = create_async_engine(url, **kwargs)
    add_query_logger(eng, parsed.get_backend_name())
    return eng


def init_db(url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Initialise the module-level engine and session factory."""

    global engine, SessionLocal
    engine = build_engine(url or get_settings().database_url)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    return SessionLocal


async def create_schema(target: AsyncEngine | None = None) -> None:
    """Create all tables on ``target`` (defaults to the shared engine)."""

    eng = target or engine
    if eng is None:
        raise RuntimeError("database not initialised; call init_db() first")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose() -> None:
    """Dispose the shared engine if one was created."""

    global engine, SessionLocal
    if engine is not None:
        await engine.dispose()
    engine = None
    SessionLocal = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the shared session factory, initialising it on first use."""

    return SessionLocal or init_db()


__all__ = [
    "SessionLocal",
    "build_engine",
    "create_schema",
    "dispose",
    "engine",
    "get_sessionmaker",
    "init_db",
]
