"""FastAPI dependencies resolving shared application state."""

from __future__ import annotations

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .services.order_lifecycle import OrderLifecycleManager


def get_sessionmaker(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker


def get_lifecycle(request: Request) -> OrderLifecycleManager:
    return request.app.state.lifecycle
