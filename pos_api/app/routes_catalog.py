"""Read-only catalog listings used while taking orders."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .auth import Caller, get_current_caller
from .deps import get_sessionmaker
from .repos_sqlalchemy import CatalogRepoSQL
from .utils.responses import encode, ok

router = APIRouter(prefix="/api/orders")
catalog = CatalogRepoSQL()


@router.get("/menu-items")
async def list_menu_items(
    caller: Caller = Depends(get_current_caller),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    """Active menu items, grouped by category order."""
    async with sessionmaker() as session:
        items = await catalog.list_active_items(session)
    return ok({"menu_items": encode(items)})


@router.get("/deals")
async def list_deals(
    caller: Caller = Depends(get_current_caller),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    """Active deals with their component items."""
    async with sessionmaker() as session:
        deals = await catalog.list_active_deals(session)
    return ok({"deals": encode(deals)})
