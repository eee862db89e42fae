"""SQLAlchemy implementation of the catalog lookup."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Deal, MenuItem
from ..pricing import ProductKind, ProductSnapshot, SnapshotKey, to_money
from ..repos.catalog_repo import CatalogRepo


class CatalogRepoSQL(CatalogRepo):
    """Resolve products to sale-time snapshots."""

    async def lookup(
        self, session: AsyncSession, keys: Iterable[SnapshotKey]
    ) -> dict[SnapshotKey, ProductSnapshot]:
        """Return snapshots for every key that exists, active or not."""
        wanted: dict[ProductKind, set[int]] = defaultdict(set)
        for kind, product_id in keys:
            wanted[kind].add(product_id)

        found: dict[SnapshotKey, ProductSnapshot] = {}
        for kind, model in ((ProductKind.ITEM, MenuItem), (ProductKind.DEAL, Deal)):
            ids = wanted.get(kind)
            if not ids:
                continue
            result = await session.execute(select(model).where(model.id.in_(ids)))
            for row in result.scalars():
                found[(kind, row.id)] = ProductSnapshot(
                    product_kind=kind,
                    product_id=row.id,
                    name=row.name,
                    price=to_money(row.price, "price"),
                    is_active=bool(row.is_active),
                )
        return found

    async def list_active_items(self, session: AsyncSession) -> list[dict]:
        """Return active menu items ordered by category and name."""
        result = await session.execute(
            select(MenuItem)
            .where(MenuItem.is_active.is_(True))
            .order_by(MenuItem.category, MenuItem.name)
        )
        return [
            {
                "id": item.id,
                "name": item.name,
                "category": item.category,
                "description": item.description,
                "price": to_money(item.price),
            }
            for item in result.scalars().all()
        ]

    async def list_active_deals(self, session: AsyncSession) -> list[dict]:
        """Return active deals with their component items."""
        result = await session.execute(
            select(Deal).where(Deal.is_active.is_(True)).order_by(Deal.name)
        )
        return [
            {
                "id": deal.id,
                "name": deal.name,
                "description": deal.description,
                "price": to_money(deal.price),
                "items": [
                    {
                        "menu_item_id": component.menu_item_id,
                        "name": component.menu_item.name if component.menu_item else None,
                        "quantity": component.quantity,
                    }
                    for component in deal.items
                ],
            }
            for deal in result.scalars().all()
        ]
