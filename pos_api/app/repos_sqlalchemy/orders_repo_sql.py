"""SQLAlchemy-backed order repository.

Helpers operate on ``AsyncSession`` instances and never commit; the caller
owns the transaction so an order mutation and its audit rows land together.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Order
from ..repos.orders_repo import OrdersRepo
from ..utils.order_counter import next_order_number


@dataclass
class OrderFilters:
    """Optional equality filters for :meth:`OrdersRepoSQL.list_orders`."""

    status: str | None = None
    channel: str | None = None
    payment_status: str | None = None


def _utc(value: datetime | None) -> datetime | None:
    """Normalise ``value`` to UTC so comparisons match stored timestamps."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OrdersRepoSQL(OrdersRepo):
    """Concrete OrdersRepo using SQLAlchemy with an AsyncSession."""

    async def get(self, session: AsyncSession, order_id: int) -> Order | None:
        """Return the order for ``order_id`` with its lines loaded."""
        result = await session.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, session: AsyncSession, order: Order) -> Order:
        """Stage ``order`` and flush to obtain its id."""
        session.add(order)
        await session.flush()
        return order

    async def delete(self, session: AsyncSession, order: Order) -> None:
        """Delete ``order``; lines go with it through the ORM cascade."""
        await session.delete(order)
        await session.flush()

    async def scan(
        self,
        session: AsyncSession,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Sequence[Order]:
        """Return orders created in ``[start, end)``, newest first."""
        stmt = select(Order)
        if start is not None:
            stmt = stmt.where(Order.created_at >= _utc(start))
        if end is not None:
            stmt = stmt.where(Order.created_at < _utc(end))
        result = await session.execute(stmt.order_by(Order.created_at.desc(), Order.id.desc()))
        return result.scalars().all()

    async def list_orders(
        self,
        session: AsyncSession,
        filters: OrderFilters,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """Return one page of orders matching ``filters`` plus the total."""
        conditions = []
        if filters.status:
            conditions.append(Order.status == filters.status)
        if filters.channel:
            conditions.append(Order.channel == filters.channel)
        if filters.payment_status:
            conditions.append(Order.payment_status == filters.payment_status)

        total = await session.scalar(
            select(func.count()).select_from(Order).where(*conditions)
        )
        result = await session.execute(
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), int(total or 0)

    async def next_order_number(self, session: AsyncSession, prefix: str) -> str:
        return await next_order_number(session, prefix)
