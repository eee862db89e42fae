"""Order entry and lifecycle routes.

Every mutation goes through :class:`OrderLifecycleManager`; domain errors
propagate to the application's exception handler, which renders the error
envelope.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .auth import Caller, get_current_caller, manager_required
from .deps import get_lifecycle, get_sessionmaker
from .domain import OrderStatus, ValidationError, parse_channel
from .repos_sqlalchemy import OrdersRepoSQL
from .repos_sqlalchemy.orders_repo_sql import OrderFilters
from .schemas import OrderCreate, OrderPatchIn, StatusChange, serialize_order
from .services.order_lifecycle import PAYMENT_STATUSES, OrderLifecycleManager, OrderPatch
from .utils.responses import ok

router = APIRouter(prefix="/api/orders")
orders_repo = OrdersRepoSQL()


@router.post("", status_code=201)
async def create_order(
    payload: OrderCreate,
    caller: Caller = Depends(get_current_caller),
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
) -> dict:
    data = payload.model_dump()
    lines = data.pop("lines")
    order = await lifecycle.create_order(caller, lines=lines, **data)
    return ok({"order": serialize_order(order)}, message="Order created successfully")


@router.get("")
async def list_orders(
    status: Optional[str] = None,
    channel: Optional[str] = None,
    payment_status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    caller: Caller = Depends(get_current_caller),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    """Page through orders, newest first."""

    if status is not None and status not in OrderStatus.__members__:
        raise ValidationError(
            "Invalid status. Valid statuses are: " + ", ".join(OrderStatus.__members__),
            details={"status": status},
        )
    if channel is not None:
        channel = parse_channel(channel).value
    if payment_status is not None and payment_status not in PAYMENT_STATUSES:
        raise ValidationError(
            "Payment status must be PAID or UNPAID", details={"payment_status": payment_status}
        )
    filters = OrderFilters(status=status, channel=channel, payment_status=payment_status)
    async with sessionmaker() as session:
        orders, total = await orders_repo.list_orders(session, filters, page, limit)
        items = [serialize_order(order) for order in orders]
    return ok(
        {
            "orders": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }
    )


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    caller: Caller = Depends(get_current_caller),
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.get_order(order_id)
    return ok({"order": serialize_order(order)})


@router.patch("/{order_id}")
async def edit_order(
    order_id: int,
    payload: OrderPatchIn,
    caller: Caller = Depends(get_current_caller),
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
) -> dict:
    """Apply a partial update; only fields present in the body change."""

    patch = OrderPatch.from_dict(payload.model_dump(exclude_unset=True))
    order = await lifecycle.edit_order(caller, order_id, patch)
    return ok({"order": serialize_order(order)}, message="Order updated successfully")


@router.post("/{order_id}/status")
async def change_status(
    order_id: int,
    payload: StatusChange,
    caller: Caller = Depends(get_current_caller),
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.change_order_status(caller, order_id, payload.status)
    return ok(
        {"order": serialize_order(order)},
        message=f"Order status updated to {OrderStatus(order.status).value}",
    )


@router.get("/{order_id}/next-statuses")
async def next_statuses(
    order_id: int,
    caller: Caller = Depends(get_current_caller),
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
) -> dict:
    allowed = await lifecycle.valid_next_statuses(caller, order_id)
    return ok({"order_id": order_id, "next_statuses": [s.value for s in allowed]})


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    caller: Caller = Depends(manager_required),
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
) -> dict:
    """Hard delete an order. Managers only."""

    summary = await lifecycle.delete_order(caller, order_id)
    return ok({"deleted": summary}, message="Order deleted successfully")
