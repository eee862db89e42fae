"""Dashboard statistics computed from scratch over a set of orders.

Everything here is a pure read-side projection: functions take already loaded
orders and never write back. Revenue, item quantities, delivery charges,
discounts, payment splits and rankings only count completed orders
(``FINISHED``, ``DELIVERED``, ``PICKED_UP``).

Day, month and year buckets are keyed by *business date*: the local date in
the configured time zone after shifting back by the day cutover hour, so with
a 06:00 cutover an order taken at 02:30 belongs to the previous day.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain import COMPLETED_STATUSES, Channel, OrderStatus, ValidationError
from ..pricing import ZERO, ProductKind, to_money
from ..repos.orders_repo import OrdersRepo

PAYMENT_METHODS = ("CASH", "ONLINE")
RECENT_ORDERS = 10


def resolve_tz(name: str | ZoneInfo) -> ZoneInfo:
    if isinstance(name, ZoneInfo):
        return name
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(
            f"Unknown time zone: {name}", details={"timezone": name}
        ) from None


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _status(order: Any) -> OrderStatus:
    return OrderStatus(order.status)


def is_completed(order: Any) -> bool:
    return _status(order) in COMPLETED_STATUSES


def business_date(ts: datetime, tz: ZoneInfo, cutover_hour: int) -> date:
    """Business day ``ts`` falls in for a day starting at ``cutover_hour``."""
    local = _utc(ts).astimezone(tz)
    return (local - timedelta(hours=cutover_hour)).date()


def _payment_split(orders: Iterable[Any]) -> dict[str, dict[str, Any]]:
    split = {method: {"amount": ZERO, "count": 0} for method in PAYMENT_METHODS}
    for order in orders:
        if not is_completed(order) or order.payment_method not in split:
            continue
        bucket = split[order.payment_method]
        bucket["amount"] += to_money(order.total)
        bucket["count"] += 1
    return split


def period_stats(orders: Sequence[Any]) -> dict[str, Any]:
    """Overview-shaped statistics plus the payment-method split."""

    completed = [o for o in orders if is_completed(o)]
    return {
        "total_orders": len(orders),
        "completed_orders": len(completed),
        "cancelled_orders": sum(1 for o in orders if _status(o) is OrderStatus.CANCELLED),
        "total_revenue": sum((to_money(o.total) for o in completed), ZERO),
        "total_items_quantity": sum(line.quantity for o in completed for line in o.lines),
        "total_delivery_charges": sum((to_money(o.delivery_charges) for o in completed), ZERO),
        "total_discount": sum((to_money(o.discount) for o in completed), ZERO),
        "payment_methods": _payment_split(completed),
    }


def overview(orders: Sequence[Any]) -> dict[str, Any]:
    stats = period_stats(orders)
    stats.pop("payment_methods")
    return stats


def order_summary(orders: Sequence[Any]) -> dict[str, Any]:
    """Counts by channel and status plus the payment-method split.

    Channel counts leave out ``DRAFT`` and ``CANCELLED`` orders; status counts
    cover every status, zero-filled.
    """

    by_channel = {channel.value: 0 for channel in Channel}
    by_status = {status.value: 0 for status in OrderStatus}
    for order in orders:
        status = _status(order)
        by_status[status.value] += 1
        if status not in (OrderStatus.DRAFT, OrderStatus.CANCELLED):
            by_channel[Channel(order.channel).value] += 1
    return {
        "total_orders": len(orders),
        "orders_by_channel": by_channel,
        "orders_by_status": by_status,
        "cancelled_orders_count": by_status[OrderStatus.CANCELLED.value],
        "payment_methods": _payment_split(orders),
    }


def top_products(orders: Sequence[Any], kind: ProductKind, limit: int = 10) -> list[dict[str, Any]]:
    """Best sellers of ``kind`` by quantity, then revenue, then name."""

    totals: dict[int, dict[str, Any]] = {}
    for order in orders:
        if not is_completed(order):
            continue
        for line in order.lines:
            if ProductKind(line.product_kind) is not kind:
                continue
            entry = totals.setdefault(
                line.product_id,
                {"id": line.product_id, "name": line.name_at_sale, "quantity": 0, "revenue": ZERO},
            )
            entry["quantity"] += line.quantity
            entry["revenue"] += to_money(line.line_total)
    ranked = sorted(
        totals.values(), key=lambda e: (-e["quantity"], -e["revenue"], e["name"], e["id"])
    )
    return ranked[:limit]


def day_history(orders: Sequence[Any], tz: ZoneInfo, cutover_hour: int) -> list[dict[str, Any]]:
    """One bucket per business day from the first to the last order, newest first.

    Days without orders are included with zero counts.
    """

    if not orders:
        return []
    grouped: dict[date, list[Any]] = defaultdict(list)
    for order in orders:
        grouped[business_date(order.created_at, tz, cutover_hour)].append(order)
    first, last = min(grouped), max(grouped)
    buckets = []
    day = last
    while day >= first:
        start = datetime.combine(day, time(hour=cutover_hour), tzinfo=tz)
        buckets.append(
            {
                "date": day.isoformat(),
                "cycle_start": start.isoformat(),
                "cycle_end": (start + timedelta(days=1)).isoformat(),
                **period_stats(grouped.get(day, [])),
            }
        )
        day -= timedelta(days=1)
    return buckets


def monthly(orders: Sequence[Any], tz: ZoneInfo, cutover_hour: int) -> list[dict[str, Any]]:
    grouped: dict[tuple[int, int], list[Any]] = defaultdict(list)
    for order in orders:
        day = business_date(order.created_at, tz, cutover_hour)
        grouped[(day.year, day.month)].append(order)
    return [
        {
            "month": f"{year:04d}-{month:02d}",
            "period": f"{calendar.month_name[month]} {year}",
            **period_stats(grouped[(year, month)]),
        }
        for year, month in sorted(grouped, reverse=True)
    ]


def yearly(orders: Sequence[Any], tz: ZoneInfo, cutover_hour: int) -> list[dict[str, Any]]:
    grouped: dict[int, list[Any]] = defaultdict(list)
    for order in orders:
        grouped[business_date(order.created_at, tz, cutover_hour).year].append(order)
    return [
        {"year": f"{year:04d}", "period": str(year), **period_stats(grouped[year])}
        for year in sorted(grouped, reverse=True)
    ]


def _recent(order: Any) -> dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "channel": Channel(order.channel).value,
        "status": _status(order).value,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "total": to_money(order.total),
        "created_at": _utc(order.created_at).isoformat(),
    }


def build_dashboard(
    orders: Sequence[Any],
    *,
    tz: str | ZoneInfo = "UTC",
    cutover_hour: int = 6,
    top_n: int = 10,
) -> dict[str, Any]:
    """Project ``orders`` onto the full dashboard payload."""

    if not 0 <= cutover_hour <= 23:
        raise ValidationError(
            "Day cutover hour must be between 0 and 23",
            details={"cutover_hour": cutover_hour},
        )
    zone = resolve_tz(tz)
    newest_first = sorted(orders, key=lambda o: (_utc(o.created_at), o.id or 0), reverse=True)
    return {
        "overview": overview(newest_first),
        "order_summary": order_summary(newest_first),
        "top_items": top_products(newest_first, ProductKind.ITEM, top_n),
        "top_deals": top_products(newest_first, ProductKind.DEAL, top_n),
        "day_history": day_history(newest_first, zone, cutover_hour),
        "monthly": monthly(newest_first, zone, cutover_hour),
        "yearly": yearly(newest_first, zone, cutover_hour),
        "recent_orders": [_recent(o) for o in newest_first[:RECENT_ORDERS]],
    }


async def load_dashboard(
    session: AsyncSession,
    repo: OrdersRepo,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    tz: str | ZoneInfo = "UTC",
    cutover_hour: int = 6,
    top_n: int = 10,
) -> dict[str, Any]:
    """Scan orders created in ``[start, end)`` and build the dashboard."""

    if start is not None and end is not None and _utc(start) >= _utc(end):
        raise ValidationError(
            "start must be earlier than end",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )
    orders = await repo.scan(session, start, end)
    data = build_dashboard(orders, tz=tz, cutover_hour=cutover_hour, top_n=top_n)
    data["range"] = {
        "start": _utc(start).isoformat() if start else None,
        "end": _utc(end).isoformat() if end else None,
    }
    return data
