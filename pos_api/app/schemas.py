# schemas.py

"""Request bodies and response serializers for the HTTP layer."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .domain import Channel, OrderStatus
from .models import Order, OrderLine
from .pricing import ProductKind, format_money


class LoginIn(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LineIn(BaseModel):
    """Requested order line."""

    model_config = ConfigDict(extra="forbid")

    product_kind: ProductKind
    product_id: int
    quantity: int = Field(ge=1)


class OrderCreate(BaseModel):
    """Body of ``POST /api/orders``."""

    model_config = ConfigDict(extra="forbid")

    channel: str
    lines: List[LineIn]
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    delivery_charges: Optional[Decimal] = None
    discount: Optional[Decimal] = None


class OrderPatchIn(BaseModel):
    """Body of ``PATCH /api/orders/{id}``; omitted fields stay unchanged."""

    model_config = ConfigDict(extra="forbid")

    lines: Optional[List[LineIn]] = None
    channel: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    delivery_charges: Optional[Decimal] = None
    discount: Optional[Decimal] = None


class StatusChange(BaseModel):
    status: str


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def serialize_line(line: OrderLine) -> dict[str, Any]:
    return {
        "id": line.id,
        "product_kind": ProductKind(line.product_kind).value,
        "product_id": line.product_id,
        "name_at_sale": line.name_at_sale,
        "unit_price_at_sale": format_money(line.unit_price_at_sale),
        "quantity": line.quantity,
        "line_total": format_money(line.line_total),
    }


def serialize_order(order: Order) -> dict[str, Any]:
    """Render an order with its lines; amounts are two-decimal strings."""

    return {
        "id": order.id,
        "order_number": order.order_number,
        "channel": Channel(order.channel).value,
        "status": OrderStatus(order.status).value,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "customer_address": order.customer_address,
        "subtotal": format_money(order.subtotal),
        "delivery_charges": format_money(order.delivery_charges),
        "discount": format_money(order.discount),
        "total": format_money(order.total),
        "created_by_user_id": order.created_by_user_id,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
        "version": order.version,
        "lines": [serialize_line(line) for line in order.lines],
    }
