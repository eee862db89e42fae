"""Snapshot pricing for order lines and order totals.

Prices are captured from the catalog when a line is created and never re-read
afterwards. All arithmetic uses :class:`~decimal.Decimal` quantized to cents.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, Mapping, Sequence

from .domain.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class ProductKind(str, Enum):
    """Kind of catalog product referenced by an order line."""

    ITEM = "ITEM"
    DEAL = "DEAL"


def to_money(value: object, field: str = "amount") -> Decimal:
    """Convert ``value`` to a cent-quantized :class:`Decimal`.

    Floats go through ``str`` so ``9.5`` becomes ``Decimal("9.50")`` rather than
    its binary approximation.
    """

    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(
            f"{field} must be a number", details={"field": field}
        ) from None
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", details={"field": field})
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: object) -> str | None:
    """Wire form of an amount: a two-decimal string such as ``"19.00"``."""
    if value is None:
        return None
    return str(to_money(value))


@dataclass(frozen=True)
class LineRequest:
    """A requested order line before pricing."""

    product_kind: ProductKind
    product_id: int
    quantity: int


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog view of a product at the moment of sale."""

    product_kind: ProductKind
    product_id: int
    name: str
    price: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class PricedLine:
    """Order line with captured name and unit price."""

    product_kind: ProductKind
    product_id: int
    name_at_sale: str
    unit_price_at_sale: Decimal
    quantity: int
    line_total: Decimal


@dataclass(frozen=True)
class Totals:
    """Order-level money fields."""

    subtotal: Decimal
    delivery_charges: Decimal
    discount: Decimal
    total: Decimal


SnapshotKey = tuple[ProductKind, int]


def parse_line(raw: Mapping[str, object]) -> LineRequest:
    """Validate a raw ``{product_kind, product_id, quantity}`` mapping."""

    kind = raw.get("product_kind")
    try:
        product_kind = ProductKind(kind)
    except ValueError:
        raise ValidationError(
            "Each order line must have product_kind as ITEM or DEAL",
            details={"product_kind": kind},
        ) from None
    product_id = raw.get("product_id")
    quantity = raw.get("quantity")
    if (
        not isinstance(product_id, int)
        or isinstance(product_id, bool)
        or not isinstance(quantity, int)
        or isinstance(quantity, bool)
        or quantity < 1
    ):
        raise ValidationError(
            "Each order line must have product_id and quantity (minimum 1)",
            details={"product_id": product_id, "quantity": quantity},
        )
    return LineRequest(product_kind, product_id, quantity)


def price_lines(
    requests: Sequence[LineRequest],
    snapshots: Mapping[SnapshotKey, ProductSnapshot],
) -> list[PricedLine]:
    """Return priced lines for ``requests`` using ``snapshots``.

    A deal line takes the deal's own price, never the sum of its components.
    Raises :class:`ValidationError` when the list is empty or a product is
    missing or inactive.
    """

    if not requests:
        raise ValidationError(
            "Order lines are required. An order must contain at least one item.",
            code="EMPTY_ORDER",
        )
    priced: list[PricedLine] = []
    for req in requests:
        if req.quantity < 1:
            raise ValidationError(
                "Line quantity must be at least 1",
                details={"product_id": req.product_id, "quantity": req.quantity},
            )
        snap = snapshots.get((req.product_kind, req.product_id))
        label = "Menu item" if req.product_kind is ProductKind.ITEM else "Deal"
        if snap is None:
            raise ValidationError(
                f"{label} with ID {req.product_id} not found",
                code="PRODUCT_NOT_FOUND",
                details={"product_kind": req.product_kind.value, "product_id": req.product_id},
            )
        if not snap.is_active:
            raise ValidationError(
                f"{label} {snap.name} is not active",
                code="PRODUCT_INACTIVE",
                details={"product_kind": req.product_kind.value, "product_id": req.product_id},
            )
        unit = to_money(snap.price, "price")
        priced.append(
            PricedLine(
                product_kind=req.product_kind,
                product_id=req.product_id,
                name_at_sale=snap.name,
                unit_price_at_sale=unit,
                quantity=req.quantity,
                line_total=(unit * req.quantity).quantize(CENT),
            )
        )
    return priced


def subtotal_of(line_totals: Iterable[Decimal]) -> Decimal:
    """Sum ``line_totals`` as money."""

    return sum((to_money(v) for v in line_totals), ZERO)


def compute_totals(
    subtotal: Decimal, delivery_charges: object = None, discount: object = None
) -> Totals:
    """Return ``subtotal + delivery_charges - discount`` with validation.

    A discount larger than the payable amount is rejected instead of clamped.
    """

    subtotal = to_money(subtotal, "subtotal")
    charges = to_money(delivery_charges, "delivery_charges")
    disc = to_money(discount, "discount")
    if charges < 0:
        raise ValidationError(
            "Delivery charges must be a non-negative number",
            details={"delivery_charges": str(charges)},
        )
    if disc < 0:
        raise ValidationError(
            "Discount must be a non-negative number",
            details={"discount": str(disc)},
        )
    payable = subtotal + charges
    if disc > payable:
        raise ValidationError(
            f"Discount {disc} exceeds payable amount {payable}",
            code="DISCOUNT_TOO_LARGE",
            details={"discount": str(disc), "payable": str(payable)},
        )
    return Totals(
        subtotal=subtotal,
        delivery_charges=charges,
        discount=disc,
        total=payable - disc,
    )
