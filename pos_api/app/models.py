# models.py

"""Database models for the point-of-sale schema.

The catalog tables (``menu_items``, ``deals``, ``deal_items``) are reference
data for order entry. Orders own their lines exclusively; line names and prices
are snapshots taken at sale time.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

from .domain import Channel, OrderStatus
from .pricing import ProductKind

Base = declarative_base()


class User(Base):
    """Staff account able to authenticate against the API."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="User")
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MenuItem(Base):
    """Single sellable catalog item."""

    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Deal(Base):
    """Fixed bundle of menu items sold at its own price."""

    __tablename__ = "deals"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    items = relationship(
        "DealItem",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="DealItem.id",
    )


class DealItem(Base):
    """Component of a deal with a fixed quantity."""

    __tablename__ = "deal_items"

    id = Column(Integer, primary_key=True)
    deal_id = Column(Integer, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    menu_item = relationship("MenuItem", lazy="selectin")


class Order(Base):
    """Customer order with money fields computed from its lines."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String, unique=True, nullable=False)
    channel = Column(Enum(Channel, native_enum=False), nullable=False)
    status = Column(
        Enum(OrderStatus, native_enum=False),
        nullable=False,
        default=OrderStatus.DRAFT,
    )
    payment_method = Column(String, nullable=True)
    payment_status = Column(String, nullable=False, default="UNPAID")
    customer_name = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    customer_address = Column(Text, nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_charges = Column(Numeric(10, 2), nullable=False, default=0)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    created_by_user_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False)

    lines = relationship(
        "OrderLine",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (Index("ix_orders_created_at", "created_at"),)


class OrderLine(Base):
    """Line item belonging to exactly one order."""

    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True)
    order_id = Column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_kind = Column(Enum(ProductKind, native_enum=False), nullable=False)
    product_id = Column(Integer, nullable=False)
    name_at_sale = Column(String, nullable=False)
    unit_price_at_sale = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)


class OrderCounter(Base):
    """Monotonic counters backing human readable order numbers."""

    __tablename__ = "order_counters"

    series = Column(String, primary_key=True)
    current = Column(Integer, nullable=False, default=0)


class AuditOutbox(Base):
    """Audit events awaiting delivery to the external collector."""

    __tablename__ = "audit_outbox"

    id = Column(Integer, primary_key=True)
    action = Column(String, nullable=False)
    order_id = Column(Integer, nullable=True)
    order_number = Column(String, nullable=True)
    actor_id = Column(Integer, nullable=True)
    actor_name = Column(String, nullable=True)
    actor_role = Column(String, nullable=True)
    at = Column(DateTime(timezone=True), nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    status = Column(String, nullable=False, default="queued")
    attempts = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_audit_outbox_status", "status"),)
