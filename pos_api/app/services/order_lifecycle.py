"""Mutation entry points for orders.

:class:`OrderLifecycleManager` is the only code that writes orders. Every
operation runs in a single database transaction that also stages the audit
event, so an order change and its audit record commit together or not at all.
Operations on an existing order additionally hold a per-order lock and rely on
the ``version`` column to detect writers outside this process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from config import get_settings

from .. import audit
from ..audit import AuditEvent, AuditSink, OutboxAuditSink
from ..auth import Caller
from ..domain import (
    Channel,
    Forbidden,
    InfrastructureError,
    NotFoundError,
    OrderError,
    OrderStatus,
    PolicyRejection,
    Reason,
    StateError,
    ValidationError,
    decide_transition,
    is_terminal,
    parse_channel,
)
from ..domain import valid_next_statuses as policy_next_statuses
from ..models import Order, OrderLine
from ..obs import capture_exception
from ..pricing import (
    LineRequest,
    PricedLine,
    compute_totals,
    format_money,
    parse_line,
    price_lines,
    subtotal_of,
)
from ..repos.catalog_repo import CatalogRepo
from ..repos.orders_repo import OrdersRepo
from ..repos_sqlalchemy import CatalogRepoSQL, OrdersRepoSQL
from ..routes_metrics import (
    order_status_transitions_total,
    order_version_conflicts_total,
    orders_created_total,
    policy_rejections_total,
)
from ..utils.locks import KeyedLocks

logger = logging.getLogger("pos.orders")

PAYMENT_METHODS = ("CASH", "ONLINE")
PAYMENT_STATUSES = ("PAID", "UNPAID")

T = TypeVar("T")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OrderPatch:
    """Partial update for :meth:`OrderLifecycleManager.edit_order`.

    Fields left as ``UNSET`` are not touched. ``lines`` replaces every line of
    the order when given.
    """

    lines: Sequence[LineRequest | Mapping[str, Any]] | None = UNSET
    channel: Channel | str | None = UNSET
    customer_name: str | None = UNSET
    customer_phone: str | None = UNSET
    customer_address: str | None = UNSET
    payment_method: str | None = UNSET
    payment_status: str | None = UNSET
    delivery_charges: Any = UNSET
    discount: Any = UNSET

    def provided(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not UNSET]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrderPatch":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown fields: {', '.join(unknown)}", details={"fields": unknown}
            )
        return cls(**data)


def _normalise_lines(lines: Iterable[LineRequest | Mapping[str, Any]] | None) -> list[LineRequest]:
    if lines is None:
        return []
    return [line if isinstance(line, LineRequest) else parse_line(line) for line in lines]


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _check_delivery_contact(name: str | None, phone: str | None, address: str | None) -> None:
    missing = [
        label
        for label, value in (
            ("customer_name", name),
            ("customer_phone", phone),
            ("customer_address", address),
        )
        if _blank(value)
    ]
    if missing:
        raise ValidationError(
            "Delivery orders require customer name, phone, and address",
            code="DELIVERY_CONTACT_REQUIRED",
            details={"missing": missing},
        )


def _check_payment(method: str | None, status: str | None) -> None:
    if method is not None and method not in PAYMENT_METHODS:
        raise ValidationError(
            "Payment method must be CASH or ONLINE", details={"payment_method": method}
        )
    if status is not None and status not in PAYMENT_STATUSES:
        raise ValidationError(
            "Payment status must be PAID or UNPAID", details={"payment_status": status}
        )


def _line_rows(priced: Sequence[PricedLine]) -> list[OrderLine]:
    return [
        OrderLine(
            product_kind=line.product_kind,
            product_id=line.product_id,
            name_at_sale=line.name_at_sale,
            unit_price_at_sale=line.unit_price_at_sale,
            quantity=line.quantity,
            line_total=line.line_total,
        )
        for line in priced
    ]


def order_summary(order: Order) -> dict[str, Any]:
    """JSON-safe summary used in audit details."""
    return {
        "order_number": order.order_number,
        "channel": Channel(order.channel).value,
        "status": OrderStatus(order.status).value,
        "total": format_money(order.total),
        "line_count": len(order.lines),
    }


class OrderLifecycleManager:
    """Create, edit, transition and delete orders."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        orders_repo: OrdersRepo | None = None,
        catalog: CatalogRepo | None = None,
        audit_sink: AuditSink | None = None,
        clock: Callable[[], datetime] = utcnow,
        locks: KeyedLocks | None = None,
        order_number_prefix: str | None = None,
        retries: int | None = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._orders = orders_repo or OrdersRepoSQL()
        self._catalog = catalog or CatalogRepoSQL()
        self._audit = audit_sink or OutboxAuditSink()
        self._clock = clock
        self._locks = locks or KeyedLocks()
        self._prefix = order_number_prefix or settings.order_number_prefix
        self._retries = settings.status_change_retries if retries is None else retries
        if self._retries < 1:
            raise ValueError("retries must be at least 1")

    # transaction plumbing -------------------------------------------------

    async def _transaction(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``work`` in one transaction, retrying on version conflicts."""
        for attempt in range(1, self._retries + 1):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await work(session)
            except StaleDataError:
                order_version_conflicts_total.inc()
                logger.warning("order version conflict (attempt %d/%d)", attempt, self._retries)
                continue
            except OrderError:
                raise
            except SQLAlchemyError as exc:
                capture_exception(exc)
                raise InfrastructureError("Order storage is unavailable; nothing was changed") from exc
        raise StateError(
            "Order was modified concurrently; please reload and retry",
            code="CONCURRENT_MODIFICATION",
        )

    async def _emit(self, session: AsyncSession, event: AuditEvent) -> None:
        try:
            await self._audit.emit(session, event)
        except (OrderError, SQLAlchemyError):
            raise
        except Exception as exc:
            capture_exception(exc, action=event.action, order_number=event.order_number)
            raise InfrastructureError("Audit sink failed; nothing was changed") from exc

    def _event(
        self, action: str, order: Order, caller: Caller, at: datetime, **details: Any
    ) -> AuditEvent:
        return AuditEvent(
            action=action,
            order_id=order.id,
            order_number=order.order_number,
            actor_id=caller.user_id,
            actor_name=caller.username,
            actor_role=caller.role,
            at=at,
            details=details,
        )

    async def _load(self, session: AsyncSession, order_id: int) -> Order:
        order = await self._orders.get(session, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
        return order

    async def _price(
        self, session: AsyncSession, requests: Sequence[LineRequest]
    ) -> list[PricedLine]:
        keys = {(req.product_kind, req.product_id) for req in requests}
        snapshots = await self._catalog.lookup(session, keys) if keys else {}
        return price_lines(requests, snapshots)

    # operations -----------------------------------------------------------

    async def create_order(
        self,
        caller: Caller,
        *,
        channel: Channel | str,
        lines: Sequence[LineRequest | Mapping[str, Any]],
        customer_name: str | None = None,
        customer_phone: str | None = None,
        customer_address: str | None = None,
        payment_method: str | None = None,
        payment_status: str | None = None,
        delivery_charges: Any = None,
        discount: Any = None,
    ) -> Order:
        """Create a ``DRAFT`` order priced from the current catalog."""

        ch = parse_channel(channel)
        if ch is Channel.DELIVERY:
            _check_delivery_contact(customer_name, customer_phone, customer_address)
        _check_payment(payment_method, payment_status)
        if payment_status is None:
            payment_status = "PAID" if payment_method == "ONLINE" else "UNPAID"
        requests = _normalise_lines(lines)

        async def work(session: AsyncSession) -> Order:
            priced = await self._price(session, requests)
            totals = compute_totals(
                subtotal_of(line.line_total for line in priced), delivery_charges, discount
            )
            now = self._clock()
            order = Order(
                order_number=await self._orders.next_order_number(session, self._prefix),
                channel=ch,
                status=OrderStatus.DRAFT,
                payment_method=payment_method,
                payment_status=payment_status,
                customer_name=customer_name,
                customer_phone=customer_phone,
                customer_address=customer_address,
                subtotal=totals.subtotal,
                delivery_charges=totals.delivery_charges,
                discount=totals.discount,
                total=totals.total,
                created_by_user_id=caller.user_id,
                created_at=now,
                updated_at=now,
                lines=_line_rows(priced),
            )
            await self._orders.add(session, order)
            await self._emit(
                session,
                self._event(
                    audit.ORDER_CREATED,
                    order,
                    caller,
                    now,
                    channel=ch.value,
                    status=OrderStatus.DRAFT.value,
                    total=str(totals.total),
                    line_count=len(priced),
                ),
            )
            return order

        order = await self._transaction(work)
        orders_created_total.labels(channel=ch.value).inc()
        logger.info("order %s created channel=%s", order.order_number, ch.value)
        return order

    async def edit_order(
        self, caller: Caller, order_id: int, patch: OrderPatch | Mapping[str, Any]
    ) -> Order:
        """Apply ``patch`` to a ``DRAFT`` order.

        A patch that only sets ``payment_status`` is accepted in every
        non-terminal status.
        """

        if not isinstance(patch, OrderPatch):
            patch = OrderPatch.from_dict(patch)
        provided = patch.provided()
        if not provided:
            raise ValidationError("No fields to update", code="EMPTY_PATCH")
        new_method = patch.payment_method if "payment_method" in provided else None
        new_status = patch.payment_status if "payment_status" in provided else None
        _check_payment(new_method, new_status)
        requests = None
        if "lines" in provided:
            requests = _normalise_lines(patch.lines)
            if not requests:
                raise ValidationError(
                    "Order lines must be a non-empty list if provided", code="EMPTY_ORDER"
                )

        async with self._locks.hold(order_id):

            async def work(session: AsyncSession) -> Order:
                order = await self._load(session, order_id)
                current = OrderStatus(order.status)
                if is_terminal(current):
                    raise StateError(
                        f"Order is {current.value} and can no longer be edited",
                        details={"status": current.value},
                    )
                if provided != ["payment_status"] and current is not OrderStatus.DRAFT:
                    if caller.is_manager and current is OrderStatus.PREPARING:
                        raise StateError(
                            "Cannot edit PREPARING order directly. Reopen it to DRAFT "
                            "first through the status endpoint.",
                            details={"status": current.value},
                        )
                    raise StateError(
                        f"Only DRAFT orders can be edited. Current order status: {current.value}",
                        details={"status": current.value},
                    )
                channel = Channel(order.channel)
                if "channel" in provided and patch.channel is not None:
                    if parse_channel(patch.channel) is not channel:
                        raise ValidationError(
                            "Order channel cannot be changed",
                            code="CHANNEL_IMMUTABLE",
                            details={"channel": channel.value},
                        )

                def final(name: str) -> Any:
                    return getattr(patch, name) if name in provided else getattr(order, name)

                if channel is Channel.DELIVERY:
                    _check_delivery_contact(
                        final("customer_name"), final("customer_phone"), final("customer_address")
                    )

                priced = await self._price(session, requests) if requests is not None else None
                subtotal = (
                    subtotal_of(line.line_total for line in priced)
                    if priced is not None
                    else order.subtotal
                )
                totals = compute_totals(
                    subtotal, final("delivery_charges"), final("discount")
                )

                if priced is not None:
                    order.lines = _line_rows(priced)
                for name in ("customer_name", "customer_phone", "customer_address", "payment_method"):
                    if name in provided:
                        setattr(order, name, getattr(patch, name))
                if "payment_status" in provided and patch.payment_status is not None:
                    order.payment_status = patch.payment_status
                elif "payment_method" in provided and patch.payment_method == "ONLINE":
                    order.payment_status = "PAID"
                order.subtotal = totals.subtotal
                order.delivery_charges = totals.delivery_charges
                order.discount = totals.discount
                order.total = totals.total
                now = self._clock()
                order.updated_at = now
                await session.flush()
                await self._emit(
                    session,
                    self._event(
                        audit.ORDER_UPDATED,
                        order,
                        caller,
                        now,
                        fields=[name for name in provided if name != "channel"],
                        total=str(totals.total),
                    ),
                )
                return order

            order = await self._transaction(work)
        logger.info("order %s updated fields=%s", order.order_number, ",".join(provided))
        return order

    async def change_order_status(
        self, caller: Caller, order_id: int, requested: OrderStatus | str
    ) -> Order:
        """Move an order to ``requested`` if the transition policy allows it."""

        try:
            requested = OrderStatus(requested)
        except ValueError:
            raise ValidationError(
                "Invalid order status. Must be one of: "
                + ", ".join(s.value for s in OrderStatus),
                details={"status": str(requested)},
            ) from None

        async with self._locks.hold(order_id):

            async def work(session: AsyncSession) -> tuple[Order, Reason]:
                order = await self._load(session, order_id)
                previous = OrderStatus(order.status)
                channel = Channel(order.channel)
                decision = decide_transition(channel, previous, requested, caller.is_manager)
                if not decision.allowed:
                    policy_rejections_total.labels(reason=decision.reason.value).inc()
                    raise PolicyRejection(
                        decision.message,
                        reason=decision.reason.value,
                        allowed_next=[s.value for s in decision.allowed_next],
                    )
                now = self._clock()
                order.status = requested
                order.updated_at = now
                await session.flush()
                if decision.reason is Reason.CANCEL:
                    action = audit.ORDER_CANCELLED
                elif decision.is_override:
                    action = audit.ORDER_REOPENED
                else:
                    action = audit.ORDER_STATUS_CHANGED
                await self._emit(
                    session,
                    self._event(
                        action,
                        order,
                        caller,
                        now,
                        previous_status=previous.value,
                        new_status=requested.value,
                        channel=channel.value,
                        reason=decision.reason.value,
                    ),
                )
                return order, decision.reason

            order, reason = await self._transaction(work)
        order_status_transitions_total.labels(
            channel=Channel(order.channel).value, reason=reason.value
        ).inc()
        logger.info(
            "order %s status -> %s reason=%s", order.order_number, requested.value, reason.value
        )
        return order

    async def delete_order(self, caller: Caller, order_id: int) -> dict[str, Any]:
        """Remove an order and its lines. Managers only."""

        if not caller.is_manager:
            raise Forbidden("Only Managers can delete orders")

        async with self._locks.hold(order_id):

            async def work(session: AsyncSession) -> dict[str, Any]:
                order = await self._load(session, order_id)
                summary = order_summary(order)
                event = self._event(audit.ORDER_DELETED, order, caller, self._clock(), **summary)
                await self._orders.delete(session, order)
                await self._emit(session, event)
                return summary

            summary = await self._transaction(work)
        logger.info("order %s deleted", summary["order_number"])
        return summary

    async def get_order(self, order_id: int) -> Order:
        async def work(session: AsyncSession) -> Order:
            return await self._load(session, order_id)

        return await self._transaction(work)

    async def valid_next_statuses(self, caller: Caller, order_id: int) -> tuple[OrderStatus, ...]:
        """Statuses ``caller`` may request next for the stored order."""
        order = await self.get_order(order_id)
        return policy_next_statuses(order.channel, order.status, caller.is_manager)
