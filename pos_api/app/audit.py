# audit.py

"""Audit events for order mutations.

The lifecycle manager builds :class:`AuditEvent` records and hands them to an
:class:`AuditSink`. The default :class:`OutboxAuditSink` stages each event in
the ``audit_outbox`` table using the caller's session, so the event commits or
rolls back together with the order change it describes. Delivery to the
external collector happens later in :mod:`services.audit_relay`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from .models import AuditOutbox

ORDER_CREATED = "ORDER_CREATED"
ORDER_UPDATED = "ORDER_UPDATED"
ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
ORDER_REOPENED = "ORDER_REOPENED"
ORDER_CANCELLED = "ORDER_CANCELLED"
ORDER_DELETED = "ORDER_DELETED"


@dataclass(frozen=True)
class AuditEvent:
    """Structured record of one order action."""

    action: str
    order_id: int | None
    order_number: str | None
    actor_id: int | None
    actor_name: str | None
    actor_role: str | None
    at: datetime
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["at"] = self.at.isoformat()
        return data


class AuditSink(Protocol):
    """Receiver for audit events raised inside an order transaction."""

    async def emit(self, session: AsyncSession, event: AuditEvent) -> None: ...


class OutboxAuditSink:
    """Stage events in ``audit_outbox`` within the caller's transaction."""

    async def emit(self, session: AsyncSession, event: AuditEvent) -> None:
        session.add(
            AuditOutbox(
                action=event.action,
                order_id=event.order_id,
                order_number=event.order_number,
                actor_id=event.actor_id,
                actor_name=event.actor_name,
                actor_role=event.actor_role,
                at=event.at,
                details=event.details,
                status="queued",
                attempts=0,
            )
        )
