"""Deliver queued audit events from ``audit_outbox``.

Rows are written by :class:`~pos_api.app.audit.OutboxAuditSink` inside order
transactions. :func:`deliver_pending` forwards due rows to a publisher and
reschedules failures with backoff; after ``max_attempts`` a row is marked
``dead`` and left for inspection.
"""

from __future__ import annotations

import json
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditOutbox
from ..routes_metrics import audit_outbox_delivered_total, audit_outbox_failed_total

BACKOFF = [1, 5, 30, 120, 600]
MAX_ATTEMPTS = 5

audit_logger = logging.getLogger("audit")
logger = logging.getLogger("pos.audit_relay")

Publisher = Callable[[dict[str, Any]], None]


def log_event(payload: dict[str, Any]) -> None:
    """Default publisher writing one JSON line on the ``audit`` logger."""
    audit_logger.info(json.dumps(payload, default=str, sort_keys=True))


def _next_attempt(attempts: int, now: datetime) -> datetime:
    delay = BACKOFF[min(attempts - 1, len(BACKOFF) - 1)]
    jitter = random.uniform(0, delay * 0.1)
    return now + timedelta(seconds=delay + jitter)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _payload(row: AuditOutbox) -> dict[str, Any]:
    at = _as_utc(row.at)
    return {
        "id": row.id,
        "action": row.action,
        "order_id": row.order_id,
        "order_number": row.order_number,
        "actor_id": row.actor_id,
        "actor_name": row.actor_name,
        "actor_role": row.actor_role,
        "at": at.isoformat() if at else None,
        "details": row.details or {},
    }


async def deliver_pending(
    session: AsyncSession,
    publish: Publisher = log_event,
    *,
    now: datetime | None = None,
    batch: int = 100,
    max_attempts: int = MAX_ATTEMPTS,
) -> dict[str, int]:
    """Attempt delivery of due outbox rows once and commit the outcome.

    Returns counts of ``delivered``, ``retried`` and ``dead`` rows.
    """

    now = now or datetime.now(timezone.utc)
    result = await session.execute(
        select(AuditOutbox)
        .where(AuditOutbox.status == "queued")
        .where(
            or_(
                AuditOutbox.next_attempt_at.is_(None),
                AuditOutbox.next_attempt_at <= now,
            )
        )
        .order_by(AuditOutbox.id)
        .limit(batch)
    )
    counts = {"delivered": 0, "retried": 0, "dead": 0}
    for row in result.scalars().all():
        try:
            publish(_payload(row))
        except Exception as exc:
            row.attempts = (row.attempts or 0) + 1
            if row.attempts >= max_attempts:
                row.status = "dead"
                row.next_attempt_at = None
                audit_outbox_failed_total.inc()
                counts["dead"] += 1
                logger.error(
                    "audit event %s dead after %d attempts: %s",
                    row.id,
                    row.attempts,
                    exc,
                )
            else:
                row.next_attempt_at = _next_attempt(row.attempts, now)
                counts["retried"] += 1
                logger.warning(
                    "audit event %s delivery failed (attempt %d): %s",
                    row.id,
                    row.attempts,
                    exc,
                )
            continue
        row.status = "delivered"
        row.delivered_at = now
        audit_outbox_delivered_total.inc()
        counts["delivered"] += 1
    await session.commit()
    return counts
