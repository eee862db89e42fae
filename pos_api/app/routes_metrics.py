# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

# Counters
orders_created_total = Counter(
    "orders_created_total", "Total orders created", ["channel"]
)
for _channel in ("DINE", "TAKEAWAY", "DELIVERY"):
    orders_created_total.labels(channel=_channel).inc(0)

order_status_transitions_total = Counter(
    "order_status_transitions_total",
    "Total accepted order status transitions",
    ["channel", "reason"],
)

policy_rejections_total = Counter(
    "policy_rejections_total",
    "Total status change requests refused by the transition policy",
    ["reason"],
)
for _reason in ("UNAUTHORIZED", "TERMINAL", "INVALID_TRANSITION"):
    policy_rejections_total.labels(reason=_reason).inc(0)

order_version_conflicts_total = Counter(
    "order_version_conflicts_total",
    "Total optimistic lock conflicts on order writes",
)
order_version_conflicts_total.inc(0)

audit_outbox_delivered_total = Counter(
    "audit_outbox_delivered_total",
    "Total audit events delivered from outbox",
)
audit_outbox_delivered_total.inc(0)

audit_outbox_failed_total = Counter(
    "audit_outbox_failed_total",
    "Total audit events moved to dead status after max attempts",
)
audit_outbox_failed_total.inc(0)

dashboard_cache_hits_total = Counter(
    "dashboard_cache_hits_total", "Total dashboard responses served from cache"
)
dashboard_cache_hits_total.inc(0)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    data = generate_latest()
    return Response(data, media_type=CONTENT_TYPE_LATEST)
