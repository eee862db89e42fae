"""Order status enumeration and per-channel transition policy.

Each channel walks its own path through a shared status vocabulary. Two edge
sets are derived from those paths: ``FORWARD_EDGES`` (the only moves an
ordinary user may make) and ``OVERRIDE_EDGES`` (one-step backward corrections
reserved for managers). Cancellation is handled separately because it is
reachable from every non-terminal status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import UnknownChannelError


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an order."""

    DRAFT = "DRAFT"
    PREPARING = "PREPARING"
    READY = "READY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    PICKED_UP = "PICKED_UP"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class Channel(str, Enum):
    """Fulfilment mode of an order."""

    DINE = "DINE"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"


class Reason(str, Enum):
    """Why a transition was allowed or refused."""

    FORWARD = "FORWARD"
    OVERRIDE = "OVERRIDE"
    CANCEL = "CANCEL"
    UNAUTHORIZED = "UNAUTHORIZED"
    TERMINAL = "TERMINAL"
    INVALID_TRANSITION = "INVALID_TRANSITION"


TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.FINISHED, OrderStatus.CANCELLED}
)

# Statuses that count as a fulfilled sale for reporting.
COMPLETED_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.FINISHED, OrderStatus.DELIVERED, OrderStatus.PICKED_UP}
)

CHANNEL_PATHS: dict[Channel, tuple[OrderStatus, ...]] = {
    Channel.DINE: (
        OrderStatus.DRAFT,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.FINISHED,
    ),
    Channel.TAKEAWAY: (
        OrderStatus.DRAFT,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.PICKED_UP,
        OrderStatus.FINISHED,
    ),
    Channel.DELIVERY: (
        OrderStatus.DRAFT,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.FINISHED,
    ),
}

FORWARD_EDGES: dict[Channel, dict[OrderStatus, OrderStatus]] = {
    channel: dict(zip(path, path[1:])) for channel, path in CHANNEL_PATHS.items()
}

# Terminal statuses never get a way back out.
OVERRIDE_EDGES: dict[Channel, dict[OrderStatus, OrderStatus]] = {
    channel: {
        dst: src for src, dst in zip(path, path[1:]) if dst not in TERMINAL_STATUSES
    }
    for channel, path in CHANNEL_PATHS.items()
}


@dataclass(frozen=True)
class TransitionDecision:
    """Outcome of :func:`decide_transition`."""

    allowed: bool
    reason: Reason
    is_override: bool
    allowed_next: tuple[OrderStatus, ...]
    message: str


def parse_channel(channel: Channel | str) -> Channel:
    """Return ``channel`` as a :class:`Channel` or raise ``UnknownChannelError``."""

    try:
        return Channel(channel)
    except ValueError:
        raise UnknownChannelError(channel) from None


def is_terminal(status: OrderStatus | str) -> bool:
    """Return ``True`` if ``status`` admits no further transitions."""

    return OrderStatus(status) in TERMINAL_STATUSES


def valid_next_statuses(
    channel: Channel | str, current: OrderStatus | str, is_privileged: bool
) -> tuple[OrderStatus, ...]:
    """Return the statuses reachable from ``current`` for this caller.

    Order is forward successor, then ``CANCELLED``, then the backward override.
    """

    ch = parse_channel(channel)
    current = OrderStatus(current)
    if current in TERMINAL_STATUSES:
        return ()
    result: list[OrderStatus] = []
    forward = FORWARD_EDGES[ch].get(current)
    if forward is not None:
        result.append(forward)
    if is_privileged:
        result.append(OrderStatus.CANCELLED)
        back = OVERRIDE_EDGES[ch].get(current)
        if back is not None:
            result.append(back)
    return tuple(result)


def decide_transition(
    channel: Channel | str,
    current: OrderStatus | str,
    requested: OrderStatus | str,
    is_privileged: bool,
) -> TransitionDecision:
    """Decide whether ``current -> requested`` is legal for ``channel``.

    Pure and deterministic. Raises ``UnknownChannelError`` for an unknown
    channel; every other outcome is described by the returned decision.
    """

    ch = parse_channel(channel)
    current = OrderStatus(current)
    requested = OrderStatus(requested)
    allowed_next = valid_next_statuses(ch, current, is_privileged)

    def refuse(reason: Reason, message: str) -> TransitionDecision:
        return TransitionDecision(False, reason, False, allowed_next, message)

    if requested is OrderStatus.CANCELLED and not is_privileged:
        return refuse(Reason.UNAUTHORIZED, "Only Managers can cancel orders")
    if current in TERMINAL_STATUSES:
        return refuse(
            Reason.TERMINAL,
            f"Order is {current.value}; no further status changes are allowed",
        )
    if requested is OrderStatus.CANCELLED:
        return TransitionDecision(
            True, Reason.CANCEL, False, allowed_next, "Order cancelled"
        )
    if FORWARD_EDGES[ch].get(current) is requested:
        return TransitionDecision(
            True, Reason.FORWARD, False, allowed_next, "Status transition allowed"
        )
    if is_privileged and OVERRIDE_EDGES[ch].get(current) is requested:
        return TransitionDecision(
            True,
            Reason.OVERRIDE,
            True,
            allowed_next,
            "Status transition allowed (Manager override)",
        )
    valid = ", ".join(s.value for s in allowed_next) or "none"
    return refuse(
        Reason.INVALID_TRANSITION,
        f"Invalid status transition from {current.value} to {requested.value} "
        f"for {ch.value} order. Valid next statuses: {valid}",
    )
