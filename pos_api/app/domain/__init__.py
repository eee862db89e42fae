"""Domain models and helpers."""

from .errors import (
    Forbidden,
    InfrastructureError,
    NotFoundError,
    OrderError,
    PolicyRejection,
    StateError,
    UnknownChannelError,
    ValidationError,
)
from .order_status import (
    CHANNEL_PATHS,
    COMPLETED_STATUSES,
    FORWARD_EDGES,
    OVERRIDE_EDGES,
    TERMINAL_STATUSES,
    Channel,
    OrderStatus,
    Reason,
    TransitionDecision,
    decide_transition,
    is_terminal,
    parse_channel,
    valid_next_statuses,
)

__all__ = [
    "CHANNEL_PATHS",
    "COMPLETED_STATUSES",
    "FORWARD_EDGES",
    "OVERRIDE_EDGES",
    "TERMINAL_STATUSES",
    "Channel",
    "Forbidden",
    "InfrastructureError",
    "NotFoundError",
    "OrderError",
    "OrderStatus",
    "PolicyRejection",
    "Reason",
    "StateError",
    "TransitionDecision",
    "UnknownChannelError",
    "ValidationError",
    "decide_transition",
    "is_terminal",
    "parse_channel",
    "valid_next_statuses",
]
