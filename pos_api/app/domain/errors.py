"""Errors raised by the order lifecycle and pricing code.

Every error carries a machine readable ``code`` plus optional ``details`` so
the HTTP layer can render a structured envelope without inspecting messages.
"""

from __future__ import annotations

from typing import Any, Sequence


class OrderError(Exception):
    """Base class for user-facing order errors."""

    status_code = 400
    default_code = "ORDER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}


class ValidationError(OrderError):
    """Malformed or missing input, rejected before any mutation."""

    default_code = "VALIDATION_ERROR"


class UnknownChannelError(ValidationError):
    """The order channel is not one of DINE, TAKEAWAY or DELIVERY."""

    default_code = "UNKNOWN_CHANNEL"

    def __init__(self, channel: object) -> None:
        super().__init__(
            f"Invalid order channel: {channel}",
            details={"channel": str(channel)},
        )
        self.channel = channel


class NotFoundError(OrderError):
    """The referenced order does not exist."""

    status_code = 404
    default_code = "NOT_FOUND"


class StateError(OrderError):
    """Field mutation attempted on an order whose status forbids it."""

    status_code = 409
    default_code = "STATE_ERROR"


class Forbidden(OrderError):
    """Operation reserved for managers."""

    status_code = 403
    default_code = "FORBIDDEN"


class PolicyRejection(OrderError):
    """A status change refused by the transition policy.

    ``allowed_next`` lists the statuses the caller may request instead.
    """

    status_code = 409
    default_code = "INVALID_TRANSITION"

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        allowed_next: Sequence[str] = (),
    ) -> None:
        super().__init__(
            message,
            code=reason,
            details={"reason": reason, "allowed_next": list(allowed_next)},
        )
        self.reason = reason
        self.allowed_next = tuple(allowed_next)
        if reason == "UNAUTHORIZED":
            self.status_code = 403


class InfrastructureError(OrderError):
    """Storage or audit collaborator failure; the operation was rolled back."""

    status_code = 503
    default_code = "INFRASTRUCTURE_ERROR"
