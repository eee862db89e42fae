"""Response envelopes shared by every route.

Success: ``{"ok": true, "data": ..., "message"?: ...}``.
Failure: ``{"ok": false, "request_id": ..., "error": {"code", "message",
"details"?, "hint"?}}``.
"""

from decimal import Decimal
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder

from ..domain.errors import OrderError
from ..pricing import format_money


def encode(data: Any) -> Any:
    """``jsonable_encoder`` with amounts rendered as two-decimal strings."""
    return jsonable_encoder(data, custom_encoder={Decimal: format_money})


def ok(data: Any, message: str | None = None) -> Dict[str, Any]:
    """Return a success envelope."""
    body: Dict[str, Any] = {"ok": True, "data": data}
    if message:
        body["message"] = message
    return body


def err(
    code: int | str,
    message: str,
    details: Dict[str, Any] | None = None,
    hint: str | None = None,
) -> Dict[str, Any]:
    """Return an error envelope tagged with the current request id."""
    from ..middlewares.request_id import current_request_id

    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    if hint:
        error["hint"] = hint
    return {"ok": False, "request_id": current_request_id(), "error": error}


def order_error(exc: OrderError) -> Dict[str, Any]:
    """Envelope for a domain error; ``allowed_next`` becomes a hint."""
    hint = None
    allowed = exc.details.get("allowed_next")
    if allowed:
        hint = "allowed next statuses: " + ", ".join(allowed)
    return err(exc.code, exc.message, encode(exc.details), hint=hint)
