"""Request id propagation.

The id comes from the ``X-Request-ID`` header when the client sends one and is
generated otherwise. It is echoed on the response and kept in a context
variable for log records and error envelopes.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

HEADER = "X-Request-ID"

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def current_request_id() -> str | None:
    return request_id_ctx.get(None)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request."""

    async def dispatch(self, request: Request, call_next):
        # an outer middleware may already have chosen the id
        req_id = getattr(request.state, "request_id", None)
        if not req_id:
            req_id = request.headers.get(HEADER) or uuid.uuid4().hex
            request.state.request_id = req_id
        token = request_id_ctx.set(req_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[HEADER] = req_id
        return response
