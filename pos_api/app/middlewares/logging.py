"""Structured request logging.

Each logged request produces two JSON lines on the ``api`` logger: an inbound
line with the (redacted) query and body, and an outbound line with status and
latency. Successful responses are sampled at ``LOG_SAMPLE_2XX``; everything
else is always logged.
"""

import json
import logging
import os
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..obs import capture_exception
from ..utils.responses import err
from .request_id import HEADER, request_id_ctx

# Request fields that never reach the logs
PII_KEYS = {
    "password",
    "access_token",
    "customer_name",
    "customer_phone",
    "customer_address",
}
LOG_SAMPLE_2XX = float(os.getenv("LOG_SAMPLE_2XX", "0.1"))

logger = logging.getLogger("api")


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {
            k: ("***" if k.lower() in PII_KEYS else _redact(v)) for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [_redact(v) for v in obj]
    return obj


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def _buffer_json(request: Request) -> Any:
    """Read the body once, replay it downstream and return it parsed if JSON."""

    raw = await request.body()

    async def receive() -> dict:
        return {"type": "http.request", "body": raw, "more_body": False}

    request._receive = receive
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _should_log(status: int) -> bool:
    if 200 <= status < 300:
        return random.random() < LOG_SAMPLE_2XX
    return True


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log inbound and outbound request lines tagged with the request id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = getattr(request.state, "request_id", None)
        token = None
        if not req_id:
            req_id = request.headers.get(HEADER) or uuid.uuid4().hex
            request.state.request_id = req_id
            token = request_id_ctx.set(req_id)

        inbound: dict[str, Any] = {
            "ts": _now(),
            "level": "INFO",
            "req_id": req_id,
            "method": request.method,
            "path": request.url.path,
            "ip": request.client.host if request.client else None,
            "ua": request.headers.get("user-agent"),
        }
        if request.query_params:
            inbound["query"] = _redact(dict(request.query_params))
        body = await _buffer_json(request)
        if body is not None:
            inbound["body"] = _redact(body)

        started = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception as exc:
            error_id = uuid.uuid4().hex
            logger.exception(json.dumps({"req_id": req_id, "error_id": error_id}))
            capture_exception(exc, request_id=req_id, error_id=error_id)
            payload = err("INTERNAL", "Internal Server Error")
            payload["error_id"] = error_id
            response = JSONResponse(payload, status_code=500)

        status = response.status_code
        outbound: dict[str, Any] = {
            "ts": _now(),
            "level": "ERROR" if status >= 500 else "INFO",
            "req_id": req_id,
            "method": request.method,
            "route": request.url.path,
            "status": status,
            "latency_ms": int((time.perf_counter() - started) * 1000),
        }
        if error_id:
            outbound["error_id"] = error_id
        if _should_log(status):
            logger.info(json.dumps(inbound))
            if status >= 500:
                logger.error(json.dumps(outbound))
            else:
                logger.info(json.dumps(outbound))

        response.headers[HEADER] = req_id
        if token is not None:
            request_id_ctx.reset(token)
        return response
