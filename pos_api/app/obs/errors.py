"""Error reporting through Sentry, with a logging fallback."""

from __future__ import annotations

import logging
from typing import Any, Optional

import sentry_sdk

logger = logging.getLogger("obs")


def init_sentry(
    dsn: Optional[str] = None,
    env: Optional[str] = None,
    release: Optional[str] = None,
) -> None:
    """Enable Sentry when ``dsn`` is set; otherwise errors are only logged."""
    if not dsn:
        logger.info("error_dsn not set; error sink disabled")
        return
    sentry_sdk.init(dsn=dsn, environment=env, release=release, send_default_pii=False)


def capture_exception(exc: BaseException, **tags: Any) -> None:
    """Report ``exc`` with optional ``tags`` such as ``order_id``."""
    clean = {k: str(v) for k, v in tags.items() if v is not None}
    if sentry_sdk.get_client().is_active():
        sentry_sdk.capture_exception(exc, tags=clean)
    else:
        logger.error("unhandled exception %s", clean or "", exc_info=exc)
