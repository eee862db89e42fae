#!/usr/bin/env python3
"""Background worker delivering queued audit events.

Environment variables:
- DATABASE_URL: SQLAlchemy URL of the order database (defaults to settings).
- POLL_INTERVAL: Seconds between polling attempts (default: 5).
- OUTBOX_MAX_ATTEMPTS: Max delivery attempts before a row is marked dead
  (default: 5).
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from config import get_settings  # noqa: E402
from pos_api.app import db as app_db  # noqa: E402
from pos_api.app.obs import capture_exception, init_sentry  # noqa: E402
from pos_api.app.obs.logging import configure_logging  # noqa: E402
from pos_api.app.services.audit_relay import deliver_pending  # noqa: E402

logger = logging.getLogger("pos.audit_relay")


async def process_once(sessionmaker, max_attempts: int) -> dict[str, int]:
    """Attempt to deliver all due audit events once."""
    async with sessionmaker() as session:
        return await deliver_pending(session, max_attempts=max_attempts)


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level.upper())
    init_sentry(settings.error_dsn, env=os.getenv("ENV"))
    poll = int(os.getenv("POLL_INTERVAL", "5"))
    max_attempts = int(os.getenv("OUTBOX_MAX_ATTEMPTS", "5"))
    sessionmaker = app_db.init_db()
    while True:
        try:
            counts = await process_once(sessionmaker, max_attempts)
            if any(counts.values()):
                logger.info("audit relay pass %s", counts)
        except Exception as exc:  # pragma: no cover - keep polling
            capture_exception(exc)
        await asyncio.sleep(poll)


if __name__ == "__main__":
    asyncio.run(main())
