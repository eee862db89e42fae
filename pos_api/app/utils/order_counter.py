"""Sequential order numbers backed by the ``order_counters`` table."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


def format_order_number(prefix: str, current: int) -> str:
    """Render ``current`` as ``PREFIX-000123``."""
    return f"{prefix}-{current:06d}"


async def next_order_number(session: AsyncSession, prefix: str) -> str:
    """Return the next order number for ``prefix``.

    The counter row is created if missing and incremented in the caller's
    transaction, so a rolled back order does not consume a number.
    """
    stmt = text(
        """
        INSERT INTO order_counters (series, current)
        VALUES (:series, 1)
        ON CONFLICT (series)
        DO UPDATE SET current = order_counters.current + 1
        RETURNING current
        """
    )
    result = await session.execute(stmt, {"series": prefix})
    current = result.scalar_one()
    return format_order_number(prefix, current)
