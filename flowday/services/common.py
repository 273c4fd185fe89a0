import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from flowday.config import get_settings

logger = logging.getLogger("services.common")


async def simulate_latency(scale: float = 1.0) -> None:
    """Sleep for the configured artificial backend latency."""
    ms = get_settings().simulated_latency_ms * scale
    if ms > 0:
        await asyncio.sleep(ms / 1000.0)


def ensure_utc(maybe: Any) -> Optional[datetime]:
    """Return a timezone-aware UTC datetime; naive values are assumed to be UTC."""
    if maybe is None:
        return None

    if isinstance(maybe, datetime):
        if maybe.tzinfo is None:
            return maybe.replace(tzinfo=timezone.utc)
        return maybe.astimezone(timezone.utc)

    if isinstance(maybe, date):
        return datetime(maybe.year, maybe.month, maybe.day, tzinfo=timezone.utc)

    if isinstance(maybe, str):
        text = maybe.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            logger.debug("Unparseable datetime %r", maybe)
            return None

    return None


def day_key(dt: Optional[datetime]) -> Optional[str]:
    """``YYYY-MM-DD`` for the UTC day containing ``dt``."""
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%d") if dt else None
