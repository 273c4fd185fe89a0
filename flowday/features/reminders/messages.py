"""
In-app message feed: the transient toasts the UI polls and renders.
"""
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, List, Optional

from flowday.features.reminders.timers import utcnow
from flowday.schemas import MessageLevel

logger = logging.getLogger("reminders.messages")

DEFAULT_DURATION_MS = 3000


@dataclass
class InAppMessage:
    id: int
    level: MessageLevel
    message: str
    duration_ms: int
    created_at: datetime


class InAppMessages:
    """Bounded feed of transient messages, oldest first."""

    def __init__(self, limit: int = 100, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._items: Deque[InAppMessage] = deque(maxlen=max(1, int(limit)))
        self._ids = itertools.count(1)
        self._clock = clock

    def push(self, level: MessageLevel, message: str, duration_ms: int = DEFAULT_DURATION_MS) -> InAppMessage:
        item = InAppMessage(
            id=next(self._ids),
            level=MessageLevel(level),
            message=str(message),
            duration_ms=int(duration_ms),
            created_at=self._clock(),
        )
        self._items.append(item)
        logger.info("[%s] %s", item.level.value, item.message)
        return item

    def info(self, message: str, duration_ms: int = DEFAULT_DURATION_MS) -> InAppMessage:
        return self.push(MessageLevel.info, message, duration_ms)

    def success(self, message: str, duration_ms: int = DEFAULT_DURATION_MS) -> InAppMessage:
        return self.push(MessageLevel.success, message, duration_ms)

    def warning(self, message: str, duration_ms: int = DEFAULT_DURATION_MS) -> InAppMessage:
        return self.push(MessageLevel.warning, message, duration_ms)

    def error(self, message: str, duration_ms: int = DEFAULT_DURATION_MS) -> InAppMessage:
        return self.push(MessageLevel.error, message, duration_ms)

    def recent(self, limit: Optional[int] = None) -> List[InAppMessage]:
        items = list(self._items)
        if isinstance(limit, int) and limit > 0:
            items = items[-limit:]
        return items

    def clear(self) -> int:
        count = len(self._items)
        self._items.clear()
        return count

    def __len__(self) -> int:
        return len(self._items)
