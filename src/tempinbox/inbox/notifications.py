"""User-visible notifications.

The session controller reports notable events (expiry, copy results,
failed deletions) through a Notifier. MemoryNotifier keeps a bounded
history for the HTTP snapshot and tests; LoggingNotifier only logs.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Protocol, runtime_checkable

from .models import Notification

logger = logging.getLogger(__name__)

_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "error": logging.WARNING,
}


@runtime_checkable
class Notifier(Protocol):
    """Protocol for surfacing notices to the user."""

    def notify(self, level: str, message: str) -> None:
        """Show a notice. level is success, info or error."""
        ...


class LoggingNotifier:
    """Notifier that writes notices to the log."""

    def notify(self, level: str, message: str) -> None:
        logger.log(_LEVELS.get(level, logging.INFO), "[%s] %s", level, message)


class MemoryNotifier:
    """Notifier that keeps the most recent notices in memory."""

    def __init__(self, max_items: int = 50) -> None:
        self._items: deque[Notification] = deque(maxlen=max_items)

    def notify(self, level: str, message: str) -> None:
        self._items.append(Notification(level=level, message=message))
        logger.log(_LEVELS.get(level, logging.INFO), "[%s] %s", level, message)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def messages(self, level: str | None = None) -> list[str]:
        return [n.message for n in self._items if level is None or n.level == level]

    def drain(self) -> list[Notification]:
        """Return and forget all stored notices."""
        items = list(self._items)
        self._items.clear()
        return items
