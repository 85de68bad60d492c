"""Message poller.

Periodically refreshes the message list while a session is active.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class MessagePoller:
    """Polls for messages on a configurable interval."""

    def __init__(
        self,
        refresh: Callable[[], Awaitable[Any]],
        interval_seconds: float,
    ) -> None:
        self._refresh = refresh
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the poller is currently running."""
        return self._running

    def start(self) -> None:
        """Start the background polling task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.ensure_future(self._poll_loop())

    def stop(self) -> None:
        """Stop the background polling task."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        # Stopping from inside the loop: the while-condition ends it.
        with contextlib.suppress(RuntimeError):
            if task is asyncio.current_task():
                return
        task.cancel()

    async def _poll_loop(self) -> None:
        """Background polling loop. The first refresh happens immediately.

        A loop that has been replaced by a newer start() exits.
        """
        while self._running and self._task is asyncio.current_task():
            try:
                await self._refresh()
            except Exception:
                logger.exception("Error in message poll loop")
            await asyncio.sleep(self._interval)
