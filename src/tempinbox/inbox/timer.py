"""Expiry timer.

A local countdown derived from the session's expiresAt. One repeating
tick per active session; when the count reaches zero the local expiry
latch is set and the on_expire callback fires exactly once.

Ticks are logical: a suspended event loop may deliver fewer ticks than
wall-clock seconds elapsed. The count is clamped at zero and never goes
negative.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from tempinbox import conventions

from .models import CountdownState

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ExpiryTimer:
    """Owned, cancellable countdown scoped to one session.

    arm() acquires the repeating tick, disarm()/cancel() release it.
    Re-arming always cancels the previous tick task first, so at most
    one countdown runs at a time.
    """

    def __init__(
        self,
        on_expire: Callable[[], Awaitable[None]],
        *,
        total_duration_seconds: int = conventions.DEFAULT_SESSION_LIFETIME_SECONDS,
        tick_interval: float = conventions.TICK_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._on_expire = on_expire
        self._total = total_duration_seconds
        self._tick_interval = tick_interval
        self._clock = clock
        self._state = CountdownState()
        self._active = False
        self._fired = False
        self._task: asyncio.Task[None] | None = None

    # --- State ---

    @property
    def state(self) -> CountdownState:
        return CountdownState(
            remaining_seconds=self._state.remaining_seconds,
            has_expired_locally=self._state.has_expired_locally,
        )

    @property
    def remaining_seconds(self) -> int:
        return self._state.remaining_seconds

    @property
    def has_expired_locally(self) -> bool:
        return self._state.has_expired_locally

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def total_duration_seconds(self) -> int:
        return self._total

    @property
    def progress_percent(self) -> float:
        """remaining / total * 100, clamped to [0, 100]."""
        if self._total <= 0:
            return 0.0
        pct = self._state.remaining_seconds / self._total * 100
        return max(0.0, min(100.0, pct))

    # --- Lifecycle ---

    def arm(
        self,
        expires_at: datetime | None,
        *,
        active: bool = True,
        start: bool = True,
    ) -> CountdownState:
        """(Re-)derive the countdown from expires_at.

        With no expiry or an inactive session the countdown is cleared.
        A past expiry latches immediately and no tick is started.
        Pass start=False to derive the state without scheduling ticks.
        """
        self.cancel()
        self._fired = False

        if expires_at is None or not active:
            self._state = CountdownState()
            self._active = False
            return self.state

        delta = (expires_at - self._clock()).total_seconds()
        remaining = max(0, math.floor(delta))
        self._state = CountdownState(
            remaining_seconds=remaining,
            has_expired_locally=remaining <= 0,
        )
        self._active = True

        if self._state.has_expired_locally:
            logger.info("Inbox expiry already passed when armed")
        elif start:
            self._task = asyncio.ensure_future(self._run())
        logger.debug("Expiry timer armed: %ds remaining", remaining)
        return self.state

    def disarm(self) -> None:
        """Stop ticking; the session left the Active state."""
        self._active = False
        self.cancel()

    def reset(self) -> None:
        """Clear the countdown after session teardown."""
        self.disarm()
        self._state = CountdownState()
        self._fired = False

    def cancel(self) -> None:
        """Cancel the repeating tick, if any.

        Safe to call from inside the tick task itself (e.g. when the
        expiry callback tears the session down).
        """
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        with contextlib.suppress(RuntimeError):
            if task is asyncio.current_task():
                return
        task.cancel()

    # --- Ticking ---

    async def tick(self) -> bool:
        """Advance the countdown by one logical second.

        Returns False when no tick is possible (inactive, already
        latched, or nothing left), which also ends the tick loop.
        """
        if not self._active or self._state.has_expired_locally:
            return False
        if self._state.remaining_seconds <= 0:
            return False

        remaining = max(0, self._state.remaining_seconds - 1)
        self._state.remaining_seconds = remaining
        if remaining > 0:
            return True

        self._state.has_expired_locally = True
        await self._fire()
        return False

    async def _fire(self) -> None:
        if self._fired:
            return
        self._fired = True
        self._active = False
        logger.info("Inbox expiry timer reached zero")
        try:
            await self._on_expire()
        except Exception:
            logger.exception("Error in expiry callback")

    async def _run(self) -> None:
        """Background tick loop: one tick per interval."""
        while True:
            await asyncio.sleep(self._tick_interval)
            if not await self.tick():
                break
