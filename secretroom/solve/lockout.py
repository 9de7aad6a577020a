"""
Lockout Timer: advisory 1 Hz countdown for a server-imposed lock.

States: `idle` and `counting_down(seconds_remaining)`. On reaching zero the timer goes
idle and awaits `on_expire`, which re-verifies with the server instead of assuming the
room is unlocked. The countdown runs as one asyncio task that `cancel()` tears down.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from secretroom.config import settings

logger = logging.getLogger(__name__)


class TimerPhase(str, Enum):
    IDLE = "idle"
    COUNTING_DOWN = "counting_down"


class LockoutTimer:
    def __init__(
        self,
        on_expire: Callable[[], Awaitable[None]],
        *,
        on_tick: Callable[[int], None] | None = None,
        tick_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.tick_seconds = settings.lockout_tick_seconds if tick_seconds is None else tick_seconds
        self._sleep = sleep
        self._seconds: int | None = None
        self._task: asyncio.Task | None = None

    @property
    def phase(self) -> TimerPhase:
        return TimerPhase.IDLE if self._seconds is None else TimerPhase.COUNTING_DOWN

    @property
    def seconds_remaining(self) -> int | None:
        return self._seconds

    def start(self, seconds: int) -> bool:
        """Start (or restart) counting down from `seconds`; returns False for n <= 0."""
        if seconds <= 0:
            return False
        self.cancel()
        self._seconds = int(seconds)
        self._task = asyncio.create_task(self._run())
        return True

    def cancel(self) -> None:
        task, self._task = self._task, None
        self._seconds = None
        if task and not task.done():
            task.cancel()

    async def _run(self) -> None:
        me = asyncio.current_task()
        while self._task is me and self._seconds > 0:
            await self._sleep(self.tick_seconds)
            if self._task is not me:
                return
            self._seconds -= 1
            if self._seconds > 0 and self.on_tick:
                self.on_tick(self._seconds)
        if self._task is not me:
            # Cancelled or restarted from inside on_tick.
            return

        # Idle before the callback so on_expire may start a fresh countdown.
        self._seconds = None
        self._task = None
        try:
            await self.on_expire()
        except Exception as exc:
            logger.error("Lockout expiry handler failed: %s", exc, exc_info=True)
