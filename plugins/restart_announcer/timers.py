"""
plugins/restart_announcer/timers.py

Asyncio-based timer service.

Each timer is its own task so the countdown tick, the announcement timer,
the daemon poll and the backup poll can be cancelled independently.
Callback errors are logged and never stop the service.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional


TimerCallback = Callable[[], Awaitable[None]]


class TimerHandle:
    """
    Handle for one scheduled timer.

    Cancelling from inside the timer's own callback lets the callback
    finish; the timer then never fires again.
    """

    def __init__(self, name: str):
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once the timer can no longer fire."""
        return self._cancelled or (self._task is not None and self._task.done())

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        task = self._task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else ("done" if self.done else "pending")
        return f"<TimerHandle {self.name} {state}>"


class TimerService:
    """
    Creates cancellable one-shot and repeating timers on the running loop.

    Args:
        time_scale: Multiplier applied to every delay. Values below 1
            speed timers up, which keeps integration tests fast.
    """

    def __init__(self, time_scale: float = 1.0):
        self.time_scale = time_scale
        self.logger = logging.getLogger(f"{__name__}.TimerService")

    def call_later(
        self, delay: float, callback: TimerCallback, name: str = "timer"
    ) -> TimerHandle:
        """
        Run callback once after delay seconds.

        Returns:
            Handle that can cancel the timer before it fires.
        """
        handle = TimerHandle(name)
        handle._task = asyncio.create_task(self._run_once(handle, delay, callback))
        self.logger.debug(f"Timer {name} scheduled in {delay}s")
        return handle

    def call_every(
        self, interval: float, callback: TimerCallback, name: str = "ticker"
    ) -> TimerHandle:
        """
        Run callback every interval seconds, first run after one interval.

        Returns:
            Handle that stops the repetition.
        """
        handle = TimerHandle(name)
        handle._task = asyncio.create_task(self._run_every(handle, interval, callback))
        self.logger.debug(f"Ticker {name} started (interval: {interval}s)")
        return handle

    async def _run_once(
        self, handle: TimerHandle, delay: float, callback: TimerCallback
    ) -> None:
        try:
            await asyncio.sleep(delay * self.time_scale)
            if handle.cancelled:
                return
            await self._invoke(handle, callback)
        except asyncio.CancelledError:
            self.logger.debug(f"Timer {handle.name} cancelled")
            raise

    async def _run_every(
        self, handle: TimerHandle, interval: float, callback: TimerCallback
    ) -> None:
        try:
            while not handle.cancelled:
                await asyncio.sleep(interval * self.time_scale)
                if handle.cancelled:
                    break
                await self._invoke(handle, callback)
        except asyncio.CancelledError:
            self.logger.debug(f"Ticker {handle.name} cancelled")
            raise

    async def _invoke(self, handle: TimerHandle, callback: TimerCallback) -> None:
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.exception(f"Error in timer callback {handle.name}: {e}")
