"""Cancellable repeating poll timer."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

_logger = logging.getLogger(__name__)


class PollScheduler:
    """Invoke a refresh callback every *interval* seconds until stopped.

    Exactly one timer is active per scheduler; :meth:`start` refuses to arm
    a second one, so callers must :meth:`stop` before changing the interval.
    The callback runs on the event loop and must not block; it typically
    schedules the actual refresh as a task.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None
        self._interval: float | None = None
        self._ticks = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval(self) -> float | None:
        return self._interval

    @property
    def ticks(self) -> int:
        """Number of ticks fired since the last start."""
        return self._ticks

    def start(self, interval: float, callback: Callable[[], object]) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if self.is_running:
            raise RuntimeError("Poll scheduler already started; call stop() first")
        self._interval = interval
        self._ticks = 0
        self._task = asyncio.get_running_loop().create_task(
            self._run(interval, callback),
            name=f"pyairmon-poll-{interval:g}s",
        )
        _logger.debug("Poll scheduler started interval=%.1fs", interval)

    def stop(self) -> None:
        """Cancel the outstanding timer; a no-op when not started."""
        task = self._task
        self._task = None
        if task is None:
            return
        if not task.done():
            task.cancel()
            _logger.debug("Poll scheduler stopped after %d ticks", self._ticks)

    async def wait_stopped(self) -> None:
        """Stop and wait until the timer task has fully unwound."""
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self, interval: float, callback: Callable[[], object]) -> None:
        while True:
            await asyncio.sleep(interval)
            self._ticks += 1
            try:
                callback()
            except Exception:
                _logger.warning("Poll tick callback failed", exc_info=True)
