"""Cancellable progress clock for timed tasks and explorations.

Only one ticket runs at a time.  Starting a new ticket cancels the previous
one first, and a cancelled ticket never reports progress again.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

log = logging.getLogger(__name__)

# Shortest delay between two progress reports, in seconds.
MIN_TICK_INTERVAL = 0.05

ProgressListener = Callable[[Any, int], Union[Awaitable[None], None]]
CancelListener = Callable[[], Union[Awaitable[None], None]]


@dataclass(slots=True)
class ClockTicket:
    task_id: Any
    duration: float
    started_at: float
    progress: int = 0
    valid: bool = True

    @property
    def interval(self) -> float:
        return max(MIN_TICK_INTERVAL, self.duration / 100)

    def percent_at(self, moment: float) -> int:
        if self.duration <= 0:
            return 100
        elapsed = max(0.0, moment - self.started_at)
        return min(100, int(elapsed / self.duration * 100))


class ProgressClock:
    def __init__(self, *, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._monotonic = monotonic
        self._ticket: Optional[ClockTicket] = None
        self._runner: Optional[asyncio.Task[None]] = None
        self._progress_listeners: list[ProgressListener] = []
        self._cancel_listeners: list[CancelListener] = []

    @property
    def active(self) -> Optional[ClockTicket]:
        ticket = self._ticket
        if ticket is not None and ticket.valid:
            return ticket
        return None

    def on_progress(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def on_cancelled(self, listener: CancelListener) -> None:
        self._cancel_listeners.append(listener)

    def start(self, task_id: Any, duration: float, initial_progress: int = 0) -> ClockTicket:
        """Begin ticking ``task_id``; must be called from a running event loop."""

        self.cancel()
        duration = max(0.0, float(duration))
        initial = min(100, max(0, int(initial_progress)))
        started_at = self._monotonic() - duration * initial / 100
        ticket = ClockTicket(
            task_id=task_id, duration=duration, started_at=started_at, progress=initial
        )
        self._ticket = ticket
        self._runner = asyncio.get_running_loop().create_task(self._run(ticket))
        log.debug("Started progress clock for %s (%.2fs)", task_id, duration)
        return ticket

    def cancel(self) -> bool:
        ticket = self.active
        if ticket is None:
            return False
        ticket.valid = False
        self._ticket = None
        runner, self._runner = self._runner, None
        if runner is not None and not runner.done():
            runner.cancel()
        log.debug("Cancelled progress clock for %s", ticket.task_id)
        for listener in list(self._cancel_listeners):
            outcome = listener()
            if inspect.isawaitable(outcome):
                asyncio.ensure_future(outcome)
        return True

    async def wait(self) -> None:
        """Wait until the current ticket finishes or is cancelled."""

        runner = self._runner
        if runner is None:
            return
        try:
            await runner
        except asyncio.CancelledError:
            if not runner.cancelled():
                raise

    async def _run(self, ticket: ClockTicket) -> None:
        while ticket.valid:
            percent = ticket.percent_at(self._monotonic())
            ticket.progress = percent
            await self._emit_progress(ticket, percent)
            if percent >= 100:
                ticket.valid = False
                if self._ticket is ticket:
                    self._ticket = None
                    self._runner = None
                return
            await asyncio.sleep(ticket.interval)

    async def _emit_progress(self, ticket: ClockTicket, percent: int) -> None:
        for listener in list(self._progress_listeners):
            if not ticket.valid:
                return
            outcome = listener(ticket.task_id, percent)
            if inspect.isawaitable(outcome):
                await outcome


__all__ = ["ClockTicket", "ProgressClock", "MIN_TICK_INTERVAL"]
