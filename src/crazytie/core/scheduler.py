"""Timer scheduling against a single logical clock.

Every controller arms its countdowns, phase timeouts and target lifetimes
through a :class:`TimerScheduler`. The scheduler never fires on its own: the
owner pumps it, either by calling :meth:`TimerScheduler.run_due` from a
real-time loop or by advancing a :class:`ManualClock` with
:meth:`TimerScheduler.advance`. All actions therefore run on the caller's
thread, one at a time, in deadline order.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol

import structlog

LOGGER = structlog.get_logger(__name__)

TimerAction = Callable[[], Any]

DEFAULT_IDLE_POLL = 0.05


class Clock(Protocol):
    """Monotonic time source in seconds."""

    def now(self) -> float:
        """Return the current time."""


class MonotonicClock:
    """Wall-clock backed by :func:`time.monotonic`."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to. Used by tests and simulations."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def set(self, value: float) -> None:
        if value < self._now:
            raise ValueError(f"ManualClock cannot move backwards ({value} < {self._now})")
        self._now = float(value)


class SchedulerError(RuntimeError):
    """Raised when the scheduler is driven in an unsupported way."""


@dataclass(eq=False)
class TimerHandle:
    """Reference to a scheduled action."""

    deadline: float
    action: TimerAction
    interval: Optional[float] = None
    label: str = ""
    cancelled: bool = False
    fired: int = 0
    _scheduler: Optional["TimerScheduler"] = field(default=None, repr=False)

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    @property
    def active(self) -> bool:
        if self.cancelled:
            return False
        return self.repeating or self.fired == 0

    def cancel(self) -> None:
        self.cancelled = True


class TimerScheduler:
    """Deadline-ordered one-shot and repeating timers."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock: Clock = clock or MonotonicClock()
        self._queue: List[tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()
        self._running = False

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def now(self) -> float:
        return self.clock.now()

    def schedule(self, delay: float, action: TimerAction, *, label: str = "") -> TimerHandle:
        """Run ``action`` once, ``delay`` seconds from now."""

        if delay < 0:
            raise ValueError(f"Timer delay must be non-negative, got {delay}")
        handle = TimerHandle(deadline=self.now() + delay, action=action, label=label, _scheduler=self)
        self._push(handle)
        return handle

    def schedule_repeating(self, interval: float, action: TimerAction, *, label: str = "") -> TimerHandle:
        """Run ``action`` every ``interval`` seconds until cancelled.

        The first firing happens one interval from now. If the action returns
        ``False`` the repetition stops and the handle is cancelled.
        """

        if interval <= 0:
            raise ValueError(f"Repeating interval must be positive, got {interval}")
        handle = TimerHandle(
            deadline=self.now() + interval,
            action=action,
            interval=interval,
            label=label,
            _scheduler=self,
        )
        self._push(handle)
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()
        LOGGER.debug("scheduler.cancel_all")

    def pending_count(self) -> int:
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def next_deadline(self) -> Optional[float]:
        self._drop_cancelled_head()
        if not self._queue:
            return None
        return self._queue[0][0]

    def time_until_next(self) -> Optional[float]:
        deadline = self.next_deadline()
        if deadline is None:
            return None
        return max(0.0, deadline - self.now())

    # ------------------------------------------------------------------
    # Firing
    # ------------------------------------------------------------------

    def run_due(self) -> int:
        """Fire every action whose deadline has passed. Returns the number fired."""

        fired = 0
        now = self.now()
        while True:
            self._drop_cancelled_head()
            if not self._queue or self._queue[0][0] > now:
                break
            _, _, handle = heapq.heappop(self._queue)
            self._fire(handle)
            fired += 1
        return fired

    def advance(self, seconds: float) -> int:
        """Move a :class:`ManualClock` forward, firing timers at their deadlines."""

        if not isinstance(self.clock, ManualClock):
            raise SchedulerError("advance() requires a ManualClock")
        if seconds < 0:
            raise ValueError(f"Cannot advance by a negative amount ({seconds})")

        target = self.clock.now() + seconds
        fired = 0
        while True:
            deadline = self.next_deadline()
            if deadline is None or deadline > target:
                break
            if deadline > self.clock.now():
                self.clock.set(deadline)
            fired += self.run_due()
        self.clock.set(target)
        fired += self.run_due()
        return fired

    def run_until_idle(self, *, limit: float = 3600.0) -> int:
        """Advance a manual clock until nothing is pending or ``limit`` seconds pass."""

        fired = 0
        start = self.now()
        while True:
            deadline = self.next_deadline()
            if deadline is None:
                break
            if deadline - start > limit:
                raise SchedulerError(f"Scheduler still busy after {limit}s of simulated time")
            fired += self.advance(max(0.0, deadline - self.now()))
        return fired

    async def run_forever(self, *, idle_poll: float = DEFAULT_IDLE_POLL) -> None:
        """Pump the scheduler from an asyncio loop until :meth:`stop` is called."""

        self._running = True
        try:
            while self._running:
                try:
                    self.run_due()
                except Exception as exc:
                    LOGGER.error("scheduler.pump_failed", error=repr(exc))
                    raise
                wait = self.time_until_next()
                if wait is None or wait > idle_poll:
                    wait = idle_poll
                await asyncio.sleep(wait)
        finally:
            self._running = False

    def stop(self) -> None:
        self._running = False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _push(self, handle: TimerHandle) -> None:
        heapq.heappush(self._queue, (handle.deadline, next(self._sequence), handle))

    def _drop_cancelled_head(self) -> None:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)

    def _fire(self, handle: TimerHandle) -> None:
        handle.fired += 1
        result = None
        try:
            result = handle.action()
        finally:
            # A repeating timer stays armed even when its action raises.
            if handle.repeating:
                self._rearm(handle, stop=result is False)

    def _rearm(self, handle: TimerHandle, *, stop: bool) -> None:
        if stop:
            handle.cancel()
            return
        if handle.cancelled:
            return
        handle.deadline += handle.interval  # type: ignore[operator]
        self._push(handle)
