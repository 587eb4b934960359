"""Simulated clock, timers, sleeping and timeouts.

All durations are non-negative integers of nanoseconds. Wall-clock times
are integers of nanoseconds since the Unix epoch.

Futures here follow a small polling protocol: ``poll(waker)`` returns the
result when it is ready, or ``PENDING`` after arranging for ``waker()`` to
be called once progress may be possible. Awaiting one of them yields the
object itself to the driver, which polls it and sends the result back.
"""

from __future__ import annotations

import contextvars
import logging
import os
import random
import re
import threading
from contextlib import contextmanager
from typing import Any, Callable, Hashable, Iterator

from .errors import Elapsed
from .instant import Instant
from .timer import Timer

__all__ = [
    "PENDING",
    "Clock",
    "TimeHandle",
    "TimeRuntime",
    "Sleep",
    "Timeout",
    "current_node",
    "in_node",
    "now",
    "elapsed",
    "sleep",
    "sleep_until",
    "timeout",
    "timeout_at",
]

_log = logging.getLogger(__name__)

NANOS_PER_SEC = 1_000_000_000
_SECS_PER_YEAR = 60 * 60 * 24 * 365
_U64_MAX = 2**64 - 1
_BASE_TIME_ENV = "MSIM_BASE_TIME"
_U64_PATTERN = re.compile(r"\+?[0-9]+")

# Scheduling slack so that "now >= deadline" holds once a timer has fired.
_TIMER_EPSILON = 50

MAIN_NODE: Hashable = 0

_current_handle: contextvars.ContextVar[TimeHandle | None] = contextvars.ContextVar(
    "simtime_handle", default=None
)
_current_node: contextvars.ContextVar[Hashable] = contextvars.ContextVar(
    "simtime_node", default=MAIN_NODE
)


class _Pending:
    __slots__ = ()

    def __repr__(self) -> str:
        return "PENDING"


PENDING: Any = _Pending()
"""Returned by ``poll`` when a future is not yet ready."""


def current_node() -> Hashable:
    """Identifier of the node the calling code runs on."""
    return _current_node.get()


@contextmanager
def in_node(node_id: Hashable) -> Iterator[Hashable]:
    """Run the enclosed block as node ``node_id``."""
    token = _current_node.set(node_id)
    try:
        yield node_id
    finally:
        _current_node.reset(token)


class Clock:
    """Mock time: a wall-clock basis plus the amount of simulated time elapsed."""

    CLOCK_BASE = 86_400 * NANOS_PER_SEC

    def __init__(self, base_time: int) -> None:
        self._lock = threading.Lock()
        self.base_time = base_time
        self.base_instant = Instant(0)
        # Start one day in, so that code subtracting constants from "now"
        # does not fall below the origin.
        self._elapsed = self.CLOCK_BASE

    def time_since_clock_base(self) -> int:
        """Simulated time since the clock was created."""
        return self.elapsed() - self.CLOCK_BASE

    def set_elapsed(self, time: int) -> None:
        """Move elapsed time to ``time``, never backwards."""
        with self._lock:
            self._elapsed = max(self._elapsed, time)

    def elapsed(self) -> int:
        """Total simulated time elapsed since the instant origin."""
        with self._lock:
            return self._elapsed

    def advance(self, duration: int) -> None:
        """Move time forward by ``duration``."""
        if duration < 0:
            raise ValueError("cannot advance the clock by a negative duration")
        with self._lock:
            self._elapsed += duration

    def now_instant(self) -> Instant:
        """The current instant."""
        with self._lock:
            return self.base_instant + self._elapsed

    def now_time(self) -> int:
        """The current wall-clock time, in nanoseconds since the Unix epoch."""
        with self._lock:
            return self.base_time + self._elapsed


class TimeHandle:
    """Handle to a shared time source: a clock and its timer queue."""

    def __init__(self, clock: Clock, timer: Timer | None = None) -> None:
        self.clock = clock
        self._timer = timer if timer is not None else Timer()
        self._timer_lock = threading.RLock()

    def disable_node_and_cancel_timers(self, node_id: Hashable) -> None:
        """Disable a node and cancel all of its pending timers."""
        with self._timer_lock:
            callbacks = self._timer.disable_node_and_remove_events(node_id)
        # Callbacks are released only after the lock is dropped.
        del callbacks

    def enable_node(self, node_id: Hashable) -> None:
        """Enable a previously disabled node."""
        with self._timer_lock:
            self._timer.enable_node(node_id)

    @staticmethod
    def current() -> TimeHandle:
        """The handle of the running runtime; RuntimeError if there is none."""
        handle = _current_handle.get()
        if handle is None:
            raise RuntimeError("no simulated time runtime is running")
        return handle

    @staticmethod
    def try_current() -> TimeHandle | None:
        """The handle of the running runtime, or None."""
        return _current_handle.get()

    def now_instant(self) -> Instant:
        """The current instant."""
        return self.clock.now_instant()

    def now_time(self) -> int:
        """The current wall-clock time, in nanoseconds since the Unix epoch."""
        return self.clock.now_time()

    def elapsed(self) -> int:
        """Simulated time elapsed since the instant origin."""
        return self.clock.elapsed()

    def sleep(self, duration: int) -> Sleep:
        """A future that completes once ``duration`` has elapsed."""
        return self.sleep_until(self.clock.now_instant() + duration)

    def sleep_until(self, deadline: Instant) -> Sleep:
        """A future that completes once ``deadline`` is reached."""
        return Sleep(self, deadline)

    def timeout(self, duration: int, future: Any) -> Timeout:
        """Require ``future`` to complete before ``duration`` has elapsed."""
        return Timeout(future, self.sleep(duration))

    def add_timer(self, deadline: Instant, callback: Callable[[], None]) -> None:
        """Call ``callback()`` once ``deadline`` is reached, on the current node."""
        self.add_timer_for_node(current_node(), deadline, callback)

    def add_timer_for_node(
        self, node_id: Hashable, deadline: Instant, callback: Callable[[], None]
    ) -> None:
        """Call ``callback()`` once ``deadline`` is reached, on behalf of ``node_id``."""
        offset = deadline - self.clock.base_instant
        with self._timer_lock:
            self._timer.add(node_id, offset, lambda _now: callback())

    def wake_at(self, deadline: Instant, waker: Callable[[], None]) -> None:
        """Call ``waker()`` at ``deadline``."""
        self.add_timer(deadline, waker)

    def time_since_clock_base(self) -> int:
        """Simulated time since the clock was created."""
        return self.clock.time_since_clock_base()


def _base_time_from_env(rng: random.Random) -> int:
    raw = os.environ.get(_BASE_TIME_ENV)
    if raw is None:
        # Somewhere in 2022.
        secs = _SECS_PER_YEAR * (2022 - 1970) + rng.randrange(0, _SECS_PER_YEAR)
        return secs * NANOS_PER_SEC
    if not _U64_PATTERN.fullmatch(raw) or int(raw) > _U64_MAX:
        raise ValueError(f"{_BASE_TIME_ENV}='{raw}' was not parseable as a u64")
    return int(raw) * NANOS_PER_SEC


class TimeRuntime:
    """Owns the simulated clock and drives it from timer to timer."""

    def __init__(self, rng: random.Random | None = None) -> None:
        if rng is None:
            rng = random.Random()
        self.handle = TimeHandle(Clock(_base_time_from_env(rng)))

    def advance_to_next_event(self) -> bool:
        """Jump to the closest timer event and fire it; False if none is pending."""
        handle = self.handle
        with handle._timer_lock:
            time = handle._timer.next()
            if time is None:
                return False
            time += _TIMER_EPSILON
            handle._timer.expire(time)
            handle.clock.set_elapsed(time)
            return True

    def advance(self, duration: int) -> None:
        """Move time forward by ``duration``."""
        self.handle.clock.advance(duration)

    def now_instant(self) -> Instant:
        """The current instant."""
        return self.handle.now_instant()

    @contextmanager
    def enter(self) -> Iterator[TimeHandle]:
        """Make this runtime's handle the current one for the enclosed block."""
        token = _current_handle.set(self.handle)
        try:
            yield self.handle
        finally:
            _current_handle.reset(token)


class Sleep:
    """Future returned by ``sleep`` and ``sleep_until``."""

    __slots__ = ("handle", "deadline")

    def __init__(self, handle: TimeHandle, deadline: Instant) -> None:
        self.handle = handle
        self.deadline = deadline

    def is_elapsed(self) -> bool:
        """Whether the deadline has been reached."""
        return self.handle.clock.now_instant() >= self.deadline

    def reset(self, deadline: Instant) -> None:
        """Move the deadline."""
        self.deadline = deadline

    def poll(self, waker: Callable[[], None]) -> Any:
        """None once elapsed; otherwise schedule ``waker`` and return PENDING."""
        if self.is_elapsed():
            return None
        self.handle.add_timer(self.deadline, waker)
        return PENDING

    def __await__(self):
        return (yield self)

    def __repr__(self) -> str:
        return f"Sleep(deadline={self.deadline!r})"


class Timeout:
    """Future returned by ``timeout`` and ``timeout_at``."""

    __slots__ = ("value", "delay")

    def __init__(self, value: Any, delay: Sleep) -> None:
        self.value = value
        self.delay = delay

    def poll(self, waker: Callable[[], None]) -> Any:
        """The inner result if ready; raise Elapsed if the deadline passed first."""
        result = self.value.poll(waker)
        if result is not PENDING:
            return result
        if self.delay.poll(waker) is not PENDING:
            raise Elapsed()
        return PENDING

    def __await__(self):
        return (yield self)

    def __repr__(self) -> str:
        return f"Timeout(value={self.value!r}, delay={self.delay!r})"


def now() -> Instant:
    """The current instant of the running runtime."""
    return TimeHandle.current().now_instant()


def elapsed(instant: Instant) -> int:
    """Time elapsed since ``instant``."""
    return now() - instant


def sleep(duration: int) -> Sleep:
    """Wait until ``duration`` has elapsed."""
    return TimeHandle.current().sleep(duration)


def sleep_until(deadline: Instant) -> Sleep:
    """Wait until ``deadline`` is reached."""
    return TimeHandle.current().sleep_until(deadline)


def timeout(duration: int, future: Any) -> Timeout:
    """Require ``future`` to complete before ``duration`` has elapsed."""
    return TimeHandle.current().timeout(duration, future)


def timeout_at(deadline: Instant, future: Any) -> Timeout:
    """Require ``future`` to complete before ``deadline``."""
    duration = deadline.saturating_duration_since(now())
    return timeout(duration, future)