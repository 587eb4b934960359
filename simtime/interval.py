"""Periodic ticking on the simulated clock."""

from __future__ import annotations

import enum
from typing import Any, Callable

from .clock import PENDING, Sleep, now, sleep_until
from .instant import Instant

__all__ = ["MissedTickBehavior", "Interval", "interval", "interval_at"]

_U64_MAX = 2**64 - 1
# A tick is considered missed once it is this late (5 ms).
_LATE_TOLERANCE = 5_000_000


class MissedTickBehavior(enum.Enum):
    """What an :class:`Interval` does when it falls behind schedule."""

    BURST = "burst"
    """Tick as fast as possible until caught up."""
    DELAY = "delay"
    """Tick at multiples of the period from when the tick was taken."""
    SKIP = "skip"
    """Skip missed ticks and tick on the next multiple of the period from the start."""

    def next_timeout(self, timeout: Instant, now: Instant, period: int) -> Instant:
        """When the next tick is due after the tick due at ``timeout`` was taken at ``now``."""
        if self is MissedTickBehavior.BURST:
            return timeout + period
        if self is MissedTickBehavior.DELAY:
            return now + period
        behind = (now - timeout) % period
        if behind > _U64_MAX:
            raise OverflowError(
                "too much time has elapsed since the interval was supposed to tick"
            )
        return now + period - behind


def _check_period(period: object) -> int:
    if isinstance(period, bool) or not isinstance(period, int):
        raise TypeError(f"period must be an int of nanoseconds, not {type(period).__name__}")
    if period <= 0:
        raise ValueError("`period` must be non-zero.")
    return period


def interval(period: int) -> Interval:
    """An interval ticking every ``period`` nanoseconds, the first tick now."""
    _check_period(period)
    return Interval(sleep_until(now()), period)


def interval_at(start: Instant, period: int) -> Interval:
    """An interval ticking every ``period`` nanoseconds, the first tick at ``start``."""
    _check_period(period)
    return Interval(sleep_until(start), period)


class _Tick:
    """Future that completes with the instant of the interval's next tick."""

    __slots__ = ("_interval",)

    def __init__(self, owner: Interval) -> None:
        self._interval = owner

    def poll(self, waker: Callable[[], None]) -> Any:
        return self._interval.poll_tick(waker)

    def __await__(self):
        return (yield self)


class Interval:
    """Yields instants spaced ``period`` apart; see :func:`interval`."""

    def __init__(
        self,
        delay: Sleep,
        period: int,
        missed_tick_behavior: MissedTickBehavior = MissedTickBehavior.BURST,
    ) -> None:
        self._delay = delay
        self._period = _check_period(period)
        self.missed_tick_behavior = missed_tick_behavior

    @property
    def period(self) -> int:
        """Time between ticks, in nanoseconds."""
        return self._period

    @property
    def deadline(self) -> Instant:
        """When the next tick is due."""
        return self._delay.deadline

    def tick(self) -> _Tick:
        """An awaitable completing at the next tick with the instant it was due."""
        return _Tick(self)

    def poll_tick(self, waker: Callable[[], None]) -> Any:
        """The due instant if the next tick has been reached, else PENDING.

        When PENDING is returned, ``waker()`` is scheduled for the tick's deadline.
        """
        if self._delay.poll(waker) is PENDING:
            return PENDING

        timeout = self._delay.deadline
        current = self._delay.handle.now_instant()

        if current > timeout + _LATE_TOLERANCE:
            upcoming = self.missed_tick_behavior.next_timeout(timeout, current, self._period)
        else:
            upcoming = timeout + self._period

        self._delay.reset(upcoming)
        return timeout

    def reset(self) -> None:
        """Make the next tick due one period from now, ignoring missed-tick behaviour."""
        self._delay.reset(self._delay.handle.now_instant() + self._period)

    def __repr__(self) -> str:
        return (
            f"Interval(delay={self._delay!r}, period={self._period}, "
            f"missed_tick_behavior={self.missed_tick_behavior})"
        )