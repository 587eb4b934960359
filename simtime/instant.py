"""A point on a monotonically nondecreasing clock.

Durations throughout the package are non-negative integers of nanoseconds.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["Instant"]

# Largest value a (seconds, nanoseconds) timespec with a signed 64-bit
# seconds field can hold.
_MAX_NANOS = (2**63 - 1) * 1_000_000_000 + 999_999_999


def _check_duration(duration: object) -> int:
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise TypeError(f"duration must be an int of nanoseconds, not {type(duration).__name__}")
    if duration < 0:
        raise ValueError(f"duration must be non-negative, got {duration}")
    return duration


@dataclass(frozen=True, order=True)
class Instant:
    """An opaque instant, counted in nanoseconds from the clock's origin."""

    nanos: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.nanos, bool) or not isinstance(self.nanos, int):
            raise TypeError("Instant nanos must be an int")
        if not 0 <= self.nanos <= _MAX_NANOS:
            raise OverflowError(f"instant out of range: {self.nanos}")

    def duration_since(self, earlier: Instant) -> int:
        """Time from ``earlier`` to this instant; ValueError if ``earlier`` is later."""
        result = self.checked_duration_since(earlier)
        if result is None:
            raise ValueError("supplied instant is later than self")
        return result

    def checked_duration_since(self, earlier: Instant) -> int | None:
        """Time from ``earlier`` to this instant, or None if ``earlier`` is later."""
        diff = self.nanos - earlier.nanos
        return diff if diff >= 0 else None

    def saturating_duration_since(self, earlier: Instant) -> int:
        """Time from ``earlier`` to this instant, or zero if ``earlier`` is later."""
        return max(self.nanos - earlier.nanos, 0)

    def checked_add(self, duration: int) -> Instant | None:
        """This instant moved forward by ``duration``, or None if out of range."""
        total = self.nanos + _check_duration(duration)
        return Instant(total) if total <= _MAX_NANOS else None

    def checked_sub(self, duration: int) -> Instant | None:
        """This instant moved back by ``duration``, or None if out of range."""
        total = self.nanos - _check_duration(duration)
        return Instant(total) if total >= 0 else None

    def __add__(self, duration: object) -> Instant:
        if isinstance(duration, bool) or not isinstance(duration, int):
            return NotImplemented
        result = self.checked_add(duration)
        if result is None:
            raise OverflowError("overflow when adding duration to instant")
        return result

    __radd__ = __add__

    def __sub__(self, other: object):
        if isinstance(other, Instant):
            return self.duration_since(other)
        if isinstance(other, bool) or not isinstance(other, int):
            return NotImplemented
        result = self.checked_sub(other)
        if result is None:
            raise OverflowError("overflow when subtracting duration from instant")
        return result

    def __repr__(self) -> str:
        secs, nsec = divmod(self.nanos, 1_000_000_000)
        return f"Instant {{ tv_sec: {secs}, tv_nsec: {nsec} }}"