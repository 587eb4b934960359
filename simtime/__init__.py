"""Deterministic simulated time: clock, timers, sleeps, timeouts, intervals and a random-pick queue."""

__version__ = "0.1.0"
__all__ = ["clock", "errors", "instant", "interval", "mpsc", "timer"]