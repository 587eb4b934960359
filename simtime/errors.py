"""Errors raised by the simulated time facilities."""

from __future__ import annotations

__all__ = ["Elapsed"]

_MESSAGE = "deadline has elapsed"


class Elapsed(TimeoutError):
    """Raised when a timeout's deadline passes before its work completes."""

    def __init__(self) -> None:
        super().__init__(_MESSAGE)

    def __str__(self) -> str:
        return _MESSAGE

    def __repr__(self) -> str:
        return "Elapsed"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Elapsed):
            return True
        return NotImplemented

    def __hash__(self) -> int:
        return hash(Elapsed)

    def __reduce__(self):
        return (Elapsed, ())