"""A multi-producer, single-consumer queue whose consumer takes a random element."""

from __future__ import annotations

import threading
import weakref
from typing import Any, Generic, TypeVar

__all__ = [
    "SendError",
    "TryRecvError",
    "ChannelEmpty",
    "ChannelDisconnected",
    "Sender",
    "Receiver",
    "channel",
]

T = TypeVar("T")


class SendError(Exception):
    """Raised when sending on a channel whose receiver is gone; holds the value."""

    def __init__(self, value: Any) -> None:
        super().__init__(value)
        self.value = value

    def __repr__(self) -> str:
        return "SendError { .. }"

    __str__ = __repr__


class TryRecvError(Exception):
    """Base of the reasons a receive could not return a value."""


class ChannelEmpty(TryRecvError):
    """The queue is empty but senders remain."""


class ChannelDisconnected(TryRecvError):
    """The queue is empty and every sender is gone."""


class _Inner(Generic[T]):
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.queue: list[T] = []
        self.senders: weakref.WeakSet[Sender[T]] = weakref.WeakSet()


class Sender(Generic[T]):
    """The sending half of a channel."""

    def __init__(self, inner: _Inner[T]) -> None:
        self._inner = weakref.ref(inner)
        inner.senders.add(self)

    def send(self, value: T) -> None:
        """Queue ``value``; raise SendError holding it if the receiver is gone."""
        inner = self._inner()
        if inner is None:
            raise SendError(value)
        with inner.lock:
            inner.queue.append(value)

    def clone(self) -> Sender[T]:
        """Another sender on the same channel."""
        inner = self._inner()
        if inner is None:
            clone = Sender.__new__(Sender)
            clone._inner = self._inner
            return clone
        return Sender(inner)

    __copy__ = clone


class Receiver(Generic[T]):
    """The receiving half of a channel."""

    def __init__(self, inner: _Inner[T]) -> None:
        self._inner = inner

    def try_recv_random(self, rng) -> T:
        """Remove and return a random pending value without blocking.

        ``rng`` is a ``random.Random``-like object. Raises ChannelEmpty when
        nothing is queued, or ChannelDisconnected when no sender remains.
        """
        inner = self._inner
        with inner.lock:
            queue = inner.queue
            if queue:
                idx = rng.randrange(len(queue))
                last = queue.pop()
                if idx == len(queue):
                    return last
                value = queue[idx]
                queue[idx] = last
                return value
            if len(inner.senders) == 0:
                raise ChannelDisconnected()
            raise ChannelEmpty()

    def clear_inner(self) -> None:
        """Discard every pending value."""
        with self._inner.lock:
            old, self._inner.queue = self._inner.queue, []
        # Values are dropped only after the lock is released.
        del old

    def __len__(self) -> int:
        with self._inner.lock:
            return len(self._inner.queue)


def channel() -> tuple[Sender[Any], Receiver[Any]]:
    """Create a new channel and return its sender and receiver."""
    inner: _Inner[Any] = _Inner()
    return Sender(inner), Receiver(inner)