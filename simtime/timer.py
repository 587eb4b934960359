"""A simple priority-queue timer."""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Hashable, Optional

__all__ = ["Timer"]

_log = logging.getLogger(__name__)

Callback = Callable[[int], None]


@dataclass
class _Event:
    node_id: Hashable
    callback: Optional[Callback]


@dataclass
class Timer:
    """Holds callbacks keyed by deadline (nanoseconds) and fires them in order."""

    _disabled_node_ids: set = field(default_factory=set)
    _events: list = field(default_factory=list)
    _seq: itertools.count = field(default_factory=itertools.count)

    def add(self, node_id: Hashable, deadline: int, callback: Callback) -> None:
        """Schedule ``callback(now)`` to run once time reaches ``deadline``."""
        if node_id in self._disabled_node_ids:
            _log.debug("not scheduling event for deleted node %s", node_id)
            return
        heapq.heappush(self._events, (deadline, next(self._seq), _Event(node_id, callback)))

    def expire(self, now: int) -> None:
        """Fire and remove every event whose deadline is at or before ``now``."""
        while self._events and self._events[0][0] <= now:
            _, _, event = heapq.heappop(self._events)
            callback, event.callback = event.callback, None
            if callback is not None:
                callback(now)

    def disable_node_and_remove_events(self, node_id: Hashable) -> list[Callback]:
        """Disable a node and take away its pending callbacks, returned in deadline order."""
        if node_id in self._disabled_node_ids:
            _log.info("node %s was already disabled", node_id)
            return []
        self._disabled_node_ids.add(node_id)

        removed = []
        for _, _, event in sorted(self._events, key=lambda entry: entry[:2]):
            if event.node_id == node_id and event.callback is not None:
                removed.append(event.callback)
                event.callback = None
        return removed

    def enable_node(self, node_id: Hashable) -> None:
        """Re-enable a disabled node; ValueError if it was not disabled."""
        try:
            self._disabled_node_ids.remove(node_id)
        except KeyError:
            raise ValueError(f"node {node_id} is not disabled") from None

    def next(self) -> int | None:
        """The earliest pending deadline, or None when no events remain."""
        return self._events[0][0] if self._events else None