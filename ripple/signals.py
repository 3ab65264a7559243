"""
Synchronous signal for broadcast diagnostics.

Emitters call ``emit(value)``; every subscribed callable runs immediately,
in subscription order, before ``emit`` returns::

    unsubscribe = broadcast.on_skip_min_point_id.subscribe(skipped.append)
    ...
    unsubscribe()

Signals never feed back into the emitter's control flow.
"""

from typing import Any, Callable, List


class Signal:
    """Ordered list of callbacks invoked synchronously on emit."""

    def __init__(self):
        self._callbacks: List[Callable[[Any], None]] = []

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register callback; returns a function that unsubscribes it."""
        self._callbacks.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Callable[[Any], None]) -> bool:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            return False
        return True

    def emit(self, value: Any):
        # Snapshot so callbacks may unsubscribe themselves mid-emit
        for callback in list(self._callbacks):
            callback(value)

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)
