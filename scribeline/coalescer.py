"""
scribeline.coalescer - Throttle bursty partial updates.

Recognizers emit partial results several times per second. The coalescer
holds back partials until `throttle_interval` has passed since the first
one in a burst and then emits only the latest. Finals are never delayed.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

from scribeline.clock import Clock, SystemClock

T = TypeVar("T")


class UpdateCoalescer(Generic[T]):
    """Emits the latest partial at most once per window; finals immediately."""

    def __init__(
        self,
        on_emit: Callable[[T], None],
        throttle_interval: float = 0.25,
        clock: Clock | None = None,
    ) -> None:
        self.on_emit = on_emit
        self.throttle_interval = throttle_interval
        self.clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._pending: T | None = None
        self._has_pending = False
        self._window_start = 0.0
        self._cancelled = False

    @property
    def has_pending(self) -> bool:
        return self._has_pending

    def receive_partial(self, value: T) -> None:
        if self._cancelled:
            return
        if self.throttle_interval <= 0:
            self.on_emit(value)
            return
        with self._lock:
            if not self._has_pending:
                self._window_start = self.clock.monotonic()
            self._pending = value
            self._has_pending = True

    def receive_final(self, value: T) -> None:
        """Emit `value` now, discarding any pending partial."""
        if self._cancelled:
            return
        with self._lock:
            self._pending = None
            self._has_pending = False
        self.on_emit(value)

    def pump(self) -> bool:
        """Emit the pending partial if its window has elapsed.

        Returns:
            True if a value was emitted
        """
        with self._lock:
            if self._cancelled or not self._has_pending:
                return False
            if self.clock.monotonic() - self._window_start < self.throttle_interval:
                return False
            value = self._pending
            self._pending = None
            self._has_pending = False
        self.on_emit(value)
        return True

    def cancel(self) -> None:
        """Drop pending values and suppress emissions until `reset`."""
        with self._lock:
            self._cancelled = True
            self._pending = None
            self._has_pending = False

    def reset(self) -> None:
        with self._lock:
            self._cancelled = False
            self._pending = None
            self._has_pending = False
