"""
scribeline.clock - Time sources injected into the engine.

Wall-clock time stamps sessions and audit entries; monotonic time drives
update throttling. Tests substitute a manual clock with the same methods.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...

    def monotonic(self) -> float: ...


class SystemClock:
    """Clock backed by the host's local time."""

    def now(self) -> datetime:
        return datetime.now().astimezone()

    def monotonic(self) -> float:
        return time.monotonic()
