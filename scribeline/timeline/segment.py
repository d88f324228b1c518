"""
scribeline.timeline.segment - Recognized text span with timing.

Segments arrive from the recognizer as-is, so construction does not reject
bad timings; `is_valid` decides whether a segment may enter a timeline.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict


class Segment(BaseModel):
    """An atomic recognized span of text with session-relative timing."""

    model_config = ConfigDict(frozen=True)

    text: str
    start_time: float
    end_time: float
    confidence: float = 0.0

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def key(self) -> int:
        """Millisecond bucket of the start time, absorbing float jitter."""
        return round(self.start_time * 1000)

    @property
    def is_valid(self) -> bool:
        return (
            math.isfinite(self.start_time)
            and math.isfinite(self.end_time)
            and 0.0 <= self.start_time <= self.end_time
        )

    def shifted(self, offset: float) -> Segment:
        """Return a copy moved later on the timeline by `offset` seconds."""
        if not offset:
            return self
        return self.model_copy(
            update={"start_time": self.start_time + offset, "end_time": self.end_time + offset}
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Segment:
        """Build a segment from a dict, accepting `start`/`end` shorthand keys.

        Missing or non-numeric times become NaN so the segment fails
        `is_valid` and is filtered at merge time instead of raising.
        """
        if not isinstance(data, dict):
            data = {}
        text = data.get("text")
        return cls(
            text=text if isinstance(text, str) else "",
            start_time=_to_float(data.get("start_time", data.get("start"))),
            end_time=_to_float(data.get("end_time", data.get("end"))),
            confidence=_to_float(data.get("confidence"), default=0.0),
        )


def _to_float(value: Any, default: float = math.nan) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


Timeline = tuple[Segment, ...]
