"""
scribeline.timeline - Canonical segment timeline.

- Segment model and validity rules
- TimelineStore: millisecond-keyed upsert merge, dedup, point/range query
- Stability classification of consecutive timeline snapshots
"""

from __future__ import annotations

from scribeline.timeline.segment import Segment, Timeline
from scribeline.timeline.stability import classify, split_display
from scribeline.timeline.store import TimelineStore, deduplicate, flat_transcript

__all__ = [
    "Segment",
    "Timeline",
    "TimelineStore",
    "classify",
    "deduplicate",
    "flat_transcript",
    "split_display",
]
