"""
scribeline.timeline.stability - Stable/volatile split of a live timeline.

Segments that are identical across two consecutive snapshots form the
settled prefix; everything from the first difference on is still being
revised by the recognizer.
"""

from __future__ import annotations

from typing import Sequence

from scribeline.timeline.segment import Segment

TIME_TOLERANCE = 0.001


def segments_match(a: Segment, b: Segment) -> bool:
    return (
        a.text == b.text
        and abs(a.start_time - b.start_time) < TIME_TOLERANCE
        and abs(a.end_time - b.end_time) < TIME_TOLERANCE
    )


def classify(previous: Sequence[Segment], current: Sequence[Segment]) -> int:
    """Return the length of the identical prefix of two snapshots.

    Segments `current[:k]` are stable; `current[k:]` are volatile. Neither
    input is modified.
    """
    limit = min(len(previous), len(current))
    index = 0
    while index < limit and segments_match(previous[index], current[index]):
        index += 1
    return index


def split_display(current: Sequence[Segment], mismatch_index: int) -> tuple[str, str]:
    """Build the (stable_text, volatile_text) pair for display.

    Text is trimmed per segment and empty segments are skipped.
    """
    stable = [s.text.strip() for s in current[:mismatch_index]]
    volatile = [s.text.strip() for s in current[mismatch_index:]]
    return " ".join(t for t in stable if t), " ".join(t for t in volatile if t)
