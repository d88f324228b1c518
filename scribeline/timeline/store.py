"""
scribeline.timeline.store - Segment timeline store.

Merges recognizer batches into a canonical timeline keyed by the
millisecond-rounded start time. A later segment with a colliding key
replaces the stored one (a recognizer correction of the same span); any
other segment is inserted. Each merge produces a new immutable tuple.
"""

from __future__ import annotations

import logging
from typing import Iterable

from scribeline.timeline.segment import Segment, Timeline

logger = logging.getLogger(__name__)

ECHO_TOLERANCE = 0.0005


def filter_valid(batch: Iterable[Segment]) -> list[Segment]:
    """Drop segments with negative, non-finite or inverted times."""
    valid = []
    for segment in batch:
        if segment.is_valid:
            valid.append(segment)
        else:
            logger.debug(
                "Dropping malformed segment %r (%s -> %s)",
                segment.text,
                segment.start_time,
                segment.end_time,
            )
    return valid


def merge_timelines(current: Timeline, batch: Iterable[Segment]) -> Timeline:
    """Upsert `batch` into `current` by millisecond start key.

    Args:
        current: Existing timeline (left untouched)
        batch: Incoming segments, possibly malformed

    Returns:
        New timeline sorted ascending by start time
    """
    incoming = filter_valid(batch)
    if not incoming:
        return current

    merged: dict[int, Segment] = {segment.key: segment for segment in current}
    for segment in incoming:
        merged[segment.key] = segment

    return tuple(sorted(merged.values(), key=lambda s: s.start_time))


def deduplicate(timeline: Iterable[Segment]) -> list[Segment]:
    """Trim segment text, drop empties and collapse partial-result echoes.

    An echo is a segment whose trimmed text equals the immediately preceding
    kept segment's and whose start time is within half a millisecond of it.
    """
    result: list[Segment] = []
    for segment in timeline:
        text = segment.text.strip()
        if not text:
            continue
        if result:
            previous = result[-1]
            if (
                previous.text == text
                and abs(previous.start_time - segment.start_time) < ECHO_TOLERANCE
            ):
                continue
        if text != segment.text:
            segment = segment.model_copy(update={"text": text})
        result.append(segment)
    return result


def flat_transcript(timeline: Iterable[Segment]) -> str:
    """Join deduplicated segment text with single spaces."""
    return " ".join(segment.text for segment in deduplicate(timeline))


class TimelineStore:
    """Owns the canonical timeline for one session.

    `segments` is always a complete tuple; merges build a new tuple and swap
    the reference, so readers never see a timeline mid-merge.
    """

    def __init__(self, segments: Iterable[Segment] = ()) -> None:
        self.segments: Timeline = merge_timelines((), segments)

    def __len__(self) -> int:
        return len(self.segments)

    def merge(self, batch: Iterable[Segment]) -> Timeline:
        """Merge a recognizer batch and return the new timeline."""
        self.segments = merge_timelines(self.segments, batch)
        return self.segments

    def clear(self) -> Timeline:
        self.segments = ()
        return self.segments

    def query(self, time: float) -> Segment | None:
        """Return the first segment whose [start, end] contains `time`."""
        for segment in self.segments:
            if segment.start_time <= time <= segment.end_time:
                return segment
        return None

    def query_range(self, start: float, end: float) -> list[Segment]:
        """Return all segments overlapping [start, end]."""
        return [s for s in self.segments if s.start_time <= end and s.end_time >= start]

    @property
    def end_time(self) -> float:
        """Latest end time in the timeline, or 0.0 when empty."""
        return max((s.end_time for s in self.segments), default=0.0)

    @property
    def transcript(self) -> str:
        return flat_transcript(self.segments)
