"""
scribeline.captions.grouping - Group timeline segments into captions.

Consecutive segments are combined until one of these limits is hit:

1. Caption duration would exceed `max_duration` seconds.
2. Caption text would exceed `max_chars` characters.
3. The segment itself ends a sentence (`.`, `!`, `?`). The segment closes
   the caption it joins rather than opening the next one.

A single segment that already breaks a limit becomes a caption of its own;
segments are never split. A caption whose trimmed text repeats the
previously emitted caption is dropped, which absorbs overlapping partial
results.
"""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict

from scribeline.timeline.segment import Segment

SENTENCE_ENDINGS = (".", "!", "?")


class Caption(BaseModel):
    """A subtitle unit spanning one or more consecutive segments."""

    model_config = ConfigDict(frozen=True)

    start_time: float
    end_time: float
    text: str

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class _CaptionBuilder:
    def __init__(self) -> None:
        self.captions: list[Caption] = []
        self.start = 0.0
        self.end = 0.0
        self.text = ""

    def seed(self, segment: Segment, text: str) -> None:
        self.start = segment.start_time
        self.end = segment.end_time
        self.text = text

    def flush(self) -> None:
        if not self.text:
            return
        text = self.text.strip()
        if not self.captions or self.captions[-1].text.strip() != text:
            self.captions.append(Caption(start_time=self.start, end_time=self.end, text=text))
        self.text = ""


def group_captions(
    segments: Iterable[Segment],
    max_duration: float = 2.0,
    max_chars: int = 42,
) -> list[Caption]:
    """Group segments into captions bounded by duration, length and sentences.

    Args:
        segments: Timeline segments in start-time order
        max_duration: Longest caption in seconds
        max_chars: Longest caption text in characters

    Returns:
        Deduplicated captions in order
    """
    builder = _CaptionBuilder()

    for segment in segments:
        text = segment.text.strip()
        if not text:
            continue

        if not builder.text:
            builder.seed(segment, text)
        else:
            proposed_text = f"{builder.text} {text}"
            proposed_duration = segment.end_time - builder.start
            if proposed_duration > max_duration or len(proposed_text) > max_chars:
                builder.flush()
                builder.seed(segment, text)
            else:
                builder.text = proposed_text
                builder.end = segment.end_time

        if text.endswith(SENTENCE_ENDINGS):
            builder.flush()

    builder.flush()
    return builder.captions


def segment_captions(segments: Iterable[Segment]) -> list[Caption]:
    """One caption per non-empty segment, for raw segment-level export."""
    captions: list[Caption] = []
    for segment in segments:
        text = segment.text.strip()
        if not text:
            continue
        if captions and captions[-1].text == text:
            continue
        captions.append(Caption(start_time=segment.start_time, end_time=segment.end_time, text=text))
    return captions
