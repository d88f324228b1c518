"""
scribeline.export.timecode - Subtitle timestamp formatting.

Handles conversion between session-relative seconds and the
HH:MM:SS,mmm / HH:MM:SS.mmm clock values used by caption formats.
"""

from __future__ import annotations

import re

_CLOCK_PATTERN = re.compile(r"^(\d+):(\d{2}):(\d{2})[,.](\d{3})$")


def split_milliseconds(seconds: float) -> tuple[int, int, int, int]:
    """Split seconds into (hours, minutes, seconds, milliseconds).

    Rounds to the nearest millisecond first so 1.9996 becomes 00:00:02.000
    rather than 00:00:01.999. Negative input clamps to zero.

    Args:
        seconds: Time in seconds

    Returns:
        Tuple of clock components
    """
    total_ms = max(0, round(seconds * 1000))
    total_seconds, ms = divmod(total_ms, 1000)
    ss = total_seconds % 60
    mm = (total_seconds // 60) % 60
    hh = total_seconds // 3600
    return hh, mm, ss, ms


def format_clock(seconds: float, separator: str = ".") -> str:
    """Format seconds as HH:MM:SS{separator}mmm."""
    hh, mm, ss, ms = split_milliseconds(seconds)
    return f"{hh:02d}:{mm:02d}:{ss:02d}{separator}{ms:03d}"


def seconds_to_srt_time(seconds: float) -> str:
    """Convert seconds to an SRT timestamp (HH:MM:SS,mmm)."""
    return format_clock(seconds, ",")


def seconds_to_vtt_time(seconds: float) -> str:
    """Convert seconds to a WebVTT timestamp (HH:MM:SS.mmm)."""
    return format_clock(seconds, ".")


def seconds_to_ttml_time(seconds: float) -> str:
    """Convert seconds to a TTML clock-time value (HH:MM:SS.mmm)."""
    return format_clock(seconds, ".")


def clock_to_seconds(clock: str) -> float:
    """Parse an SRT or WebVTT timestamp back to seconds.

    Args:
        clock: Timestamp in HH:MM:SS,mmm or HH:MM:SS.mmm form

    Returns:
        Time in seconds

    Raises:
        ValueError: If the timestamp is malformed
    """
    match = _CLOCK_PATTERN.match(clock.strip())
    if not match:
        raise ValueError(f"Invalid timestamp: {clock!r}")
    hh, mm, ss, ms = (int(part) for part in match.groups())
    return hh * 3600 + mm * 60 + ss + ms / 1000
