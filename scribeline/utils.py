"""
scribeline.utils - Formatting helpers for CLI listings.
"""

from __future__ import annotations


def format_duration(seconds: float) -> str:
    """Render a session length as M:SS, or H:MM:SS from one hour up."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
