"""
scribeline.captions - Subtitle-sized caption grouping.
"""

from __future__ import annotations

from scribeline.captions.grouping import Caption, group_captions, segment_captions

__all__ = ["Caption", "group_captions", "segment_captions"]
