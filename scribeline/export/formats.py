"""
scribeline.export.formats - Caption grammars and transcript exports.

SRT, WebVTT and TTML all render the same grouped caption list so cue
boundaries agree across formats. Segment-level output is available only
when explicitly requested with granularity="segments".
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from scribeline.captions.grouping import Caption, group_captions, segment_captions
from scribeline.exceptions import ExportError
from scribeline.export.timecode import (
    seconds_to_srt_time,
    seconds_to_ttml_time,
    seconds_to_vtt_time,
)
from scribeline.storage import SessionRecord
from scribeline.timeline.store import deduplicate, flat_transcript

TEMPLATE_DIR = Path(__file__).parent / "templates"

FORMATS: dict[str, dict[str, str]] = {
    "srt": {
        "extension": "srt",
        "mime_type": "application/x-subrip",
        "display_name": "SRT (SubRip)",
    },
    "vtt": {
        "extension": "vtt",
        "mime_type": "text/vtt",
        "display_name": "VTT (WebVTT)",
    },
    "ttml": {
        "extension": "ttml",
        "mime_type": "application/ttml+xml",
        "display_name": "TTML (Timed Text)",
    },
    "json": {
        "extension": "json",
        "mime_type": "application/json",
        "display_name": "JSON (Timing Data)",
    },
    "txt": {
        "extension": "txt",
        "mime_type": "text/plain",
        "display_name": "Plain Text",
    },
    "md": {
        "extension": "md",
        "mime_type": "text/markdown",
        "display_name": "Markdown",
    },
}

CAPTION_FORMATS = {"srt", "vtt", "ttml"}

_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["ttml", "xml"]),
)


def generate_srt(captions: Sequence[Caption]) -> str:
    """Render captions as SubRip text, numbering cues from 1."""
    lines = []
    for index, caption in enumerate(captions, start=1):
        lines.append(
            f"{index}\n"
            f"{seconds_to_srt_time(caption.start_time)} --> {seconds_to_srt_time(caption.end_time)}\n"
            f"{caption.text}\n\n"
        )
    return "".join(lines)


def generate_vtt(captions: Sequence[Caption]) -> str:
    """Render captions as WebVTT text."""
    lines = ["WEBVTT\n\n"]
    for caption in captions:
        lines.append(
            f"{seconds_to_vtt_time(caption.start_time)} --> {seconds_to_vtt_time(caption.end_time)}\n"
            f"{caption.text}\n\n"
        )
    return "".join(lines)


def generate_ttml(captions: Sequence[Caption]) -> str:
    """Render captions as a minimal TTML document."""
    template = _env.get_template("captions.ttml")
    cues = [
        {
            "begin": seconds_to_ttml_time(c.start_time),
            "end": seconds_to_ttml_time(c.end_time),
            "text": c.text,
        }
        for c in captions
    ]
    return template.render(cues=cues)


def generate_json(record: SessionRecord) -> str:
    """Pretty-printed JSON of the session record."""
    return json.dumps(record.to_dict(), indent=2, ensure_ascii=False)


def generate_markdown(record: SessionRecord) -> str:
    transcribed_at = (record.end_time or record.start_time).isoformat(timespec="seconds")
    text = flat_transcript(record.segments)
    return f"# Speech Transcription\n\n{text}\n\n---\n\n*Transcribed on {transcribed_at}*\n"


def build_captions(
    record: SessionRecord,
    granularity: str = "grouped",
    max_duration: float = 2.0,
    max_chars: int = 42,
) -> list[Caption]:
    """Caption list for a session at the requested granularity.

    Raises:
        ExportError: If granularity is unknown
    """
    segments = deduplicate(record.segments)
    if granularity == "grouped":
        return group_captions(segments, max_duration=max_duration, max_chars=max_chars)
    if granularity == "segments":
        return segment_captions(segments)
    raise ExportError(f"Unknown granularity: {granularity}")


def export_session(
    record: SessionRecord,
    fmt: str,
    granularity: str = "grouped",
    max_duration: float = 2.0,
    max_chars: int = 42,
) -> str:
    """Export a session record in one of FORMATS.

    Args:
        record: Session to export
        fmt: Format key (srt, vtt, ttml, json, txt, md)
        granularity: "grouped" captions or raw "segments" (caption formats only)
        max_duration: Caption duration limit in seconds
        max_chars: Caption length limit in characters

    Returns:
        Exported content

    Raises:
        ExportError: If the format or granularity is unknown
    """
    fmt = fmt.lower()
    if fmt not in FORMATS:
        raise ExportError(f"Unknown export format: {fmt}. Choose from: {', '.join(FORMATS)}")

    if fmt in CAPTION_FORMATS:
        captions = build_captions(record, granularity, max_duration, max_chars)
        if fmt == "srt":
            return generate_srt(captions)
        if fmt == "vtt":
            return generate_vtt(captions)
        return generate_ttml(captions)

    if fmt == "json":
        return generate_json(record)
    if fmt == "md":
        return generate_markdown(record)
    return flat_transcript(record.segments)


def export_filename(session_id: str, fmt: str, now: datetime | None = None) -> str:
    """Deterministic export file name, e.g. session_x_2026-01-01_10-00-00.srt."""
    if fmt not in FORMATS:
        raise ExportError(f"Unknown export format: {fmt}")
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
    return f"{session_id}_{stamp}.{FORMATS[fmt]['extension']}"

