"""
scribeline.export - Caption and transcript export.

Textual grammars over the grouped caption list:
- SRT (SubRip) - comma millisecond separator, 1-indexed cues
- WebVTT - period millisecond separator
- TTML subset - Jinja2 template with XML escaping
- JSON session record, plain text and Markdown transcripts
"""

from __future__ import annotations
