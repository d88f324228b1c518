"""
scribeline.audit - Append-only audit trail of timeline mutations.

Every merge, lifecycle change and error in a session becomes one
AuditEntry. Entries go to two places independently:

- a bounded in-memory mirror (most recent N) for live inspection
- a sink that persists every entry, one JSON object per line

A drop in recorded text length (`shrank_text`) is the signature of
silently overwritten transcript text. The in-memory mirror may forget such
an entry; the persisted file never does.

Sink failures are logged and swallowed so auditing can never stall or break
the live transcript path.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import IO, Protocol, Sequence

from pydantic import BaseModel, ConfigDict

from scribeline.clock import Clock, SystemClock
from scribeline.io import open_append
from scribeline.timeline.segment import Segment

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."


class AuditEvent(str, Enum):
    SESSION_START = "session_start"
    SESSION_STOP = "session_stop"
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"
    STATE_CHANGE = "state_change"


class AuditEntry(BaseModel):
    """One immutable record of a timeline mutation or lifecycle event."""

    model_config = ConfigDict(frozen=True)

    sequence: int
    timestamp: datetime
    session_id: str | None
    event: AuditEvent
    text_length: int
    text_length_delta: int
    incoming_segment_count: int
    stored_segment_count: int
    stored_segment_delta: int
    first_segment_start: float | None = None
    last_segment_end: float | None = None
    shrank_text: bool = False
    text: str | None = None
    was_truncated: bool = False
    note: str | None = None


class AuditSink(Protocol):
    def write(self, entry: AuditEntry) -> None: ...

    def close(self) -> None: ...


class MemoryAuditSink:
    """Collects entries in a list; used to capture audit output in tests."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []
        self.closed = False

    def write(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def close(self) -> None:
        self.closed = True


_STOP = object()


class JsonlAuditSink:
    """Appends entries to a JSON Lines file from a dedicated writer thread.

    `write` only enqueues, so file-system latency never reaches the caller.
    `close` drains the queue before closing the file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._queue: queue.Queue = queue.Queue()
        self._handle: IO[str] | None = None
        self._closed = False
        self._thread = threading.Thread(
            target=self._run, name=f"audit-writer-{path.stem}", daemon=True
        )
        self._thread.start()

    def write(self, entry: AuditEntry) -> None:
        if self._closed:
            logger.warning("Audit entry %d dropped; writer for %s is closed", entry.sequence, self.path)
            return
        self._queue.put(entry)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._thread.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            self._append(item)
        if self._handle is not None:
            try:
                self._handle.close()
            except OSError as e:
                logger.error("Failed to close audit log %s: %s", self.path, e)
            self._handle = None

    def _append(self, entry: AuditEntry) -> None:
        try:
            if self._handle is None:
                self._handle = open_append(self.path)
            self._handle.write(entry.model_dump_json() + "\n")
            self._handle.flush()
        except (OSError, ValueError) as e:
            logger.error("Failed to append audit log %s: %s", self.path, e)
            self._handle = None


def audit_log_path(audit_dir: Path, session_id: str) -> Path:
    return audit_dir / f"audit_{session_id}.jsonl"


class AuditLog:
    """Sequenced audit ledger for a single session."""

    def __init__(
        self,
        session_id: str | None,
        sink: AuditSink | None = None,
        clock: Clock | None = None,
        max_entries: int = 300,
        max_text_length: int = 500,
    ) -> None:
        self.session_id = session_id
        self.sink = sink
        self.clock = clock or SystemClock()
        self.max_text_length = max_text_length
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)
        self._sequence = 0
        self._last_text_length = 0

    @property
    def entries(self) -> list[AuditEntry]:
        """Most recent entries, oldest first."""
        return list(self._entries)

    @property
    def sequence(self) -> int:
        return self._sequence

    def record(
        self,
        event: AuditEvent,
        text: str | None = None,
        incoming_count: int = 0,
        stored_count: int = 0,
        stored_delta: int = 0,
        note: str | None = None,
        timeline: Sequence[Segment] = (),
    ) -> AuditEntry:
        """Append an entry and hand it to the sink.

        Args:
            event: What happened
            text: Transcript text after the mutation, if any
            incoming_count: Segments in the incoming batch
            stored_count: Segments in the timeline afterwards
            stored_delta: Change in stored segment count
            note: Free-form diagnostic note
            timeline: Timeline afterwards, for its first start / last end

        Returns:
            The recorded entry
        """
        text_length = len(text) if text is not None else self._last_text_length
        delta = text_length - self._last_text_length if text is not None else 0

        stored_text = text
        was_truncated = False
        if text is not None and len(text) > self.max_text_length:
            stored_text = text[: self.max_text_length] + TRUNCATION_MARKER
            was_truncated = True

        self._sequence += 1
        entry = AuditEntry(
            sequence=self._sequence,
            timestamp=self.clock.now(),
            session_id=self.session_id,
            event=event,
            text_length=text_length,
            text_length_delta=delta,
            incoming_segment_count=incoming_count,
            stored_segment_count=stored_count,
            stored_segment_delta=stored_delta,
            first_segment_start=timeline[0].start_time if timeline else None,
            last_segment_end=timeline[-1].end_time if timeline else None,
            shrank_text=delta < 0,
            text=stored_text,
            was_truncated=was_truncated,
            note=note,
        )
        self._last_text_length = text_length
        self._entries.append(entry)

        if entry.shrank_text:
            logger.warning(
                "Transcript shrank by %d chars in session %s (entry %d)",
                -delta,
                self.session_id,
                entry.sequence,
            )

        if self.sink is not None:
            try:
                self.sink.write(entry)
            except Exception as e:
                logger.error("Audit sink rejected entry %d: %s", entry.sequence, e)
        return entry

    def close(self) -> None:
        if self.sink is None:
            return
        try:
            self.sink.close()
        except Exception as e:
            logger.error("Failed to close audit sink for %s: %s", self.session_id, e)


def summarize_entries(entries: Sequence[dict]) -> dict:
    """Scan persisted audit entries for signs of transcript loss.

    Args:
        entries: Entry dicts as read back from a JSON Lines audit file

    Returns:
        Dict with 'count', 'shrank' (sequences), 'gaps' (missing sequences),
        'repeats' (out-of-order or duplicated sequences) and 'suspect_loss'
    """
    shrank = [e["sequence"] for e in entries if e.get("shrank_text")]
    gaps = []
    repeats = []
    expected = 1
    for entry in entries:
        sequence = entry.get("sequence", expected)
        if sequence > expected:
            gaps.extend(range(expected, sequence))
        elif sequence < expected:
            repeats.append(sequence)
        expected = max(expected, sequence + 1)
    return {
        "count": len(entries),
        "shrank": shrank,
        "gaps": gaps,
        "repeats": repeats,
        "suspect_loss": bool(shrank or gaps or repeats),
    }
