"""
scribeline.storage - Finalized session records and their JSON storage.

Each stopped session is saved as <sessions_dir>/<session_id>.json.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from scribeline.exceptions import StorageError
from scribeline.io import read_json, write_json
from scribeline.timeline.segment import Segment, Timeline
from scribeline.timeline.store import flat_transcript

logger = logging.getLogger(__name__)


def count_words(segments: Timeline | list[Segment]) -> int:
    return sum(len(segment.text.split()) for segment in segments)


class SessionRecord(BaseModel):
    """Final state of a recording session."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    start_time: datetime
    end_time: datetime | None = None
    segments: Timeline = ()
    total_duration: float = 0.0
    word_count: int = 0

    @property
    def full_text(self) -> str:
        return flat_transcript(self.segments)

    @property
    def words_per_minute(self) -> float:
        minutes = self.total_duration / 60.0
        return self.word_count / minutes if minutes > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "segments": [segment.to_dict() for segment in self.segments],
            "total_duration": self.total_duration,
            "word_count": self.word_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionRecord:
        return cls(
            session_id=data["session_id"],
            start_time=data["start_time"],
            end_time=data.get("end_time"),
            segments=tuple(Segment.from_dict(s) for s in data.get("segments", [])),
            total_duration=data.get("total_duration", 0.0),
            word_count=data.get("word_count", 0),
        )


class SessionStore:
    """Directory of saved session records."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def session_path(self, session_id: str) -> Path:
        return self.path / f"{session_id}.json"

    def save(self, record: SessionRecord) -> Path:
        """Write a session record atomically and return its path."""
        path = self.session_path(record.session_id)
        write_json(path, record.to_dict())
        logger.info("Saved session: %s", record.session_id)
        return path

    def load(self, session_id: str) -> SessionRecord | None:
        """Load a saved session, or None if it was never saved.

        Raises:
            StorageError: If the file exists but cannot be parsed
        """
        path = self.session_path(session_id)
        if not path.exists():
            return None
        try:
            return SessionRecord.from_dict(read_json(path))
        except (json.JSONDecodeError, KeyError, ValidationError) as e:
            raise StorageError(session_id, f"Corrupt session file: {e}") from e

    def list_sessions(self) -> list[SessionRecord]:
        """All readable sessions, newest first. Corrupt files are logged and skipped."""
        if not self.path.exists():
            return []
        records = []
        for path in sorted(self.path.glob("*.json")):
            try:
                record = self.load(path.stem)
            except StorageError as e:
                logger.error("Failed to load session: %s", e)
                continue
            if record is not None:
                records.append(record)
        return sorted(records, key=lambda r: r.start_time, reverse=True)

    def delete(self, session_id: str) -> bool:
        path = self.session_path(session_id)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Delete ignored; no saved session %s", session_id)
            return False
        logger.info("Deleted session: %s", session_id)
        return True
