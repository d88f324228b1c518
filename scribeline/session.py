"""
scribeline.session - Session controller for the transcript timeline engine.

Orchestrates one recording session at a time:

    recognizer batch → restart policy → TimelineStore.merge → classify
    → AuditLog.record → subscribers (through the update coalescer)

The controller is constructed by its owner with the clock, audit sink
factory and session store injected. Readers take `controller.snapshot`, an
immutable TimelineSnapshot that is replaced in a single assignment, so they
never see a timeline mid-merge and never need a lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from pydantic import BaseModel, ConfigDict

from scribeline.audit import AuditEvent, AuditLog, AuditSink, JsonlAuditSink, audit_log_path
from scribeline.clock import Clock, SystemClock
from scribeline.coalescer import UpdateCoalescer
from scribeline.config import EngineConfig
from scribeline.exceptions import ExportError
from scribeline.export.formats import export_session
from scribeline.storage import SessionRecord, SessionStore, count_words
from scribeline.timeline.segment import Segment, Timeline
from scribeline.timeline.stability import classify, split_display
from scribeline.timeline.store import TimelineStore, deduplicate, filter_valid

logger = logging.getLogger(__name__)

MONOTONIC_TOLERANCE = 0.001
KEY_RESOLUTION = 0.001

Subscriber = Callable[["TimelineSnapshot"], None]


class TimelineSnapshot(BaseModel):
    """Complete, immutable view of a session's timeline at one version."""

    model_config = ConfigDict(frozen=True)

    session_id: str | None = None
    version: int = 0
    segments: Timeline = ()
    display_segments: Timeline = ()
    stable_count: int = 0
    is_final: bool = False

    @property
    def stable_segments(self) -> Timeline:
        return self.display_segments[: self.stable_count]

    @property
    def volatile_segments(self) -> Timeline:
        return self.display_segments[self.stable_count :]

    @property
    def stable_text(self) -> str:
        return split_display(self.display_segments, self.stable_count)[0]

    @property
    def volatile_text(self) -> str:
        return split_display(self.display_segments, self.stable_count)[1]

    @property
    def transcript(self) -> str:
        return " ".join(segment.text for segment in self.display_segments)


class SessionController:
    """Owns the current timeline, its previous snapshot and the session audit log."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        audit_sink_factory: Callable[[str], AuditSink | None] | None = None,
        session_store: SessionStore | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.clock = clock or SystemClock()
        self.audit_sink_factory = audit_sink_factory or self._default_sink_factory
        if session_store is None and self.config.sessions_dir is not None:
            session_store = SessionStore(self.config.sessions_dir)
        self.session_store = session_store

        self.snapshot = TimelineSnapshot()
        self.audit = self._new_audit_log(None, None)
        self.session_id: str | None = None
        self.last_record: SessionRecord | None = None

        self._store = TimelineStore()
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self._coalescer: UpdateCoalescer[TimelineSnapshot] = UpdateCoalescer(
            self._notify, self.config.throttle_interval, self.clock
        )
        self._started_at = None
        self._generation = 0
        self._offset = 0.0
        self._generation_floor = 0.0
        self._finalized_keys: set[int] = set()

    @property
    def is_active(self) -> bool:
        return self.session_id is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def offset(self) -> float:
        return self._offset

    @property
    def transcript(self) -> str:
        return self.snapshot.transcript

    def display_text(self) -> tuple[str, str]:
        """(stable_text, volatile_text) of the latest snapshot."""
        snapshot = self.snapshot
        return snapshot.stable_text, snapshot.volatile_text

    def query(self, time: float) -> Segment | None:
        return self._store.query(time)

    def query_range(self, start: float, end: float) -> list[Segment]:
        return self._store.query_range(start, end)

    # Subscriptions

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a snapshot listener and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def pump(self) -> bool:
        """Deliver a throttled partial snapshot if its window has elapsed."""
        return self._coalescer.pump()

    def _notify(self, snapshot: TimelineSnapshot) -> None:
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber failed")

    # Lifecycle

    def start_session(self, session_id: str | None = None) -> str:
        """Begin a session with an empty timeline and return its id.

        An already active session is stopped first using the configured
        flush policy.
        """
        if self.is_active:
            logger.info("Stopping session %s before starting a new one", self.session_id)
            self.stop_session()

        session_id = session_id or self._generate_session_id()
        with self._lock:
            self._store.clear()
            self._started_at = self.clock.now()
            self._generation = 0
            self._offset = 0.0
            self._generation_floor = 0.0
            self._finalized_keys = set()
            self.session_id = session_id
            self.audit = self._new_audit_log(session_id, self.audit_sink_factory(session_id))
            self.audit.record(AuditEvent.SESSION_START, note=f"restart_policy={self.config.restart_policy}")
            snapshot = TimelineSnapshot(session_id=session_id)
            self.snapshot = snapshot

        self._coalescer.reset()
        self._coalescer.receive_final(snapshot)
        logger.info("Started recording session: %s", session_id)
        return session_id

    def stop_session(self, flush_volatile: bool | None = None) -> SessionRecord | None:
        """Finalize the active session.

        Args:
            flush_volatile: Keep still-revising segments in the final record.
                Defaults to the configured `flush_on_stop`.

        Returns:
            The final session record, or None when no session is active
        """
        if not self.is_active:
            logger.info("Stop ignored; no active session")
            return None

        if flush_volatile is None:
            flush_volatile = self.config.flush_on_stop

        with self._lock:
            if self.session_id is None:
                logger.info("Stop ignored; session already stopped")
                return None
            current = self.snapshot
            segments = self._store.segments
            note = None
            pending = {s.key for s in current.volatile_segments} - self._finalized_keys
            if not flush_volatile and pending:
                discarded = [s for s in segments if s.key in pending]
                segments = tuple(s for s in segments if s.key not in pending)
                note = f"discarded {len(discarded)} volatile segment(s)"

            ended_at = self.clock.now()
            record = SessionRecord(
                session_id=self.session_id,
                start_time=self._started_at,
                end_time=ended_at,
                segments=segments,
                total_duration=(ended_at - self._started_at).total_seconds(),
                word_count=count_words(segments),
            )
            self.audit.record(
                AuditEvent.SESSION_STOP,
                stored_count=len(segments),
                stored_delta=len(segments) - len(self._store),
                note=note,
                timeline=segments,
            )
            audit = self.audit

            display = tuple(deduplicate(segments))
            final = TimelineSnapshot(
                session_id=self.session_id,
                version=current.version + 1,
                segments=segments,
                display_segments=display,
                stable_count=len(display),
                is_final=True,
            )
            self.snapshot = final
            self.last_record = record
            self._store.clear()
            self._finalized_keys = set()
            self.session_id = None

        self._coalescer.receive_final(final)
        audit.close()
        if self.session_store is not None:
            try:
                self.session_store.save(record)
            except OSError as e:
                logger.error("Failed to save session %s: %s", record.session_id, e)
        logger.info("Stopped recording session: %s", record.session_id)
        return record

    def cancel_session(self) -> SessionRecord | None:
        """Stop the session, discarding volatile text."""
        return self.stop_session(flush_volatile=False)

    # Recognizer input

    def begin_task_generation(self, generation: int | None = None) -> None:
        """Signal that the recognizer task restarted and its clock is back near zero."""
        if not self.is_active:
            logger.info("Task restart ignored; no active session")
            return
        with self._lock:
            if self.session_id is None:
                return
            self._begin_generation(generation if generation is not None else self._generation + 1)

    def merge_segments(
        self,
        batch: Iterable[Segment],
        is_final: bool = False,
        generation: int | None = None,
    ) -> TimelineSnapshot | None:
        """Merge a recognizer batch into the timeline and publish a snapshot.

        Args:
            batch: Segments from the recognizer, in its own task clock
            is_final: The recognizer marked this result final
            generation: Recognizer task generation, if the adapter tracks it

        Returns:
            The new snapshot, or None when no session is active
        """
        if not self.is_active:
            logger.info("Merge ignored; no active session")
            return None

        batch = list(batch)
        with self._lock:
            if self.session_id is None:
                logger.info("Merge ignored; session stopped")
                return None
            if generation is not None and generation != self._generation:
                self._begin_generation(generation)

            valid = filter_valid(batch)
            notes = []
            if len(valid) < len(batch):
                notes.append(f"dropped {len(batch) - len(valid)} malformed segment(s)")

            policy = self.config.restart_policy
            if policy == "auto_offset":
                valid = [segment.shifted(self._offset) for segment in valid]
            elif policy == "require_monotonic":
                early = [s for s in valid if s.start_time < self._generation_floor - MONOTONIC_TOLERANCE]
                if early:
                    message = (
                        f"rejected non-monotonic batch: start {early[0].start_time:.3f}s "
                        f"before generation floor {self._generation_floor:.3f}s"
                    )
                    logger.warning("Session %s %s", self.session_id, message)
                    self.audit.record(
                        AuditEvent.ERROR,
                        incoming_count=len(batch),
                        stored_count=len(self._store),
                        note=message,
                        timeline=self._store.segments,
                    )
                    return self.snapshot

            previous = self._store.segments
            previous_by_key = {s.key: s for s in previous}
            current = self._store.merge(valid)
            if is_final:
                self._finalized_keys.update(segment.key for segment in valid)
            overwritten = sum(
                1 for s in valid if s.key in previous_by_key and previous_by_key[s.key] != s
            )
            if overwritten:
                notes.append(f"replaced {overwritten} stored segment(s)")

            display = tuple(deduplicate(current))
            stable_count = classify(self.snapshot.display_segments, display)
            snapshot = TimelineSnapshot(
                session_id=self.session_id,
                version=self.snapshot.version + 1,
                segments=current,
                display_segments=display,
                stable_count=stable_count,
                is_final=is_final,
            )
            self.audit.record(
                AuditEvent.FINAL if is_final else AuditEvent.PARTIAL,
                text=snapshot.transcript,
                incoming_count=len(batch),
                stored_count=len(current),
                stored_delta=len(current) - len(previous),
                note="; ".join(notes) or None,
                timeline=current,
            )
            self.snapshot = snapshot

        if is_final:
            self._coalescer.receive_final(snapshot)
        else:
            self._coalescer.receive_partial(snapshot)
        return snapshot

    def report_error(self, message: str) -> None:
        """Record a recognizer or adapter error without interrupting the session."""
        logger.error("Recognizer error: %s", message)
        if not self.is_active:
            return
        with self._lock:
            if self.session_id is None:
                return
            self.audit.record(
                AuditEvent.ERROR,
                stored_count=len(self._store),
                note=message,
                timeline=self._store.segments,
            )

    # Export

    def current_record(self) -> SessionRecord | None:
        """Live record of the active session, or the last finalized one."""
        if not self.is_active:
            return self.last_record
        snapshot = self.snapshot
        now = self.clock.now()
        return SessionRecord(
            session_id=snapshot.session_id,
            start_time=self._started_at,
            end_time=None,
            segments=snapshot.segments,
            total_duration=(now - self._started_at).total_seconds(),
            word_count=count_words(snapshot.segments),
        )

    def export(self, fmt: str, granularity: str | None = None) -> str:
        """Export the current or last finalized session.

        Raises:
            ExportError: If there is no session or the format is unknown
        """
        record = self.current_record()
        if record is None:
            raise ExportError("No session to export")
        return export_session(
            record,
            fmt,
            granularity=granularity or self.config.export_granularity,
            max_duration=self.config.max_caption_duration,
            max_chars=self.config.max_caption_chars,
        )

    # Internals

    def _begin_generation(self, generation: int) -> None:
        floor = self._store.end_time
        if self._store.segments:
            floor = max(floor, self._store.segments[-1].start_time + KEY_RESOLUTION)
        self._generation = generation
        self._generation_floor = floor
        if self.config.restart_policy == "auto_offset":
            self._offset = floor
        self.audit.record(
            AuditEvent.STATE_CHANGE,
            stored_count=len(self._store),
            note=f"task generation {generation}; offset {self._offset:.3f}s",
            timeline=self._store.segments,
        )
        logger.debug("Session %s task generation %d, offset %.3fs", self.session_id, generation, self._offset)

    def _new_audit_log(self, session_id: str | None, sink: AuditSink | None) -> AuditLog:
        return AuditLog(
            session_id,
            sink=sink,
            clock=self.clock,
            max_entries=self.config.audit_max_entries,
            max_text_length=self.config.audit_max_text_length,
        )

    def _default_sink_factory(self, session_id: str) -> AuditSink | None:
        if self.config.audit_dir is None:
            return None
        return JsonlAuditSink(audit_log_path(self.config.audit_dir, session_id))

    def _generate_session_id(self) -> str:
        return f"session_{self.clock.now():%Y%m%d_%H%M%S}"
