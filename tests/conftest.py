"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from scribeline.audit import MemoryAuditSink
from scribeline.config import EngineConfig
from scribeline.session import SessionController
from scribeline.timeline.segment import Segment


class ManualClock:
    """Clock whose wall and monotonic time only move when advanced."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 9, 30, 0, tzinfo=timezone.utc)
        self.ticks = 0.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.ticks

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.ticks += seconds


def seg(text: str, start: float, end: float, confidence: float = 0.9) -> Segment:
    return Segment(text=text, start_time=start, end_time=end, confidence=confidence)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def audit_sinks() -> dict[str, MemoryAuditSink]:
    """Memory sinks created by the controller, keyed by session id."""
    return {}


@pytest.fixture
def make_controller(clock: ManualClock, audit_sinks: dict[str, MemoryAuditSink]):
    def factory(**overrides) -> SessionController:
        values = {"throttle_interval": 0.0}
        values.update(overrides)
        config = EngineConfig(**values)

        def sink_factory(session_id: str) -> MemoryAuditSink:
            sink = MemoryAuditSink()
            audit_sinks[session_id] = sink
            return sink

        return SessionController(config, clock=clock, audit_sink_factory=sink_factory)

    return factory


@pytest.fixture
def controller(make_controller) -> SessionController:
    return make_controller()


@pytest.fixture
def sample_batches() -> list[dict]:
    """Recorded recognizer output across one task restart."""
    return [
        {"segments": [{"text": "Hello", "start_time": 0.0, "end_time": 0.5}], "final": False},
        {
            "segments": [
                {"text": "Hello", "start_time": 0.0, "end_time": 0.5},
                {"text": "world.", "start_time": 0.6, "end_time": 1.2},
            ],
            "final": True,
        },
        {
            "segments": [{"text": "How", "start_time": 0.0, "end_time": 0.4}],
            "final": False,
            "generation": 1,
        },
        {
            "segments": [
                {"text": "How", "start_time": 0.0, "end_time": 0.4},
                {"text": "are", "start_time": 0.5, "end_time": 0.8},
                {"text": "you?", "start_time": 0.9, "end_time": 1.3},
            ],
            "final": True,
            "generation": 1,
        },
    ]
