"""Tests for scribeline CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from scribeline import __version__
from scribeline.cli import app

runner = CliRunner()


def flat(output: str) -> str:
    """Collapse the line wrapping rich applies to long messages."""
    return " ".join(output.split())


@pytest.fixture
def batches_file(tmp_path: Path, sample_batches: list[dict]) -> Path:
    path = tmp_path / "batches.jsonl"
    path.write_text("".join(json.dumps(line) + "\n" for line in sample_batches))
    return path


def write_audit(path: Path, entries: list[dict]) -> Path:
    path.write_text("".join(json.dumps(entry) + "\n" for entry in entries))
    return path


def audit_entry(sequence: int, text_length: int, delta: int, shrank: bool = False) -> dict:
    return {
        "sequence": sequence,
        "event": "partial",
        "text_length": text_length,
        "text_length_delta": delta,
        "stored_segment_count": 1,
        "stored_segment_delta": 0,
        "shrank_text": shrank,
        "note": None,
    }


class TestVersion:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInitCommand:
    def test_init_writes_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", "-d", str(tmp_path)])
        assert result.exit_code == 0
        assert (tmp_path / "scribeline.yaml").exists()

    def test_init_with_profile(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", "-p", "broadcast", "-d", str(tmp_path)])
        assert result.exit_code == 0
        assert "require_monotonic" in (tmp_path / "scribeline.yaml").read_text()

    def test_init_unknown_profile(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", "-p", "cinema", "-d", str(tmp_path)])
        assert result.exit_code == 1
        assert "Unknown profile" in flat(result.output)

    def test_init_fails_if_config_exists(self, tmp_path: Path) -> None:
        (tmp_path / "scribeline.yaml").write_text("profile: live\n")
        result = runner.invoke(app, ["init", "-d", str(tmp_path)])
        assert result.exit_code == 1
        assert "already exists" in flat(result.output)


class TestReplayCommand:
    def test_replay_offsets_restarted_task(self, batches_file: Path) -> None:
        result = runner.invoke(app, ["replay", str(batches_file)])
        assert result.exit_code == 0
        assert "00:00:00,000 --> 00:00:01,200\nHello world." in result.output
        assert "00:00:01,200 --> 00:00:02,500\nHow are you?" in result.output

    def test_replay_legacy_policy_overwrites(self, batches_file: Path) -> None:
        result = runner.invoke(app, ["replay", str(batches_file), "--policy", "legacy", "-f", "txt"])
        assert result.exit_code == 0
        assert "How are world. you?" in result.output

    def test_replay_to_file(self, batches_file: Path, tmp_path: Path) -> None:
        out = tmp_path / "out" / "captions.vtt"
        result = runner.invoke(app, ["replay", str(batches_file), "-f", "vtt", "-o", str(out)])
        assert result.exit_code == 0
        assert out.read_text().startswith("WEBVTT")

    def test_replay_writes_audit_log(self, batches_file: Path, tmp_path: Path) -> None:
        audit_dir = tmp_path / "audit"
        result = runner.invoke(
            app,
            ["replay", str(batches_file), "--audit-dir", str(audit_dir), "--session-id", "demo"],
        )
        assert result.exit_code == 0

        lines = (audit_dir / "audit_demo.jsonl").read_text().splitlines()
        events = [json.loads(line)["event"] for line in lines]
        assert events[0] == "session_start"
        assert events[-1] == "session_stop"
        assert "state_change" in events

    def test_replay_records_errors(self, tmp_path: Path) -> None:
        path = tmp_path / "batches.jsonl"
        path.write_text('{"error": "network lost"}\n')
        audit_dir = tmp_path / "audit"
        result = runner.invoke(
            app,
            ["replay", str(path), "-f", "txt", "--audit-dir", str(audit_dir), "--session-id", "e"],
        )
        assert result.exit_code == 0
        assert "network lost" in (audit_dir / "audit_e.jsonl").read_text()

    def test_replay_skips_malformed_segments(self, tmp_path: Path) -> None:
        path = tmp_path / "batches.jsonl"
        batch = {
            "segments": [
                {"text": "ok", "start_time": 0.0, "end_time": 1.0},
                {"text": "bad", "start_time": None, "end_time": 2.0},
                {"text": "worse", "start_time": "later", "end_time": 3.0},
                {"text": None, "start_time": 4.0, "end_time": 5.0},
            ],
            "final": True,
        }
        path.write_text(json.dumps(batch) + "\n")
        audit_dir = tmp_path / "audit"
        result = runner.invoke(
            app,
            ["replay", str(path), "-f", "txt", "--audit-dir", str(audit_dir), "--session-id", "m"],
        )
        assert result.exit_code == 0
        assert result.output.endswith("ok")
        assert "dropped 2 malformed segment(s)" in (audit_dir / "audit_m.jsonl").read_text()

    def test_replay_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["replay", str(tmp_path / "missing.jsonl")])
        assert result.exit_code == 1
        assert "not found" in flat(result.output)

    def test_replay_unknown_format(self, batches_file: Path) -> None:
        result = runner.invoke(app, ["replay", str(batches_file), "-f", "docx"])
        assert result.exit_code == 1
        assert "Unknown export format" in flat(result.output)

    def test_replay_invalid_policy(self, batches_file: Path) -> None:
        result = runner.invoke(app, ["replay", str(batches_file), "--policy", "guess"])
        assert result.exit_code == 1


class TestSessionCommands:
    def test_replay_then_export_saved_session(self, batches_file: Path, tmp_path: Path) -> None:
        sessions = tmp_path / "sessions"
        result = runner.invoke(
            app,
            ["replay", str(batches_file), "--sessions-dir", str(sessions), "--session-id", "talk"],
        )
        assert result.exit_code == 0
        assert (sessions / "talk.json").exists()

        result = runner.invoke(app, ["export", "talk", "-f", "txt", "--sessions-dir", str(sessions)])
        assert result.exit_code == 0
        assert result.output == "Hello world. How are you?"

    def test_export_missing_session(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["export", "nope", "--sessions-dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "not found" in flat(result.output)

    def test_sessions_lists_saved(self, batches_file: Path, tmp_path: Path) -> None:
        sessions = tmp_path / "sessions"
        runner.invoke(
            app,
            ["replay", str(batches_file), "--sessions-dir", str(sessions), "--session-id", "talk"],
        )
        result = runner.invoke(app, ["sessions", "--sessions-dir", str(sessions)])
        assert result.exit_code == 0
        assert "talk" in result.output

    def test_sessions_empty(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["sessions", "--sessions-dir", str(tmp_path)])
        assert result.exit_code == 0
        assert "No saved sessions" in result.output


class TestAuditCommand:
    def test_clean_log(self, tmp_path: Path) -> None:
        path = write_audit(tmp_path / "a.jsonl", [audit_entry(1, 5, 5), audit_entry(2, 11, 6)])
        result = runner.invoke(app, ["audit", str(path)])
        assert result.exit_code == 0
        assert "No signs of transcript loss" in result.output

    def test_shrinking_log_fails(self, tmp_path: Path) -> None:
        path = write_audit(tmp_path / "a.jsonl", [audit_entry(1, 11, 11), audit_entry(2, 3, -8, True)])
        result = runner.invoke(app, ["audit", str(path)])
        assert result.exit_code == 1
        assert "Text shrank" in result.output

    def test_sequence_gap_fails(self, tmp_path: Path) -> None:
        path = write_audit(tmp_path / "a.jsonl", [audit_entry(1, 5, 5), audit_entry(3, 6, 1)])
        result = runner.invoke(app, ["audit", str(path)])
        assert result.exit_code == 1
        assert "Missing sequence numbers" in result.output

    def test_missing_audit_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["audit", str(tmp_path / "none.jsonl")])
        assert result.exit_code == 1
