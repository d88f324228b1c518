"""
scribeline.cli - Typer CLI entry point.

Replays recorded recognizer batches through the engine, exports saved
sessions and inspects audit logs for transcript loss.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from scribeline import __version__
from scribeline.audit import summarize_entries
from scribeline.config import (
    CONFIG_FILENAME,
    EngineConfig,
    apply_overrides,
    build_config,
    create_default_config,
    load_config,
    write_config,
)
from scribeline.exceptions import ScribelineError
from scribeline.export.formats import FORMATS, export_session
from scribeline.io import read_jsonl, write_text
from scribeline.logging import configure_logging
from scribeline.session import SessionController
from scribeline.storage import SessionStore
from scribeline.timeline.segment import Segment
from scribeline.utils import format_duration

app = typer.Typer(
    name="scribeline",
    help="Transcript timeline engine.\n\n"
    "Merges restart-prone speech recognizer output into a canonical timeline, "
    "groups it into captions and keeps an audit trail of every change.",
    add_completion=False,
)
console = Console()

DEFAULT_SESSIONS_DIR = Path("sessions")


def version_callback(value: bool) -> None:
    if value:
        console.print(f"scribeline {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Scribeline - transcript timeline engine."""
    configure_logging(verbose)


def resolve_config(config_path: Path | None) -> EngineConfig:
    if config_path is not None:
        return load_config(config_path)
    if Path(CONFIG_FILENAME).exists():
        return load_config(Path(CONFIG_FILENAME))
    return build_config()


def emit(content: str, output: Path | None) -> None:
    if output is None:
        typer.echo(content, nl=False)
        return
    write_text(output, content)
    console.print(f"[green]✓[/green] Wrote {output}")


@app.command("init")
def init_config(
    profile: str = typer.Option("live", "--profile", "-p", help="Profile: live, broadcast, forensic"),
    path: Path = typer.Option(Path("."), "--path", "-d", help="Directory to write the config in"),
) -> None:
    """Write a scribeline.yaml with the profile's defaults."""
    config_file = path / CONFIG_FILENAME
    if config_file.exists():
        console.print(f"[red]Error: {config_file} already exists[/red]")
        raise typer.Exit(1)
    try:
        write_config(create_default_config(profile), config_file)
    except ScribelineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Created {config_file} with profile '{profile}'")


@app.command("replay")
def replay(
    batches: Path = typer.Argument(..., help="JSON Lines file of recorded recognizer batches"),
    fmt: str = typer.Option("srt", "--format", "-f", help=f"Export format: {', '.join(FORMATS)}"),
    output: Path | None = typer.Option(None, "--out", "-o", help="Write export to file"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to scribeline.yaml"),
    policy: str | None = typer.Option(
        None, "--policy", help="Restart policy: legacy, auto_offset, require_monotonic"
    ),
    audit_dir: Path | None = typer.Option(None, "--audit-dir", help="Directory for audit logs"),
    sessions_dir: Path | None = typer.Option(None, "--sessions-dir", help="Save the session here"),
    session_id: str | None = typer.Option(None, "--session-id", help="Session id to use"),
    raw: bool = typer.Option(False, "--raw", help="One caption per segment"),
    discard_volatile: bool = typer.Option(
        False, "--discard-volatile", help="Drop still-revising text at the end"
    ),
) -> None:
    """Feed recorded batches through a session and export the result.

    Each line holds {"segments": [...], "final": bool, "generation": int}
    or {"error": "message"}.
    """
    try:
        config = apply_overrides(
            resolve_config(config_path),
            restart_policy=policy,
            audit_dir=audit_dir,
            sessions_dir=sessions_dir,
            throttle_interval=0.0,
        )
        lines = list(read_jsonl(batches))
    except FileNotFoundError:
        console.print(f"[red]Error: {batches} not found[/red]")
        raise typer.Exit(1)
    except (ScribelineError, json.JSONDecodeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    controller = SessionController(config)
    controller.start_session(session_id)
    for line in lines:
        if "error" in line:
            controller.report_error(str(line["error"]))
            continue
        segments = [Segment.from_dict(s) for s in line.get("segments") or []]
        controller.merge_segments(
            segments,
            is_final=bool(line.get("final", False)),
            generation=line.get("generation"),
        )
    record = controller.stop_session(flush_volatile=not discard_volatile)

    try:
        content = export_session(
            record,
            fmt,
            granularity="segments" if raw else config.export_granularity,
            max_duration=config.max_caption_duration,
            max_chars=config.max_caption_chars,
        )
    except ScribelineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    emit(content, output)


@app.command("export")
def export_cmd(
    session_id: str = typer.Argument(..., help="Saved session id"),
    fmt: str = typer.Option("srt", "--format", "-f", help=f"Export format: {', '.join(FORMATS)}"),
    output: Path | None = typer.Option(None, "--out", "-o", help="Write export to file"),
    sessions_dir: Path = typer.Option(DEFAULT_SESSIONS_DIR, "--sessions-dir", help="Saved sessions"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to scribeline.yaml"),
    raw: bool = typer.Option(False, "--raw", help="One caption per segment"),
) -> None:
    """Export a saved session as captions or transcript."""
    try:
        config = resolve_config(config_path)
        record = SessionStore(sessions_dir).load(session_id)
        if record is None:
            console.print(f"[red]Error: Session '{session_id}' not found in {sessions_dir}[/red]")
            raise typer.Exit(1)
        content = export_session(
            record,
            fmt,
            granularity="segments" if raw else config.export_granularity,
            max_duration=config.max_caption_duration,
            max_chars=config.max_caption_chars,
        )
    except ScribelineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    emit(content, output)


@app.command("sessions")
def list_sessions(
    sessions_dir: Path = typer.Option(DEFAULT_SESSIONS_DIR, "--sessions-dir", help="Saved sessions"),
) -> None:
    """List saved sessions, newest first."""
    records = SessionStore(sessions_dir).list_sessions()
    if not records:
        console.print("[dim]No saved sessions[/dim]")
        return

    table = Table(title="Sessions")
    table.add_column("Session", style="cyan")
    table.add_column("Started", style="dim")
    table.add_column("Duration", style="green")
    table.add_column("Segments", justify="right")
    table.add_column("Words", justify="right")
    for record in records:
        table.add_row(
            record.session_id,
            record.start_time.isoformat(timespec="seconds"),
            format_duration(record.total_duration),
            str(len(record.segments)),
            str(record.word_count),
        )
    console.print(table)


@app.command("audit")
def inspect_audit(
    audit_file: Path = typer.Argument(..., help="Audit log (.jsonl)"),
    limit: int = typer.Option(50, "--limit", "-n", help="Show the last N entries"),
) -> None:
    """Summarize an audit log and flag signs of transcript loss.

    Exits with status 1 when text shrank or sequence numbers are broken.
    """
    try:
        entries = list(read_jsonl(audit_file))
    except FileNotFoundError:
        console.print(f"[red]Error: {audit_file} not found[/red]")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: Invalid audit log: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Audit: {audit_file.name}")
    table.add_column("#", justify="right")
    table.add_column("Event", style="cyan")
    table.add_column("Text", justify="right")
    table.add_column("Δ", justify="right")
    table.add_column("Stored", justify="right")
    table.add_column("Note", style="dim")
    for entry in entries[-limit:]:
        delta = entry.get("text_length_delta", 0)
        style = "red" if entry.get("shrank_text") else None
        table.add_row(
            str(entry.get("sequence")),
            str(entry.get("event")),
            str(entry.get("text_length")),
            f"{delta:+d}",
            f"{entry.get('stored_segment_count')} ({entry.get('stored_segment_delta', 0):+d})",
            entry.get("note") or "",
            style=style,
        )
    console.print(table)

    summary = summarize_entries(entries)
    console.print(f"\n{summary['count']} entries")
    if summary["shrank"]:
        console.print(f"[red]Text shrank at entries: {summary['shrank']}[/red]")
    if summary["gaps"]:
        console.print(f"[red]Missing sequence numbers: {summary['gaps']}[/red]")
    if summary["repeats"]:
        console.print(f"[red]Repeated or out-of-order sequence numbers: {summary['repeats']}[/red]")
    if summary["suspect_loss"]:
        raise typer.Exit(1)
    console.print("[green]✓[/green] No signs of transcript loss")
