"""
scribeline.io - File helpers for sessions, exports and audit logs.

Session records and exports are replaced whole (write to a sibling temp
file, then rename), so a crash mid-write leaves the previous file intact.
Audit logs are the exception: they are append-only JSON Lines.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import IO, Any, Callable, Iterator


def _replace_atomically(path: Path, write: Callable[[IO[str]], None]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w", encoding="utf-8", dir=path.parent, delete=False, suffix=".tmp"
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            write(tmp)
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(path)


def read_json(path: Path) -> dict[str, Any]:
    """Load a UTF-8 JSON document.

    Raises:
        FileNotFoundError: If the file is missing
        json.JSONDecodeError: If the content is not JSON
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, data: dict[str, Any], indent: int = 2) -> None:
    """Replace `path` with pretty-printed JSON, keeping non-ASCII text as is."""
    _replace_atomically(path, lambda f: json.dump(data, f, indent=indent, ensure_ascii=False))


def write_text(path: Path, content: str) -> None:
    _replace_atomically(path, lambda f: f.write(content))


def open_append(path: Path) -> IO[str]:
    """Open a UTF-8 text file for appending, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return open(path, "a", encoding="utf-8")


def read_jsonl(path: Path) -> Iterator[dict[str, Any]]:
    """Yield one object per non-blank line of a JSON Lines file.

    Raises:
        FileNotFoundError: If the file is missing
        json.JSONDecodeError: At the first line that is not JSON
    """
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                yield json.loads(line)
