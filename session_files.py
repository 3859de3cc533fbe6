"""
Helpers for Claude Code session artifacts under ~/.claude/projects.

Each project gets a cache directory named after its path with separators
replaced by dashes (e.g. -home-pi-TP). Session artifacts inside are JSONL
files whose records usually carry the real working directory.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

SESSION_SUFFIX = ".jsonl"
AGENT_PREFIX = "agent-"

# Field names that carry the owning project path, in lookup order
PROJECT_PATH_FIELDS = ("projectPath", "project_path", "cwd")

# Only the head of a session is inspected for its project path
HEAD_LINES = 10


def iter_jsonl(path: Path, max_lines: int | None = None) -> Iterable[tuple[int, dict[str, Any] | None]]:
    """
    Iterate over JSONL file line-by-line, yielding (lineno, parsed_object).

    Yields (lineno, None) for malformed JSON lines instead of crashing.
    Blank lines are skipped but still count towards max_lines.
    """
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for lineno, line in enumerate(f, start=1):
            if max_lines is not None and lineno > max_lines:
                break
            line = line.strip()
            if not line:
                continue
            try:
                yield lineno, json.loads(line)
            except json.JSONDecodeError:
                yield lineno, None


def find_session_files(project_dir: Path) -> list[Path]:
    """Session artifacts directly inside a project cache directory."""
    return sorted(
        p for p in project_dir.iterdir()
        if p.name.endswith(SESSION_SUFFIX) and p.is_file()
    )


def session_id_from_path(path: Path) -> str:
    return path.name[: -len(SESSION_SUFFIX)] if path.name.endswith(SESSION_SUFFIX) else path.name


def is_agent_session(path: Path) -> bool:
    return path.name.startswith(AGENT_PREFIX)


def extract_project_path(session_path: Path) -> str | None:
    """
    Read the project path recorded inside a session artifact.

    Looks at the first HEAD_LINES lines only and returns the first
    non-empty value found under any of PROJECT_PATH_FIELDS.

    Returns:
        The recorded path, or None if the file is unreadable or carries none
    """
    try:
        for _lineno, obj in iter_jsonl(session_path, max_lines=HEAD_LINES):
            if not isinstance(obj, dict):
                continue
            for field_name in PROJECT_PATH_FIELDS:
                value = obj.get(field_name)
                if isinstance(value, str) and value:
                    return value
    except OSError:
        return None
    return None


def decode_project_path(encoded_name: str) -> str:
    """
    Best-effort decode of a project cache directory name.

    Example: -Users-merlin--dev-ldis -> /Users/merlin/_dev/ldis

    Lossy: a dash inside a directory name is indistinguishable from a
    path separator (ai-engine decodes as ai/engine). Only used when no
    session artifact records the real path.
    """
    decoded = re.sub(r"^-", "/", encoded_name)
    decoded = decoded.replace("--", "/_")
    return decoded.replace("-", "/")


def derive_project_name(project_path: str) -> str:
    """Short display name for a project path."""
    name = Path(project_path).name
    return name or project_path
