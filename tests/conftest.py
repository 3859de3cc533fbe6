"""Shared fixtures for claude_usage_audit tests."""

import json
import os
import time
from pathlib import Path

import pytest

import settings


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep the user's settings file and CLAUDE_AUDIT_* variables out of tests."""
    monkeypatch.setenv("CLAUDE_AUDIT_CONFIG", str(tmp_path / "no-settings.yaml"))
    for env_var in settings.ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)


# ---------------------------------------------------------------------------
# Config store fixtures
# ---------------------------------------------------------------------------
SAMPLE_PROJECTS = {
    "/home/pi/alpha": {
        "allowedTools": [
            "mcp__github__create_issue",
            "mcp__github__list_prs",
            "Bash(git status)",
            "Bash(mcp__playwright__browser_click:*)",
        ],
        "mcpServers": {"github": {"command": "gh-mcp"}},
        "hasCompletedProjectOnboarding": True,
    },
    "/home/pi/beta": {
        "allowedTools": [
            "mcp__github__create_issue",
            "Read(//etc/hosts)",
        ],
        "hasCompletedProjectOnboarding": False,
    },
    "/home/pi/gamma": {
        "allowedTools": [],
    },
}


@pytest.fixture()
def write_store(tmp_path):
    """Factory writing a .claude.json store; returns its Path."""

    def _write(projects=None, raw=None, name=".claude.json"):
        store = tmp_path / name
        if raw is not None:
            store.write_text(raw)
        else:
            store.write_text(json.dumps({"numStartups": 12, "projects": projects or {}}))
        return store

    return _write


@pytest.fixture()
def sample_store(write_store):
    return write_store(SAMPLE_PROJECTS)


# ---------------------------------------------------------------------------
# Cache tree fixtures
# ---------------------------------------------------------------------------
def write_session(project_dir: Path, name: str, records=None, size=None, age_days=None) -> Path:
    """Write a JSONL session file.

    size pads the file (sparse) to exactly that many bytes; age_days
    backdates its mtime.
    """
    project_dir.mkdir(parents=True, exist_ok=True)
    path = project_dir / name
    lines = [json.dumps(r) for r in (records or [{"type": "summary"}])]
    path.write_text("\n".join(lines) + "\n")
    if size is not None:
        with path.open("r+b") as f:
            f.truncate(size)
    if age_days is not None:
        ts = time.time() - age_days * 86400
        os.utime(path, (ts, ts))
    return path


@pytest.fixture()
def claude_home(tmp_path):
    """An empty ~/.claude directory."""
    home = tmp_path / ".claude"
    home.mkdir()
    return home


@pytest.fixture()
def live_project(tmp_path):
    """A project directory that exists on disk."""
    path = tmp_path / "work" / "alive"
    path.mkdir(parents=True)
    return path


@pytest.fixture()
def make_session():
    """The write_session helper, as a fixture."""
    return write_session


# ---------------------------------------------------------------------------
# FastAPI test client
# ---------------------------------------------------------------------------
@pytest.fixture()
def audit_settings(claude_home, sample_store):
    return settings.AuditSettings(
        claude_home=claude_home,
        config_store_path=sample_store,
        jq_threshold_bytes=1 << 40,
    )


@pytest.fixture()
def client(audit_settings, monkeypatch):
    """FastAPI TestClient reading the sample store and a tmp cache directory.

    Patches the module-level settings and reader so the app never touches
    the real ~/.claude or ~/.claude.json.
    """
    from fastapi.testclient import TestClient

    import app as app_module

    monkeypatch.setattr(app_module, "_settings", audit_settings)
    monkeypatch.setattr(app_module, "_reader", None)

    with TestClient(app_module.app) as c:
        yield c
