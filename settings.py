"""
Configuration for claude-usage-audit.

Defaults live here as module constants. `load_settings()` layers an
optional YAML file and CLAUDE_AUDIT_* environment variables on top.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
CLAUDE_HOME = Path.home() / ".claude"
CONFIG_STORE_PATH = Path.home() / ".claude.json"
DEFAULT_SETTINGS_PATH = Path("~/.config/claude-usage-audit/config.yaml").expanduser()

CACHE_TTL_SECONDS = 60
STALE_DAYS = 60
LARGE_SESSION_BYTES = 10 * 1024 * 1024
MIN_PROJECT_COUNT = 3
TOP_N = 10

# Plain permission grants are suggested once seen in this many projects
PERMISSION_MIN_PROJECT_COUNT = 2

# Stores at least this large are extracted with jq when it is installed
JQ_THRESHOLD_BYTES = 5 * 1024 * 1024
JQ_TIMEOUT_SECONDS = 10.0

ENV_OVERRIDES = {
    "claude_home": "CLAUDE_AUDIT_CLAUDE_HOME",
    "config_store_path": "CLAUDE_AUDIT_STORE",
    "cache_ttl_seconds": "CLAUDE_AUDIT_CACHE_TTL",
    "stale_days": "CLAUDE_AUDIT_STALE_DAYS",
    "large_session_bytes": "CLAUDE_AUDIT_LARGE_SESSION_BYTES",
    "min_project_count": "CLAUDE_AUDIT_MIN_PROJECTS",
    "jq_threshold_bytes": "CLAUDE_AUDIT_JQ_THRESHOLD",
    "jq_timeout_seconds": "CLAUDE_AUDIT_JQ_TIMEOUT",
}


@dataclass
class AuditSettings:
    """Effective settings for one run."""
    claude_home: Path = CLAUDE_HOME
    config_store_path: Path = CONFIG_STORE_PATH
    cache_ttl_seconds: float = float(CACHE_TTL_SECONDS)
    stale_days: int = STALE_DAYS
    large_session_bytes: int = LARGE_SESSION_BYTES
    min_project_count: int = MIN_PROJECT_COUNT
    jq_threshold_bytes: int = JQ_THRESHOLD_BYTES
    jq_timeout_seconds: float = JQ_TIMEOUT_SECONDS


def get_settings_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("CLAUDE_AUDIT_CONFIG", DEFAULT_SETTINGS_PATH))
    return candidate.expanduser()


def read_settings_file(path: Path | None = None) -> dict[str, Any]:
    """Read the YAML settings file. Missing or blank files yield {}."""
    settings_path = get_settings_path(path)
    if not settings_path.exists():
        return {}
    raw = settings_path.read_text(encoding="utf-8")
    if not raw.strip():
        return {}
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid settings yaml: {settings_path}") from exc
    if not isinstance(data, dict):
        raise ValueError("settings must be a mapping")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, Path):
        return Path(str(value)).expanduser()
    try:
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid value for {name}: {value!r}") from exc
    return value


def load_settings(path: Path | None = None) -> AuditSettings:
    """Build settings from defaults, the YAML file, then the environment."""
    settings = AuditSettings()
    known = {f.name for f in fields(AuditSettings)}

    data = read_settings_file(path)
    data.update(get_env_overrides())

    for key, value in data.items():
        if key not in known or value is None:
            continue
        setattr(settings, key, _coerce(key, value, getattr(settings, key)))
    return settings
