"""Data model for the ~/.claude cache audit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

Severity = Literal["high", "medium", "low"]
Safety = Literal["safe", "caution", "risky"]
Category = Literal["orphaned", "stale", "large-session", "empty-files"]


@dataclass(frozen=True)
class SessionFile:
    """One session artifact (a .jsonl file) of a project cache."""
    session_id: str
    file_path: Path
    size: int
    created: datetime
    modified: datetime
    is_agent: bool
    project: str


@dataclass
class ProjectCacheEntry:
    """The cache directory of one project and its sessions."""
    project_name: str
    project_path: str
    cache_path: Path
    sessions: list[SessionFile] = field(default_factory=list)
    is_orphaned: bool = False
    is_active: bool = False
    path_source: Literal["session", "decoded"] = "session"

    @property
    def total_size(self) -> int:
        return sum(s.size for s in self.sessions)

    @property
    def last_accessed(self) -> datetime:
        if not self.sessions:
            return EPOCH
        return max(s.modified for s in self.sessions)


@dataclass(frozen=True)
class DirectoryCache:
    """Aggregate of one auxiliary cache directory (debug, todos, ...)."""
    kind: str
    cache_path: Path
    total_size: int = 0
    file_count: int = 0
    empty_file_count: int = 0


@dataclass(frozen=True)
class HistoryFile:
    file_path: Path
    size: int
    line_count: int


@dataclass(frozen=True)
class Recommendation:
    category: Category
    severity: Severity
    description: str
    target_path: str
    size_impact: int
    safety: Safety


@dataclass
class CacheAnalysis:
    """Result of one CacheAnalyzer.analyze() call."""
    cache_dir: Path
    projects: list[ProjectCacheEntry]
    file_history: DirectoryCache
    debug: DirectoryCache
    todos: DirectoryCache
    session_env: DirectoryCache
    shell_snapshots: DirectoryCache
    history: HistoryFile | None
    largest_sessions: list[SessionFile]
    orphaned_projects: list[ProjectCacheEntry]
    stale_projects: list[ProjectCacheEntry]
    oldest_session: datetime | None = None
    newest_session: datetime | None = None
    recommendations: list[Recommendation] = field(default_factory=list)

    @property
    def directories(self) -> list[DirectoryCache]:
        return [self.file_history, self.debug, self.todos, self.session_env, self.shell_snapshots]

    @property
    def sessions(self) -> list[SessionFile]:
        return [s for p in self.projects for s in p.sessions]

    @property
    def total_sessions(self) -> int:
        return sum(len(p.sessions) for p in self.projects)

    @property
    def total_size(self) -> int:
        return (
            sum(p.total_size for p in self.projects)
            + sum(d.total_size for d in self.directories)
            + (self.history.size if self.history else 0)
        )

    @property
    def potential_savings(self) -> int:
        return sum(r.size_impact for r in self.recommendations)
