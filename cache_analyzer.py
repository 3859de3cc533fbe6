"""
Storage audit of the Claude Code cache directory (~/.claude).

Walks projects/ (session artifacts per project) and the auxiliary cache
kinds (file-history, debug, todos, session-env, shell-snapshots,
history.jsonl). Each kind is analyzed concurrently and independently;
results are joined into one CacheAnalysis and handed to the
recommendation engine.
"""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path

import settings
from analyzers.recommendations import (
    RecommendationThresholds,
    find_stale_projects,
    generate_recommendations,
)
from cache_models import (
    CacheAnalysis,
    DirectoryCache,
    HistoryFile,
    ProjectCacheEntry,
    SessionFile,
)
from errors import DirectoryNotFoundError, StatError
from session_files import (
    decode_project_path,
    derive_project_name,
    extract_project_path,
    find_session_files,
    is_agent_session,
    session_id_from_path,
)

logger = logging.getLogger("claude-usage-audit")

LARGEST_SESSIONS = 10


@dataclass(frozen=True)
class _AuxKind:
    kind: str
    dirname: str
    recursive: bool = True


AUX_KINDS = {
    "file_history": _AuxKind("file-history", "file-history"),
    "debug": _AuxKind("debug", "debug", recursive=False),
    "todos": _AuxKind("todos", "todos"),
    "session_env": _AuxKind("session-env", "session-env"),
    "shell_snapshots": _AuxKind("shell-snapshots", "shell-snapshots"),
}


def _stat(path: Path) -> os.stat_result:
    try:
        return path.stat()
    except OSError as e:
        raise StatError(path, e) from e


def _to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _created_time(st: os.stat_result) -> datetime:
    # st_birthtime is only available on macOS/BSD (and newer Windows builds)
    return _to_datetime(getattr(st, "st_birthtime", st.st_ctime))


def _iter_files(root: Path, recursive: bool):
    if not recursive:
        with os.scandir(root) as entries:
            for entry in entries:
                yield Path(entry.path)
        return
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        for name in filenames:
            yield Path(dirpath) / name


def _log_walk_error(err: OSError) -> None:
    logger.debug("Skipping unreadable directory %s: %s", err.filename, err)


class CacheAnalyzer:
    """Analyze the cache tree rooted at claude_home."""

    def __init__(
        self,
        claude_home: Path | None = None,
        thresholds: RecommendationThresholds | None = None,
        cwd: Path | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.claude_home = Path(claude_home) if claude_home is not None else settings.CLAUDE_HOME
        self.thresholds = thresholds or RecommendationThresholds()
        self.cwd = cwd
        self._now = now or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, audit_settings: settings.AuditSettings) -> CacheAnalyzer:
        return cls(
            claude_home=audit_settings.claude_home,
            thresholds=RecommendationThresholds(
                stale_days=audit_settings.stale_days,
                large_session_bytes=audit_settings.large_session_bytes,
            ),
        )

    async def analyze(self) -> CacheAnalysis:
        """
        Run the full storage audit.

        Raises:
            DirectoryNotFoundError: claude_home does not exist
        """
        if not await asyncio.to_thread(self.claude_home.is_dir):
            logger.error("Cache directory %s not found", self.claude_home)
            raise DirectoryNotFoundError(self.claude_home)

        cwd = str(self.cwd if self.cwd is not None else Path.cwd())
        projects, file_history, debug, todos, session_env, shell_snapshots, history = (
            await asyncio.gather(
                self.analyze_projects(cwd),
                self.analyze_directory(AUX_KINDS["file_history"]),
                self.analyze_directory(AUX_KINDS["debug"]),
                self.analyze_directory(AUX_KINDS["todos"]),
                self.analyze_directory(AUX_KINDS["session_env"]),
                self.analyze_directory(AUX_KINDS["shell_snapshots"]),
                self.analyze_history(),
            )
        )

        projects.sort(key=lambda p: p.total_size, reverse=True)
        all_sessions = [s for p in projects for s in p.sessions]
        largest = sorted(all_sessions, key=lambda s: s.size, reverse=True)[:LARGEST_SESSIONS]

        analysis = CacheAnalysis(
            cache_dir=self.claude_home,
            projects=projects,
            file_history=file_history,
            debug=debug,
            todos=todos,
            session_env=session_env,
            shell_snapshots=shell_snapshots,
            history=history,
            largest_sessions=largest,
            orphaned_projects=[p for p in projects if p.is_orphaned],
            stale_projects=find_stale_projects(projects, self.thresholds.stale_days, self._now()),
            oldest_session=min((s.created for s in all_sessions), default=None),
            newest_session=max((s.modified for s in all_sessions), default=None),
        )
        analysis = replace(
            analysis, recommendations=generate_recommendations(analysis, self.thresholds)
        )
        logger.info(
            "Cache analysis done: %d projects, %d sessions, %d recommendations",
            len(projects), analysis.total_sessions, len(analysis.recommendations),
        )
        return analysis

    # -----------------------------------------------------------------------
    # projects/
    # -----------------------------------------------------------------------
    async def analyze_projects(self, cwd: str) -> list[ProjectCacheEntry]:
        projects_dir = self.claude_home / "projects"
        if not await asyncio.to_thread(projects_dir.is_dir):
            return []

        try:
            dirs = await asyncio.to_thread(
                lambda: sorted(p for p in projects_dir.iterdir() if p.is_dir())
            )
        except OSError as e:
            logger.warning("Cannot list %s: %s", projects_dir, e)
            return []

        entries = await asyncio.gather(*(self.analyze_project_dir(d, cwd) for d in dirs))
        return [e for e in entries if e is not None]

    async def analyze_project_dir(self, cache_path: Path, cwd: str) -> ProjectCacheEntry | None:
        return await asyncio.to_thread(self._analyze_project_dir, cache_path, cwd)

    def _analyze_project_dir(self, cache_path: Path, cwd: str) -> ProjectCacheEntry | None:
        try:
            session_paths = find_session_files(cache_path)
        except OSError as e:
            logger.warning("Cannot list project cache %s: %s", cache_path, e)
            return None

        project_path, path_source = self._resolve_project_path(cache_path, session_paths)
        project_name = derive_project_name(project_path)

        sessions: list[SessionFile] = []
        for path in session_paths:
            try:
                st = _stat(path)
            except StatError as e:
                logger.debug("Skipping session: %s", e)
                continue
            sessions.append(SessionFile(
                session_id=session_id_from_path(path),
                file_path=path,
                size=st.st_size,
                created=_created_time(st),
                modified=_to_datetime(st.st_mtime),
                is_agent=is_agent_session(path),
                project=project_name,
            ))
        sessions.sort(key=lambda s: s.size, reverse=True)

        return ProjectCacheEntry(
            project_name=project_name,
            project_path=project_path,
            cache_path=cache_path,
            sessions=sessions,
            is_orphaned=not os.path.exists(project_path),
            is_active=os.path.normpath(project_path) == os.path.normpath(cwd),
            path_source=path_source,
        )

    def _resolve_project_path(self, cache_path: Path, session_paths: list[Path]) -> tuple[str, str]:
        for path in session_paths:
            recorded = extract_project_path(path)
            if recorded:
                return recorded, "session"
        decoded = decode_project_path(cache_path.name)
        logger.debug("No recorded path in %s, decoded name as %s", cache_path.name, decoded)
        return decoded, "decoded"

    # -----------------------------------------------------------------------
    # Auxiliary cache kinds
    # -----------------------------------------------------------------------
    async def analyze_directory(self, aux: _AuxKind) -> DirectoryCache:
        return await asyncio.to_thread(self._analyze_directory, aux)

    def _analyze_directory(self, aux: _AuxKind) -> DirectoryCache:
        root = self.claude_home / aux.dirname
        if not root.is_dir():
            return DirectoryCache(kind=aux.kind, cache_path=root)

        total_size = 0
        file_count = 0
        empty_count = 0
        try:
            for path in _iter_files(root, aux.recursive):
                try:
                    st = _stat(path)
                except StatError as e:
                    logger.debug("Skipping file: %s", e)
                    continue
                if not stat.S_ISREG(st.st_mode):
                    continue
                total_size += st.st_size
                file_count += 1
                if st.st_size == 0:
                    empty_count += 1
        except OSError as e:
            logger.warning("Cannot list %s: %s", root, e)

        return DirectoryCache(
            kind=aux.kind,
            cache_path=root,
            total_size=total_size,
            file_count=file_count,
            empty_file_count=empty_count,
        )

    async def analyze_history(self) -> HistoryFile | None:
        return await asyncio.to_thread(self._analyze_history)

    def _analyze_history(self) -> HistoryFile | None:
        history_path = self.claude_home / "history.jsonl"
        if not history_path.is_file():
            return None
        try:
            st = _stat(history_path)
            with history_path.open("rb") as f:
                line_count = sum(1 for line in f if line.strip())
        except (StatError, OSError) as e:
            logger.debug("Skipping history file: %s", e)
            return None
        return HistoryFile(file_path=history_path, size=st.st_size, line_count=line_count)
