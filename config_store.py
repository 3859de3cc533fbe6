"""
Read-only access to the Claude Code global config store (~/.claude.json).

The store maps project paths to their allowedTools grants, MCP server
config and onboarding flag. It grows large on long-lived machines, so
stores above a size threshold are extracted with jq when available,
falling back to in-process json parsing.

All derived views (project list, integration usage, stats) come from a
single StoreSnapshot cached in a TTLCache, so they never mix two reads.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import settings
from errors import ParseError, ReadError
from grant_rules import Grant, match_grant
from ttl_cache import TTLCache

logger = logging.getLogger("claude-usage-audit")

_SNAPSHOT_KEY = "snapshot"

# Same shape rules as _parse_in_process; record values are passed through
# raw so parse_project_record validates them on both paths
_JQ_FILTER = (
    'if type != "object" then error("root document must be an object") '
    "elif .projects == null then empty "
    'elif (.projects | type) != "object" then error("\'projects\' must be an object") '
    "else .projects | to_entries[] | {path: .key, value: .value} end"
)


@dataclass(frozen=True)
class ProjectRecord:
    """One project entry of the config store."""
    path: str
    allowed_tools: tuple[str, ...] = ()
    integration_config: dict[str, Any] | None = field(default=None, compare=False)
    has_completed_onboarding: bool | None = None


@dataclass
class IntegrationUsage:
    """Capabilities and projects that reference one integration."""
    name: str
    capabilities: set[str] = field(default_factory=set)
    projects: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class StoreSnapshot:
    """Everything derived from one read of the store."""
    projects: tuple[ProjectRecord, ...]
    usage: dict[str, IntegrationUsage]
    byte_size: int


@dataclass
class StoreStats:
    total_projects: int
    projects_with_integrations: int
    total_integrations: int
    total_capabilities: int
    store_byte_size: int


def parse_project_record(key: str, value: Any) -> ProjectRecord:
    """
    Validate one raw project entry.

    Raises:
        ParseError: the entry is not an object or its fields have the wrong shape
    """
    if not isinstance(key, str) or not key:
        raise ParseError(str(key), "project path must be a non-empty string")
    if not isinstance(value, dict):
        raise ParseError(key, f"expected object, got {type(value).__name__}")

    tools = value.get("allowedTools")
    if tools is None:
        tools = []
    if not isinstance(tools, list) or not all(isinstance(t, str) for t in tools):
        raise ParseError(key, "allowedTools must be a list of strings")

    servers = value.get("mcpServers")
    if servers is not None and not isinstance(servers, dict):
        raise ParseError(key, "mcpServers must be an object")

    onboarding = value.get("hasCompletedProjectOnboarding")
    if onboarding is not None and not isinstance(onboarding, bool):
        raise ParseError(key, "hasCompletedProjectOnboarding must be a boolean")

    return ProjectRecord(
        path=key,
        allowed_tools=tuple(tools),
        integration_config=servers,
        has_completed_onboarding=onboarding,
    )


def build_usage(projects: Iterable[ProjectRecord]) -> dict[str, IntegrationUsage]:
    """Union every project's grants into per-integration usage."""
    usage: dict[str, IntegrationUsage] = {}
    for project in projects:
        for grant_text in project.allowed_tools:
            grant = match_grant(grant_text)
            if not isinstance(grant, Grant):
                continue
            info = usage.get(grant.integration)
            if info is None:
                info = usage[grant.integration] = IntegrationUsage(name=grant.integration)
            info.capabilities.add(grant.capability)
            info.projects.add(project.path)
    return usage


class ConfigStoreReader:
    """Cached, read-only view of the global config store."""

    def __init__(
        self,
        path: Path | None = None,
        cache: TTLCache | None = None,
        jq_threshold_bytes: int = settings.JQ_THRESHOLD_BYTES,
        jq_timeout_seconds: float = settings.JQ_TIMEOUT_SECONDS,
        jq_binary: str = "jq",
    ):
        self.path = Path(path) if path is not None else settings.CONFIG_STORE_PATH
        self.cache = cache or TTLCache(settings.CACHE_TTL_SECONDS)
        self.jq_threshold_bytes = jq_threshold_bytes
        self.jq_timeout_seconds = jq_timeout_seconds
        self.jq_binary = jq_binary
        self.read_count = 0
        logger.debug("ConfigStoreReader initialized for %s", self.path)

    @classmethod
    def from_settings(cls, audit_settings: settings.AuditSettings) -> ConfigStoreReader:
        return cls(
            path=audit_settings.config_store_path,
            cache=TTLCache(audit_settings.cache_ttl_seconds),
            jq_threshold_bytes=audit_settings.jq_threshold_bytes,
            jq_timeout_seconds=audit_settings.jq_timeout_seconds,
        )

    # -----------------------------------------------------------------------
    # Public queries
    # -----------------------------------------------------------------------
    async def exists(self) -> bool:
        """Check if the store exists and is readable."""
        return await asyncio.to_thread(
            lambda: self.path.is_file() and os.access(self.path, os.R_OK)
        )

    async def snapshot(self) -> StoreSnapshot:
        return await self.cache.get(_SNAPSHOT_KEY, self._load_snapshot)

    async def all_projects(self) -> list[ProjectRecord]:
        snap = await self.snapshot()
        return list(snap.projects)

    async def usage_by_integration(self) -> dict[str, IntegrationUsage]:
        snap = await self.snapshot()
        return snap.usage

    async def get_project(self, project_path: str) -> ProjectRecord | None:
        snap = await self.snapshot()
        for project in snap.projects:
            if project.path == project_path:
                return project
        return None

    async def search_integration(self, name: str) -> list[ProjectRecord]:
        """Projects granting at least one capability of the named integration."""
        snap = await self.snapshot()
        usage = snap.usage.get(name)
        if usage is None:
            return []
        return [p for p in snap.projects if p.path in usage.projects]

    async def stats(self) -> StoreStats:
        snap = await self.snapshot()
        with_integrations: set[str] = set()
        for usage in snap.usage.values():
            with_integrations |= usage.projects
        return StoreStats(
            total_projects=len(snap.projects),
            projects_with_integrations=len(with_integrations),
            total_integrations=len(snap.usage),
            total_capabilities=sum(len(u.capabilities) for u in snap.usage.values()),
            store_byte_size=snap.byte_size,
        )

    def invalidate(self) -> None:
        self.cache.invalidate()

    # -----------------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------------
    async def _load_snapshot(self) -> StoreSnapshot:
        self.read_count += 1
        try:
            byte_size = (await asyncio.to_thread(self.path.stat)).st_size
        except OSError as e:
            logger.error("Failed to read global config %s: %s", self.path, e)
            raise ReadError(self.path, str(e)) from e

        entries = None
        if byte_size >= self.jq_threshold_bytes:
            entries = await self._extract_with_jq()
        if entries is None:
            entries = await asyncio.to_thread(self._parse_in_process)

        projects: dict[str, ProjectRecord] = {}
        skipped = 0
        for key, value in entries:
            try:
                record = parse_project_record(key, value)
            except ParseError as e:
                logger.warning("Skipping project record: %s", e)
                skipped += 1
                continue
            if record.path in projects:
                logger.debug("Duplicate project path %s, keeping last", record.path)
            projects[record.path] = record

        ordered = tuple(projects.values())
        logger.debug(
            "Projects loaded from %s: %d records, %d skipped",
            self.path, len(ordered), skipped,
        )
        return StoreSnapshot(projects=ordered, usage=build_usage(ordered), byte_size=byte_size)

    def _parse_in_process(self) -> list[tuple[Any, Any]]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read global config %s: %s", self.path, e)
            raise ReadError(self.path, str(e)) from e
        except json.JSONDecodeError as e:
            logger.error("Global config %s is not valid JSON: %s", self.path, e)
            raise ReadError(self.path, f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            logger.error("Global config %s: root document is not an object", self.path)
            raise ReadError(self.path, "root document must be an object")
        projects = data.get("projects")
        if projects is None:
            return []
        if not isinstance(projects, dict):
            logger.error("Global config %s: 'projects' is not an object", self.path)
            raise ReadError(self.path, "'projects' must be an object")
        return list(projects.items())

    async def _extract_with_jq(self) -> list[tuple[Any, Any]] | None:
        """
        Extract project entries with jq.

        Returns:
            (path, entry) pairs, or None when jq is unavailable, fails or
            times out so the caller can fall back to in-process parsing.
            A store of the wrong shape makes jq fail, and the in-process
            parser then raises the ReadError.
        """
        jq = shutil.which(self.jq_binary)
        if jq is None:
            logger.debug("jq not found, parsing %s in process", self.path)
            return None

        try:
            proc = await asyncio.create_subprocess_exec(
                jq, "-c", _JQ_FILTER, str(self.path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning("Could not start jq: %s", e)
            return None
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.jq_timeout_seconds
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(
                "jq extraction timed out after %.1fs, falling back to json parsing",
                self.jq_timeout_seconds,
            )
            return None

        if proc.returncode != 0:
            logger.warning(
                "jq extraction failed (exit %s): %s",
                proc.returncode, stderr.decode("utf-8", "replace").strip(),
            )
            return None

        return parse_jq_output(stdout.decode("utf-8", "replace"))


def parse_jq_output(text: str) -> list[tuple[Any, Any]]:
    """Turn jq's {path, value} lines into (path, raw entry) pairs."""
    entries: list[tuple[Any, Any]] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Skipping project record: %s", ParseError("<jq line>", str(e)))
            continue
        if not isinstance(data, dict):
            logger.warning("Skipping project record: %s", ParseError("<jq line>", "not an object"))
            continue
        entries.append((data.get("path"), data.get("value")))
    return entries
