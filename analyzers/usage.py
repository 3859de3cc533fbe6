"""Cross-project usage statistics for MCP integrations and their tools."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field

from config_store import ConfigStoreReader, StoreSnapshot
from grant_rules import Grant, match_grant
from settings import MIN_PROJECT_COUNT, PERMISSION_MIN_PROJECT_COUNT, TOP_N

BASH_WRAPPER = "Bash("


@dataclass
class ToolUsage:
    """One integration capability and the projects granting it."""
    full_name: str
    integration: str
    capability: str
    projects: list[str] = field(default_factory=list)  # first-seen order
    usage_count: int = 0  # grant occurrences, duplicates included

    @property
    def project_count(self) -> int:
        return len(self.projects)


@dataclass
class IntegrationSummary:
    name: str
    capabilities: list[str]
    projects: list[str]

    @property
    def usage_count(self) -> int:
        return len(self.projects)


@dataclass
class PermissionFrequency:
    """One permission grant (any tool, not only MCP) and the projects holding it."""
    permission: str
    projects: list[str] = field(default_factory=list)  # first-seen order

    @property
    def project_count(self) -> int:
        return len(self.projects)


@dataclass
class UsageStats:
    total_integrations: int
    total_tools: int
    total_usage: int
    top_integrations: list[IntegrationSummary]
    top_tools: list[ToolUsage]


def summarize_integrations(snapshot: StoreSnapshot) -> list[IntegrationSummary]:
    return [
        IntegrationSummary(
            name=usage.name,
            capabilities=sorted(usage.capabilities),
            projects=sorted(usage.projects),
        )
        for usage in snapshot.usage.values()
    ]


def summarize_tools(snapshot: StoreSnapshot) -> list[ToolUsage]:
    """Per-tool usage in the order tools are first seen in the store."""
    tools: dict[str, ToolUsage] = {}
    for project in snapshot.projects:
        for grant_text in project.allowed_tools:
            grant = match_grant(grant_text)
            if not isinstance(grant, Grant):
                continue
            info = tools.get(grant.full_name)
            if info is None:
                info = tools[grant.full_name] = ToolUsage(
                    full_name=grant.full_name,
                    integration=grant.integration,
                    capability=grant.capability,
                )
            if project.path not in info.projects:
                info.projects.append(project.path)
            info.usage_count += 1
    return list(tools.values())


def normalize_permission(grant_text: str) -> str:
    """Strip a Bash(...) wrapper: 'Bash(git status)' -> 'git status'."""
    if grant_text.startswith(BASH_WRAPPER) and grant_text.endswith(")"):
        return grant_text[len(BASH_WRAPPER):-1]
    return grant_text


def summarize_permissions(
    snapshot: StoreSnapshot, exclude: Collection[str] = (),
) -> list[PermissionFrequency]:
    """Per-permission project lists, each project counted once per permission."""
    permissions: dict[str, PermissionFrequency] = {}
    for project in snapshot.projects:
        seen: set[str] = set()
        for grant_text in project.allowed_tools:
            permission = normalize_permission(grant_text)
            if permission in exclude or permission in seen:
                continue
            seen.add(permission)
            info = permissions.get(permission)
            if info is None:
                info = permissions[permission] = PermissionFrequency(permission=permission)
            info.projects.append(project.path)
    return list(permissions.values())


class UsageAggregator:
    """Usage views over a ConfigStoreReader. Every call reads one snapshot."""

    def __init__(self, reader: ConfigStoreReader):
        self.reader = reader

    async def list_integrations(self) -> list[IntegrationSummary]:
        return summarize_integrations(await self.reader.snapshot())

    async def list_tools(self) -> list[ToolUsage]:
        return summarize_tools(await self.reader.snapshot())

    async def total_projects(self) -> int:
        """Distinct projects that grant at least one integration tool."""
        snapshot = await self.reader.snapshot()
        projects: set[str] = set()
        for usage in snapshot.usage.values():
            projects |= usage.projects
        return len(projects)

    async def discover_frequent(self, min_project_count: int = MIN_PROJECT_COUNT) -> list[ToolUsage]:
        """
        Tools granted in at least min_project_count projects.

        Sorted by project count, most used first; ties keep first-seen order.
        """
        tools = await self.list_tools()
        frequent = [t for t in tools if t.project_count >= min_project_count]
        return sorted(frequent, key=lambda t: t.project_count, reverse=True)

    async def discover_permissions(
        self,
        min_project_count: int = PERMISSION_MIN_PROJECT_COUNT,
        top_n: int = TOP_N,
        exclude: Collection[str] = (),
    ) -> list[PermissionFrequency]:
        """
        Permission grants shared by at least min_project_count projects.

        Every grant counts, MCP or not. A Bash(...) wrapper is stripped
        first, so 'Bash(git status)' and 'git status' are one permission.

        Args:
            min_project_count: Minimum number of projects holding the grant
            top_n: Maximum number of results
            exclude: Normalized permissions to leave out (e.g. a base set)

        Returns:
            Most widely held first, ties in first-seen order
        """
        permissions = summarize_permissions(await self.reader.snapshot(), exclude)
        frequent = [p for p in permissions if p.project_count >= min_project_count]
        return sorted(frequent, key=lambda p: p.project_count, reverse=True)[:top_n]

    async def stats(self, top_n: int = TOP_N) -> UsageStats:
        """Totals plus independently truncated top integrations and top tools."""
        snapshot = await self.reader.snapshot()
        integrations = summarize_integrations(snapshot)
        tools = summarize_tools(snapshot)
        return UsageStats(
            total_integrations=len(integrations),
            total_tools=len(tools),
            total_usage=sum(i.usage_count for i in integrations),
            top_integrations=sorted(integrations, key=lambda i: i.usage_count, reverse=True)[:top_n],
            top_tools=sorted(tools, key=lambda t: t.usage_count, reverse=True)[:top_n],
        )
