"""Text reports and plain-dict views for cache and usage analyses."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cache_models import CacheAnalysis, ProjectCacheEntry, SessionFile

if TYPE_CHECKING:
    from .usage import PermissionFrequency, ToolUsage, UsageStats


def format_bytes(size: int) -> str:
    """Format bytes to human-readable size."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / 1024 / 1024:.1f} MB"
    return f"{size / 1024 / 1024 / 1024:.1f} GB"


def pluralize(count: int, noun: str) -> str:
    """'1 session', '3 sessions'. The noun is the last word of the phrase."""
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def format_age(when: datetime, now: datetime | None = None) -> str:
    """Human-readable age, e.g. '3 days ago'."""
    days = ((now or datetime.now(timezone.utc)) - when).days
    if days <= 0:
        return "today"
    if days == 1:
        return "1 day ago"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 365:
        return f"{days // 30} months ago"
    return f"{days // 365} years ago"


def _bar(value: int, total: int, width: int = 30) -> str:
    filled = round(value / total * width) if total else 0
    return "#" * filled + "." * (width - filled)


def _header(title: str) -> list[str]:
    return ["=" * 70, title, "=" * 70, ""]


# ---------------------------------------------------------------------------
# Cache report
# ---------------------------------------------------------------------------
def generate_cache_report(analysis: CacheAnalysis, detailed: bool = False, top_n: int = 10) -> str:
    """
    Generate the storage audit report.

    Args:
        analysis: Result of CacheAnalyzer.analyze()
        detailed: List every orphaned/stale project
        top_n: Number of projects to list by size

    Returns:
        Formatted report text
    """
    lines = []
    lines.extend(_cache_overview(analysis))
    lines.extend(_cache_breakdown(analysis))
    lines.extend(_top_projects(analysis, top_n))
    lines.extend(_largest_sessions(analysis))
    lines.extend(_issues(analysis, detailed))
    lines.extend(_recommendations(analysis))
    return "\n".join(lines)


def _cache_overview(analysis: CacheAnalysis) -> list[str]:
    lines = _header("CLAUDE CODE CACHE ANALYSIS")
    lines.extend([
        f"Cache directory: {analysis.cache_dir}",
        f"Total size:      {format_bytes(analysis.total_size)}",
        f"Projects:        {len(analysis.projects)}",
        f"Sessions:        {analysis.total_sessions}",
    ])
    if analysis.oldest_session and analysis.newest_session:
        lines.append(
            f"Age range:       {analysis.oldest_session:%Y-%m-%d} -> {analysis.newest_session:%Y-%m-%d}"
        )
    lines.append("")
    return lines


def _cache_breakdown(analysis: CacheAnalysis) -> list[str]:
    lines = _header("CACHE BREAKDOWN")
    components = [
        ("Project sessions", sum(p.total_size for p in analysis.projects),
         pluralize(analysis.total_sessions, "session")),
    ]
    for directory in analysis.directories:
        components.append((directory.kind, directory.total_size, pluralize(directory.file_count, "file")))
    history = analysis.history
    components.append((
        "history",
        history.size if history else 0,
        pluralize(history.line_count, "line") if history else "N/A",
    ))
    components.sort(key=lambda c: c[1], reverse=True)

    total = analysis.total_size
    for name, size, count in components:
        pct = (size / total * 100) if total > 0 else 0
        lines.append(f"  {name:<18} {_bar(size, total)} {format_bytes(size):>10} ({pct:5.1f}%)  {count}")
    lines.append("")
    return lines


def _project_status(project: ProjectCacheEntry) -> str:
    if project.is_active:
        return "[ACTIVE]"
    if project.is_orphaned:
        return "[ORPHANED]"
    return ""


def _top_projects(analysis: CacheAnalysis, top_n: int) -> list[str]:
    lines = _header(f"TOP {top_n} PROJECTS BY SIZE")
    for index, project in enumerate(analysis.projects[:top_n], start=1):
        decoded = " (path guessed from directory name)" if project.path_source == "decoded" else ""
        lines.append(
            f"  {index:2d}. {project.project_name:<30} {format_bytes(project.total_size):>10}"
            f"  {pluralize(len(project.sessions), 'session')} {_project_status(project)}{decoded}".rstrip()
        )
    lines.append("")
    return lines


def _session_label(session: SessionFile) -> str:
    return f"{session.project}/{session.session_id[:8]}"


def _largest_sessions(analysis: CacheAnalysis) -> list[str]:
    if not analysis.largest_sessions:
        return []
    lines = _header("LARGEST SESSION FILES")
    for index, session in enumerate(analysis.largest_sessions[:5], start=1):
        lines.append(
            f"  {index:2d}. {_session_label(session):<40} {format_bytes(session.size):>10}"
            f"  ({format_age(session.modified)})"
        )
    lines.append("")
    return lines


def _issues(analysis: CacheAnalysis, detailed: bool) -> list[str]:
    flagged = []
    if analysis.orphaned_projects:
        size = sum(p.total_size for p in analysis.orphaned_projects)
        flagged.append(f"  ! {pluralize(len(analysis.orphaned_projects), 'orphaned project')} ({format_bytes(size)})")
        if detailed:
            flagged.extend(f"      {p.project_name} - {p.project_path}" for p in analysis.orphaned_projects)
    if analysis.stale_projects:
        size = sum(p.total_size for p in analysis.stale_projects)
        flagged.append(f"  ! {pluralize(len(analysis.stale_projects), 'stale project')} ({format_bytes(size)})")
        if detailed:
            flagged.extend(
                f"      {p.project_name} - last accessed {p.last_accessed:%Y-%m-%d}"
                for p in analysis.stale_projects
            )
    if analysis.session_env.empty_file_count:
        flagged.append(f"  ! {pluralize(analysis.session_env.empty_file_count, 'empty session-env file')}")

    if not flagged:
        return []
    return _header("ISSUES FOUND") + flagged + [""]


def _recommendations(analysis: CacheAnalysis) -> list[str]:
    if not analysis.recommendations:
        return ["Cache is in good shape! No major issues found.", ""]

    lines = _header("RECOMMENDATIONS")
    for rec in analysis.recommendations:
        lines.append(f"  [{rec.severity.upper()}] {rec.description}")
        lines.append(f"      Potential savings: {format_bytes(rec.size_impact)} [{rec.safety.upper()}]")
    lines.extend([
        "",
        f"Total potential savings: {format_bytes(analysis.potential_savings)}",
        "  (categories can overlap: a large session of an orphaned project is counted in both)",
        "",
    ])
    return lines


def generate_cache_stats(analysis: CacheAnalysis) -> str:
    """Short cache summary: totals, top three components and issue counts."""
    lines = [
        "Cache quick stats",
        f"  Total size: {format_bytes(analysis.total_size)}",
        f"  Projects:   {len(analysis.projects)}",
        f"  Sessions:   {analysis.total_sessions}",
    ]

    components = [("projects", sum(p.total_size for p in analysis.projects))]
    components.extend((d.kind, d.total_size) for d in analysis.directories)
    if analysis.history:
        components.append(("history.jsonl", analysis.history.size))
    components = sorted((c for c in components if c[1] > 0), key=lambda c: c[1], reverse=True)
    if components:
        lines.append("  Top components:")
        lines.extend(
            f"    {index}. {name}: {format_bytes(size)}"
            for index, (name, size) in enumerate(components[:3], start=1)
        )

    issues = []
    if analysis.orphaned_projects:
        issues.append(pluralize(len(analysis.orphaned_projects), "orphaned project"))
    if analysis.stale_projects:
        issues.append(pluralize(len(analysis.stale_projects), "stale project"))
    if analysis.session_env.empty_file_count:
        issues.append(pluralize(analysis.session_env.empty_file_count, "empty session-env file"))
    lines.append(f"  Issues: {', '.join(issues)}" if issues else "  No issues found")

    if analysis.potential_savings > 0:
        lines.append(f"  Potential savings: {format_bytes(analysis.potential_savings)}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Usage report
# ---------------------------------------------------------------------------
def generate_usage_report(
    tools: list[ToolUsage],
    min_projects: int,
    total_projects: int,
    stats: UsageStats | None = None,
) -> str:
    """Generate the frequent-tool discovery report."""
    lines = _header("MCP TOOL DISCOVERY")
    lines.append(f"Projects analyzed: {total_projects}")
    lines.append("")

    if not tools:
        lines.append(f"No MCP tools are used in {min_projects}+ projects")
    else:
        lines.append(f"Tools used in {min_projects}+ projects:")
        for index, tool in enumerate(tools, start=1):
            lines.append(
                f"  {index:2d}. {tool.full_name}  ({pluralize(tool.project_count, 'project')})"
                f" {_project_names(tool.projects)}"
            )
    lines.append("")

    if stats is not None:
        lines.extend(_header("STATISTICS"))
        lines.extend([
            f"  Total MCPs:  {stats.total_integrations}",
            f"  Total tools: {stats.total_tools}",
            f"  Total usage: {stats.total_usage}",
            "",
            "Top MCPs:",
        ])
        lines.extend(f"  {i.usage_count:5d}  {i.name}" for i in stats.top_integrations)
        lines.append("")
        lines.append("Top tools:")
        lines.extend(f"  {t.usage_count:5d}  {t.full_name}" for t in stats.top_tools)
        lines.append("")

    return "\n".join(lines)


def _project_names(projects: list[str], shown: int = 3) -> str:
    names = ", ".join(Path(p).name for p in projects[:shown])
    more = f" (+{len(projects) - shown} more)" if len(projects) > shown else ""
    return f"{names}{more}"


def generate_permission_report(
    permissions: list[PermissionFrequency],
    min_projects: int,
    total_projects: int,
) -> str:
    """Generate the shared-permission discovery report."""
    lines = _header("PERMISSION DISCOVERY")
    lines.append(f"Projects analyzed: {total_projects}")
    lines.append("")

    if not permissions:
        lines.append(f"No permissions are granted in {min_projects}+ projects")
    else:
        lines.append(f"Found {pluralize(len(permissions), 'permission')} granted in {min_projects}+ projects:")
        for index, perm in enumerate(permissions, start=1):
            lines.append(
                f"  {index:2d}. {perm.permission}  (used in {pluralize(perm.project_count, 'project')})"
                f" {_project_names(perm.projects)}"
            )
    lines.append("")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Plain-dict views (YAML/JSON output)
# ---------------------------------------------------------------------------
def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def project_to_dict(project: ProjectCacheEntry) -> dict[str, Any]:
    data = asdict(project)
    data["total_size"] = project.total_size
    data["last_accessed"] = project.last_accessed
    data["session_count"] = len(project.sessions)
    return _plain(data)


def analysis_to_dict(analysis: CacheAnalysis, include_sessions: bool = False) -> dict[str, Any]:
    """Serializable view of a CacheAnalysis."""
    projects = [project_to_dict(p) for p in analysis.projects]
    if not include_sessions:
        for project in projects:
            project.pop("sessions")

    def names(entries: list[ProjectCacheEntry]) -> list[str]:
        return [p.project_path for p in entries]

    return _plain({
        "overview": {
            "cache_dir": analysis.cache_dir,
            "total_size": analysis.total_size,
            "total_projects": len(analysis.projects),
            "total_sessions": analysis.total_sessions,
            "oldest_session": analysis.oldest_session,
            "newest_session": analysis.newest_session,
        },
        "projects": projects,
        "directories": {d.kind: asdict(d) for d in analysis.directories},
        "history": asdict(analysis.history) if analysis.history else None,
        "largest_sessions": [asdict(s) for s in analysis.largest_sessions],
        "orphaned_projects": names(analysis.orphaned_projects),
        "stale_projects": names(analysis.stale_projects),
        "recommendations": [asdict(r) for r in analysis.recommendations],
        "potential_savings": analysis.potential_savings,
    })


def usage_to_dict(tools: list[ToolUsage], stats: UsageStats | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {
        "tools": [dict(asdict(t), project_count=t.project_count) for t in tools],
    }
    if stats is not None:
        data["stats"] = {
            "total_integrations": stats.total_integrations,
            "total_tools": stats.total_tools,
            "total_usage": stats.total_usage,
            "top_integrations": [
                dict(asdict(i), usage_count=i.usage_count) for i in stats.top_integrations
            ],
            "top_tools": [dict(asdict(t), project_count=t.project_count) for t in stats.top_tools],
        }
    return data


def permissions_to_dict(permissions: list[PermissionFrequency]) -> dict[str, Any]:
    return {
        "permissions": [
            dict(asdict(p), project_count=p.project_count) for p in permissions
        ],
    }


def write_report(text: str, output_path: Path) -> None:
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(text)
    print(f"Report written to: {output_path}")
