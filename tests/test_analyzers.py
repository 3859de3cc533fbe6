"""Tests for analyzers/ — usage aggregation, recommendations, and summary."""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from analyzers import (
    RecommendationThresholds,
    UsageAggregator,
    analysis_to_dict,
    find_stale_projects,
    format_bytes,
    generate_cache_report,
    generate_cache_stats,
    generate_permission_report,
    generate_recommendations,
    generate_usage_report,
    permissions_to_dict,
    usage_to_dict,
)
from analyzers.summary import format_age, pluralize
from analyzers.usage import normalize_permission
from cache_models import CacheAnalysis, DirectoryCache, ProjectCacheEntry, SessionFile
from config_store import ConfigStoreReader

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)
MB = 1024 * 1024


def _aggregator(store):
    return UsageAggregator(ConfigStoreReader(path=store, jq_binary="no-such-jq-binary"))


# ---------------------------------------------------------------------------
# Usage aggregation
# ---------------------------------------------------------------------------
class TestUsageAggregator:
    """Tests for UsageAggregator."""

    def test_discover_frequent(self, write_store):
        store = write_store({
            "/p1": {"allowedTools": ["mcp__a__x", "mcp__b__x", "mcp__c__x"]},
            "/p2": {"allowedTools": ["mcp__a__x", "mcp__b__x", "mcp__c__x"]},
            "/p3": {"allowedTools": ["mcp__a__x", "mcp__c__x"]},
            "/p4": {"allowedTools": ["mcp__c__x"]},
        })
        tools = asyncio.run(_aggregator(store).discover_frequent(3))
        assert [(t.full_name, t.project_count) for t in tools] == [
            ("mcp__c__x", 4),
            ("mcp__a__x", 3),
        ]

    def test_discover_ties_keep_first_seen_order(self, write_store):
        store = write_store({
            "/p1": {"allowedTools": ["mcp__z__x", "mcp__a__x"]},
            "/p2": {"allowedTools": ["mcp__a__x", "mcp__z__x"]},
        })
        tools = asyncio.run(_aggregator(store).discover_frequent(2))
        assert [t.full_name for t in tools] == ["mcp__z__x", "mcp__a__x"]

    def test_discover_none_frequent(self, sample_store):
        assert asyncio.run(_aggregator(sample_store).discover_frequent(5)) == []

    def test_wrapped_and_bare_are_one_tool(self, write_store):
        store = write_store({
            "/p1": {"allowedTools": ["mcp__fs__read"]},
            "/p2": {"allowedTools": ["Bash(mcp__fs__read:*)"]},
        })
        [tool] = asyncio.run(_aggregator(store).list_tools())
        assert tool.full_name == "mcp__fs__read"
        assert tool.projects == ["/p1", "/p2"]

    def test_list_integrations(self, sample_store):
        integrations = {i.name: i for i in asyncio.run(_aggregator(sample_store).list_integrations())}
        assert integrations["github"].capabilities == ["create_issue", "list_prs"]
        assert integrations["github"].projects == ["/home/pi/alpha", "/home/pi/beta"]
        assert integrations["github"].usage_count == 2
        assert integrations["playwright"].usage_count == 1

    def test_total_projects(self, sample_store):
        assert asyncio.run(_aggregator(sample_store).total_projects()) == 2

    def test_stats_truncates_independently(self, write_store):
        store = write_store({
            "/p1": {"allowedTools": ["mcp__gh__a", "mcp__gh__b"]},
            "/p2": {"allowedTools": ["mcp__gh__a"]},
            "/p3": {"allowedTools": ["mcp__fs__r", "Bash(mcp__fs__r:*)", "mcp__fs__r", "mcp__fs__r"]},
        })
        stats = asyncio.run(_aggregator(store).stats(top_n=1))
        assert stats.total_integrations == 2
        assert stats.total_tools == 3
        assert stats.total_usage == 3
        assert [i.name for i in stats.top_integrations] == ["gh"]
        assert [t.full_name for t in stats.top_tools] == ["mcp__fs__r"]
        assert stats.top_tools[0].usage_count == 4
        assert stats.top_tools[0].project_count == 1


class TestDiscoverPermissions:
    """Tests for UsageAggregator.discover_permissions."""

    @pytest.mark.parametrize("grant,expected", [
        ("Bash(git status)", "git status"),
        ("git status", "git status"),
        ("WebFetch", "WebFetch"),
        ("Read(//etc/hosts)", "Read(//etc/hosts)"),
        ("Bash(npm run:*)", "npm run:*"),
    ])
    def test_normalize_permission(self, grant, expected):
        assert normalize_permission(grant) == expected

    def test_counts_every_kind_of_grant(self, write_store):
        store = write_store({
            "/p1": {"allowedTools": ["Bash(git status)", "WebFetch", "mcp__gh__a"]},
            "/p2": {"allowedTools": ["git status", "WebFetch", "mcp__gh__a"]},
            "/p3": {"allowedTools": ["Bash(git status)"]},
        })
        perms = asyncio.run(_aggregator(store).discover_permissions())
        assert [(p.permission, p.project_count) for p in perms] == [
            ("git status", 3),
            ("WebFetch", 2),
            ("mcp__gh__a", 2),
        ]
        assert perms[0].projects == ["/p1", "/p2", "/p3"]

    def test_duplicates_in_one_project_count_once(self, write_store):
        store = write_store({
            "/p1": {"allowedTools": ["Bash(ls)", "ls", "Bash(ls)"]},
            "/p2": {"allowedTools": ["ls"]},
        })
        [perm] = asyncio.run(_aggregator(store).discover_permissions())
        assert perm.projects == ["/p1", "/p2"]

    def test_default_minimum_is_two(self, sample_store):
        perms = asyncio.run(_aggregator(sample_store).discover_permissions())
        assert [p.permission for p in perms] == ["mcp__github__create_issue"]

    def test_min_project_count_one(self, sample_store):
        perms = asyncio.run(_aggregator(sample_store).discover_permissions(min_project_count=1))
        assert perms[0].permission == "mcp__github__create_issue"
        assert "git status" in [p.permission for p in perms]
        assert "mcp__playwright__browser_click:*" in [p.permission for p in perms]

    def test_top_n_and_ties(self, write_store):
        store = write_store({
            "/p1": {"allowedTools": ["c", "b", "a"]},
            "/p2": {"allowedTools": ["a", "b", "c"]},
            "/p3": {"allowedTools": ["a"]},
        })
        perms = asyncio.run(_aggregator(store).discover_permissions(top_n=2))
        assert [p.permission for p in perms] == ["a", "c"]

    def test_exclude(self, write_store):
        store = write_store({
            "/p1": {"allowedTools": ["Bash(ls)", "WebSearch"]},
            "/p2": {"allowedTools": ["ls", "WebSearch"]},
        })
        perms = asyncio.run(_aggregator(store).discover_permissions(exclude={"ls"}))
        assert [p.permission for p in perms] == ["WebSearch"]


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------
def _session(project, session_id, size, age_days=1):
    when = NOW - timedelta(days=age_days)
    return SessionFile(
        session_id=session_id,
        file_path=Path("/cache") / project / f"{session_id}.jsonl",
        size=size,
        created=when,
        modified=when,
        is_agent=False,
        project=project,
    )


def _project(name, sessions, orphaned=False, active=False):
    return ProjectCacheEntry(
        project_name=name,
        project_path=f"/home/pi/{name}",
        cache_path=Path("/cache/projects") / name,
        sessions=sessions,
        is_orphaned=orphaned,
        is_active=active,
    )


def _analysis(projects, stale=(), empty_env=0):
    cache_dir = Path("/cache")

    def directory(kind, empty=0):
        return DirectoryCache(kind=kind, cache_path=cache_dir / kind, empty_file_count=empty)

    return CacheAnalysis(
        cache_dir=cache_dir,
        projects=projects,
        file_history=directory("file-history"),
        debug=directory("debug"),
        todos=directory("todos"),
        session_env=directory("session-env", empty_env),
        shell_snapshots=directory("shell-snapshots"),
        history=None,
        largest_sessions=sorted((s for p in projects for s in p.sessions), key=lambda s: -s.size),
        orphaned_projects=[p for p in projects if p.is_orphaned],
        stale_projects=list(stale),
    )


class TestFindStaleProjects:
    """Tests for find_stale_projects."""

    def test_cutoff(self):
        old = _project("old", [_session("old", "s", 10, age_days=61)])
        recent = _project("recent", [_session("recent", "s", 10, age_days=59)])
        assert find_stale_projects([old, recent], 60, NOW) == [old]

    def test_active_never_stale(self):
        active = _project("here", [_session("here", "s", 10, age_days=400)], active=True)
        assert find_stale_projects([active], 60, NOW) == []

    def test_no_sessions_is_stale(self):
        empty = _project("empty", [])
        assert find_stale_projects([empty], 60, NOW) == [empty]


class TestGenerateRecommendations:
    """Tests for generate_recommendations."""

    def test_nothing_triggered(self):
        analysis = _analysis([_project("ok", [_session("ok", "s", 100)])])
        assert generate_recommendations(analysis) == []

    def test_order_and_fields(self):
        gone = _project("gone", [_session("gone", "huge", 12 * MB)], orphaned=True)
        old = _project("old", [_session("old", "s", 300, age_days=90)])
        analysis = _analysis([gone, old], stale=[old], empty_env=3)

        recs = generate_recommendations(analysis, RecommendationThresholds(stale_days=60))
        assert [r.category for r in recs] == ["orphaned", "stale", "large-session", "empty-files"]
        assert [r.severity for r in recs] == ["high", "medium", "medium", "low"]
        assert [r.safety for r in recs] == ["safe", "caution", "caution", "safe"]
        assert [r.size_impact for r in recs] == [12 * MB, 300, 12 * MB, 0]
        assert recs[0].target_path == "/cache/projects"
        assert recs[3].target_path == "/cache/session-env"
        assert recs[3].description == "3 empty session-env files"
        assert "gone/huge" in recs[2].description

    def test_large_session_strictly_above_threshold(self):
        analysis = _analysis([_project("p", [_session("p", "edge", 10 * MB)])])
        assert generate_recommendations(analysis) == []

    def test_large_sessions_beyond_top_list(self):
        sessions = [_session("p", f"s{i}", 11 * MB + i) for i in range(12)]
        analysis = _analysis([_project("p", sessions)])
        analysis.largest_sessions = analysis.largest_sessions[:10]

        [rec] = generate_recommendations(analysis)
        assert rec.description.startswith("12 sessions")
        assert rec.size_impact == sum(s.size for s in sessions)

    def test_singular_descriptions(self):
        gone = _project("gone", [_session("gone", "huge", 12 * MB)], orphaned=True)
        old = _project("old", [_session("old", "s", 300, age_days=90)])
        analysis = _analysis([gone, old], stale=[old], empty_env=1)

        descriptions = [r.description for r in generate_recommendations(analysis)]
        assert descriptions[0] == "1 orphaned project (path no longer exists)"
        assert descriptions[1] == "1 project not accessed in 60+ days"
        assert descriptions[2].startswith("1 session >10.0 MB")
        assert descriptions[3] == "1 empty session-env file"


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------
class TestFormatting:
    """Tests for size and age formatting."""

    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.0 KB"),
        (int(1.5 * MB), "1.5 MB"),
        (3 * 1024 * MB, "3.0 GB"),
    ])
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected

    @pytest.mark.parametrize("days,expected", [
        (0, "today"),
        (1, "1 day ago"),
        (3, "3 days ago"),
        (14, "2 weeks ago"),
        (90, "3 months ago"),
        (800, "2 years ago"),
    ])
    def test_format_age(self, days, expected):
        assert format_age(NOW - timedelta(days=days), NOW) == expected

    @pytest.mark.parametrize("count,expected", [
        (0, "0 projects"),
        (1, "1 project"),
        (2, "2 projects"),
    ])
    def test_pluralize(self, count, expected):
        assert pluralize(count, "project") == expected


class TestCacheReport:
    """Tests for generate_cache_report and analysis_to_dict."""

    def test_healthy_report(self):
        analysis = _analysis([_project("ok", [_session("ok", "s", 100)])])
        report = generate_cache_report(analysis)
        assert "CLAUDE CODE CACHE ANALYSIS" in report
        assert "Cache is in good shape! No major issues found." in report
        assert "RECOMMENDATIONS" not in report

    def test_report_with_recommendations(self):
        gone = _project("gone", [_session("gone", "huge", 12 * MB)], orphaned=True)
        analysis = _analysis([gone])
        analysis.recommendations = generate_recommendations(analysis)

        report = generate_cache_report(analysis, detailed=True)
        assert "[ORPHANED]" in report
        assert "[HIGH] 1 orphaned project (path no longer exists)" in report
        assert "Total potential savings: 24.0 MB" in report
        assert "gone - /home/pi/gone" in report

    def test_analysis_dict_is_yaml_safe(self):
        gone = _project("gone", [_session("gone", "huge", 12 * MB)], orphaned=True)
        analysis = _analysis([gone])
        analysis.recommendations = generate_recommendations(analysis)

        data = analysis_to_dict(analysis)
        assert yaml.safe_load(yaml.safe_dump(data)) == data
        assert data["orphaned_projects"] == ["/home/pi/gone"]
        assert data["potential_savings"] == 24 * MB
        assert "sessions" not in data["projects"][0]
        assert data["projects"][0]["session_count"] == 1
        assert set(data["directories"]) == {
            "file-history", "debug", "todos", "session-env", "shell-snapshots",
        }

    def test_include_sessions(self):
        analysis = _analysis([_project("p", [_session("p", "s", 5)])])
        data = analysis_to_dict(analysis, include_sessions=True)
        [session] = data["projects"][0]["sessions"]
        assert session["session_id"] == "s"
        assert session["file_path"] == "/cache/p/s.jsonl"

    def test_quick_stats(self):
        gone = _project("gone", [_session("gone", "huge", 12 * MB)], orphaned=True)
        analysis = _analysis([gone])
        analysis.recommendations = generate_recommendations(analysis)

        stats = generate_cache_stats(analysis)
        assert "Total size: 12.0 MB" in stats
        assert "Sessions:   1" in stats
        assert "1. projects: 12.0 MB" in stats
        assert "2." not in stats
        assert "Issues: 1 orphaned project" in stats
        assert "Potential savings: 24.0 MB" in stats

    def test_quick_stats_healthy(self):
        analysis = _analysis([_project("ok", [_session("ok", "s", 100)])])
        stats = generate_cache_stats(analysis)
        assert "No issues found" in stats
        assert "Potential savings" not in stats


class TestUsageReport:
    """Tests for generate_usage_report and usage_to_dict."""

    def test_no_frequent_tools(self):
        report = generate_usage_report([], min_projects=3, total_projects=7)
        assert "Projects analyzed: 7" in report
        assert "No MCP tools are used in 3+ projects" in report

    def test_report_and_dict(self, sample_store):
        aggregator = _aggregator(sample_store)
        tools = asyncio.run(aggregator.discover_frequent(2))
        stats = asyncio.run(aggregator.stats())

        report = generate_usage_report(tools, 2, 2, stats)
        assert "mcp__github__create_issue  (2 projects) alpha, beta" in report
        assert "STATISTICS" in report

        data = usage_to_dict(tools, stats)
        assert data["tools"][0]["project_count"] == 2
        assert data["stats"]["total_integrations"] == 2
        assert yaml.safe_load(yaml.safe_dump(data)) == data

    def test_permission_report_and_dict(self, write_store):
        store = write_store({
            f"/home/pi/p{i}": {"allowedTools": ["Bash(git status)"]} for i in range(5)
        })
        perms = asyncio.run(_aggregator(store).discover_permissions())

        report = generate_permission_report(perms, 2, 5)
        assert "PERMISSION DISCOVERY" in report
        assert "Found 1 permission granted in 2+ projects:" in report
        assert "git status  (used in 5 projects) p0, p1, p2 (+2 more)" in report

        data = permissions_to_dict(perms)
        assert data["permissions"][0]["project_count"] == 5
        assert yaml.safe_load(yaml.safe_dump(data)) == data

    def test_no_shared_permissions(self):
        report = generate_permission_report([], min_projects=2, total_projects=1)
        assert "No permissions are granted in 2+ projects" in report
