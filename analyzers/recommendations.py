"""Cleanup recommendations derived from a cache analysis."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cache_models import CacheAnalysis, ProjectCacheEntry, Recommendation
from settings import LARGE_SESSION_BYTES, STALE_DAYS
from .summary import format_bytes, pluralize


@dataclass(frozen=True)
class RecommendationThresholds:
    stale_days: int = STALE_DAYS
    large_session_bytes: int = LARGE_SESSION_BYTES


def find_stale_projects(
    projects: list[ProjectCacheEntry],
    stale_days: int,
    now: datetime | None = None,
) -> list[ProjectCacheEntry]:
    """Projects that are not the active directory and were last used before the cutoff."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=stale_days)
    return [p for p in projects if not p.is_active and p.last_accessed < cutoff]


def generate_recommendations(
    analysis: CacheAnalysis,
    thresholds: RecommendationThresholds | None = None,
) -> list[Recommendation]:
    """
    Turn an analysis into recommendations, most severe first.

    Each category is emitted at most once and only when something
    triggers it. Categories may cover the same bytes (a large session of
    an orphaned project counts in both); impacts are not deduplicated.

    Args:
        analysis: Result of CacheAnalyzer.analyze()
        thresholds: Trigger thresholds (defaults from settings)

    Returns:
        Ordered list of Recommendation
    """
    thresholds = thresholds or RecommendationThresholds()
    projects_dir = str(analysis.cache_dir / "projects")
    recommendations: list[Recommendation] = []

    orphaned = analysis.orphaned_projects
    if orphaned:
        recommendations.append(Recommendation(
            category="orphaned",
            severity="high",
            description=f"{pluralize(len(orphaned), 'orphaned project')} (path no longer exists)",
            target_path=projects_dir,
            size_impact=sum(p.total_size for p in orphaned),
            safety="safe",
        ))

    stale = analysis.stale_projects
    if stale:
        recommendations.append(Recommendation(
            category="stale",
            severity="medium",
            description=f"{pluralize(len(stale), 'project')} not accessed in {thresholds.stale_days}+ days",
            target_path=projects_dir,
            size_impact=sum(p.total_size for p in stale),
            safety="caution",
        ))

    large = sorted(
        (s for s in analysis.sessions if s.size > thresholds.large_session_bytes),
        key=lambda s: s.size,
        reverse=True,
    )
    if large:
        limit = format_bytes(thresholds.large_session_bytes)
        recommendations.append(Recommendation(
            category="large-session",
            severity="medium",
            description=(
                f"{pluralize(len(large), 'session')} >{limit} "
                f"(largest: {format_bytes(large[0].size)}, {large[0].project}/{large[0].session_id})"
            ),
            target_path=projects_dir,
            size_impact=sum(s.size for s in large),
            safety="caution",
        ))

    empty_count = analysis.session_env.empty_file_count
    if empty_count > 0:
        recommendations.append(Recommendation(
            category="empty-files",
            severity="low",
            description=pluralize(empty_count, "empty session-env file"),
            target_path=str(analysis.session_env.cache_path),
            size_impact=0,
            safety="safe",
        ))

    return recommendations
