"""Analysis modules for integration usage and cache cleanup recommendations."""

from .summary import (
    analysis_to_dict,
    format_bytes,
    generate_cache_report,
    generate_cache_stats,
    generate_permission_report,
    generate_usage_report,
    permissions_to_dict,
    usage_to_dict,
    write_report,
)
from .recommendations import (
    RecommendationThresholds,
    find_stale_projects,
    generate_recommendations,
)
from .usage import (
    IntegrationSummary,
    PermissionFrequency,
    ToolUsage,
    UsageAggregator,
    UsageStats,
)

__all__ = [
    'analysis_to_dict',
    'format_bytes',
    'generate_cache_report',
    'generate_cache_stats',
    'generate_permission_report',
    'generate_usage_report',
    'permissions_to_dict',
    'usage_to_dict',
    'write_report',
    'RecommendationThresholds',
    'find_stale_projects',
    'generate_recommendations',
    'IntegrationSummary',
    'PermissionFrequency',
    'ToolUsage',
    'UsageAggregator',
    'UsageStats',
]
