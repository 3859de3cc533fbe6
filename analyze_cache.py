#!/usr/bin/env python3
"""
Audit the Claude Code cache directory and suggest cleanups.

Scans ~/.claude (projects/, file-history/, debug/, todos/, session-env/,
shell-snapshots/, history.jsonl) and prints a storage report with
recommendations. Nothing is deleted.

Usage:
    python analyze_cache.py [--root PATH] [--stale-days N] [--large-session-mb N]
                            [--detailed | --quick] [--yaml PATH] [--out PATH] [-v]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import yaml

from analyzers import (
    RecommendationThresholds,
    analysis_to_dict,
    generate_cache_report,
    generate_cache_stats,
    write_report,
)
from cache_analyzer import CacheAnalyzer
from errors import DirectoryNotFoundError
from settings import load_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    defaults = load_settings()
    parser = argparse.ArgumentParser(
        description="Analyze Claude Code cache usage and cleanup opportunities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze the default cache directory
  python analyze_cache.py

  # List every orphaned and stale project
  python analyze_cache.py --detailed

  # Treat projects untouched for 30 days as stale, save a YAML report
  python analyze_cache.py --stale-days 30 --yaml cache_report.yaml
        """
    )

    parser.add_argument(
        "--root",
        type=Path,
        default=defaults.claude_home,
        help="Claude cache directory (default: ~/.claude)",
    )

    parser.add_argument(
        "--stale-days",
        type=int,
        default=defaults.stale_days,
        help=f"Days without access before a project is stale (default: {defaults.stale_days})",
    )

    parser.add_argument(
        "--large-session-mb",
        type=float,
        default=defaults.large_session_bytes / (1024 * 1024),
        help="Session size in MB above which a session is flagged (default: 10)",
    )

    parser.add_argument(
        "--detailed",
        action="store_true",
        help="List individual orphaned and stale projects",
    )

    parser.add_argument(
        "--quick",
        action="store_true",
        help="Print only a short summary of sizes and issues",
    )

    parser.add_argument(
        "--yaml",
        type=Path,
        default=None,
        help="Also write the structured analysis to this YAML file",
    )

    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write the text report to this file instead of stdout",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    return parser.parse_args(argv)


def write_analysis_yaml(data: dict, output_path: Path) -> None:
    """Write the structured analysis to a YAML file."""
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write("# Claude Code cache analysis\n")
        f.write("# Savings may overlap across recommendation categories\n\n")
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
    print(f"Analysis YAML written to: {output_path}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    analyzer = CacheAnalyzer(
        claude_home=args.root,
        thresholds=RecommendationThresholds(
            stale_days=args.stale_days,
            large_session_bytes=int(args.large_session_mb * 1024 * 1024),
        ),
    )

    try:
        analysis = asyncio.run(analyzer.analyze())
    except DirectoryNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.quick:
        report = generate_cache_stats(analysis)
    else:
        report = generate_cache_report(analysis, detailed=args.detailed)
    if args.out:
        write_report(report, args.out)
    else:
        print(report)

    if args.yaml:
        write_analysis_yaml(analysis_to_dict(analysis), args.yaml)
    return 0


if __name__ == "__main__":
    sys.exit(main())
