#!/usr/bin/env python3
"""
Discover MCP tools that are granted across many projects.

Reads the allowedTools grants of every project in ~/.claude.json and lists
the MCP tools used in at least --min-projects projects. With --permissions
it also lists plain permission grants (Bash commands, WebFetch, ...) that
several projects share.

Usage:
    python discover_integrations.py [--store PATH] [--min-projects N] [--stats]
                                    [--permissions] [--permission-min-projects N]
                                    [--yaml PATH] [-v]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

import yaml

from analyzers import (
    UsageAggregator,
    generate_permission_report,
    generate_usage_report,
    permissions_to_dict,
    usage_to_dict,
)
from config_store import ConfigStoreReader
from errors import ReadError
from settings import PERMISSION_MIN_PROJECT_COUNT, AuditSettings, load_settings


def parse_args(argv: list[str] | None = None, defaults: AuditSettings | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    defaults = defaults or load_settings()
    parser = argparse.ArgumentParser(
        description="Discover commonly used MCP tools across Claude Code projects",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=defaults.config_store_path,
        help="Global config store (default: ~/.claude.json)",
    )
    parser.add_argument(
        "--min-projects",
        type=int,
        default=defaults.min_project_count,
        help=f"Minimum number of projects using a tool (default: {defaults.min_project_count})",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Also show top MCPs and tools",
    )
    parser.add_argument(
        "--permissions",
        action="store_true",
        help="Also list permission grants shared across projects",
    )
    parser.add_argument(
        "--permission-min-projects",
        type=int,
        default=PERMISSION_MIN_PROJECT_COUNT,
        help=f"Minimum number of projects holding a permission (default: {PERMISSION_MIN_PROJECT_COUNT})",
    )
    parser.add_argument(
        "--yaml",
        type=Path,
        default=None,
        help="Also write the results to this YAML file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    return parser.parse_args(argv)


async def _discover(reader: ConfigStoreReader, args: argparse.Namespace):
    aggregator = UsageAggregator(reader)
    tools = await aggregator.discover_frequent(args.min_projects)
    total = await aggregator.total_projects()
    stats = await aggregator.stats() if args.stats else None
    permissions = None
    if args.permissions:
        permissions = await aggregator.discover_permissions(args.permission_min_projects)
    store_stats = await reader.stats()
    return tools, total, stats, permissions, store_stats.total_projects


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    audit_settings = load_settings()
    args = parse_args(argv, audit_settings)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    reader = ConfigStoreReader.from_settings(replace(audit_settings, config_store_path=args.store))
    try:
        tools, total, stats, permissions, store_projects = asyncio.run(_discover(reader, args))
    except ReadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(generate_usage_report(tools, args.min_projects, total, stats))
    if permissions is not None:
        print()
        print(generate_permission_report(permissions, args.permission_min_projects, store_projects))

    if args.yaml:
        data = usage_to_dict(tools, stats)
        if permissions is not None:
            data.update(permissions_to_dict(permissions))
        with open(args.yaml, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        print(f"Usage YAML written to: {args.yaml}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
