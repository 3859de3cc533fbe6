"""
Error types for the config-store reader and the cache analyzer.

Structural failures (the store or the cache root cannot be read at all)
propagate to the caller. Per-record and per-file failures are raised at
the point of failure, logged, and skipped by the loop that caught them.
"""

from __future__ import annotations

from pathlib import Path


class AuditError(Exception):
    """Base class for all audit errors."""


class ReadError(AuditError):
    """The config store is missing, unreadable or not parseable."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read config store {path}: {reason}")


class ParseError(AuditError):
    """A single project record is malformed. Non-fatal."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Malformed project record {key!r}: {reason}")


class DirectoryNotFoundError(AuditError):
    """The cache root directory does not exist."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Claude cache directory not found: {path}")


class StatError(AuditError):
    """A file vanished or became inaccessible during a walk. Non-fatal."""

    def __init__(self, path: Path, cause: OSError):
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot stat {path}: {cause}")
