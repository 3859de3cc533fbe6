"""The three grant-string encodings, most specific first."""

from __future__ import annotations

import re

from .base import GRANT_MARKER, Grant, GrantRule

_DIRECT_RE = re.compile(r"^mcp__([^_]+)__(.+)$")
_WRAPPED_RE = re.compile(r"^\w+\(([^:)]*)")
_EMBEDDED_RE = re.compile(r"mcp__([^_]+)__([^:)]+)")


class DirectRule(GrantRule):
    """
    Bare form: ``mcp__<integration>__<capability>``.

    The integration token may not contain underscores; everything after
    the second separator is the capability.
    """

    name = "direct"

    def match(self, text: str) -> Grant | None:
        m = _DIRECT_RE.match(text)
        if not m:
            return None
        return Grant(integration=m.group(1), capability=m.group(2))


class WrappedRule(GrantRule):
    """
    Wrapper form: ``Bash(mcp__<integration>__<capability>:*)``.

    The interior runs up to the first ``:`` or ``)`` and must itself be
    a bare grant.
    """

    name = "wrapped"

    def __init__(self, inner: GrantRule | None = None):
        self.inner = inner or DirectRule()

    def match(self, text: str) -> Grant | None:
        m = _WRAPPED_RE.match(text)
        if not m:
            return None
        return self.inner.match(m.group(1))


class EmbeddedRule(GrantRule):
    """Marker anywhere in the string. Only the first occurrence is tried."""

    name = "embedded"

    def match(self, text: str) -> Grant | None:
        start = text.find(GRANT_MARKER)
        if start < 0:
            return None
        m = _EMBEDDED_RE.match(text, start)
        if not m:
            return None
        return Grant(integration=m.group(1), capability=m.group(2))
