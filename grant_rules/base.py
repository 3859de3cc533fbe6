"""Base classes for grant-string rules."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

GRANT_MARKER = "mcp__"
SEPARATOR = "__"


@dataclass(frozen=True)
class Grant:
    """A grant string resolved to an (integration, capability) pair."""
    integration: str
    capability: str

    @property
    def full_name(self) -> str:
        return f"{GRANT_MARKER}{self.integration}{SEPARATOR}{self.capability}"


@dataclass(frozen=True)
class NotAGrant:
    """A permission string that does not reference an integration."""
    raw: str


GrantMatch = Grant | NotAGrant


class GrantRule(ABC):
    """One encoding of a grant string."""

    name: str = "rule"

    @abstractmethod
    def match(self, text: str) -> Grant | None:
        """
        Try to resolve a permission string.

        Args:
            text: Raw permission string from allowedTools

        Returns:
            Grant when this rule recognizes the encoding, otherwise None
        """
        pass
