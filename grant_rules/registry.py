"""Rule chain and matcher entry point."""

from __future__ import annotations

from collections.abc import Sequence

from .base import GrantMatch, GrantRule, NotAGrant
from .rules import DirectRule, EmbeddedRule, WrappedRule


def create_rule_chain() -> list[GrantRule]:
    """
    Create the ordered rule chain.

    Order is precedence: the first rule that recognizes a string wins and
    later rules are never consulted.
    """
    return [DirectRule(), WrappedRule(), EmbeddedRule()]


_DEFAULT_CHAIN = create_rule_chain()


def match_grant(text: str, rules: Sequence[GrantRule] | None = None) -> GrantMatch:
    """
    Resolve a permission string to a Grant, or NotAGrant.

    Args:
        text: Raw permission string
        rules: Rule chain (defaults to create_rule_chain())

    Returns:
        Grant from the first matching rule, NotAGrant if none matches
    """
    for rule in rules if rules is not None else _DEFAULT_CHAIN:
        grant = rule.match(text)
        if grant is not None:
            return grant
    return NotAGrant(raw=text)
