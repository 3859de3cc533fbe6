"""Grant-string rules for resolving integration permissions."""

from .base import Grant, GrantMatch, GrantRule, NotAGrant, GRANT_MARKER
from .rules import DirectRule, WrappedRule, EmbeddedRule
from .registry import create_rule_chain, match_grant

__all__ = [
    'Grant',
    'GrantMatch',
    'GrantRule',
    'NotAGrant',
    'GRANT_MARKER',
    'DirectRule',
    'WrappedRule',
    'EmbeddedRule',
    'create_rule_chain',
    'match_grant',
]
