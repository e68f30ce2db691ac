"""Migration safety rules.

Each rule inspects one parsed statement and reports operations that are
unsafe to run against a busy production database.

Architecture:
    - Rule: Abstract base class every rule implements
    - Violation: What a rule reports for one statement
    - RuleRegistry: Ordered collection of rules; runs them over a file while
      honoring safety-assured blocks
    - columns / constraints / indexes / tables: The built-in rules

Usage:
    from migguard.rules import get_all_rules

    for rule in get_all_rules():
        for violation in rule.check(statement):
            print(f"[{violation.rule_id}] {violation.summary}")
"""

from .base import Rule, Violation
from .registry import RuleRegistry, all_rule_ids, get_all_rules, get_default_registry

__all__ = [
    "Rule",
    "Violation",
    "RuleRegistry",
    "all_rule_ids",
    "get_all_rules",
    "get_default_registry",
]
