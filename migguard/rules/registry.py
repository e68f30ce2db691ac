"""Rule registry: rule discovery and per-file rule dispatch."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..directives import is_exempt
from ..result import Finding
from .base import Rule, Violation

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from sqlglot.expressions import Expression

    from ..directives import ExemptionRange
    from ..locator import LineSpan


class RuleRegistry:
    """Ordered registry of migration safety rules.

    Rules run in registration order. The built-in rules register themselves
    on the shared instance when their modules are imported.

    Example:
        registry = RuleRegistry()
        registry.register(DropColumnRule())
        registry.register(AddIndexRule())

        findings = registry.evaluate_file(statements, spans, ranges)
    """

    _instance: RuleRegistry | None = None

    def __init__(self) -> None:
        self._rules: dict[str, Rule] = {}

    @classmethod
    def get_instance(cls) -> RuleRegistry:
        """Get the singleton registry instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def register(self, rule: Rule) -> None:
        """Register a rule with the registry.

        Args:
            rule: The rule instance to register

        Raises:
            ValueError: If a rule with the same ID is already registered
        """
        if rule.rule_id in self._rules:
            raise ValueError(f"Rule '{rule.rule_id}' is already registered")
        self._rules[rule.rule_id] = rule

    def unregister(self, rule_id: str) -> None:
        """Remove a rule from the registry."""
        self._rules.pop(rule_id, None)

    def get(self, rule_id: str) -> Rule | None:
        """Get a rule by its ID."""
        return self._rules.get(rule_id)

    def all(self) -> list[Rule]:
        """Get all registered rules, in registration order."""
        return list(self._rules.values())

    def rule_ids(self) -> list[str]:
        """Get the IDs of all registered rules, in registration order."""
        return list(self._rules)

    def enabled(self, enabled_rule_names: Collection[str] | None = None) -> list[Rule]:
        """Get the rules to run, in registration order.

        Args:
            enabled_rule_names: IDs of rules to run. None runs every rule.
        """
        if enabled_rule_names is None:
            return self.all()
        return [r for r in self._rules.values() if r.rule_id in enabled_rule_names]

    def check_statement(
        self,
        expr: Expression,
        enabled_rule_names: Collection[str] | None = None,
    ) -> list[Violation]:
        """Run the enabled rules against one statement, without line context."""
        violations: list[Violation] = []
        for rule in self.enabled(enabled_rule_names):
            violations.extend(rule.check(expr))
        return violations

    def evaluate_file(
        self,
        statements: Sequence[Expression],
        line_spans: Sequence[LineSpan],
        exemption_ranges: Sequence[ExemptionRange],
        enabled_rule_names: Collection[str] | None = None,
    ) -> list[Finding]:
        """Run the enabled rules against every statement of one file.

        A statement whose line falls inside a safety-assured block is skipped
        by every rule. Findings come out in statement order, then rule order;
        nothing is deduplicated or reordered.

        Args:
            statements: Parsed statements, in source order.
            line_spans: One resolved line per statement, same order.
            exemption_ranges: Safety-assured blocks of the file.
            enabled_rule_names: IDs of rules to run. None runs every rule.

        Returns:
            The findings, each tagged with its statement's line.

        Raises:
            ValueError: If ``line_spans`` does not match ``statements``.
        """
        if len(line_spans) != len(statements):
            raise ValueError(
                f"Expected {len(statements)} line spans, got {len(line_spans)}"
            )

        rules = self.enabled(enabled_rule_names)
        ranges = list(exemption_ranges)
        findings: list[Finding] = []

        for index, (stmt, span) in enumerate(zip(statements, line_spans)):
            if is_exempt(span.line, ranges):
                continue

            for rule in rules:
                for violation in rule.check(stmt):
                    findings.append(
                        Finding.from_violation(
                            violation,
                            line=span.line,
                            statement_index=index,
                            statement=stmt,
                        )
                    )

        return findings

    def clear(self) -> None:
        """Clear all registered rules (mainly for testing)."""
        self._rules.clear()

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


def _ensure_rules_loaded() -> None:
    """Ensure all rule modules are imported and rules are registered."""
    # Import order is registration order
    from . import (  # noqa: F401
        columns,
        constraints,
        indexes,
        tables,
    )


def get_default_registry() -> RuleRegistry:
    """Get the shared registry with every built-in rule registered."""
    _ensure_rules_loaded()
    return RuleRegistry.get_instance()


def get_all_rules() -> list[Rule]:
    """Get all registered migration safety rules."""
    return get_default_registry().all()


def all_rule_ids() -> list[str]:
    """Get the IDs of all registered migration safety rules."""
    return get_default_registry().rule_ids()
