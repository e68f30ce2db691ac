"""Base classes for migration safety rules."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlglot.expressions import Expression


@dataclass(frozen=True)
class Violation:
    """An unsafe operation reported by a rule.

    Attributes:
        rule_id: Identifier of the rule that reported it
        operation: Short title of the operation (e.g. "DROP COLUMN")
        summary: Why the operation is unsafe
        remediation: Safe way to perform the change
    """

    rule_id: str
    operation: str
    summary: str
    remediation: str

    def __str__(self) -> str:
        return f"{self.operation}: {self.summary}"


class Rule(ABC):
    """Abstract base class for migration safety rules.

    Each rule inspects one parsed statement at a time. Rules are:
    - Stateless: the same statement always gives the same violations
    - Independent: a rule never sees other rules' output
    - Position-free: line numbers and safety-assured blocks are handled by
      the registry, never by the rule

    Subclasses must implement:
    - rule_id: Unique identifier, used to disable the rule in configuration
    - name: Human-readable name
    - description: What the rule checks for
    - check(): The detection logic
    """

    @property
    @abstractmethod
    def rule_id(self) -> str:
        """Unique identifier for this rule (e.g., 'drop-column')."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this rule."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Detailed description of what this rule checks for."""
        ...

    @abstractmethod
    def check(self, expr: Expression) -> list[Violation]:
        """Check a statement for unsafe operations.

        Args:
            expr: One parsed SQL statement

        Returns:
            The violations found; an empty list when the rule does not apply.
        """
        ...

    def _violation(self, operation: str, summary: str, remediation: str) -> Violation:
        """Convenience method to build a violation of this rule."""
        return Violation(
            rule_id=self.rule_id,
            operation=operation,
            summary=summary,
            remediation=remediation,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.rule_id!r}>"
