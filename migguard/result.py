"""Result types handed to the reporting layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlglot.expressions import Expression

    from .exceptions import MigGuardError
    from .rules.base import Violation


@dataclass(frozen=True)
class Finding:
    """One rule violation located in a migration file.

    Attributes:
        rule_id: Identifier of the rule that reported the violation.
        operation: Short title of the unsafe operation (e.g. "DROP COLUMN").
        line: 1-indexed line the offending statement starts on.
        summary: What is unsafe about the statement.
        remediation: How to perform the change safely.
        statement_index: Position of the statement in the file.
        statement: The parsed statement. Not part of equality.
    """

    rule_id: str
    operation: str
    line: int
    summary: str
    remediation: str
    statement_index: int = 0
    statement: Expression | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_violation(
        cls,
        violation: Violation,
        *,
        line: int,
        statement_index: int,
        statement: Expression | None = None,
    ) -> Finding:
        return cls(
            rule_id=violation.rule_id,
            operation=violation.operation,
            line=line,
            summary=violation.summary,
            remediation=violation.remediation,
            statement_index=statement_index,
            statement=statement,
        )

    def to_dict(self) -> dict[str, Any]:
        """Get a JSON-serialisable representation."""
        return {
            "rule": self.rule_id,
            "operation": self.operation,
            "line": self.line,
            "problem": self.summary,
            "safe_alternative": self.remediation,
        }

    def __str__(self) -> str:
        return f"line {self.line}: {self.operation}: {self.summary}"


@dataclass(frozen=True)
class FileResult:
    """Outcome of checking one file.

    A file either produced findings (possibly none) or failed as a whole;
    a failed file is never reported as an empty list of findings.

    Attributes:
        path: The checked file.
        findings: Violations found, in statement order then rule order.
        error: The fatal error that stopped analysis of the file, if any.
    """

    path: str
    findings: list[Finding] = field(default_factory=list)
    error: MigGuardError | None = None

    @property
    def ok(self) -> bool:
        """True if the file was analysed to completion."""
        return self.error is None

    @property
    def is_safe(self) -> bool:
        """True if the file was analysed and nothing was flagged."""
        return self.ok and not self.findings

    def __bool__(self) -> bool:
        """Allow using FileResult in boolean context."""
        return self.is_safe
