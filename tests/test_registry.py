"""Tests for rule dispatch, exemptions and finding order."""

import pytest
from sqlglot import exp
from sqlglot.expressions import Expression

from migguard.directives import ExemptionRange
from migguard.locator import LineSpan
from migguard.parser import Parser
from migguard.result import Finding
from migguard.rules import Rule, RuleRegistry, Violation, get_default_registry
from migguard.rules.columns import DropColumnRule


class FlagEveryStatement(Rule):
    """Test rule reporting one violation per statement."""

    def __init__(self, rule_id: str = "flag-all", hits: int = 1) -> None:
        self._rule_id = rule_id
        self._hits = hits

    @property
    def rule_id(self) -> str:
        return self._rule_id

    @property
    def name(self) -> str:
        return f"Flag {self._rule_id}"

    @property
    def description(self) -> str:
        return "Flags every statement."

    def check(self, expr: Expression) -> list[Violation]:
        return [
            self._violation(self._rule_id.upper(), f"hit {i} on {expr.key}", "do nothing")
            for i in range(self._hits)
        ]


class FlagTruncate(Rule):
    """Test rule reporting TRUNCATE only."""

    @property
    def rule_id(self) -> str:
        return "flag-truncate"

    @property
    def name(self) -> str:
        return "Flag truncate"

    @property
    def description(self) -> str:
        return "Flags TRUNCATE."

    def check(self, expr: Expression) -> list[Violation]:
        if not isinstance(expr, exp.TruncateTable):
            return []
        return [self._violation("TRUNCATE", "truncate", "delete in batches")]


def spans(*lines: int) -> list[LineSpan]:
    return [LineSpan(statement_index=i, line=line, keyword="ALTER") for i, line in enumerate(lines)]


@pytest.fixture
def statements() -> list[Expression]:
    return Parser().parse(
        "ALTER TABLE a DROP COLUMN x;\nTRUNCATE b;\nALTER TABLE c DROP COLUMN y;"
    )


class TestRegistration:
    """Test registering and looking up rules."""

    def test_register_and_get(self) -> None:
        registry = RuleRegistry()
        rule = FlagTruncate()
        registry.register(rule)

        assert registry.get("flag-truncate") is rule
        assert "flag-truncate" in registry
        assert len(registry) == 1

    def test_duplicate_registration_fails(self) -> None:
        registry = RuleRegistry()
        registry.register(FlagTruncate())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(FlagTruncate())

    def test_unregister(self) -> None:
        registry = RuleRegistry()
        registry.register(FlagTruncate())
        registry.unregister("flag-truncate")
        assert registry.get("flag-truncate") is None
        registry.unregister("flag-truncate")

    def test_registration_order_is_kept(self) -> None:
        registry = RuleRegistry()
        for rule_id in ("c", "a", "b"):
            registry.register(FlagEveryStatement(rule_id))
        assert registry.rule_ids() == ["c", "a", "b"]

    def test_enabled_filters_but_keeps_order(self) -> None:
        registry = RuleRegistry()
        for rule_id in ("c", "a", "b"):
            registry.register(FlagEveryStatement(rule_id))
        assert [r.rule_id for r in registry.enabled({"b", "c"})] == ["c", "b"]
        assert [r.rule_id for r in registry.enabled()] == ["c", "a", "b"]

    def test_clear(self) -> None:
        registry = RuleRegistry()
        registry.register(FlagTruncate())
        registry.clear()
        assert len(registry) == 0

    def test_default_registry_is_shared(self) -> None:
        assert get_default_registry() is RuleRegistry.get_instance()
        assert "drop-column" in get_default_registry()


class TestEvaluateFile:
    """Test per-file evaluation."""

    def test_findings_carry_lines(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        registry.register(FlagTruncate())

        findings = registry.evaluate_file(statements, spans(1, 2, 3), [])

        assert findings == [
            Finding(
                rule_id="flag-truncate",
                operation="TRUNCATE",
                line=2,
                summary="truncate",
                remediation="delete in batches",
                statement_index=1,
            )
        ]
        assert findings[0].statement is statements[1]

    def test_no_ranges_means_nothing_exempt(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        registry.register(FlagEveryStatement())

        findings = registry.evaluate_file(statements, spans(1, 2, 3), [])
        assert [f.statement_index for f in findings] == [0, 1, 2]

    def test_statement_order_then_rule_order(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        registry.register(FlagEveryStatement("second", hits=2))
        registry.register(FlagEveryStatement("first"))

        findings = registry.evaluate_file(statements[:2], spans(1, 2), [])

        assert [(f.statement_index, f.rule_id) for f in findings] == [
            (0, "second"),
            (0, "second"),
            (0, "first"),
            (1, "second"),
            (1, "second"),
            (1, "first"),
        ]
        assert [f.summary for f in findings[:2]] == ["hit 0 on alter", "hit 1 on alter"]

    def test_exempt_statement_skips_every_rule(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        registry.register(FlagEveryStatement("a"))
        registry.register(FlagEveryStatement("b"))

        # Statement 1 sits on line 5, inside the block on lines 4-6
        findings = registry.evaluate_file(
            statements, spans(1, 5, 9), [ExemptionRange(start_line=4, end_line=6)]
        )
        assert [f.statement_index for f in findings] == [0, 0, 2, 2]

    @pytest.mark.parametrize(
        "line, exempt",
        [(3, False), (4, True), (6, True), (7, False)],
    )
    def test_directive_lines_are_not_exempt(
        self, statements: list[Expression], line: int, exempt: bool
    ) -> None:
        registry = RuleRegistry()
        registry.register(FlagEveryStatement())

        findings = registry.evaluate_file(
            statements[:1], spans(line), [ExemptionRange(start_line=3, end_line=7)]
        )
        assert (findings == []) is exempt

    def test_enabled_rule_names(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        registry.register(FlagEveryStatement("a"))
        registry.register(FlagTruncate())

        findings = registry.evaluate_file(statements, spans(1, 2, 3), [], {"flag-truncate"})
        assert [f.rule_id for f in findings] == ["flag-truncate"]

    def test_no_enabled_rules(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        registry.register(FlagEveryStatement())
        assert registry.evaluate_file(statements, spans(1, 2, 3), [], set()) == []

    def test_span_count_must_match(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        with pytest.raises(ValueError, match="line spans"):
            registry.evaluate_file(statements, spans(1, 2), [])

    def test_evaluation_does_not_change_registry(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        registry.register(DropColumnRule())

        first = registry.evaluate_file(statements, spans(1, 2, 3), [])
        second = registry.evaluate_file(statements, spans(1, 2, 3), [])

        assert first == second
        assert registry.rule_ids() == ["drop-column"]

    def test_check_statement(self, statements: list[Expression]) -> None:
        registry = RuleRegistry()
        registry.register(DropColumnRule())
        registry.register(FlagTruncate())

        assert [v.rule_id for v in registry.check_statement(statements[0])] == ["drop-column"]
        assert [v.rule_id for v in registry.check_statement(statements[1])] == ["flag-truncate"]
