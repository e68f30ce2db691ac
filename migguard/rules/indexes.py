"""Rules for index creation and removal."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlglot import exp

from .base import Rule, Violation
from .helpers import (
    create_of_kind,
    dropped_target,
    if_exists_clause,
    index_columns,
    name_of,
    sql_of,
    unique_prefix,
)
from .registry import RuleRegistry

if TYPE_CHECKING:
    from sqlglot.expressions import Expression

MAX_INDEX_COLUMNS = 3


def _created_index(expr: Expression) -> tuple[exp.Create, exp.Index] | None:
    create = create_of_kind(expr, "INDEX")
    if create is None or not isinstance(create.this, exp.Index):
        return None
    return create, create.this


class AddIndexRule(Rule):
    """Detects CREATE INDEX without CONCURRENTLY.

    A plain index build takes a SHARE lock, blocking INSERT, UPDATE and
    DELETE until it finishes.
    """

    @property
    def rule_id(self) -> str:
        return "add-index"

    @property
    def name(self) -> str:
        return "ADD INDEX without CONCURRENTLY"

    @property
    def description(self) -> str:
        return "Detects indexes built without CONCURRENTLY, which block writes during the build."

    def check(self, expr: Expression) -> list[Violation]:
        created = _created_index(expr)
        if created is None:
            return []
        create, index = created
        if create.args.get("concurrently"):
            return []

        table = sql_of(index.args.get("table"))
        index_name = name_of(index.this)
        unique = unique_prefix(bool(create.args.get("unique") or index.args.get("unique")))
        columns = ", ".join(index_columns(index))
        return [
            self._violation(
                "ADD INDEX without CONCURRENTLY",
                f"Creating {unique}index '{index_name}' on table '{table}' without CONCURRENTLY "
                "acquires a SHARE lock, blocking writes (INSERT, UPDATE, DELETE) for the "
                "duration of the index build. Reads are still allowed.",
                f"""Use CONCURRENTLY to build the index without blocking writes:
   CREATE {unique}INDEX CONCURRENTLY {index_name} ON {table} ({columns});

Considerations:
- Cannot be run inside a transaction block
- Takes longer and does more total work
- A failed build leaves an "invalid" index that should be dropped""",
            )
        ]


class DropIndexRule(Rule):
    """Detects DROP INDEX without CONCURRENTLY.

    A plain DROP INDEX takes an ACCESS EXCLUSIVE lock on the indexed table.
    """

    @property
    def rule_id(self) -> str:
        return "drop-index"

    @property
    def name(self) -> str:
        return "DROP INDEX without CONCURRENTLY"

    @property
    def description(self) -> str:
        return "Detects indexes dropped without CONCURRENTLY, which lock the table."

    def check(self, expr: Expression) -> list[Violation]:
        if not isinstance(expr, exp.Drop) or (expr.args.get("kind") or "").upper() != "INDEX":
            return []
        if expr.args.get("concurrently"):
            return []

        index_name = sql_of(dropped_target(expr))
        exists = if_exists_clause(bool(expr.args.get("exists")))
        return [
            self._violation(
                "DROP INDEX without CONCURRENTLY",
                f"Dropping index '{index_name}' without CONCURRENTLY acquires an ACCESS "
                "EXCLUSIVE lock on the table, blocking all queries until the drop completes.",
                f"""Use CONCURRENTLY to drop the index without blocking:
   DROP INDEX CONCURRENTLY{exists} {index_name};

Note: DROP INDEX CONCURRENTLY cannot be run inside a transaction block.""",
            )
        ]


class WideIndexRule(Rule):
    """Detects indexes with more than three columns.

    PostgreSQL only uses a multi-column index efficiently when filtering on
    its leftmost columns, while every extra column costs storage and writes.
    """

    @property
    def rule_id(self) -> str:
        return "wide-index"

    @property
    def name(self) -> str:
        return "Wide index"

    @property
    def description(self) -> str:
        return f"Detects indexes with more than {MAX_INDEX_COLUMNS} columns."

    def check(self, expr: Expression) -> list[Violation]:
        created = _created_index(expr)
        if created is None:
            return []
        _, index = created

        columns = index_columns(index)
        if len(columns) <= MAX_INDEX_COLUMNS:
            return []

        table = sql_of(index.args.get("table"))
        index_name = name_of(index.this)
        first, second = columns[0], columns[1]
        return [
            self._violation(
                "Wide index",
                f"Index '{index_name}' on table '{table}' has {len(columns)} columns "
                f"({', '.join(columns)}). Wide indexes are rarely effective because PostgreSQL "
                "can only use them efficiently when filtering on the leftmost columns in "
                "order. They also increase storage and slow down writes.",
                f"""Consider these alternatives:

1. A partial index for the specific query pattern:
   CREATE INDEX {index_name} ON {table} ({first}) WHERE <condition>;

2. Separate narrower indexes:
   CREATE INDEX idx_{table}_{first} ON {table} ({first});
   CREATE INDEX idx_{table}_{second} ON {table} ({second});

3. A covering index when the extra columns are only returned:
   CREATE INDEX {index_name} ON {table} ({first}) INCLUDE ({', '.join(columns[1:])});""",
            )
        ]


# Register all rules
_registry = RuleRegistry.get_instance()
_registry.register(AddIndexRule())
_registry.register(DropIndexRule())
_registry.register(WideIndexRule())
