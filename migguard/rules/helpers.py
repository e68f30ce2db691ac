"""Helpers shared by rule implementations for reading sqlglot DDL trees."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from sqlglot import exp

if TYPE_CHECKING:
    from sqlglot.expressions import Expression

DIALECT = "postgres"


def sql_of(node: Expression | None, default: str = "<unknown>") -> str:
    """Render a node as PostgreSQL text, or a default when missing."""
    if node is None:
        return default
    return node.sql(dialect=DIALECT)


def name_of(node: Expression | None, default: str = "<unnamed>") -> str:
    """Get the plain name of an identifier-like node."""
    if node is None:
        return default
    if isinstance(node, exp.Ordered):
        node = node.this
    return node.name or node.sql(dialect=DIALECT) or default


def unique_prefix(is_unique: bool) -> str:
    return "UNIQUE " if is_unique else ""


def if_exists_clause(if_exists: bool) -> str:
    return " IF EXISTS" if if_exists else ""


def alter_table(expr: Expression) -> tuple[str, list[Expression]] | None:
    """Unpack an ``ALTER TABLE`` statement into its table name and actions.

    Returns None for any other statement, including ALTER statements sqlglot
    could only keep as a raw command.
    """
    if not isinstance(expr, exp.Alter):
        return None
    kind = (expr.args.get("kind") or "TABLE").upper()
    if kind != "TABLE":
        return None
    return sql_of(expr.this), list(expr.args.get("actions") or [])


def create_of_kind(expr: Expression, kind: str) -> exp.Create | None:
    """Return the statement if it is ``CREATE <kind>``."""
    if isinstance(expr, exp.Create) and (expr.args.get("kind") or "").upper() == kind:
        return expr
    return None


def added_columns(actions: list[Expression]) -> list[exp.ColumnDef]:
    """Get the column definitions of the ``ADD COLUMN`` actions."""
    return [action for action in actions if isinstance(action, exp.ColumnDef)]


def column_type(column: exp.ColumnDef) -> exp.DataType | None:
    kind = column.args.get("kind")
    return kind if isinstance(kind, exp.DataType) else None


def has_type(column: exp.ColumnDef, *types: exp.DataType.Type) -> bool:
    dtype = column_type(column)
    return dtype is not None and dtype.this in types


def has_default(column: exp.ColumnDef) -> bool:
    return column.find(exp.DefaultColumnConstraint) is not None


def is_inline_primary_key(column: exp.ColumnDef) -> bool:
    return column.find(exp.PrimaryKeyColumnConstraint) is not None


def added_constraints(
    actions: list[Expression],
) -> Iterator[tuple[str | None, Expression]]:
    """Yield ``(constraint_name, constraint)`` for each ``ADD CONSTRAINT`` item.

    The name is None for constraints added without ``CONSTRAINT <name>``.
    """
    for action in actions:
        if not isinstance(action, exp.AddConstraint):
            continue
        for item in action.expressions:
            if isinstance(item, exp.Constraint):
                for kind in item.expressions:
                    yield item.name or None, kind
            else:
                yield None, item


def constraint_columns(constraint: Expression) -> list[str]:
    """Get the column names a table constraint is declared over."""
    if isinstance(constraint, exp.PrimaryKey):
        return [name_of(col) for col in constraint.expressions]
    if isinstance(constraint, exp.UniqueColumnConstraint):
        schema = constraint.this
        if isinstance(schema, exp.Schema):
            return [name_of(col) for col in schema.expressions]
        return []
    if isinstance(constraint, exp.ForeignKey):
        return [name_of(col) for col in constraint.expressions]
    return []


def index_columns(index: exp.Index) -> list[str]:
    """Get the column names (or expressions) of a ``CREATE INDEX``."""
    params = index.args.get("params")
    columns = params.args.get("columns") if isinstance(params, exp.IndexParameters) else None
    if not columns:
        columns = index.args.get("columns") or []
    return [name_of(col) for col in columns]


def dropped(actions: list[Expression], kind: str) -> list[exp.Drop]:
    """Get the ``DROP <kind>`` actions of an ALTER TABLE."""
    return [
        action
        for action in actions
        if isinstance(action, exp.Drop) and (action.args.get("kind") or "").upper() == kind
    ]


def dropped_target(drop: exp.Drop) -> Expression | None:
    """Get the node naming what a ``DROP`` removes.

    Older sqlglot releases keep it in ``this``; newer ones leave ``this``
    empty and list the targets under ``tables``.
    """
    if drop.this is not None:
        return drop.this
    tables = drop.args.get("tables") or []
    return tables[0] if tables else None


def command_parts(expr: Expression) -> tuple[str, str] | None:
    """Split a raw command into its upper-cased keyword and remaining text."""
    if not isinstance(expr, exp.Command):
        return None
    return str(expr.this or "").upper(), str(expr.expression or "").strip()
