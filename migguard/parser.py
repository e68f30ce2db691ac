"""SQL parsing built on sqlglot."""

from __future__ import annotations

from typing import TYPE_CHECKING

import sqlglot
from sqlglot import exp
from sqlglot.errors import ErrorLevel, TokenError
from sqlglot.errors import ParseError as SqlglotParseError

from .exceptions import ParseError

if TYPE_CHECKING:
    from sqlglot.expressions import Expression

DEFAULT_DIALECT = "postgres"


class Parser:
    """Turns the text of a migration into an ordered list of statements.

    Parsing is all-or-nothing: a single statement that fails to parse makes
    the whole text fail, and no statement is returned. Statements carry no
    usable source position; see :mod:`migguard.locator` for line recovery.

    Example:
        >>> parser = Parser()
        >>> [s.key for s in parser.parse("ALTER TABLE t DROP COLUMN c; TRUNCATE t")]
        ['alter', 'truncatetable']
    """

    def __init__(self, dialect: str | None = DEFAULT_DIALECT) -> None:
        self.dialect = dialect or DEFAULT_DIALECT

    def parse(self, sql: str) -> list[Expression]:
        """Parse SQL text into statements, in source order.

        Args:
            sql: Complete text of one migration file.

        Returns:
            The parsed statements. Empty, whitespace-only and comment-only
            text gives an empty list.

        Raises:
            ParseError: If any statement in the text cannot be parsed.
        """
        if not sql.strip():
            return []

        try:
            parsed = sqlglot.parse(sql, read=self.dialect, error_level=ErrorLevel.IMMEDIATE)
        except SqlglotParseError as e:
            line, column = _error_location(e)
            raise ParseError(f"Failed to parse SQL: {_error_message(e)}", line=line, column=column) from e
        except TokenError as e:
            raise ParseError(f"Failed to tokenize SQL: {e}") from e

        return [stmt for stmt in parsed if stmt is not None]

    def parse_one(self, sql: str) -> Expression:
        """Parse text that must hold exactly one statement."""
        statements = self.parse(sql)
        if len(statements) != 1:
            raise ParseError(f"Expected exactly one statement, found {len(statements)}")
        return statements[0]

    def statement_type(self, expr: Expression) -> str:
        """Get the upper-cased leading keyword of a statement (ALTER, CREATE, ...)."""
        if isinstance(expr, exp.Command):
            return str(expr.this or "").upper() or "COMMAND"
        rendered = expr.sql(dialect=self.dialect).split(None, 1)
        return rendered[0].upper() if rendered else expr.key.upper()


def _error_location(error: SqlglotParseError) -> tuple[int | None, int | None]:
    """Pull the line and column of the first reported error, if any."""
    for detail in error.errors:
        line = detail.get("line")
        column = detail.get("col")
        if line is not None:
            return int(line), int(column) if column is not None else None
    return None, None


def _error_message(error: SqlglotParseError) -> str:
    for detail in error.errors:
        description = detail.get("description")
        if description:
            return str(description)
    return str(error)
