"""Recover the source line of each parsed statement.

sqlglot does not keep reliable statement positions, so lines are found by
scanning the raw text for the keyword a statement starts with. The scan keeps
a cursor: each statement is searched for strictly after the line assigned to
the previous one, so repeated statements of the same kind resolve to
successive lines instead of all landing on the first occurrence.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlglot import exp

from ._text import split_lines

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from sqlglot.expressions import Expression

logger = logging.getLogger(__name__)

FALLBACK_LINE = 1

_FIRST_TOKEN = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*")

# Extra keywords a statement of the given kind may start with, beyond the
# first word of its generated SQL.
_EXTRA_KEYWORDS: dict[type[Expression], tuple[str, ...]] = {
    exp.Select: ("WITH", "VALUES", "TABLE"),
    exp.Union: ("WITH", "SELECT", "VALUES"),
    exp.Insert: ("WITH",),
    exp.Update: ("WITH",),
    exp.Delete: ("WITH",),
    exp.Transaction: ("BEGIN", "START"),
    exp.Commit: ("COMMIT", "END"),
    exp.Rollback: ("ROLLBACK", "ABORT"),
}


@dataclass(frozen=True)
class LineSpan:
    """Resolved starting line of one statement.

    Attributes:
        statement_index: Position of the statement in the parsed sequence.
        line: 1-indexed line on which the statement begins.
        keyword: Keyword the statement was located by.
        located: False when the statement was not found and ``line`` is the
            line-1 fallback.
    """

    statement_index: int
    line: int
    keyword: str
    located: bool = True


def leading_keywords(expr: Expression, dialect: str = "postgres") -> tuple[str, ...]:
    """Get the upper-cased keywords a statement's source text can start with."""
    keywords: list[str] = []

    if isinstance(expr, exp.Command):
        command = str(expr.this or "").split()
        if command:
            keywords.append(command[0].upper())
    else:
        match = _FIRST_TOKEN.search(expr.sql(dialect=dialect))
        if match:
            keywords.append(match.group(0).upper())

    for node_type, extra in _EXTRA_KEYWORDS.items():
        if isinstance(expr, node_type):
            keywords.extend(kw for kw in extra if kw not in keywords)

    return tuple(keywords)


def _code_lines(lines: Sequence[str]) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, first_token)`` for lines that can start a statement.

    Blank lines, ``--`` comment lines and lines inside ``/* ... */`` blocks
    are skipped. A line only starts a statement if it is the first code line
    or the previous code line ended with ``;``.
    """
    in_block_comment = False
    at_boundary = True
    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if in_block_comment:
            if "*/" in stripped:
                in_block_comment = False
            continue
        if not stripped or stripped.startswith("--"):
            continue
        if stripped.startswith("/*"):
            if "*/" not in stripped[2:]:
                in_block_comment = True
            continue

        match = _FIRST_TOKEN.match(stripped)
        if match and at_boundary:
            yield number, match.group(0).upper()
        at_boundary = stripped.split("--", 1)[0].rstrip().endswith(";")


class StatementLocator:
    """Assigns each statement a best-effort starting line.

    Example:
        >>> from migguard.parser import Parser
        >>> sql = "ALTER TABLE a DROP COLUMN x;\\n\\nALTER TABLE b DROP COLUMN y;"
        >>> [s.line for s in StatementLocator().locate(sql, Parser().parse(sql))]
        [1, 3]
    """

    def __init__(self, dialect: str = "postgres") -> None:
        self.dialect = dialect

    def locate(self, sql: str, statements: Sequence[Expression]) -> list[LineSpan]:
        """Resolve one LineSpan per statement, in statement order.

        A statement that cannot be found falls back to line 1 and a warning
        naming the keyword sought is logged; locating never fails.
        """
        candidates = list(_code_lines(split_lines(sql)))
        cursor = 0
        spans: list[LineSpan] = []

        for index, stmt in enumerate(statements):
            keywords = leading_keywords(stmt, self.dialect)
            found = None
            for position in range(cursor, len(candidates)):
                number, token = candidates[position]
                if token in keywords:
                    found = (position, number, token)
                    break

            if found is None:
                sought = "/".join(keywords) or "<none>"
                logger.warning(
                    "Could not locate statement %d (keyword %s) in source, assuming line %d: %s",
                    index + 1,
                    sought,
                    FALLBACK_LINE,
                    _preview(stmt, self.dialect),
                )
                spans.append(
                    LineSpan(
                        statement_index=index,
                        line=FALLBACK_LINE,
                        keyword=sought,
                        located=False,
                    )
                )
                continue

            position, number, token = found
            cursor = position + 1
            spans.append(LineSpan(statement_index=index, line=number, keyword=token))

        return spans


def locate_statements(
    sql: str, statements: Sequence[Expression], dialect: str = "postgres"
) -> list[LineSpan]:
    """Resolve statement lines with a default locator."""
    return StatementLocator(dialect).locate(sql, statements)


def _preview(expr: Expression, dialect: str, width: int = 60) -> str:
    text = " ".join(expr.sql(dialect=dialect).split())
    if len(text) > width:
        return text[: width - 3] + "..."
    return text
