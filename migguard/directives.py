"""Scanning of ``safety-assured`` exemption directives.

A migration author marks statements they have verified by hand::

    -- safety-assured:start
    ALTER TABLE users DROP COLUMN legacy_flag;
    -- safety-assured:end

Every statement that starts on a line strictly between the two directive
lines is skipped by all rules.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ._text import split_lines
from .exceptions import UnmatchedDirectiveError

logger = logging.getLogger(__name__)

START_DIRECTIVE = re.compile(r"^\s*--\s*safety-assured:start\s*$", re.IGNORECASE)
END_DIRECTIVE = re.compile(r"^\s*--\s*safety-assured:end\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ExemptionRange:
    """A safety-assured block.

    Attributes:
        start_line: Line of the ``safety-assured:start`` directive.
        end_line: Line of the matching ``safety-assured:end`` directive.
    """

    start_line: int
    end_line: int

    @property
    def first_line(self) -> int:
        """First exempt line (the line after the start directive)."""
        return self.start_line + 1

    @property
    def last_line(self) -> int:
        """Last exempt line (the line before the end directive)."""
        return self.end_line - 1

    def contains(self, line: int) -> bool:
        """Check whether a line lies inside the block, directive lines excluded."""
        return self.first_line <= line <= self.last_line

    def __str__(self) -> str:
        return f"lines {self.start_line}-{self.end_line}"


def is_start_directive(line: str) -> bool:
    """Check if a line is a ``-- safety-assured:start`` directive."""
    return START_DIRECTIVE.match(line) is not None


def is_end_directive(line: str) -> bool:
    """Check if a line is a ``-- safety-assured:end`` directive."""
    return END_DIRECTIVE.match(line) is not None


def scan_directives(sql: str) -> list[ExemptionRange]:
    """Find all safety-assured blocks in SQL text.

    Start directives are pushed on a stack and each end directive closes the
    most recent open start. Ranges are returned ordered by start line.

    Args:
        sql: Complete text of one migration file.

    Returns:
        One ExemptionRange per balanced start/end pair.

    Raises:
        UnmatchedDirectiveError: On an end directive with no open block, or
            when a start directive is still open at end of file. The whole
            file is rejected; no partial ranges are returned.
    """
    ranges: list[ExemptionRange] = []
    open_starts: list[int] = []

    for number, line in enumerate(split_lines(sql), start=1):
        if is_start_directive(line):
            if open_starts:
                logger.debug(
                    "Nested 'safety-assured:start' at line %d inside block opened at line %d",
                    number,
                    open_starts[-1],
                )
            open_starts.append(number)
        elif is_end_directive(line):
            if not open_starts:
                raise UnmatchedDirectiveError(
                    f"Unmatched 'safety-assured:end' at line {number}. Each "
                    "'safety-assured:end' must have a matching 'safety-assured:start' before it.",
                    line=number,
                    kind=UnmatchedDirectiveError.UNMATCHED_END,
                )
            ranges.append(ExemptionRange(start_line=open_starts.pop(), end_line=number))

    if open_starts:
        first_open = open_starts[0]
        raise UnmatchedDirectiveError(
            f"Unclosed 'safety-assured:start' at line {first_open}. "
            "Did you forget to add 'safety-assured:end'?",
            line=first_open,
            kind=UnmatchedDirectiveError.UNCLOSED_START,
        )

    ranges.sort(key=lambda r: (r.start_line, r.end_line))
    return ranges


def is_exempt(line: int, ranges: list[ExemptionRange]) -> bool:
    """Check whether a line falls inside any safety-assured block."""
    return any(r.contains(line) for r in ranges)
