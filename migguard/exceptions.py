"""Exception types raised by migguard."""

from __future__ import annotations


class MigGuardError(Exception):
    """Base class for every error raised by migguard.

    Attributes:
        path: File the error relates to, when known. Set by the checker once
            the error leaves the per-file pipeline.
    """

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class ParseError(MigGuardError):
    """The SQL text of a file could not be analysed.

    Raised for the whole file: no statement of a file that fails to parse
    is ever checked.

    Attributes:
        line: 1-indexed line of the failure, if the parser reported one.
        column: 1-indexed column of the failure, if the parser reported one.
    """

    def __init__(
        self,
        message: str,
        *,
        line: int | None = None,
        column: int | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message, path=path)
        self.line = line
        self.column = column


class UnmatchedDirectiveError(ParseError):
    """A safety-assured block is not balanced.

    Attributes:
        kind: ``"unmatched_end"`` for an end directive with no open block,
            ``"unclosed_start"`` for a start directive never closed.
    """

    UNMATCHED_END = "unmatched_end"
    UNCLOSED_START = "unclosed_start"

    def __init__(self, message: str, *, line: int, kind: str, path: str | None = None) -> None:
        super().__init__(message, line=line, path=path)
        self.kind = kind


class ConfigurationError(MigGuardError):
    """Invalid configuration file or configuration values."""
