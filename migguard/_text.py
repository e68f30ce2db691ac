"""Line handling shared by the directive scanner and the statement locator."""

from __future__ import annotations


def split_lines(sql: str) -> list[str]:
    """Split SQL text into lines, dropping the line terminators.

    Only ``\\n`` (optionally preceded by ``\\r``) ends a line, so line numbers
    agree with what editors and the SQL tokenizer report. Index ``i`` of the
    result is line ``i + 1``.
    """
    if not sql:
        return []
    lines = sql.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]
