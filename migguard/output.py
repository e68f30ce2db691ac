"""Rendering of check results as rich text or JSON."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.markup import escape

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .result import FileResult


def format_text(result: FileResult) -> str:
    """Render the findings of one file as rich markup."""
    lines = [
        f"[bold red]❌ Unsafe migration detected in {escape(result.path)}[/bold red]",
        "",
    ]
    for finding in result.findings:
        lines.append(
            f"[bold red]❌ {escape(finding.operation)}[/bold red] "
            f"[dim](line {finding.line}, {finding.rule_id})[/dim]"
        )
        lines.append("")
        lines.append(f"[bold]Problem:[/bold]\n  {escape(finding.summary)}")
        lines.append("")
        lines.append("[bold green]Safe alternative:[/bold green]")
        lines.extend(f"  {escape(line)}" for line in finding.remediation.splitlines())
        lines.append("")
    return "\n".join(lines)


def format_error(result: FileResult) -> str:
    """Render the fatal error of one file as rich markup."""
    error = result.error
    message = error.message if error is not None else "unknown error"
    location = ""
    line = getattr(error, "line", None)
    if line is not None:
        location = f" (line {line})"
    return (
        f"[bold red]✗ Failed to check {escape(result.path)}{location}[/bold red]\n"
        f"  {escape(message)}"
    )


def format_summary(total: int, failed: int = 0) -> str:
    """Render the closing summary line."""
    if total == 0 and failed == 0:
        return "[bold green]✅ No unsafe migrations detected![/bold green]"

    parts = []
    if total:
        noun = "issue" if total == 1 else "issues"
        parts.append(f"{total} unsafe migration {noun} detected")
    if failed:
        noun = "file" if failed == 1 else "files"
        parts.append(f"{failed} {noun} could not be checked")
    return f"[bold red]❌ {', '.join(parts)}[/bold red]"


def result_to_dict(result: FileResult) -> dict[str, Any]:
    """Get the JSON-serialisable form of one file's result."""
    if result.error is not None:
        return {"file": result.path, "error": result.error.message}
    return {"file": result.path, "violations": [f.to_dict() for f in result.findings]}


def format_json(results: Sequence[FileResult]) -> str:
    """Render results as a pretty JSON list.

    Only files with findings or errors are included, so a clean run gives
    ``[]``.
    """
    payload = [result_to_dict(r) for r in results if not r.is_safe]
    return json.dumps(payload, indent=2)
