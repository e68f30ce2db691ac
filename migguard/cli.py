"""migguard command line interface."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .checker import SafetyChecker
from .config import CONFIG_FILENAME, DEFAULT_CONFIG_TEMPLATE, Config, load_config
from .exceptions import ConfigurationError
from .output import format_error, format_json, format_summary, format_text
from .rules import get_all_rules

logger = logging.getLogger(__name__)

EXIT_UNSAFE = 1
EXIT_ERROR = 2

app = typer.Typer(
    name="migguard",
    help="Catch unsafe PostgreSQL migration operations before they reach production.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)


class OutputFormat(str, Enum):
    text = "text"
    json = "json"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _resolve_config(path: Path | None) -> Config:
    """Load the explicit config file, or ``migguard.toml`` if present.

    An invalid discovered file only warns; an invalid explicit file exits.
    """
    if path is not None:
        try:
            return load_config(path)
        except ConfigurationError as e:
            err_console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
            raise typer.Exit(code=EXIT_ERROR) from e

    try:
        return load_config()
    except ConfigurationError as e:
        logger.warning("Ignoring %s, using defaults: %s", CONFIG_FILENAME, e)
        return Config()


@app.command("check")
def check(
    path: Annotated[
        Path,
        typer.Argument(exists=True, help="Migration file or directory of migrations to check."),
    ],
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format.")
    ] = OutputFormat.text,
    allow_unsafe: Annotated[
        bool, typer.Option("--allow-unsafe", help="Exit 0 even when unsafe operations are found.")
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help=f"Config file (default: ./{CONFIG_FILENAME})."),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Check migrations for unsafe operations."""
    _configure_logging(verbose)
    config = _resolve_config(config_path)

    results = SafetyChecker(config).check_path(path)
    total = sum(len(r.findings) for r in results)
    failed = [r for r in results if not r.ok]

    if output_format is OutputFormat.json:
        typer.echo(format_json(results))
    else:
        for result in results:
            if not result.ok:
                err_console.print(format_error(result))
            elif result.findings:
                console.print(format_text(result))
        console.print(format_summary(total, len(failed)))

    if failed:
        raise typer.Exit(code=EXIT_ERROR)
    if total and not allow_unsafe:
        raise typer.Exit(code=EXIT_UNSAFE)


@app.command("init")
def init(
    force: Annotated[
        bool, typer.Option("--force", help=f"Overwrite an existing {CONFIG_FILENAME}.")
    ] = False,
) -> None:
    """Create a migguard.toml with default settings."""
    target = Path(CONFIG_FILENAME)
    existed = target.exists()
    if existed and not force:
        err_console.print(
            f"[bold red]{CONFIG_FILENAME} already exists.[/bold red] Use --force to overwrite it."
        )
        raise typer.Exit(code=1)

    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    verb = "Overwrote" if existed else "Created"
    console.print(f"[green]{verb}[/green] {CONFIG_FILENAME}")


@app.command("rules")
def rules() -> None:
    """List the available rules."""
    table = Table(show_lines=False)
    table.add_column("id", no_wrap=True)
    table.add_column("name")
    table.add_column("description")
    for rule in get_all_rules():
        table.add_row(rule.rule_id, rule.name, rule.description)
    console.print(table)


def main() -> None:
    app()
