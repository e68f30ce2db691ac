"""SafetyChecker - the primary entry point for checking migrations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .config import Config
from .directives import scan_directives
from .exceptions import MigGuardError
from .locator import StatementLocator
from .parser import DEFAULT_DIALECT, Parser
from .result import FileResult
from .rules import get_default_registry

if TYPE_CHECKING:
    from .result import Finding
    from .rules import RuleRegistry

logger = logging.getLogger(__name__)

UP_MIGRATION = "up.sql"
DOWN_MIGRATION = "down.sql"


class SafetyChecker:
    """Checks migration SQL for operations that are unsafe on a live database.

    Checking one text runs in phases:
    1. Directive scan: find safety-assured blocks (rejects unbalanced ones)
    2. Parse: the whole text, all-or-nothing
    3. Locate: recover the starting line of every statement
    4. Rules: every enabled rule against every non-exempt statement

    Example:
        >>> checker = SafetyChecker()
        >>> [f.operation for f in checker.check_sql("ALTER TABLE users DROP COLUMN email;")]
        ['DROP COLUMN']

        # Disable a rule
        >>> checker = SafetyChecker(Config(disable_checks={"drop-column"}))
        >>> checker.check_sql("ALTER TABLE users DROP COLUMN email;")
        []
    """

    def __init__(
        self,
        config: Config | None = None,
        registry: RuleRegistry | None = None,
        dialect: str = DEFAULT_DIALECT,
    ) -> None:
        """Initialize the checker.

        Args:
            config: Checking configuration. Defaults to every rule enabled.
            registry: Rules to run. Defaults to the built-in rules.
            dialect: sqlglot dialect used for parsing.

        Raises:
            ConfigurationError: If the configuration holds invalid values.
        """
        self.config = config or Config()
        self.config.validate()
        self._registry = registry or get_default_registry()
        self._parser = Parser(dialect)
        self._locator = StatementLocator(dialect)

    @property
    def enabled_rule_ids(self) -> set[str]:
        """IDs of the rules this checker runs."""
        return self.config.enabled_rule_ids(self._registry.rule_ids())

    def check_sql(self, sql: str) -> list[Finding]:
        """Check the text of one migration.

        Args:
            sql: Complete text of one migration file.

        Returns:
            Findings in statement order, then rule order.

        Raises:
            UnmatchedDirectiveError: If a safety-assured block is unbalanced.
            ParseError: If any statement fails to parse.
        """
        ranges = scan_directives(sql)
        statements = self._parser.parse(sql)
        spans = self._locator.locate(sql, statements)

        logger.debug(
            "Checking %d statement(s) with %d safety-assured block(s)",
            len(statements),
            len(ranges),
        )
        return self._registry.evaluate_file(statements, spans, ranges, self.enabled_rule_ids)

    def check_file(self, path: str | Path) -> list[Finding]:
        """Check one migration file.

        Raises:
            MigGuardError: If the file cannot be read, or any error from
                :meth:`check_sql`, with ``path`` set to the file.
        """
        path = Path(path)
        try:
            sql = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise MigGuardError(f"Failed to read file: {e}", path=str(path)) from e

        try:
            findings = self.check_sql(sql)
        except MigGuardError as e:
            e.path = str(path)
            raise

        logger.info("Checked %s: %d finding(s)", path, len(findings))
        return findings

    def collect_files(self, directory: str | Path) -> list[Path]:
        """List the migration files of a directory, sorted by name.

        Only immediate children are considered. Every sub-directory passing
        the ``start_after`` filter contributes its ``up.sql`` (and ``down.sql``
        when ``check_down`` is set); top-level ``*.sql`` files are always
        included.
        """
        files: list[Path] = []
        for entry in sorted(Path(directory).iterdir()):
            if entry.is_dir():
                if not self.config.should_check_migration(entry.name):
                    logger.debug("Skipping %s: not after start_after", entry)
                    continue
                names = [UP_MIGRATION]
                if self.config.check_down:
                    names.append(DOWN_MIGRATION)
                files.extend(entry / name for name in names if (entry / name).is_file())
            elif entry.is_file() and entry.suffix == ".sql":
                files.append(entry)
        return files

    def check_path(self, path: str | Path) -> list[FileResult]:
        """Check a single file or a directory of migrations.

        Every file gets its own FileResult; a file that fails to read, parse
        or scan is reported with its error and does not stop the others.
        """
        path = Path(path)
        files = self.collect_files(path) if path.is_dir() else [path]

        results: list[FileResult] = []
        for file in files:
            try:
                findings = self.check_file(file)
            except MigGuardError as e:
                logger.info("Failed to check %s: %s", file, e.message)
                results.append(FileResult(path=str(file), error=e))
            else:
                results.append(FileResult(path=str(file), findings=findings))
        return results
