"""migguard - catch unsafe PostgreSQL migration operations.

migguard parses migration SQL and flags operations that take heavy locks,
rewrite tables or break running application code on a busy production
database, each with a safer way to make the same change.

Quick Start:
    >>> import migguard

    >>> migguard.is_safe("CREATE INDEX CONCURRENTLY idx_users_email ON users (email);")
    True
    >>> [f.operation for f in migguard.check_sql("ALTER TABLE users DROP COLUMN email;")]
    ['DROP COLUMN']

    # Check files and directories with configuration
    >>> from migguard import Config, SafetyChecker
    >>> checker = SafetyChecker(Config(check_down=True, disable_checks={"rename-column"}))
    >>> results = checker.check_path("migrations/")

Safety-assured blocks:
    Statements verified by hand can be exempted from every rule:

        -- safety-assured:start
        ALTER TABLE users DROP COLUMN legacy_flag;
        -- safety-assured:end
"""

from __future__ import annotations

from .checker import SafetyChecker
from .config import Config, load_config
from .directives import ExemptionRange, scan_directives
from .exceptions import ConfigurationError, MigGuardError, ParseError, UnmatchedDirectiveError
from .locator import LineSpan, StatementLocator
from .parser import Parser
from .result import FileResult, Finding
from .rules import Rule, RuleRegistry, Violation

__version__ = "0.1.0"
__all__ = [
    # Main API
    "check_sql",
    "is_safe",
    "SafetyChecker",
    # Configuration
    "Config",
    "load_config",
    # Building blocks
    "Parser",
    "StatementLocator",
    "LineSpan",
    "scan_directives",
    "ExemptionRange",
    "Rule",
    "RuleRegistry",
    "Violation",
    # Types
    "Finding",
    "FileResult",
    # Exceptions
    "MigGuardError",
    "ParseError",
    "UnmatchedDirectiveError",
    "ConfigurationError",
]

# Default checker instance for simple API
_default_checker = SafetyChecker()


def check_sql(sql: str) -> list[Finding]:
    """Check migration SQL with every rule enabled.

    For repeated checks with custom configuration, create a SafetyChecker.

    Raises:
        ParseError: If the SQL cannot be parsed.
        UnmatchedDirectiveError: If a safety-assured block is unbalanced.
    """
    return _default_checker.check_sql(sql)


def is_safe(sql: str) -> bool:
    """Check if migration SQL has no unsafe operations (convenience wrapper).

    Unparseable SQL and unbalanced safety-assured blocks count as unsafe.

    Examples:
        >>> import migguard
        >>> migguard.is_safe("ALTER TABLE users ADD COLUMN nickname TEXT;")
        True
        >>> migguard.is_safe("TRUNCATE users;")
        False
    """
    try:
        return not _default_checker.check_sql(sql)
    except MigGuardError:
        return False
