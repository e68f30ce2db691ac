"""Configuration loading and validation (``migguard.toml``)."""

from __future__ import annotations

import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import ConfigurationError
from .rules import all_rule_ids

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "migguard.toml"

# YYYY_MM_DD_HHMMSS, YYYY-MM-DD-HHMMSS or YYYYMMDDHHMMSS, one separator style
TIMESTAMP_PATTERN = re.compile(r"^(\d{4}_\d{2}_\d{2}_\d{6}|\d{4}-\d{2}-\d{2}-\d{6}|\d{14})$")

TIMESTAMP_LENGTH = 14

DEFAULT_CONFIG_TEMPLATE = """\
# migguard configuration

# Skip migrations whose directory timestamp is not after this one.
# Formats: YYYYMMDDHHMMSS, YYYY_MM_DD_HHMMSS or YYYY-MM-DD-HHMMSS
# start_after = "2024_01_01_000000"

# Also check down.sql files.
check_down = false

# Rule IDs to disable. Run `migguard rules` to list them.
# disable_checks = ["add-column-default", "rename-column"]
disable_checks = []
"""


@dataclass
class Config:
    """Configuration for migration checking.

    Attributes:
        start_after: Only check migration directories whose timestamp is
            strictly after this one.
        check_down: Whether to check ``down.sql`` as well as ``up.sql``.
        disable_checks: Rule IDs to skip.
    """

    start_after: str | None = None
    check_down: bool = False
    disable_checks: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.disable_checks = set(self.disable_checks)

    def validate(self) -> None:
        """Check configuration values.

        Raises:
            ConfigurationError: On a malformed ``start_after`` or an unknown
                rule ID in ``disable_checks``.
        """
        if self.start_after is not None and not TIMESTAMP_PATTERN.match(self.start_after):
            raise ConfigurationError(
                f"Invalid timestamp format: {self.start_after}. Expected YYYYMMDDHHMMSS, "
                "YYYY_MM_DD_HHMMSS or YYYY-MM-DD-HHMMSS (e.g. 2024_01_01_000000)"
            )

        known = all_rule_ids()
        for rule_id in sorted(self.disable_checks):
            if rule_id not in known:
                raise ConfigurationError(
                    f"Invalid check name: {rule_id}. Valid check names: {', '.join(known)}"
                )

    def is_rule_enabled(self, rule_id: str) -> bool:
        """Determine if a specific rule should be run."""
        return rule_id not in self.disable_checks

    def enabled_rule_ids(self, rule_ids: list[str]) -> set[str]:
        """Filter rule IDs down to the enabled ones."""
        return {rule_id for rule_id in rule_ids if self.is_rule_enabled(rule_id)}

    def should_check_migration(self, dir_name: str) -> bool:
        """Determine if a migration directory passes the ``start_after`` filter.

        Both timestamps are compared as bare digits, so separator styles can
        differ. Directories without a full timestamp are always checked.
        """
        if self.start_after is None:
            return True

        migration = _digits(dir_name)
        if len(migration) < TIMESTAMP_LENGTH:
            return True
        return migration[:TIMESTAMP_LENGTH] > _digits(self.start_after)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a validated configuration from parsed TOML data."""
        unknown = set(data) - {"start_after", "check_down", "disable_checks"}
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        start_after = data.get("start_after")
        if start_after is not None and not isinstance(start_after, str):
            raise ConfigurationError("start_after must be a string")

        check_down = data.get("check_down", False)
        if not isinstance(check_down, bool):
            raise ConfigurationError("check_down must be true or false")

        disable_checks = data.get("disable_checks", [])
        if not isinstance(disable_checks, list) or not all(
            isinstance(item, str) for item in disable_checks
        ):
            raise ConfigurationError("disable_checks must be a list of rule IDs")

        config = cls(
            start_after=start_after,
            check_down=check_down,
            disable_checks=set(disable_checks),
        )
        config.validate()
        return config


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from a TOML file.

    Args:
        path: Configuration file to read. When None, ``migguard.toml`` in the
            current directory is used if it exists, otherwise defaults.

    Raises:
        ConfigurationError: If the file is missing (explicit path only),
            unreadable, not valid TOML, or holds invalid values.
    """
    if path is None:
        path = Path(CONFIG_FILENAME)
        if not path.exists():
            return Config()
    path = Path(path)

    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e

    config = Config.from_dict(data)
    logger.debug("Loaded configuration from %s: %s", path, config)
    return config


def _digits(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit())
