"""Rules for whole-table and database-level operations."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from sqlglot import exp

from .base import Rule, Violation
from .helpers import alter_table, command_parts, sql_of
from .registry import RuleRegistry

if TYPE_CHECKING:
    from sqlglot.expressions import Expression

_CREATE_EXTENSION = re.compile(
    r"^EXTENSION\s+(?P<if_not_exists>IF\s+NOT\s+EXISTS\s+)?(?P<name>\"[^\"]+\"|[\w-]+)",
    re.IGNORECASE,
)


class CreateExtensionRule(Rule):
    """Detects CREATE EXTENSION in a migration.

    Extensions usually need superuser privileges that application roles lack
    in production, and belong to database provisioning.
    """

    @property
    def rule_id(self) -> str:
        return "create-extension"

    @property
    def name(self) -> str:
        return "CREATE EXTENSION"

    @property
    def description(self) -> str:
        return "Detects CREATE EXTENSION, which needs superuser privileges in production."

    def check(self, expr: Expression) -> list[Violation]:
        parts = command_parts(expr)
        if parts is None or parts[0] != "CREATE":
            return []
        match = _CREATE_EXTENSION.match(parts[1])
        if match is None:
            return []

        extension = match.group("name")
        if_not_exists = "IF NOT EXISTS " if match.group("if_not_exists") else ""
        return [
            self._violation(
                "CREATE EXTENSION",
                f"Creating extension '{extension}' in a migration requires superuser "
                "privileges, which application database users typically lack in production. "
                "Extensions are infrastructure concerns that belong outside application "
                "migrations.",
                f"""Install the extension outside of migrations:

1. For local development, add it to the database setup scripts:
   CREATE EXTENSION {if_not_exists}{extension};

2. For production, install it during database provisioning with a privileged
   role, before application migrations run.

3. Document the required extensions in the project README.""",
            )
        ]


class RenameTableRule(Rule):
    """Detects ALTER TABLE ... RENAME TO.

    Running instances that still use the old name fail immediately, and the
    ACCESS EXCLUSIVE lock can queue behind long transactions on busy tables.
    """

    @property
    def rule_id(self) -> str:
        return "rename-table"

    @property
    def name(self) -> str:
        return "RENAME TABLE"

    @property
    def description(self) -> str:
        return "Detects table renames, which break running application instances."

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        old, actions = alter

        violations = []
        for action in actions:
            if not isinstance(action, exp.AlterRename):
                continue
            new = sql_of(action.this)
            violations.append(
                self._violation(
                    "RENAME TABLE",
                    f"Renaming table '{old}' to '{new}' will cause immediate errors in running "
                    "application instances. Any code referencing the old table name fails after "
                    "the rename. The ACCESS EXCLUSIVE lock it needs can also block on busy "
                    "tables.",
                    f"""1. Create the new table with the same structure:
   CREATE TABLE {new} (LIKE {old} INCLUDING ALL);

2. Update application code to write to both tables.

3. Backfill the new table in batches.

4. Switch reads to the new table and stop writing to the old one.

5. Drop the old table in a later migration:
   DROP TABLE {old};""",
                )
            )
        return violations


class TruncateTableRule(Rule):
    """Detects TRUNCATE.

    Reported once per truncated table.
    """

    @property
    def rule_id(self) -> str:
        return "truncate-table"

    @property
    def name(self) -> str:
        return "TRUNCATE TABLE"

    @property
    def description(self) -> str:
        return "Detects TRUNCATE, which locks the table and cannot be batched."

    def check(self, expr: Expression) -> list[Violation]:
        if isinstance(expr, exp.TruncateTable):
            tables = [sql_of(t) for t in expr.expressions]
        else:
            parts = command_parts(expr)
            if parts is None or parts[0] != "TRUNCATE":
                return []
            tables = _command_tables(parts[1])

        return [self._truncate(table) for table in tables]

    def _truncate(self, table: str) -> Violation:
        return self._violation(
            "TRUNCATE TABLE",
            f"TRUNCATE TABLE on '{table}' acquires an ACCESS EXCLUSIVE lock, blocking all "
            "reads and writes. Unlike DELETE, TRUNCATE cannot be batched or throttled, making "
            "it unsafe for large tables in production.",
            f"""Delete rows in batches instead:

1. Remove a batch at a time, allowing concurrent access in between:
   DELETE FROM {table} WHERE id IN (SELECT id FROM {table} LIMIT 1000);

2. Repeat until the table is empty.

3. (Optional) Reclaim space:
   VACUUM {table};""",
        )


def _command_tables(text: str) -> list[str]:
    text = re.sub(r"^TABLE\s+", "", text.rstrip(";").strip(), flags=re.IGNORECASE)
    text = re.split(r"\s+(RESTART|CONTINUE|CASCADE|RESTRICT)\b", text, flags=re.IGNORECASE)[0]
    return [name.strip() for name in text.split(",") if name.strip()] or ["<unknown>"]


# Register all rules
_registry = RuleRegistry.get_instance()
_registry.register(CreateExtensionRule())
_registry.register(RenameTableRule())
_registry.register(TruncateTableRule())
