"""Rules for column-level ALTER TABLE operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlglot import exp

from .base import Rule, Violation
from .helpers import (
    added_columns,
    alter_table,
    column_type,
    dropped,
    dropped_target,
    has_default,
    has_type,
    if_exists_clause,
    name_of,
    sql_of,
)
from .registry import RuleRegistry

if TYPE_CHECKING:
    from sqlglot.expressions import Expression

_SERIAL_TYPES = (
    exp.DataType.Type.SERIAL,
    exp.DataType.Type.SMALLSERIAL,
    exp.DataType.Type.BIGSERIAL,
)


class AddColumnDefaultRule(Rule):
    """Detects ADD COLUMN with a DEFAULT value.

    Before PostgreSQL 11, adding a column with a DEFAULT rewrites the whole
    table under an ACCESS EXCLUSIVE lock to backfill existing rows.
    """

    @property
    def rule_id(self) -> str:
        return "add-column-default"

    @property
    def name(self) -> str:
        return "ADD COLUMN with DEFAULT"

    @property
    def description(self) -> str:
        return (
            "Detects columns added with a DEFAULT value, which rewrites the table "
            "on PostgreSQL < 11 while holding an ACCESS EXCLUSIVE lock."
        )

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for column in added_columns(actions):
            if not has_default(column):
                continue
            col = name_of(column.this)
            data_type = sql_of(column_type(column), "<type>")
            violations.append(
                self._violation(
                    "ADD COLUMN with DEFAULT",
                    f"Adding column '{col}' with DEFAULT on table '{table}' requires a full "
                    "table rewrite on PostgreSQL < 11, which acquires an ACCESS EXCLUSIVE "
                    "lock and blocks all operations. Duration depends on table size.",
                    f"""1. Add the column without a default:
   ALTER TABLE {table} ADD COLUMN {col} {data_type};

2. Backfill existing rows in batches (outside the migration):
   UPDATE {table} SET {col} = <value> WHERE {col} IS NULL;

3. Set the default for new rows only:
   ALTER TABLE {table} ALTER COLUMN {col} SET DEFAULT <value>;

Note: On PostgreSQL 11+ this is safe when the default is a constant.""",
                )
            )
        return violations


class AddJsonColumnRule(Rule):
    """Detects ADD COLUMN of type json.

    The json type has no equality operator, so existing SELECT DISTINCT,
    GROUP BY and UNION queries over the table start failing.
    """

    @property
    def rule_id(self) -> str:
        return "add-json-column"

    @property
    def name(self) -> str:
        return "ADD COLUMN with JSON type"

    @property
    def description(self) -> str:
        return "Detects columns added with the json type instead of jsonb."

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for column in added_columns(actions):
            if not has_type(column, exp.DataType.Type.JSON):
                continue
            col = name_of(column.this)
            violations.append(
                self._violation(
                    "ADD COLUMN with JSON type",
                    f"Adding column '{col}' with JSON type on table '{table}' can break "
                    "existing SELECT DISTINCT queries. The JSON type has no equality "
                    "operator, so DISTINCT, GROUP BY and UNION fail at runtime.",
                    f"""Use JSONB instead of JSON:

   ALTER TABLE {table} ADD COLUMN {col} JSONB;

JSONB has equality and comparison operators, supports GIN indexes and is
faster to query. JSON only preserves exact formatting and key order.""",
                )
            )
        return violations


class AddSerialColumnRule(Rule):
    """Detects ADD COLUMN with a SERIAL, SMALLSERIAL or BIGSERIAL type.

    Populating the sequence for existing rows rewrites the table under an
    ACCESS EXCLUSIVE lock.
    """

    @property
    def rule_id(self) -> str:
        return "add-serial-column"

    @property
    def name(self) -> str:
        return "ADD COLUMN with SERIAL"

    @property
    def description(self) -> str:
        return "Detects serial columns added to existing tables, which forces a table rewrite."

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for column in added_columns(actions):
            if not has_type(column, *_SERIAL_TYPES):
                continue
            col = name_of(column.this)
            sequence = f"{table}_{col}_seq"
            violations.append(
                self._violation(
                    "ADD COLUMN with SERIAL",
                    f"Adding column '{col}' with SERIAL type on table '{table}' requires a "
                    "full table rewrite to populate sequence values for existing rows, which "
                    "acquires an ACCESS EXCLUSIVE lock and blocks all operations. Duration "
                    "depends on table size and number of indexes.",
                    f"""1. Create a sequence:
   CREATE SEQUENCE {sequence};

2. Add the column without a default (no rewrite):
   ALTER TABLE {table} ADD COLUMN {col} BIGINT;

3. Backfill existing rows in batches (outside the migration):
   UPDATE {table} SET {col} = nextval('{sequence}') WHERE {col} IS NULL;

4. Set the default for future inserts:
   ALTER TABLE {table} ALTER COLUMN {col} SET DEFAULT nextval('{sequence}');

5. Set NOT NULL if needed, then hand the sequence to the column:
   ALTER SEQUENCE {sequence} OWNED BY {table}.{col};""",
                )
            )
        return violations


class AddNotNullRule(Rule):
    """Detects ALTER COLUMN ... SET NOT NULL on an existing column.

    PostgreSQL scans the whole table to verify the constraint while holding
    an ACCESS EXCLUSIVE lock.
    """

    @property
    def rule_id(self) -> str:
        return "add-not-null"

    @property
    def name(self) -> str:
        return "ADD NOT NULL constraint"

    @property
    def description(self) -> str:
        return "Detects SET NOT NULL on existing columns, which scans the table under lock."

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for action in actions:
            if not isinstance(action, exp.AlterColumn):
                continue
            if action.args.get("allow_null") is not False or action.args.get("drop"):
                continue
            col = name_of(action.this)
            check_name = f"{col}_not_null"
            violations.append(
                self._violation(
                    "ADD NOT NULL constraint",
                    f"Adding NOT NULL constraint to column '{col}' on table '{table}' requires "
                    "a full table scan to verify all values are non-null, acquiring an ACCESS "
                    "EXCLUSIVE lock and blocking all operations. Duration depends on table size.",
                    f"""1. Add a CHECK constraint without validating existing rows:
   ALTER TABLE {table} ADD CONSTRAINT {check_name} CHECK ({col} IS NOT NULL) NOT VALID;

2. Validate it separately (SHARE UPDATE EXCLUSIVE lock, reads and writes continue):
   ALTER TABLE {table} VALIDATE CONSTRAINT {check_name};

3. Add NOT NULL (PostgreSQL 12+ uses the validated CHECK and skips the scan):
   ALTER TABLE {table} ALTER COLUMN {col} SET NOT NULL;

4. Optionally drop the now redundant CHECK constraint:
   ALTER TABLE {table} DROP CONSTRAINT {check_name};""",
                )
            )
        return violations


class AlterColumnTypeRule(Rule):
    """Detects ALTER COLUMN ... TYPE.

    Most type changes rewrite the table under an ACCESS EXCLUSIVE lock; a
    USING clause always does.
    """

    @property
    def rule_id(self) -> str:
        return "alter-column-type"

    @property
    def name(self) -> str:
        return "ALTER COLUMN TYPE"

    @property
    def description(self) -> str:
        return "Detects column type changes, which usually rewrite the table under lock."

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for action in actions:
            if not isinstance(action, exp.AlterColumn) or action.args.get("dtype") is None:
                continue
            col = name_of(action.this)
            new_type = sql_of(action.args["dtype"])
            using_note = ""
            if action.args.get("using") is not None:
                using_note = (
                    "\n\nNote: This migration includes a USING clause, which always "
                    "triggers a full table rewrite."
                )
            violations.append(
                self._violation(
                    "ALTER COLUMN TYPE",
                    f"Changing column '{col}' type to '{new_type}' on table '{table}' "
                    "typically requires an ACCESS EXCLUSIVE lock and may trigger a full table "
                    "rewrite, blocking all operations. Duration depends on table size and the "
                    f"specific type change.{using_note}",
                    f"""1. Add a new column with the desired type:
   ALTER TABLE {table} ADD COLUMN {col}_new {new_type};

2. Backfill data in batches (outside the migration):
   UPDATE {table} SET {col}_new = {col}::{new_type};

3. Deploy application code that uses the new column.

4. Drop the old column in a later migration:
   ALTER TABLE {table} DROP COLUMN {col};

5. Rename the new column:
   ALTER TABLE {table} RENAME COLUMN {col}_new TO {col};

Some changes are safe without a rewrite: VARCHAR(n) to VARCHAR(m) with m > n,
VARCHAR to TEXT, and numeric precision increases.""",
                )
            )
        return violations


class DropColumnRule(Rule):
    """Detects ALTER TABLE ... DROP COLUMN.

    Reported once per dropped column.
    """

    @property
    def rule_id(self) -> str:
        return "drop-column"

    @property
    def name(self) -> str:
        return "DROP COLUMN"

    @property
    def description(self) -> str:
        return (
            "Detects dropped columns, which take an ACCESS EXCLUSIVE lock and break "
            "running code that still reads the column."
        )

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for drop in dropped(actions, "COLUMN"):
            col = name_of(dropped_target(drop))
            violations.append(
                self._violation(
                    "DROP COLUMN",
                    f"Dropping column '{col}' from table '{table}' requires an ACCESS "
                    "EXCLUSIVE lock, blocking all operations. This typically triggers a table "
                    "rewrite with duration depending on table size.",
                    f"""1. Stop using the column in application code.

2. Deploy the application without any reference to the column.

3. (Optional) Clear the column to reclaim space:
   ALTER TABLE {table} ALTER COLUMN {col} DROP NOT NULL;
   UPDATE {table} SET {col} = NULL;

4. Drop the column in a later migration once it is confirmed unused:
   ALTER TABLE {table} DROP COLUMN{if_exists_clause(bool(drop.args.get("exists")))} {col};

PostgreSQL has no DROP COLUMN CONCURRENTLY; staging the removal reduces risk.""",
                )
            )
        return violations


class RenameColumnRule(Rule):
    """Detects ALTER TABLE ... RENAME COLUMN.

    The rename itself is fast, but every running instance still using the old
    name fails immediately.
    """

    @property
    def rule_id(self) -> str:
        return "rename-column"

    @property
    def name(self) -> str:
        return "RENAME COLUMN"

    @property
    def description(self) -> str:
        return "Detects column renames, which break running application instances."

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for action in actions:
            if not isinstance(action, exp.RenameColumn):
                continue
            old = name_of(action.this)
            new = name_of(action.args.get("to"))
            violations.append(
                self._violation(
                    "RENAME COLUMN",
                    f"Renaming column '{old}' to '{new}' in table '{table}' will cause "
                    "immediate errors in running application instances. Any code referencing "
                    "the old column name fails after the rename is applied.",
                    f"""1. Add a column with the new name:
   ALTER TABLE {table} ADD COLUMN {new} <data_type>;

2. Backfill it from the old column:
   UPDATE {table} SET {new} = {old};

3. Update and deploy application code to use '{new}'.

4. Drop the old column in a later migration:
   ALTER TABLE {table} DROP COLUMN {old};""",
                )
            )
        return violations


# Register all rules
_registry = RuleRegistry.get_instance()
_registry.register(AddColumnDefaultRule())
_registry.register(AddJsonColumnRule())
_registry.register(AddSerialColumnRule())
_registry.register(AddNotNullRule())
_registry.register(AlterColumnTypeRule())
_registry.register(DropColumnRule())
_registry.register(RenameColumnRule())
