"""Rules for primary keys and table constraints."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from sqlglot import exp

from .base import Rule, Violation
from .helpers import (
    added_columns,
    added_constraints,
    alter_table,
    column_type,
    command_parts,
    constraint_columns,
    create_of_kind,
    dropped,
    dropped_target,
    is_inline_primary_key,
    name_of,
    sql_of,
)
from .registry import RuleRegistry

if TYPE_CHECKING:
    from sqlglot.expressions import Expression

# Common primary key naming conventions: *_pkey, *_pk, pk_*, *primary_key*
PRIMARY_KEY_NAME = re.compile(r"((_pkey|_pk)$|^pk_|_primary_key|primarykey)", re.IGNORECASE)

_ADD_CHECK_COMMAND = re.compile(
    r"^TABLE\s+(?:IF\s+EXISTS\s+)?(?:ONLY\s+)?(?P<table>\S+)"
    r"\s+ADD\s+CHECK\s*(?P<definition>\(.*\))",
    re.IGNORECASE | re.DOTALL,
)

# Type -> (display name, exhaustion limit)
_SHORT_INTEGER_TYPES = {
    exp.DataType.Type.SMALLINT: ("SMALLINT", "~32,767"),
    exp.DataType.Type.INT: ("INT", "~2.1 billion"),
}


class AddPrimaryKeyRule(Rule):
    """Detects ALTER TABLE ... ADD PRIMARY KEY (columns).

    Building the key's index and validating uniqueness happens under an
    ACCESS EXCLUSIVE lock. ``PRIMARY KEY USING INDEX`` is the safe form and
    is not flagged.
    """

    @property
    def rule_id(self) -> str:
        return "add-primary-key"

    @property
    def name(self) -> str:
        return "ADD PRIMARY KEY"

    @property
    def description(self) -> str:
        return (
            "Detects primary keys added to existing tables, which build a unique index "
            "while holding an ACCESS EXCLUSIVE lock."
        )

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for constraint_name, constraint in added_constraints(actions):
            if not isinstance(constraint, exp.PrimaryKey):
                continue
            column_names = constraint_columns(constraint)
            if not column_names:
                # PRIMARY KEY USING INDEX reuses an index built beforehand
                continue
            name = constraint_name or f"{table}_pkey"
            index_name = f"{table}_pkey"
            columns = ", ".join(column_names)
            violations.append(
                self._violation(
                    "ADD PRIMARY KEY",
                    f"Adding PRIMARY KEY constraint '{name}' on table '{table}' ({columns}) via "
                    "ALTER TABLE acquires an ACCESS EXCLUSIVE lock, blocking all reads and "
                    "writes. It also builds a unique index and validates every row for "
                    "uniqueness.",
                    f"""1. Create the unique index concurrently (no blocking):
   CREATE UNIQUE INDEX CONCURRENTLY {index_name} ON {table} ({columns});

2. Add the PRIMARY KEY using the existing index (fast):
   ALTER TABLE {table} ADD CONSTRAINT {name} PRIMARY KEY USING INDEX {index_name};

Considerations:
- CONCURRENTLY cannot run inside a transaction block
- All key columns must already be NOT NULL
- A failed concurrent build leaves an invalid index that must be dropped""",
                )
            )
        return violations


class AddUniqueConstraintRule(Rule):
    """Detects ALTER TABLE ... ADD UNIQUE (columns).

    The unique index is built under an ACCESS EXCLUSIVE lock, which is
    stricter than a plain CREATE INDEX.
    """

    @property
    def rule_id(self) -> str:
        return "add-unique-constraint"

    @property
    def name(self) -> str:
        return "ADD UNIQUE constraint"

    @property
    def description(self) -> str:
        return (
            "Detects UNIQUE constraints added via ALTER TABLE, which block reads and "
            "writes while the index is built."
        )

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for constraint_name, constraint in added_constraints(actions):
            if not isinstance(constraint, exp.UniqueColumnConstraint):
                continue
            column_names = constraint_columns(constraint)
            if not column_names:
                # UNIQUE USING INDEX reuses an index built beforehand
                continue
            columns = ", ".join(column_names)
            index_name = constraint_name or f"{table}_unique_idx"
            new_constraint = constraint_name or f"{table}_unique_constraint"
            violations.append(
                self._violation(
                    "ADD UNIQUE constraint",
                    f"Adding UNIQUE constraint '{constraint_name or '<unnamed>'}' on table "
                    f"'{table}' ({columns}) via ALTER TABLE acquires an ACCESS EXCLUSIVE lock, "
                    "blocking all reads and writes during index creation. Duration depends on "
                    "table size.",
                    f"""1. Create the unique index concurrently:
   CREATE UNIQUE INDEX CONCURRENTLY {index_name} ON {table} ({columns});

2. (Optional) Attach it as a constraint:
   ALTER TABLE {table} ADD CONSTRAINT {new_constraint} UNIQUE USING INDEX {index_name};

Considerations:
- CONCURRENTLY cannot run inside a transaction block
- The build fails if duplicates exist, leaving an invalid index to drop""",
                )
            )
        return violations


class DropPrimaryKeyRule(Rule):
    """Detects DROP CONSTRAINT of what looks like a primary key.

    Without a database connection the constraint type is unknown, so this
    relies on naming conventions and can miss keys with unusual names.
    """

    @property
    def rule_id(self) -> str:
        return "drop-primary-key"

    @property
    def name(self) -> str:
        return "DROP PRIMARY KEY"

    @property
    def description(self) -> str:
        return (
            "Detects dropped primary key constraints (by naming convention), which "
            "break foreign keys and uniqueness guarantees."
        )

    @staticmethod
    def is_likely_primary_key(constraint_name: str) -> bool:
        return PRIMARY_KEY_NAME.search(constraint_name) is not None

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter

        violations = []
        for drop in dropped(actions, "CONSTRAINT"):
            constraint = name_of(dropped_target(drop))
            if not self.is_likely_primary_key(constraint):
                continue
            violations.append(
                self._violation(
                    "DROP PRIMARY KEY",
                    f"Dropping primary key constraint '{constraint}' from table '{table}' "
                    "requires an ACCESS EXCLUSIVE lock, blocking all operations. It also "
                    "breaks foreign keys in other tables and removes the uniqueness guarantee.",
                    f"""1. Find the foreign keys that reference the table:
   SELECT conrelid::regclass, conname
   FROM pg_constraint
   WHERE confrelid = '{table}'::regclass AND contype = 'f';

2. If the key is being replaced, create the new key first, move the foreign
   keys to it, and only then drop the old one.

This check matches constraint names such as '*_pkey'. If '{constraint}' is not
a primary key, wrap the statement in a safety-assured block.""",
                )
            )
        return violations


class ShortIntegerPrimaryKeyRule(Rule):
    """Detects SMALLINT/INT primary key columns.

    Covers inline and table-level keys in CREATE TABLE, and keys over columns
    added in the same ALTER TABLE. Widening the type later rewrites the table.
    """

    @property
    def rule_id(self) -> str:
        return "short-int-primary-key"

    @property
    def name(self) -> str:
        return "Short integer primary key"

    @property
    def description(self) -> str:
        return "Detects SMALLINT and INT primary keys, which risk ID exhaustion."

    def check(self, expr: Expression) -> list[Violation]:
        create = create_of_kind(expr, "TABLE")
        if create is not None:
            schema = create.this
            if not isinstance(schema, exp.Schema):
                return []
            table = sql_of(schema.this)
            columns = [e for e in schema.expressions if isinstance(e, exp.ColumnDef)]
            key_columns = [
                name for pk in schema.find_all(exp.PrimaryKey) for name in constraint_columns(pk)
            ]
            return self._check_columns(table, columns, key_columns)

        alter = alter_table(expr)
        if alter is None:
            return []
        table, actions = alter
        key_columns = [
            name
            for _, constraint in added_constraints(actions)
            if isinstance(constraint, exp.PrimaryKey)
            for name in constraint_columns(constraint)
        ]
        return self._check_columns(table, added_columns(actions), key_columns)

    def _check_columns(
        self,
        table: str,
        columns: list[exp.ColumnDef],
        key_columns: list[str],
    ) -> list[Violation]:
        keyed = {name.lower() for name in key_columns}
        violations = []
        for column in columns:
            col = name_of(column.this)
            if not (is_inline_primary_key(column) or col.lower() in keyed):
                continue
            dtype = column_type(column)
            short = _SHORT_INTEGER_TYPES.get(dtype.this) if dtype is not None else None
            if short is None:
                continue
            violations.append(self._short_key(table, col, *short))
        return violations

    def _short_key(self, table: str, col: str, type_name: str, limit: str) -> Violation:
        return self._violation(
            "Short integer primary key",
            f"Using {type_name} for primary key column '{col}' on table '{table}' risks ID "
            f"exhaustion at {limit} records. Changing the type later requires an ALTER "
            "COLUMN TYPE that rewrites the table under an ACCESS EXCLUSIVE lock.",
            f"""Use BIGINT for primary keys:

   CREATE TABLE {table} ({col} BIGINT PRIMARY KEY);

With SERIAL, use BIGSERIAL instead:
   {col} BIGSERIAL PRIMARY KEY

BIGINT costs 4 extra bytes per row. For a deliberately small lookup table,
wrap the statement in a safety-assured block.""",
        )


class UnnamedConstraintRule(Rule):
    """Detects UNIQUE, FOREIGN KEY and CHECK constraints added without a name.

    PostgreSQL generates a name that can differ between databases, which makes
    later migrations that alter or drop the constraint fragile.
    """

    @property
    def rule_id(self) -> str:
        return "unnamed-constraint"

    @property
    def name(self) -> str:
        return "Unnamed constraint"

    @property
    def description(self) -> str:
        return "Detects constraints added without an explicit CONSTRAINT name."

    def check(self, expr: Expression) -> list[Violation]:
        alter = alter_table(expr)
        if alter is None:
            return self._check_command(expr)
        table, actions = alter

        violations = []
        for constraint_name, constraint in added_constraints(actions):
            if constraint_name is not None:
                continue
            if isinstance(constraint, exp.UniqueColumnConstraint):
                kind, suffix = "UNIQUE", "key"
                definition = f"({', '.join(constraint_columns(constraint))})"
            elif isinstance(constraint, exp.ForeignKey):
                kind, suffix = "FOREIGN KEY", "fkey"
                definition = sql_of(constraint)
                if definition.upper().startswith("FOREIGN KEY"):
                    definition = definition[len("FOREIGN KEY") :].strip()
            elif isinstance(constraint, exp.CheckColumnConstraint):
                kind, suffix = "CHECK", "check"
                definition = f"({sql_of(constraint.this)})"
            else:
                continue
            violations.append(self._unnamed(table, kind, suffix, definition))
        return violations

    def _check_command(self, expr: Expression) -> list[Violation]:
        # sqlglot keeps ALTER TABLE ... ADD CHECK as a raw command
        parts = command_parts(expr)
        if parts is None or parts[0] != "ALTER":
            return []
        match = _ADD_CHECK_COMMAND.match(parts[1].rstrip(";").strip())
        if match is None:
            return []
        return [self._unnamed(match.group("table"), "CHECK", "check", match.group("definition"))]

    def _unnamed(self, table: str, kind: str, suffix: str, definition: str) -> Violation:
        return self._violation(
            "Unnamed constraint",
            f"Adding unnamed {kind} constraint on table '{table}' gives it an "
            "auto-generated name from PostgreSQL. The generated name varies between "
            "databases, so later migrations must look it up before modifying or "
            "dropping the constraint.",
            f"""Name the constraint explicitly:

Instead of:
   ALTER TABLE {table} ADD {kind} {definition};

Use:
   ALTER TABLE {table} ADD CONSTRAINT {table}_column_{suffix} {kind} {definition};

so later migrations can refer to it:
   ALTER TABLE {table} DROP CONSTRAINT {table}_column_{suffix};""",
        )


# Register all rules
_registry = RuleRegistry.get_instance()
_registry.register(AddPrimaryKeyRule())
_registry.register(AddUniqueConstraintRule())
_registry.register(DropPrimaryKeyRule())
_registry.register(ShortIntegerPrimaryKeyRule())
_registry.register(UnnamedConstraintRule())
