"""End-to-end tests for checking SQL text, files and directories."""

from pathlib import Path

import pytest

import migguard
from migguard import Config, SafetyChecker
from migguard.exceptions import (
    ConfigurationError,
    MigGuardError,
    ParseError,
    UnmatchedDirectiveError,
)
from migguard.rules import RuleRegistry
from migguard.rules.columns import DropColumnRule

BROKEN_SQL = "SELECT * FROM users WHERE (id = 1;\n"


@pytest.fixture
def checker() -> SafetyChecker:
    return SafetyChecker()


@pytest.fixture
def drop_column_only() -> SafetyChecker:
    registry = RuleRegistry()
    registry.register(DropColumnRule())
    return SafetyChecker(registry=registry)


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class TestCheckSql:
    """Test the full pipeline on SQL text."""

    def test_exempt_block_then_unsafe_statement(self, drop_column_only: SafetyChecker) -> None:
        """Only the statement after the block is reported, at line 4."""
        sql = (
            "-- safety-assured:start\n"
            "ALTER TABLE t DROP COLUMN c;\n"
            "-- safety-assured:end\n"
            "ALTER TABLE t2 DROP COLUMN d;"
        )
        findings = drop_column_only.check_sql(sql)

        assert len(findings) == 1
        assert findings[0].line == 4
        assert findings[0].statement_index == 1
        assert "'d'" in findings[0].summary

    def test_unclosed_block_yields_no_findings(self, checker: SafetyChecker) -> None:
        sql = "-- safety-assured:start\nALTER TABLE t DROP COLUMN c;\nTRUNCATE t;\n"
        with pytest.raises(UnmatchedDirectiveError) as exc_info:
            checker.check_sql(sql)
        assert exc_info.value.line == 1

    def test_directive_error_wins_over_parse_error(self, checker: SafetyChecker) -> None:
        with pytest.raises(UnmatchedDirectiveError):
            checker.check_sql("-- safety-assured:end\n" + BROKEN_SQL)

    def test_parse_failure_checks_nothing(self, checker: SafetyChecker) -> None:
        """A single unparseable statement disables checking of the whole text."""
        with pytest.raises(ParseError):
            checker.check_sql("ALTER TABLE t DROP COLUMN c;\n" + BROKEN_SQL)

    def test_safe_migration(self, checker: SafetyChecker) -> None:
        sql = (
            "ALTER TABLE users ADD COLUMN nickname TEXT;\n"
            "CREATE INDEX CONCURRENTLY idx_users_nickname ON users (nickname);\n"
        )
        assert checker.check_sql(sql) == []

    def test_empty_migration(self, checker: SafetyChecker) -> None:
        assert checker.check_sql("") == []
        assert checker.check_sql("-- nothing yet\n") == []

    def test_findings_in_statement_then_rule_order(self, checker: SafetyChecker) -> None:
        sql = "\n".join(
            [
                "CREATE INDEX idx_wide ON t (a, b, c, d);",
                "ALTER TABLE t DROP COLUMN a;",
            ]
        )
        findings = checker.check_sql(sql)
        assert [(f.line, f.rule_id) for f in findings] == [
            (1, "add-index"),
            (1, "wide-index"),
            (2, "drop-column"),
        ]

    def test_disabled_rule(self) -> None:
        checker = SafetyChecker(Config(disable_checks={"drop-column"}))
        assert checker.check_sql("ALTER TABLE users DROP COLUMN email;") == []
        assert "drop-column" not in checker.enabled_rule_ids

    def test_multiline_statement_keeps_block_exemption(self, checker: SafetyChecker) -> None:
        sql = "\n".join(
            [
                "ALTER TABLE t",
                "  ALTER COLUMN c SET NOT NULL;",
                "-- safety-assured:start",
                "ALTER TABLE t2 DROP COLUMN d;",
                "-- safety-assured:end",
            ]
        )
        assert [(f.rule_id, f.line) for f in checker.check_sql(sql)] == [("add-not-null", 1)]

    def test_unknown_disabled_rule_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid check name: typo"):
            SafetyChecker(Config(disable_checks={"typo"}))

    def test_invalid_start_after_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid timestamp format"):
            SafetyChecker(Config(start_after="yesterday"))

    def test_exemption_applies_to_all_rules(self, checker: SafetyChecker) -> None:
        sql = "\n".join(
            [
                "-- safety-assured:start",
                "CREATE INDEX idx_wide ON t (a, b, c, d);",
                "-- safety-assured:end",
            ]
        )
        assert checker.check_sql(sql) == []

    def test_nested_blocks(self, checker: SafetyChecker) -> None:
        sql = "\n".join(
            [
                "-- safety-assured:start",
                "ALTER TABLE a DROP COLUMN x;",
                "-- safety-assured:start",
                "ALTER TABLE b DROP COLUMN y;",
                "-- safety-assured:end",
                "ALTER TABLE c DROP COLUMN z;",
                "-- safety-assured:end",
                "ALTER TABLE d DROP COLUMN w;",
            ]
        )
        findings = checker.check_sql(sql)
        assert [f.line for f in findings] == [8]

    def test_idempotent(self, checker: SafetyChecker) -> None:
        sql = "ALTER TABLE a DROP COLUMN x;\nTRUNCATE b;\nCREATE INDEX idx ON c (d);\n"
        first = checker.check_sql(sql)
        second = checker.check_sql(sql)
        assert first == second
        assert [f.to_dict() for f in first] == [f.to_dict() for f in second]


class TestModuleApi:
    """Test the module-level convenience functions."""

    def test_check_sql(self) -> None:
        findings = migguard.check_sql("ALTER TABLE users DROP COLUMN email;")
        assert [f.rule_id for f in findings] == ["drop-column"]

    def test_is_safe(self) -> None:
        assert migguard.is_safe("ALTER TABLE users ADD COLUMN nickname TEXT;")
        assert not migguard.is_safe("TRUNCATE users;")

    def test_unparseable_is_not_safe(self) -> None:
        assert not migguard.is_safe(BROKEN_SQL)

    def test_unbalanced_block_is_not_safe(self) -> None:
        assert not migguard.is_safe("-- safety-assured:start\nSELECT 1;\n")


class TestCheckFile:
    """Test checking one file."""

    def test_findings(self, checker: SafetyChecker, tmp_path: Path) -> None:
        path = write(tmp_path / "001.sql", "\nALTER TABLE users DROP COLUMN email;\n")
        findings = checker.check_file(path)
        assert [(f.rule_id, f.line) for f in findings] == [("drop-column", 2)]

    def test_parse_error_names_the_file(self, checker: SafetyChecker, tmp_path: Path) -> None:
        path = write(tmp_path / "bad.sql", BROKEN_SQL)
        with pytest.raises(ParseError) as exc_info:
            checker.check_file(path)
        assert exc_info.value.path == str(path)
        assert str(exc_info.value).startswith(str(path))

    def test_missing_file(self, checker: SafetyChecker, tmp_path: Path) -> None:
        with pytest.raises(MigGuardError, match="Failed to read"):
            checker.check_file(tmp_path / "missing.sql")


class TestCollectFiles:
    """Test migration discovery in a directory."""

    @pytest.fixture
    def migrations(self, tmp_path: Path) -> Path:
        write(tmp_path / "2024_01_01_000000_create_users" / "up.sql", "SELECT 1;")
        write(tmp_path / "2024_01_01_000000_create_users" / "down.sql", "SELECT 1;")
        write(tmp_path / "2024_02_01_000000_add_email" / "up.sql", "SELECT 1;")
        write(tmp_path / "2024_02_01_000000_add_email" / "down.sql", "SELECT 1;")
        write(tmp_path / "2024_03_01_000000_empty" / "notes.txt", "nothing")
        write(tmp_path / "0001_standalone.sql", "SELECT 1;")
        write(tmp_path / "README.md", "docs")
        return tmp_path

    def test_up_files_and_top_level_sql(self, checker: SafetyChecker, migrations: Path) -> None:
        files = checker.collect_files(migrations)
        assert [f.relative_to(migrations).as_posix() for f in files] == [
            "0001_standalone.sql",
            "2024_01_01_000000_create_users/up.sql",
            "2024_02_01_000000_add_email/up.sql",
        ]

    def test_check_down(self, migrations: Path) -> None:
        checker = SafetyChecker(Config(check_down=True))
        files = checker.collect_files(migrations)
        assert [f.relative_to(migrations).as_posix() for f in files] == [
            "0001_standalone.sql",
            "2024_01_01_000000_create_users/up.sql",
            "2024_01_01_000000_create_users/down.sql",
            "2024_02_01_000000_add_email/up.sql",
            "2024_02_01_000000_add_email/down.sql",
        ]

    def test_start_after(self, migrations: Path) -> None:
        checker = SafetyChecker(Config(start_after="2024_01_01_000000"))
        files = checker.collect_files(migrations)
        assert [f.relative_to(migrations).as_posix() for f in files] == [
            "0001_standalone.sql",
            "2024_02_01_000000_add_email/up.sql",
        ]


class TestCheckPath:
    """Test checking files and directories into per-file results."""

    def test_single_file(self, checker: SafetyChecker, tmp_path: Path) -> None:
        path = write(tmp_path / "001.sql", "TRUNCATE users;")
        results = checker.check_path(path)
        assert len(results) == 1
        assert results[0].path == str(path)
        assert [f.rule_id for f in results[0].findings] == ["truncate-table"]
        assert not results[0].is_safe

    def test_failed_file_does_not_stop_others(
        self, checker: SafetyChecker, tmp_path: Path
    ) -> None:
        write(tmp_path / "001_bad.sql", BROKEN_SQL)
        write(tmp_path / "002_unclosed.sql", "-- safety-assured:start\nSELECT 1;\n")
        write(tmp_path / "003_unsafe.sql", "ALTER TABLE users DROP COLUMN email;")
        write(tmp_path / "004_safe.sql", "ALTER TABLE users ADD COLUMN nickname TEXT;")

        results = checker.check_path(tmp_path)

        assert [Path(r.path).name for r in results] == [
            "001_bad.sql",
            "002_unclosed.sql",
            "003_unsafe.sql",
            "004_safe.sql",
        ]
        bad, unclosed, unsafe, safe = results
        assert isinstance(bad.error, ParseError)
        assert bad.findings == []
        assert not bad.ok
        assert isinstance(unclosed.error, UnmatchedDirectiveError)
        assert unsafe.ok and len(unsafe.findings) == 1
        assert safe.is_safe
        assert bool(safe) is True

    def test_failed_file_is_not_reported_safe(
        self, checker: SafetyChecker, tmp_path: Path
    ) -> None:
        """A fatal error is a distinct outcome from zero findings."""
        results = checker.check_path(write(tmp_path / "bad.sql", BROKEN_SQL))
        assert results[0].findings == []
        assert results[0].is_safe is False

    def test_empty_directory(self, checker: SafetyChecker, tmp_path: Path) -> None:
        assert checker.check_path(tmp_path) == []
