"""Tests for all-or-nothing SQL parsing."""

import pytest

from migguard.exceptions import ParseError
from migguard.parser import Parser


@pytest.fixture
def parser() -> Parser:
    return Parser()


class TestParser:
    """Test splitting migration text into statements."""

    def test_statements_in_source_order(self, parser: Parser) -> None:
        statements = parser.parse(
            "ALTER TABLE t DROP COLUMN c;\nCREATE INDEX idx ON t (a);\nTRUNCATE t;"
        )
        assert [parser.statement_type(s) for s in statements] == ["ALTER", "CREATE", "TRUNCATE"]

    def test_empty_text(self, parser: Parser) -> None:
        assert parser.parse("") == []

    def test_whitespace_only(self, parser: Parser) -> None:
        assert parser.parse("   \n\t\n") == []

    def test_comment_only(self, parser: Parser) -> None:
        assert parser.parse("-- nothing to do\n") == []

    def test_trailing_semicolon_gives_no_empty_statement(self, parser: Parser) -> None:
        assert len(parser.parse("ALTER TABLE t DROP COLUMN c;;\n")) == 1

    def test_parse_one(self, parser: Parser) -> None:
        stmt = parser.parse_one("TRUNCATE t")
        assert parser.statement_type(stmt) == "TRUNCATE"

    def test_parse_one_rejects_many(self, parser: Parser) -> None:
        with pytest.raises(ParseError, match="exactly one"):
            parser.parse_one("TRUNCATE a; TRUNCATE b")

    def test_raw_command_type(self, parser: Parser) -> None:
        stmt = parser.parse_one("CREATE EXTENSION pg_trgm")
        assert parser.statement_type(stmt) == "CREATE"


class TestParseFailure:
    """Test that a single bad statement fails the whole text."""

    def test_invalid_sql_raises(self, parser: Parser) -> None:
        with pytest.raises(ParseError) as exc_info:
            parser.parse("SELECT * FROM users WHERE (id = 1")
        assert exc_info.value.line is not None

    def test_one_bad_statement_fails_everything(self, parser: Parser) -> None:
        """Earlier valid statements are not returned."""
        sql = "ALTER TABLE t DROP COLUMN c;\nTRUNCATE t;\nSELECT * FROM users WHERE (id = 1;"
        with pytest.raises(ParseError):
            parser.parse(sql)

    def test_error_chains_sqlglot_error(self, parser: Parser) -> None:
        with pytest.raises(ParseError) as exc_info:
            parser.parse("SELECT * FROM users WHERE (id = 1")
        assert exc_info.value.__cause__ is not None
