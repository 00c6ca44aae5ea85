"""Tests for the SQL query lexer and parser."""

import pytest

from sql_tables.errors import QuerySyntaxError, UnsupportedOperatorError, ValueCountMismatchError
from sql_tables.parsing.query_lexer import QueryLexer
from sql_tables.parsing.query_parser import (
    ColumnDef,
    Condition,
    CreateTableQuery,
    DeleteQuery,
    DropTableQuery,
    InsertQuery,
    JoinClause,
    QueryParser,
    SelectQuery,
    UpdateQuery,
)


@pytest.fixture
def parser():
    return QueryParser()


class TestQueryLexer:
    """Tests for the query lexer."""

    def test_tokenize_select(self):
        """Test tokenizing a select query."""
        lexer = QueryLexer()
        lexer.build()

        tokens = lexer.tokenize("SELECT * FROM users WHERE id >= 18")
        token_types = [t.type for t in tokens]

        assert token_types == ["SELECT", "STAR", "FROM", "IDENTIFIER", "WHERE", "IDENTIFIER", "GTE", "NUMBER"]

    def test_keywords_case_insensitive(self):
        """Test that keywords match in any case."""
        lexer = QueryLexer()
        lexer.build()

        tokens = lexer.tokenize("select Inner JOIN primary_key")
        assert [t.type for t in tokens] == ["SELECT", "INNER", "JOIN", "PRIMARY_KEY"]

    def test_tokenize_operators(self):
        """Test that two-character operators are not split."""
        lexer = QueryLexer()
        lexer.build()

        tokens = lexer.tokenize("= == != <> < <= > >=")
        assert [t.type for t in tokens] == ["EQ", "EQEQ", "NEQ", "LTGT", "LT", "LTE", "GT", "GTE"]

    def test_number_keeps_source_text(self):
        """Test that numbers are not converted."""
        lexer = QueryLexer()
        lexer.build()

        tokens = lexer.tokenize("-1.50 007 2e3")
        assert [t.value for t in tokens] == ["-1.50", "007", "2e3"]

    def test_string_quotes_stripped(self):
        """Test that both quote styles are stripped without trimming."""
        lexer = QueryLexer()
        lexer.build()

        tokens = lexer.tokenize("' Ann ' \"Bob\"")
        assert [t.type for t in tokens] == ["STRING", "STRING"]
        assert [t.value for t in tokens] == [" Ann ", "Bob"]

    def test_escaped_quote(self):
        """Test that an escaped quote becomes part of the string."""
        lexer = QueryLexer()
        lexer.build()

        tokens = lexer.tokenize(r"'it\'s'")
        assert tokens[0].value == "it's"

    def test_qualified_name(self):
        """Test that a qualified name is three tokens."""
        lexer = QueryLexer()
        lexer.build()

        tokens = lexer.tokenize("USERS.ID")
        assert [t.type for t in tokens] == ["IDENTIFIER", "DOT", "IDENTIFIER"]

    def test_comments_ignored(self):
        """Test that -- comments are skipped."""
        lexer = QueryLexer()
        lexer.build()

        tokens = lexer.tokenize("DROP TABLE t -- remove it\n")
        assert [t.type for t in tokens] == ["DROP", "TABLE", "IDENTIFIER"]

    def test_illegal_character(self):
        """Test that an illegal character reports its position."""
        lexer = QueryLexer()
        lexer.build()

        with pytest.raises(QuerySyntaxError) as exc_info:
            lexer.tokenize("SELECT # FROM t")
        assert exc_info.value.position == 7
        assert "Illegal character '#'" in str(exc_info.value)


class TestCreateTable:
    """Tests for CREATE TABLE parsing."""

    def test_create_table(self, parser):
        """Test parsing a table with types and constraints."""
        query = parser.parse("CREATE TABLE users (id INT PRIMARY_KEY, name VARCHAR(20) NOT_EMPTY)")

        assert isinstance(query, CreateTableQuery)
        assert query.table == "USERS"
        assert query.columns == [
            ColumnDef(name="ID", type_name="INT", constraints=["PRIMARY_KEY"]),
            ColumnDef(name="NAME", type_name="VARCHAR", length=20, constraints=["NOT_EMPTY"]),
        ]

    def test_column_without_constraints(self, parser):
        """Test a column with no constraints."""
        query = parser.parse("CREATE TABLE t (created DATETIME, price DOUBLE)")

        assert [c.name for c in query.columns] == ["CREATED", "PRICE"]
        assert [c.type_name for c in query.columns] == ["DATETIME", "DOUBLE"]
        assert all(c.constraints == [] for c in query.columns)

    def test_multiple_constraints(self, parser):
        """Test several constraints on one column."""
        query = parser.parse("CREATE TABLE t (id INT PRIMARY_KEY NOT_EMPTY)")
        assert query.columns[0].constraints == ["PRIMARY_KEY", "NOT_EMPTY"]

    def test_foreign_key(self, parser):
        """Test parsing a foreign key reference."""
        query = parser.parse(
            "CREATE TABLE orders (id INT PRIMARY_KEY, userid INT FOREIGN_KEY_REFERENCES users.id)"
        )

        col = query.columns[1]
        assert col.constraints == ["FOREIGN_KEY_REFERENCES"]
        assert col.referenced_table == "USERS"
        assert col.referenced_column == "ID"

    def test_foreign_key_without_column(self, parser):
        """Test that a reference without table.column is rejected."""
        with pytest.raises(QuerySyntaxError, match="FOREIGN_KEY_REFERENCES"):
            parser.parse("CREATE TABLE orders (userid INT FOREIGN_KEY_REFERENCES users)")

    def test_unknown_constraint(self, parser):
        """Test that an unknown constraint word is rejected."""
        with pytest.raises(QuerySyntaxError, match="Invalid constraint: UNIQUE"):
            parser.parse("CREATE TABLE t (id INT UNIQUE)")

    def test_missing_parenthesis(self, parser):
        """Test that an unclosed column list is rejected."""
        with pytest.raises(QuerySyntaxError):
            parser.parse("CREATE TABLE t (id INT")


class TestInsert:
    """Tests for INSERT parsing."""

    def test_insert(self, parser):
        """Test parsing a single-row insert."""
        query = parser.parse("INSERT INTO users (id, name) VALUES (1, 'Ann')")

        assert query == InsertQuery(table="USERS", fields=["ID", "NAME"], rows=[["1", "Ann"]])

    def test_insert_multiple_rows(self, parser):
        """Test parsing several value tuples."""
        query = parser.parse("INSERT INTO users (id, name) VALUES (1, 'Ann'), (2, \"Bob\");")
        assert query.rows == [["1", "Ann"], ["2", "Bob"]]

    def test_insert_bare_word_value(self, parser):
        """Test that a bare word is taken as a value with its case kept."""
        query = parser.parse("INSERT INTO users (id, name) VALUES (1, Ann)")
        assert query.rows == [["1", "Ann"]]

    def test_value_count_mismatch(self, parser):
        """Test that a short value tuple is rejected."""
        with pytest.raises(ValueCountMismatchError):
            parser.parse("INSERT INTO users (id, name) VALUES (1)")

    def test_value_count_mismatch_is_syntax_error(self, parser):
        """Test that an arity mismatch is a kind of syntax error."""
        with pytest.raises(QuerySyntaxError):
            parser.parse("INSERT INTO users (id) VALUES (1, 'Ann')")

    def test_duplicate_field(self, parser):
        """Test that a field listed twice is rejected."""
        with pytest.raises(QuerySyntaxError, match="Duplicate field"):
            parser.parse("INSERT INTO users (id, id) VALUES (1, 2)")

    def test_missing_values_keyword(self, parser):
        """Test that VALUES is required."""
        with pytest.raises(QuerySyntaxError):
            parser.parse("INSERT INTO users (id) (1)")


class TestSelect:
    """Tests for SELECT parsing."""

    def test_select_star(self, parser):
        """Test selecting every field."""
        query = parser.parse("SELECT * FROM users")

        assert isinstance(query, SelectQuery)
        assert query.table == "USERS"
        assert query.select_all
        assert query.joins == []
        assert query.conditions == []

    def test_select_fields(self, parser):
        """Test selecting plain and qualified fields."""
        query = parser.parse("SELECT name, orders.id FROM users")
        assert query.fields == ["NAME", "ORDERS.ID"]
        assert not query.select_all

    def test_select_where(self, parser):
        """Test a single WHERE condition."""
        query = parser.parse("SELECT * FROM users WHERE id = 1")
        assert query.conditions == [Condition(field="ID", operator="=", value="1")]

    def test_condition_value_keeps_case(self, parser):
        """Test that string and bare word values keep their case."""
        query = parser.parse("SELECT * FROM users WHERE name = 'ann' OR name == Bob")
        assert [c.value for c in query.conditions] == ["ann", "Bob"]

    def test_condition_relations(self, parser):
        """Test that each condition records the connective before it."""
        query = parser.parse("SELECT * FROM t WHERE a = 1 OR b = 2 and c = 3")
        assert [c.relation for c in query.conditions] == [None, "OR", "AND"]

    def test_all_comparison_operators(self, parser):
        """Test every comparison operator."""
        for op in ("=", "==", "!=", "<>", "<", "<=", ">", ">="):
            query = parser.parse(f"SELECT * FROM t WHERE a {op} 1")
            assert query.conditions[0].operator == op

    def test_inner_join(self, parser):
        """Test that the ON text is captured up to WHERE."""
        query = parser.parse(
            "SELECT * FROM users INNER JOIN orders ON users.id = orders.userid WHERE orders.id > 5"
        )

        assert query.joins == [JoinClause(table="ORDERS", on_text="users.id = orders.userid")]
        assert query.conditions == [Condition(field="ORDERS.ID", operator=">", value="5")]

    def test_multiple_joins(self, parser):
        """Test that each ON text ends at the next join."""
        query = parser.parse(
            "SELECT * FROM a JOIN b ON a.id = b.aid INNER JOIN c ON b.id = c.bid;"
        )

        assert [j.table for j in query.joins] == ["B", "C"]
        assert [j.on_text for j in query.joins] == ["a.id = b.aid", "b.id = c.bid"]

    def test_missing_from(self, parser):
        """Test that FROM is required."""
        with pytest.raises(QuerySyntaxError):
            parser.parse("SELECT * users")

    def test_like_rejected(self, parser):
        """Test that LIKE is recognised but not supported."""
        with pytest.raises(UnsupportedOperatorError, match="LIKE"):
            parser.parse("SELECT * FROM users WHERE name LIKE 'A%'")

    def test_in_rejected(self, parser):
        """Test that IN is recognised but not supported."""
        with pytest.raises(UnsupportedOperatorError, match="IN"):
            parser.parse("SELECT * FROM users WHERE id IN (1, 2)")


class TestUpdateDeleteDrop:
    """Tests for UPDATE, DELETE and DROP parsing."""

    def test_update(self, parser):
        """Test parsing assignments and conditions."""
        query = parser.parse("UPDATE users SET name = 'Bo', age = 3 WHERE id = 1")

        assert isinstance(query, UpdateQuery)
        assert query.table == "USERS"
        assert query.values == {"NAME": "Bo", "AGE": "3"}
        assert query.conditions == [Condition(field="ID", operator="=", value="1")]

    def test_update_without_where(self, parser):
        """Test that WHERE is optional for UPDATE."""
        query = parser.parse("UPDATE users SET name = ''")
        assert query.values == {"NAME": ""}
        assert query.conditions == []

    def test_delete(self, parser):
        """Test parsing DELETE with and without WHERE."""
        assert parser.parse("DELETE FROM users") == DeleteQuery(table="USERS")
        query = parser.parse("delete from users where id = 1;")
        assert query.conditions == [Condition(field="ID", operator="=", value="1")]

    def test_drop(self, parser):
        """Test parsing DROP TABLE."""
        assert parser.parse("DROP TABLE users;") == DropTableQuery(table="USERS")


class TestParserErrors:
    """Tests for statement-level errors."""

    def test_empty_statement(self, parser):
        """Test that empty input names the missing operation."""
        with pytest.raises(QuerySyntaxError, match="No operation specified"):
            parser.parse("   ")

    def test_unsupported_operation(self, parser):
        """Test that an unknown leading word is reported."""
        with pytest.raises(QuerySyntaxError, match="Unsupported SQL operation: EXPLAIN"):
            parser.parse("EXPLAIN SELECT * FROM t")

    def test_trailing_garbage(self, parser):
        """Test that text after a complete statement is rejected."""
        with pytest.raises(QuerySyntaxError):
            parser.parse("DROP TABLE t t")

    def test_syntax_error_is_builtin_syntax_error(self, parser):
        """Test that parse errors can be caught as SyntaxError."""
        with pytest.raises(SyntaxError):
            parser.parse("SELECT FROM")

    def test_parser_usable_after_error(self, parser):
        """Test that a failed parse does not affect the next one."""
        with pytest.raises(QuerySyntaxError):
            parser.parse("INSERT INTO t (a, a) VALUES (1, 2)")
        assert parser.parse("DROP TABLE t") == DropTableQuery(table="T")

    def test_parsing_is_deterministic(self, parser):
        """Test that the same text always yields an equal statement."""
        text = "SELECT a, b FROM t JOIN u ON t.id = u.tid WHERE a > 1 OR b = 'x'"
        assert parser.parse(text) == parser.parse(text)
        assert parser.parse(text) == QueryParser().parse(text)


class TestParseConditions:
    """Tests for the bare condition-chain parser."""

    def test_join_condition(self, parser):
        """Test parsing a qualified equality."""
        conditions = parser.parse_conditions("users.id = orders.userid")
        assert conditions == [Condition(field="USERS.ID", operator="=", value="ORDERS.USERID")]

    def test_qualified_operand_upper_cased(self, parser):
        """Test that a qualified name on the value side is upper-cased like a field."""
        query = parser.parse("SELECT * FROM users WHERE name = users.name")
        assert query.conditions[0].value == "USERS.NAME"

    def test_chain(self, parser):
        """Test parsing a chain with a trailing semicolon."""
        conditions = parser.parse_conditions("a = 1 AND b > 2;")
        assert len(conditions) == 2
        assert conditions[1].relation == "AND"

    def test_blank(self, parser):
        """Test that blank input is an empty chain."""
        assert parser.parse_conditions("  ") == []

    def test_malformed(self, parser):
        """Test that an incomplete condition is rejected."""
        with pytest.raises(QuerySyntaxError):
            parser.parse_conditions("a =")
