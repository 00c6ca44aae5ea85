"""Parser for the SQL dialect understood by sql_tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, NamedTuple

import ply.yacc as yacc

from sql_tables.errors import QuerySyntaxError, UnsupportedOperatorError, ValueCountMismatchError
from sql_tables.parsing.query_lexer import QueryLexer

logger = logging.getLogger(__name__)

OPERATIONS = ("CREATE", "INSERT", "SELECT", "UPDATE", "DELETE", "DROP")


@dataclass
class Condition:
    """A single comparison in a WHERE or ON clause.

    ``relation`` is the connective (AND/OR) that preceded this condition in
    its chain; it is None for the first condition.
    """

    field: str
    operator: str  # =, ==, !=, <>, <, <=, >, >=
    value: str
    relation: str | None = None


@dataclass
class JoinClause:
    """An INNER JOIN clause. The ON text is parsed when the join runs."""

    table: str
    on_text: str


@dataclass
class ColumnDef:
    """A column definition in CREATE TABLE."""

    name: str
    type_name: str
    length: int | None = None  # VARCHAR(n)
    constraints: list[str] = field(default_factory=list)
    referenced_table: str | None = None
    referenced_column: str | None = None


@dataclass
class CreateTableQuery:
    """A CREATE TABLE query."""

    table: str
    columns: list[ColumnDef] = field(default_factory=list)


@dataclass
class InsertQuery:
    """An INSERT query with one or more positional value rows."""

    table: str
    fields: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)


@dataclass
class SelectQuery:
    """A SELECT query."""

    table: str
    fields: list[str] = field(default_factory=lambda: ["*"])
    joins: list[JoinClause] = field(default_factory=list)
    conditions: list[Condition] = field(default_factory=list)

    @property
    def select_all(self) -> bool:
        return self.fields == ["*"]


@dataclass
class UpdateQuery:
    """An UPDATE query."""

    table: str
    values: dict[str, str] = field(default_factory=dict)
    conditions: list[Condition] = field(default_factory=list)


@dataclass
class DeleteQuery:
    """A DELETE query."""

    table: str
    conditions: list[Condition] = field(default_factory=list)


@dataclass
class DropTableQuery:
    """A DROP TABLE query."""

    table: str


Query = CreateTableQuery | InsertQuery | SelectQuery | UpdateQuery | DeleteQuery | DropTableQuery


class _PendingJoin(NamedTuple):
    table: str
    inner_pos: int  # start of the clause
    on_end: int  # first character after ON


class _Where(NamedTuple):
    conditions: list[Condition]
    pos: int | None


class _RuleError(Exception):
    """Carries an error out of a grammar rule.

    PLY treats a SyntaxError raised inside a rule as a request for error
    recovery, so rules raise this wrapper and parse() unwraps it.
    """

    def __init__(self, error: QuerySyntaxError) -> None:
        super().__init__(str(error))
        self.error = error


class QueryParser:
    """Parser for SQL statements."""

    tokens = QueryLexer.tokens

    def __init__(self) -> None:
        self.lexer = QueryLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self.condition_parser: yacc.LRParser = None  # type: ignore

    def p_statement(self, p: yacc.YaccProduction) -> None:
        """statement : query SEMICOLON
                     | query"""
        p[0] = p[1]

    def p_query(self, p: yacc.YaccProduction) -> None:
        """query : create_table_query
                 | insert_query
                 | select_query
                 | update_query
                 | delete_query
                 | drop_table_query"""
        p[0] = p[1]

    # --- CREATE TABLE ---

    def p_create_table_query(self, p: yacc.YaccProduction) -> None:
        """create_table_query : CREATE TABLE IDENTIFIER LPAREN column_def_list RPAREN"""
        p[0] = CreateTableQuery(table=p[3].upper(), columns=p[5])

    def p_column_def_list_single(self, p: yacc.YaccProduction) -> None:
        """column_def_list : column_def"""
        p[0] = [p[1]]

    def p_column_def_list_multiple(self, p: yacc.YaccProduction) -> None:
        """column_def_list : column_def_list COMMA column_def"""
        p[0] = p[1] + [p[3]]

    def p_column_def(self, p: yacc.YaccProduction) -> None:
        """column_def : IDENTIFIER type_spec constraint_list"""
        type_name, length = p[2]
        col = ColumnDef(name=p[1].upper(), type_name=type_name, length=length)
        for name, reference in p[3]:
            col.constraints.append(name)
            if reference is not None:
                col.referenced_table, col.referenced_column = reference
        p[0] = col

    def p_type_spec(self, p: yacc.YaccProduction) -> None:
        """type_spec : IDENTIFIER"""
        p[0] = (p[1].upper(), None)

    def p_type_spec_length(self, p: yacc.YaccProduction) -> None:
        """type_spec : IDENTIFIER LPAREN NUMBER RPAREN"""
        if not p[3].isdigit():
            raise _RuleError(QuerySyntaxError(f"Invalid length for {p[1].upper()}: {p[3]}", p.lexpos(3)))
        p[0] = (p[1].upper(), int(p[3]))

    def p_constraint_list_empty(self, p: yacc.YaccProduction) -> None:
        """constraint_list : """
        p[0] = []

    def p_constraint_list(self, p: yacc.YaccProduction) -> None:
        """constraint_list : constraint_list constraint"""
        p[0] = p[1] + [p[2]]

    def p_constraint_simple(self, p: yacc.YaccProduction) -> None:
        """constraint : PRIMARY_KEY
                      | NOT_EMPTY"""
        p[0] = (p[1].upper(), None)

    def p_constraint_foreign_key(self, p: yacc.YaccProduction) -> None:
        """constraint : FOREIGN_KEY_REFERENCES IDENTIFIER DOT IDENTIFIER"""
        p[0] = ("FOREIGN_KEY_REFERENCES", (p[2].upper(), p[4].upper()))

    def p_constraint_foreign_key_malformed(self, p: yacc.YaccProduction) -> None:
        """constraint : FOREIGN_KEY_REFERENCES IDENTIFIER"""
        raise _RuleError(QuerySyntaxError(
            f"Invalid FOREIGN_KEY_REFERENCES format '{p[2]}'. Expected another_table.column_name",
            p.lexpos(2),
        ))

    def p_constraint_unknown(self, p: yacc.YaccProduction) -> None:
        """constraint : IDENTIFIER"""
        raise _RuleError(QuerySyntaxError(f"Invalid constraint: {p[1].upper()}", p.lexpos(1)))

    # --- INSERT ---

    def p_insert_query(self, p: yacc.YaccProduction) -> None:
        """insert_query : INSERT INTO IDENTIFIER LPAREN identifier_list RPAREN VALUES value_tuple_list"""
        fields = p[5]
        seen: set[str] = set()
        for name in fields:
            if name in seen:
                raise _RuleError(QuerySyntaxError(f"Duplicate field in INSERT statement: {name}"))
            seen.add(name)
        for row in p[8]:
            if len(row) != len(fields):
                raise _RuleError(ValueCountMismatchError(
                    f"Mismatched number of values in INSERT statement: "
                    f"expected {len(fields)}, got {len(row)}"
                ))
        p[0] = InsertQuery(table=p[3].upper(), fields=fields, rows=p[8])

    def p_identifier_list_single(self, p: yacc.YaccProduction) -> None:
        """identifier_list : IDENTIFIER"""
        p[0] = [p[1].upper()]

    def p_identifier_list_multiple(self, p: yacc.YaccProduction) -> None:
        """identifier_list : identifier_list COMMA IDENTIFIER"""
        p[0] = p[1] + [p[3].upper()]

    def p_value_tuple_list_single(self, p: yacc.YaccProduction) -> None:
        """value_tuple_list : value_tuple"""
        p[0] = [p[1]]

    def p_value_tuple_list_multiple(self, p: yacc.YaccProduction) -> None:
        """value_tuple_list : value_tuple_list COMMA value_tuple
                            | value_tuple_list value_tuple"""
        p[0] = p[1] + [p[len(p) - 1]]

    def p_value_tuple(self, p: yacc.YaccProduction) -> None:
        """value_tuple : LPAREN value_list RPAREN"""
        p[0] = p[2]

    def p_value_list_single(self, p: yacc.YaccProduction) -> None:
        """value_list : value"""
        p[0] = [p[1]]

    def p_value_list_multiple(self, p: yacc.YaccProduction) -> None:
        """value_list : value_list COMMA value"""
        p[0] = p[1] + [p[3]]

    def p_value(self, p: yacc.YaccProduction) -> None:
        """value : STRING
                 | NUMBER
                 | IDENTIFIER"""
        p[0] = p[1]

    # --- SELECT ---

    def p_select_query(self, p: yacc.YaccProduction) -> None:
        """select_query : SELECT select_list FROM IDENTIFIER join_list where_clause"""
        data = p.lexer.lexdata
        pending: list[_PendingJoin] = p[5]
        where: _Where = p[6]

        # Each ON clause runs up to the next JOIN, the WHERE, or the end
        joins = []
        for i, join in enumerate(pending):
            if i + 1 < len(pending):
                end = pending[i + 1].inner_pos
            elif where.pos is not None:
                end = where.pos
            else:
                end = len(data)
            on_text = data[join.on_end:end].strip().rstrip(";").rstrip()
            joins.append(JoinClause(table=join.table, on_text=on_text))

        p[0] = SelectQuery(
            table=p[4].upper(),
            fields=p[2],
            joins=joins,
            conditions=where.conditions,
        )

    def p_select_list_star(self, p: yacc.YaccProduction) -> None:
        """select_list : STAR"""
        p[0] = ["*"]

    def p_select_list_fields(self, p: yacc.YaccProduction) -> None:
        """select_list : field_list"""
        p[0] = p[1]

    def p_field_list_single(self, p: yacc.YaccProduction) -> None:
        """field_list : field_name"""
        p[0] = [p[1]]

    def p_field_list_multiple(self, p: yacc.YaccProduction) -> None:
        """field_list : field_list COMMA field_name"""
        p[0] = p[1] + [p[3]]

    def p_field_name(self, p: yacc.YaccProduction) -> None:
        """field_name : IDENTIFIER"""
        p[0] = p[1].upper()

    def p_field_name_qualified(self, p: yacc.YaccProduction) -> None:
        """field_name : IDENTIFIER DOT IDENTIFIER"""
        p[0] = f"{p[1].upper()}.{p[3].upper()}"

    def p_join_list_empty(self, p: yacc.YaccProduction) -> None:
        """join_list : """
        p[0] = []

    def p_join_list(self, p: yacc.YaccProduction) -> None:
        """join_list : join_list join_clause"""
        p[0] = p[1] + [p[2]]

    def p_join_clause_inner(self, p: yacc.YaccProduction) -> None:
        """join_clause : INNER JOIN IDENTIFIER ON condition_chain"""
        p[0] = _PendingJoin(table=p[3].upper(), inner_pos=p.lexpos(1), on_end=p.lexpos(4) + len(p[4]))

    def p_join_clause_bare(self, p: yacc.YaccProduction) -> None:
        """join_clause : JOIN IDENTIFIER ON condition_chain"""
        p[0] = _PendingJoin(table=p[2].upper(), inner_pos=p.lexpos(1), on_end=p.lexpos(3) + len(p[3]))

    # --- UPDATE / DELETE / DROP ---

    def p_update_query(self, p: yacc.YaccProduction) -> None:
        """update_query : UPDATE IDENTIFIER SET assignment_list where_clause"""
        p[0] = UpdateQuery(table=p[2].upper(), values=dict(p[4]), conditions=p[5].conditions)

    def p_assignment_list_single(self, p: yacc.YaccProduction) -> None:
        """assignment_list : assignment"""
        p[0] = [p[1]]

    def p_assignment_list_multiple(self, p: yacc.YaccProduction) -> None:
        """assignment_list : assignment_list COMMA assignment"""
        p[0] = p[1] + [p[3]]

    def p_assignment(self, p: yacc.YaccProduction) -> None:
        """assignment : IDENTIFIER EQ value"""
        p[0] = (p[1].upper(), p[3])

    def p_delete_query(self, p: yacc.YaccProduction) -> None:
        """delete_query : DELETE FROM IDENTIFIER where_clause"""
        p[0] = DeleteQuery(table=p[3].upper(), conditions=p[4].conditions)

    def p_drop_table_query(self, p: yacc.YaccProduction) -> None:
        """drop_table_query : DROP TABLE IDENTIFIER"""
        p[0] = DropTableQuery(table=p[3].upper())

    # --- Conditions ---

    def p_where_clause_empty(self, p: yacc.YaccProduction) -> None:
        """where_clause : """
        p[0] = _Where(conditions=[], pos=None)

    def p_where_clause(self, p: yacc.YaccProduction) -> None:
        """where_clause : WHERE condition_chain"""
        p[0] = _Where(conditions=p[2], pos=p.lexpos(1))

    def p_condition_input(self, p: yacc.YaccProduction) -> None:
        """condition_input : condition_chain
                           | condition_chain SEMICOLON"""
        p[0] = p[1]

    def p_condition_chain_single(self, p: yacc.YaccProduction) -> None:
        """condition_chain : condition"""
        p[0] = [p[1]]

    def p_condition_chain_relation(self, p: yacc.YaccProduction) -> None:
        """condition_chain : condition_chain AND condition
                           | condition_chain OR condition"""
        cond = p[3]
        cond.relation = p[2].upper()
        p[0] = p[1] + [cond]

    def p_condition_comparison(self, p: yacc.YaccProduction) -> None:
        """condition : field_name comparison operand"""
        p[0] = Condition(field=p[1], operator=p[2], value=p[3])

    def p_condition_like(self, p: yacc.YaccProduction) -> None:
        """condition : field_name LIKE value"""
        raise UnsupportedOperatorError(f"Unsupported operator in condition: LIKE ({p[1]} LIKE {p[3]!r})")

    def p_condition_in(self, p: yacc.YaccProduction) -> None:
        """condition : field_name IN LPAREN value_list RPAREN"""
        raise UnsupportedOperatorError(f"Unsupported operator in condition: IN ({p[1]} IN ...)")

    def p_comparison(self, p: yacc.YaccProduction) -> None:
        """comparison : EQ
                      | EQEQ
                      | NEQ
                      | LTGT
                      | LT
                      | LTE
                      | GT
                      | GTE"""
        p[0] = p[1]

    def p_operand_value(self, p: yacc.YaccProduction) -> None:
        """operand : value"""
        p[0] = p[1]

    def p_operand_qualified(self, p: yacc.YaccProduction) -> None:
        """operand : IDENTIFIER DOT IDENTIFIER"""
        p[0] = f"{p[1].upper()}.{p[3].upper()}"

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise QuerySyntaxError(f"Syntax error at '{p.value}'", p.lexpos)
        else:
            raise QuerySyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the statement parser and the condition-chain parser."""
        kwargs.setdefault("errorlog", yacc.NullLogger())
        self.parser = yacc.yacc(module=self, start="statement", **kwargs)
        self.condition_parser = yacc.yacc(module=self, start="condition_input", **kwargs)

    def _ensure_built(self) -> None:
        if self.parser is None:
            self.build(debug=False, write_tables=False)

    def parse(self, data: str) -> Query:
        """Parse a single SQL statement.

        Raises:
            QuerySyntaxError: If the text is not a valid statement.
            UnsupportedOperatorError: If a condition uses LIKE or IN.
        """
        self._ensure_built()

        tokens = self.lexer.tokenize(data)
        if not tokens:
            raise QuerySyntaxError("No operation specified in the SQL query")
        first = tokens[0]
        if first.type not in OPERATIONS:
            raise QuerySyntaxError(f"Unsupported SQL operation: {first.value}", first.lexpos)

        try:
            query = self.parser.parse(data, lexer=self.lexer.lexer)
        except _RuleError as e:
            raise e.error from None
        logger.debug("Parsed %s for table %s", type(query).__name__, query.table)
        return query

    def parse_conditions(self, data: str) -> list[Condition]:
        """Parse a bare condition chain such as ``A.X = B.Y AND Z > 3``."""
        self._ensure_built()
        if not data.strip():
            return []
        try:
            return self.condition_parser.parse(data, lexer=self.lexer.lexer)
        except _RuleError as e:
            raise e.error from None
