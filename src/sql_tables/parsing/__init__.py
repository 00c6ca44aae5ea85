"""Parsing module for the SQL dialect."""

from sql_tables.parsing.query_lexer import QueryLexer
from sql_tables.parsing.query_parser import (
    ColumnDef,
    Condition,
    CreateTableQuery,
    DeleteQuery,
    DropTableQuery,
    InsertQuery,
    JoinClause,
    Query,
    QueryParser,
    SelectQuery,
    UpdateQuery,
)

__all__ = [
    "ColumnDef",
    "Condition",
    "CreateTableQuery",
    "DeleteQuery",
    "DropTableQuery",
    "InsertQuery",
    "JoinClause",
    "Query",
    "QueryLexer",
    "QueryParser",
    "SelectQuery",
    "UpdateQuery",
]
