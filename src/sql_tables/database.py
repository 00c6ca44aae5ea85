"""Statement execution against a set of in-memory tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sql_tables.errors import (
    DuplicateTableError,
    FieldNotFoundError,
    QuerySyntaxError,
    SchemaError,
    TableNotFoundError,
    UnsupportedOperatorError,
)
from sql_tables.parsing.query_parser import (
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
from sql_tables.predicates import EQUALITY_OPERATORS, evaluate_conditions, lookup
from sql_tables.table import Record, Table
from sql_tables.types import Constraint, ConstraintKind, DataType, Field

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """Result of a query execution."""

    columns: list[str]
    rows: list[dict[str, Any]]
    message: str | None = None


@dataclass
class CreateResult(QueryResult):
    """Result of a CREATE TABLE query. Rows list the new table's schema."""

    table: str = ""


@dataclass
class InsertResult(QueryResult):
    """Result of an INSERT query."""

    inserted_count: int = 0


@dataclass
class UpdateResult(QueryResult):
    """Result of an UPDATE query."""

    updated_count: int = 0


@dataclass
class DeleteResult(QueryResult):
    """Result of a DELETE query."""

    deleted_count: int = 0


@dataclass
class DropResult(QueryResult):
    """Result of a DROP TABLE query."""

    table: str = ""


class Database:
    """Executes parsed statements against a collection of tables.

    Args:
        require_matching_fk_names: When True, a FOREIGN_KEY_REFERENCES
            column must have the same name as the column it references.
    """

    def __init__(self, require_matching_fk_names: bool = False) -> None:
        self.tables: dict[str, Table] = {}
        self.require_matching_fk_names = require_matching_fk_names
        self._parser: QueryParser | None = None

    @property
    def parser(self) -> QueryParser:
        if self._parser is None:
            self._parser = QueryParser()
        return self._parser

    def get_table(self, name: str) -> Table:
        table = self.tables.get(name.upper())
        if table is None:
            raise TableNotFoundError(name.upper())
        return table

    def execute_sql(self, text: str) -> QueryResult:
        """Parse and execute a single statement."""
        return self.execute(self.parser.parse(text))

    def execute(self, query: Query) -> QueryResult:
        """Execute a query and return results."""
        if isinstance(query, CreateTableQuery):
            return self._execute_create(query)
        elif isinstance(query, InsertQuery):
            return self._execute_insert(query)
        elif isinstance(query, SelectQuery):
            return self._execute_select(query)
        elif isinstance(query, UpdateQuery):
            return self._execute_update(query)
        elif isinstance(query, DeleteQuery):
            return self._execute_delete(query)
        elif isinstance(query, DropTableQuery):
            return self._execute_drop(query)
        else:
            raise ValueError(f"Unknown query type: {type(query)}")

    # --- CREATE / DROP ---

    def _execute_create(self, query: CreateTableQuery) -> CreateResult:
        if query.table in self.tables:
            raise DuplicateTableError(query.table)

        # Build the whole table before registering it
        table = Table(query.table, self.tables.get)
        for col in query.columns:
            data_type = DataType.from_name(col.type_name, col.length)
            constraints = []
            for name in col.constraints:
                if name == ConstraintKind.FOREIGN_KEY_REFERENCES.value:
                    constraint = Constraint.from_name(name, col.referenced_table, col.referenced_column)
                else:
                    constraint = Constraint.from_name(name)
                constraints.append(constraint)
            table.add_field(
                Field(col.name, data_type, tuple(constraints)),
                require_matching_fk_names=self.require_matching_fk_names,
            )

        self.tables[query.table] = table
        logger.info("Created table %s with %d field(s)", query.table, len(table.fields))
        return CreateResult(
            columns=["field", "type", "constraints"],
            rows=table.describe(),
            message=f"Created table {query.table}",
            table=query.table,
        )

    def _execute_drop(self, query: DropTableQuery) -> DropResult:
        self.get_table(query.table)
        for other in self.tables.values():
            if other.name != query.table and other.references(query.table):
                raise SchemaError(
                    f"Cannot drop table {query.table}: referenced by a foreign key in {other.name}"
                )
        del self.tables[query.table]
        logger.info("Dropped table %s", query.table)
        return DropResult(columns=[], rows=[], message=f"Dropped table {query.table}", table=query.table)

    # --- INSERT / UPDATE / DELETE ---

    def _execute_insert(self, query: InsertQuery) -> InsertResult:
        table = self.get_table(query.table)
        records = [dict(zip(query.fields, values)) for values in query.rows]
        count = table.insert_records(records)
        return InsertResult(
            columns=[],
            rows=[],
            message=f"Inserted {count} record(s) into {query.table}",
            inserted_count=count,
        )

    def _execute_update(self, query: UpdateQuery) -> UpdateResult:
        table = self.get_table(query.table)
        count = table.update_records(query.values, query.conditions)
        return UpdateResult(
            columns=[],
            rows=[],
            message=f"Updated {count} record(s) in {query.table}",
            updated_count=count,
        )

    def _execute_delete(self, query: DeleteQuery) -> DeleteResult:
        table = self.get_table(query.table)
        count = table.delete_records(query.conditions)
        return DeleteResult(
            columns=[],
            rows=[],
            message=f"Deleted {count} record(s) from {query.table}",
            deleted_count=count,
        )

    # --- SELECT ---

    def _execute_select(self, query: SelectQuery) -> QueryResult:
        table = self.get_table(query.table)
        if not query.joins:
            columns = self._resolve_columns(query.fields, list(table.fields), table.name)
            rows = table.select_records(query.fields, query.conditions)
            return QueryResult(columns=columns, rows=rows)

        rows = [dict(record) for record in table.records]
        available = list(table.fields)
        for join in query.joins:
            right = self.get_table(join.table)
            rows = self._inner_join(rows, right, join, table.name)
            available.extend(f"{right.name}.{name}" for name in right.fields)

        columns = self._resolve_columns(query.fields, available, table.name)
        rows = [row for row in rows if evaluate_conditions(row, query.conditions, table.name)]
        if not query.select_all:
            rows = [{name: lookup(row, name, table.name) for name in query.fields} for row in rows]
        return QueryResult(columns=columns, rows=rows)

    def _resolve_columns(self, fields: list[str], available: list[str], table_name: str) -> list[str]:
        """Return the result columns, checking every projected field exists."""
        if fields == ["*"]:
            return list(available)
        for name in fields:
            if name in available:
                continue
            prefix, _, column = name.partition(".")
            if column and prefix == table_name and column in available:
                continue
            raise FieldNotFoundError(name)
        return list(fields)

    def _join_condition(self, join: JoinClause) -> Condition:
        conditions = self.parser.parse_conditions(join.on_text)
        if len(conditions) != 1:
            raise QuerySyntaxError(
                f"JOIN ON clause must contain exactly one condition: {join.on_text!r}"
            )
        condition = conditions[0]
        if condition.operator not in EQUALITY_OPERATORS:
            raise UnsupportedOperatorError(
                f"Unsupported operator in JOIN condition: {condition.operator}"
            )
        return condition

    def _inner_join(
        self, left_rows: list[Record], right: Table, join: JoinClause, primary: str
    ) -> list[Record]:
        """Nested-loop equi-join of the working set with another table.

        The ON operand qualified with the right table's name is read from
        the right row; the other operand is read from the left row, where a
        name qualified with the primary table resolves to the bare column.
        """
        condition = self._join_condition(join)
        field_name = condition.field.upper()
        value_name = condition.value.upper()
        if value_name.startswith(right.name + ".") or not field_name.startswith(right.name + "."):
            left_name, right_name = field_name, value_name
        else:
            left_name, right_name = value_name, field_name

        right_column = right_name.partition(".")[2] or right_name
        if right_name.partition(".")[0] not in (right.name, right_name):
            raise FieldNotFoundError(right_name)
        if right_column not in right.fields:
            raise FieldNotFoundError(right_name)

        joined = []
        for left in left_rows:
            left_value = lookup(left, left_name, primary)
            for record in right.records:
                if record[right_column] != left_value:
                    continue
                row = dict(left)
                row.update({f"{right.name}.{name}": value for name, value in record.items()})
                joined.append(row)

        logger.debug(
            "Joined %d row(s) with %s (%d record(s)) into %d row(s)",
            len(left_rows), right.name, right.count, len(joined),
        )
        return joined
