"""Exception types raised by the parser and the execution engine."""

from __future__ import annotations


class DatabaseError(Exception):
    """Base class for every error raised while parsing or executing a statement.

    Callers (the REPL, the batch runner) catch this to report a failed
    statement without swallowing unrelated exceptions.
    """


class QuerySyntaxError(DatabaseError, SyntaxError):
    """Malformed query text: missing keyword, malformed clause, bad literal."""

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        if position is not None:
            message = f"{message} (position {position})"
        super().__init__(message)

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ValueCountMismatchError(QuerySyntaxError):
    """An INSERT value tuple does not match the arity of its field list."""


class SchemaError(DatabaseError):
    """Invalid table definition, or a schema change that would break a reference."""


class TableNotFoundError(DatabaseError):
    """The statement names a table that does not exist."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Table not found: {table}")


class DuplicateTableError(DatabaseError):
    """CREATE TABLE with a name that is already in use."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Table already exists: {table}")


class FieldNotFoundError(DatabaseError):
    """A projected, assigned or compared field does not exist."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Field not found: {field}")


class MissingFieldError(DatabaseError):
    """An inserted record lacks a value for a declared field."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Missing value for field: {field}")


class ValueTypeError(DatabaseError, TypeError):
    """A value fails its column's data type or NOT_EMPTY check."""


class ConstraintViolationError(DatabaseError):
    """Primary key uniqueness or foreign key existence was violated."""


class NoMatchError(DatabaseError):
    """UPDATE matched no records."""


class UnsupportedOperatorError(DatabaseError):
    """An operator is recognised but cannot be evaluated in this position."""
