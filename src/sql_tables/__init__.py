"""SQL Tables - An in-memory relational engine with a small SQL dialect."""

from sql_tables.database import (
    CreateResult,
    Database,
    DeleteResult,
    DropResult,
    InsertResult,
    QueryResult,
    UpdateResult,
)
from sql_tables.errors import (
    ConstraintViolationError,
    DatabaseError,
    DuplicateTableError,
    FieldNotFoundError,
    MissingFieldError,
    NoMatchError,
    QuerySyntaxError,
    SchemaError,
    TableNotFoundError,
    UnsupportedOperatorError,
    ValueCountMismatchError,
    ValueTypeError,
)
from sql_tables.parsing import QueryParser
from sql_tables.table import Table
from sql_tables.types import Constraint, ConstraintKind, DataKind, DataType, Field

__all__ = [
    # Main API
    "Database",
    "QueryParser",
    "Table",
    # Results
    "QueryResult",
    "CreateResult",
    "InsertResult",
    "UpdateResult",
    "DeleteResult",
    "DropResult",
    # Schema
    "DataKind",
    "DataType",
    "ConstraintKind",
    "Constraint",
    "Field",
    # Errors
    "DatabaseError",
    "QuerySyntaxError",
    "ValueCountMismatchError",
    "SchemaError",
    "TableNotFoundError",
    "DuplicateTableError",
    "FieldNotFoundError",
    "MissingFieldError",
    "ValueTypeError",
    "ConstraintViolationError",
    "NoMatchError",
    "UnsupportedOperatorError",
]

__version__ = "0.1.0"
