"""Column data types, constraints and field definitions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from sql_tables.errors import SchemaError, ValueTypeError


class DataKind(Enum):
    """Built-in column types supported by the engine."""

    VARCHAR = "VARCHAR"
    INT = "INT"
    LONGINT = "LONGINT"
    DOUBLE = "DOUBLE"
    DATETIME = "DATETIME"

    @property
    def bits(self) -> int | None:
        """Return the signed integer width, or None for non-integer kinds."""
        widths = {
            DataKind.INT: 32,
            DataKind.LONGINT: 64,
        }
        return widths.get(self)


# Mapping from type name strings to DataKind enum values
DATA_KIND_NAMES: dict[str, DataKind] = {kind.value: kind for kind in DataKind}

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_INTEGER_PATTERN = re.compile(r"[+-]?\d+")
_DOUBLE_PATTERN = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)
_DATETIME_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}")


@dataclass(frozen=True)
class DataType:
    """A column type. Values are always stored as text and checked against it."""

    kind: DataKind
    max_length: int | None = None

    @classmethod
    def from_name(cls, type_name: str, length: int | None = None) -> DataType:
        """Resolve a type name (and optional VARCHAR length) to a DataType.

        Raises:
            SchemaError: If the name is unknown or the length is missing/misplaced.
        """
        kind = DATA_KIND_NAMES.get(type_name.upper())
        if kind is None:
            raise SchemaError(f"Unsupported data type: {type_name}")
        if kind is DataKind.VARCHAR:
            if length is None:
                raise SchemaError("VARCHAR requires a length, e.g. VARCHAR(20)")
            return cls(kind, length)
        if length is not None:
            raise SchemaError(f"Type {kind.value} does not take a length")
        return cls(kind)

    @property
    def name(self) -> str:
        if self.kind is DataKind.VARCHAR:
            return f"VARCHAR({self.max_length})"
        return self.kind.value

    def validate(self, value: str) -> None:
        """Raise ValueTypeError if value is not a valid encoding for this type."""
        kind = self.kind
        if kind is DataKind.VARCHAR:
            assert self.max_length is not None
            if len(value) > self.max_length:
                raise ValueTypeError(
                    f"Value exceeds maximum length {self.max_length} for VARCHAR: {value!r}"
                )
        elif kind is DataKind.INT or kind is DataKind.LONGINT:
            self._validate_integer(value)
        elif kind is DataKind.DOUBLE:
            if not _DOUBLE_PATTERN.fullmatch(value):
                raise ValueTypeError(f"Invalid value for DOUBLE: {value!r}")
        elif kind is DataKind.DATETIME:
            if not _DATETIME_PATTERN.fullmatch(value):
                raise ValueTypeError(
                    f"Invalid value for DATETIME (expected YYYY-MM-DD HH:MM:SS): {value!r}"
                )
            try:
                datetime.strptime(value, DATETIME_FORMAT)
            except ValueError:
                raise ValueTypeError(f"Invalid date or time for DATETIME: {value!r}") from None
        else:
            raise AssertionError(f"Unhandled data kind: {kind}")

    def _validate_integer(self, value: str) -> None:
        if not _INTEGER_PATTERN.fullmatch(value):
            raise ValueTypeError(f"Invalid value for {self.kind.value}: {value!r}")
        bits = self.kind.bits
        assert bits is not None
        number = int(value)
        if not -(1 << (bits - 1)) <= number < (1 << (bits - 1)):
            raise ValueTypeError(f"Value {value} out of range for {self.kind.value}")


class ConstraintKind(Enum):
    """Column constraints recognised by CREATE TABLE."""

    NOT_EMPTY = "NOT_EMPTY"
    PRIMARY_KEY = "PRIMARY_KEY"
    FOREIGN_KEY_REFERENCES = "FOREIGN_KEY_REFERENCES"


CONSTRAINT_NAMES: dict[str, ConstraintKind] = {kind.value: kind for kind in ConstraintKind}


@dataclass(frozen=True)
class Constraint:
    """A column constraint.

    Only NOT_EMPTY can be checked against a lone value. PRIMARY_KEY and
    FOREIGN_KEY_REFERENCES need other records or other tables, so the
    owning Table enforces them.
    """

    kind: ConstraintKind
    referenced_table: str | None = None
    referenced_column: str | None = None

    @classmethod
    def from_name(
        cls,
        name: str,
        referenced_table: str | None = None,
        referenced_column: str | None = None,
    ) -> Constraint:
        kind = CONSTRAINT_NAMES.get(name.upper())
        if kind is None:
            raise SchemaError(f"Unsupported constraint: {name}")
        if kind is ConstraintKind.FOREIGN_KEY_REFERENCES:
            if not referenced_table or not referenced_column:
                raise SchemaError("FOREIGN_KEY_REFERENCES requires a table.column target")
            return cls(kind, referenced_table, referenced_column)
        return cls(kind)

    @property
    def name(self) -> str:
        return self.kind.value

    def check(self, value: str) -> None:
        if self.kind is ConstraintKind.NOT_EMPTY and value == "":
            raise ValueTypeError("Value cannot be empty (NOT_EMPTY)")

    def __str__(self) -> str:
        if self.kind is ConstraintKind.FOREIGN_KEY_REFERENCES:
            return f"{self.name} {self.referenced_table}.{self.referenced_column}"
        return self.name


@dataclass(frozen=True)
class Field:
    """A named, typed, constrained column of a table."""

    name: str
    data_type: DataType
    constraints: tuple[Constraint, ...] = field(default_factory=tuple)

    def validate(self, value: str) -> None:
        """Check a candidate value against the type and each local constraint."""
        self.data_type.validate(value)
        for constraint in self.constraints:
            constraint.check(value)

    @property
    def is_primary_key(self) -> bool:
        return any(c.kind is ConstraintKind.PRIMARY_KEY for c in self.constraints)

    @property
    def foreign_key(self) -> Constraint | None:
        """Return the FOREIGN_KEY_REFERENCES constraint, if the field has one."""
        for constraint in self.constraints:
            if constraint.kind is ConstraintKind.FOREIGN_KEY_REFERENCES:
                return constraint
        return None

    def describe(self) -> str:
        """Return a one-line summary like 'ID: INT PRIMARY_KEY'."""
        parts = [self.data_type.name] + [str(c) for c in self.constraints]
        return f"{self.name}: {' '.join(parts)}"
