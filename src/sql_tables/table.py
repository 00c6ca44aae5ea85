"""In-memory table storage with constraint enforcement."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Mapping, Sequence

from sql_tables.errors import (
    ConstraintViolationError,
    FieldNotFoundError,
    MissingFieldError,
    NoMatchError,
    SchemaError,
    TableNotFoundError,
)
from sql_tables.predicates import evaluate_conditions, lookup
from sql_tables.types import Constraint, Field

if TYPE_CHECKING:
    from sql_tables.parsing.query_parser import Condition

logger = logging.getLogger(__name__)

Record = dict[str, str]

# Resolves a table name to the Table registered under it, or None
TableResolver = Callable[[str], "Table | None"]


class Table:
    """Records of a single table plus the indexes needed to keep them valid.

    Every value is stored as text. Each primary-key column has a set of the
    values currently in use; it is kept in step with ``records`` by insert,
    update and delete.
    """

    def __init__(self, name: str, resolve_table: TableResolver | None = None) -> None:
        self.name = name
        self.fields: dict[str, Field] = {}
        self.records: list[Record] = []
        self.unique_values: dict[str, set[str]] = {}
        self._resolve_table = resolve_table

    @property
    def count(self) -> int:
        """Return the number of records in the table."""
        return len(self.records)

    @property
    def primary_keys(self) -> list[str]:
        return list(self.unique_values)

    def add_field(self, field: Field, require_matching_fk_names: bool = False) -> None:
        """Add a column definition.

        A foreign key is checked now: the referenced table must exist and
        the referenced column must be one of its primary keys.

        Raises:
            SchemaError: On a duplicate column or an invalid foreign key.
        """
        if field.name in self.fields:
            raise SchemaError(f"Field already exists: {field.name}")

        fk = field.foreign_key
        if fk is not None:
            self._check_reference(field, fk, require_matching_fk_names)

        self.fields[field.name] = field
        if field.is_primary_key:
            self.unique_values[field.name] = set()

    def _check_reference(self, field: Field, fk: Constraint, require_matching_name: bool) -> None:
        assert fk.referenced_table is not None and fk.referenced_column is not None
        target = self._resolve(fk.referenced_table)
        if target is None:
            raise SchemaError(f"Referenced table not found: {fk.referenced_table}")
        if require_matching_name and fk.referenced_column != field.name:
            raise SchemaError(
                f"Referenced column does not match field name: {fk.referenced_column}"
            )
        ref_field = target.fields.get(fk.referenced_column)
        if ref_field is None:
            raise SchemaError(
                f"Referenced column not found: {fk.referenced_table}.{fk.referenced_column}"
            )
        if not ref_field.is_primary_key:
            raise SchemaError(
                f"Referenced column is not a primary key: {fk.referenced_table}.{fk.referenced_column}"
            )

    def _resolve(self, table_name: str) -> Table | None:
        if self._resolve_table is None:
            return None
        return self._resolve_table(table_name)

    def references(self, table_name: str) -> bool:
        """Return True if any foreign key of this table points at table_name."""
        return any(
            f.foreign_key is not None and f.foreign_key.referenced_table == table_name
            for f in self.fields.values()
        )

    # --- Lookups ---

    def has_value(self, column: str, value: str) -> bool:
        """Return True if some record holds value in column."""
        if column in self.unique_values:
            return value in self.unique_values[column]
        return any(record.get(column) == value for record in self.records)

    def check_foreign_key(self, fk: Constraint, value: str) -> bool:
        """Return True if value exists in the column fk references."""
        assert fk.referenced_table is not None and fk.referenced_column is not None
        target = self._resolve(fk.referenced_table)
        if target is None:
            raise TableNotFoundError(fk.referenced_table)
        return target.has_value(fk.referenced_column, value)

    def _require_field(self, name: str) -> Field:
        field = self.fields.get(name)
        if field is None:
            raise FieldNotFoundError(name)
        return field

    # --- Insert ---

    def insert_record(self, record: Mapping[str, str]) -> None:
        """Validate and append a single record."""
        self.insert_records([record])

    def insert_records(self, records: Sequence[Mapping[str, str]]) -> int:
        """Validate every record, then append them all.

        Nothing is appended unless every record passes, so a failing
        multi-row INSERT leaves the table untouched.

        Returns:
            The number of records inserted.
        """
        staged: list[Record] = []
        claimed: dict[str, set[str]] = {column: set() for column in self.unique_values}
        for record in records:
            staged.append(self._validate_new_record(record, claimed))

        for record in staged:
            self.records.append(record)
            for column, values in self.unique_values.items():
                values.add(record[column])
        logger.debug("Inserted %d record(s) into %s", len(staged), self.name)
        return len(staged)

    def _validate_new_record(
        self, record: Mapping[str, str], claimed: dict[str, set[str]]
    ) -> Record:
        for name in record:
            self._require_field(name)

        # Every declared field must be present, in declaration order
        row: Record = {}
        for name in self.fields:
            if name not in record:
                raise MissingFieldError(name)
            row[name] = record[name]

        for name, field in self.fields.items():
            field.validate(row[name])

        for column, values in self.unique_values.items():
            value = row[column]
            if value in values or value in claimed[column]:
                raise ConstraintViolationError(
                    f"Primary key constraint violated for field: {column} (duplicate value {value!r})"
                )

        self._check_foreign_keys(row, self.fields)

        for column in self.unique_values:
            claimed[column].add(row[column])
        return row

    def _check_foreign_keys(self, row: Mapping[str, str], names: Iterable[str]) -> None:
        for name in names:
            fk = self.fields[name].foreign_key
            if fk is not None and not self.check_foreign_key(fk, row[name]):
                raise ConstraintViolationError(
                    f"Foreign key constraint violated for field: {name} "
                    f"({row[name]!r} not found in {fk.referenced_table}.{fk.referenced_column})"
                )

    # --- Select ---

    def matching(self, conditions: Sequence[Condition]) -> list[int]:
        """Return the positions of records satisfying the condition chain."""
        return [
            i for i, record in enumerate(self.records)
            if evaluate_conditions(record, conditions, self.name)
        ]

    def select_records(
        self, fields: Sequence[str], conditions: Sequence[Condition]
    ) -> list[Record]:
        """Filter records by the condition chain and project them.

        ``fields == ["*"]`` selects every column.
        """
        select_all = list(fields) == ["*"]
        result = []
        for i in self.matching(conditions):
            record = self.records[i]
            if select_all:
                result.append(dict(record))
            else:
                result.append({name: lookup(record, name, self.name) for name in fields})
        return result

    # --- Update ---

    def update_records(
        self, values: Mapping[str, str], conditions: Sequence[Condition]
    ) -> int:
        """Apply assignments to every record matching the condition chain.

        All matching records are validated before any is changed.

        Raises:
            NoMatchError: If no record matches.

        Returns:
            The number of records updated.
        """
        for name in values:
            self._require_field(name)

        positions = self.matching(conditions)
        if not positions:
            raise NoMatchError(f"No records matched the update conditions in table {self.name}")

        # Old and new primary key values of the records being changed
        released = {column: set() for column in self.unique_values}
        claimed = {column: set() for column in self.unique_values}
        staged: list[tuple[int, Record]] = []

        for i in positions:
            original = self.records[i]
            updated = dict(original)
            changed = []
            for name, value in values.items():
                self.fields[name].validate(value)
                updated[name] = value
                if value != original[name]:
                    changed.append(name)

            for name in changed:
                if name in self.unique_values:
                    value = updated[name]
                    if value in claimed[name]:
                        raise ConstraintViolationError(
                            f"Primary key constraint violated for field: {name} (duplicate value {value!r})"
                        )
                    claimed[name].add(value)
                    released[name].add(original[name])
            self._check_foreign_keys(updated, changed)
            staged.append((i, updated))

        for column in self.unique_values:
            # Values kept by records outside this update still block a change
            still_used = self.unique_values[column] - released[column]
            clash = claimed[column] & still_used
            if clash:
                raise ConstraintViolationError(
                    f"Primary key constraint violated for field: {column} "
                    f"(duplicate value {sorted(clash)[0]!r})"
                )

        for i, updated in staged:
            original = self.records[i]
            for column, index in self.unique_values.items():
                if updated[column] != original[column]:
                    index.discard(original[column])
            self.records[i] = updated
        for column, index in self.unique_values.items():
            index.update(claimed[column])

        logger.debug("Updated %d record(s) in %s", len(staged), self.name)
        return len(staged)

    # --- Delete ---

    def delete_records(self, conditions: Sequence[Condition]) -> int:
        """Remove every record matching the condition chain.

        Returns:
            The number of records deleted.
        """
        doomed = set(self.matching(conditions))
        kept = []
        for i, record in enumerate(self.records):
            if i in doomed:
                for column, index in self.unique_values.items():
                    index.discard(record[column])
            else:
                kept.append(record)
        self.records = kept
        logger.debug("Deleted %d record(s) from %s", len(doomed), self.name)
        return len(doomed)

    def describe(self) -> list[dict[str, str]]:
        """Return one row per field: name, type and constraints."""
        return [
            {
                "field": f.name,
                "type": f.data_type.name,
                "constraints": ", ".join(str(c) for c in f.constraints),
            }
            for f in self.fields.values()
        ]
