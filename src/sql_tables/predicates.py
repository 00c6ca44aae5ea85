"""Evaluation of WHERE condition chains against records."""

from __future__ import annotations

import operator as _op
from typing import TYPE_CHECKING, Callable, Mapping, Sequence

from sql_tables.errors import FieldNotFoundError, UnsupportedOperatorError, ValueTypeError

if TYPE_CHECKING:
    from sql_tables.parsing.query_parser import Condition


Row = Mapping[str, str]

# String comparisons: values are stored as text, so equality is textual
_EQUALITY_OPS: dict[str, Callable[[str, str], bool]] = {
    "=": _op.eq, "==": _op.eq,
    "!=": _op.ne, "<>": _op.ne,
}

# Ordering comparisons parse both sides as numbers first
_NUMERIC_OPS: dict[str, Callable[[float, float], bool]] = {
    "<": _op.lt, ">": _op.gt,
    "<=": _op.le, ">=": _op.ge,
}

EQUALITY_OPERATORS = frozenset(("=", "=="))


def to_number(value: str) -> float:
    """Parse a stored value for a numeric comparison."""
    try:
        return float(value)
    except ValueError:
        raise ValueTypeError(f"Cannot compare non-numeric value: {value!r}") from None


def lookup(row: Row, name: str, table: str | None = None) -> str:
    """Return the value of a field in a row.

    ``name`` may be qualified with ``table`` (the row's own, unqualified
    table), in which case the bare column is used.
    """
    if name in row:
        return row[name]
    if table is not None and "." in name:
        prefix, column = name.split(".", 1)
        if prefix == table and column in row:
            return row[column]
    raise FieldNotFoundError(name)


def compare(left: str, op: str, right: str) -> bool:
    """Apply a comparison operator to two stored values."""
    if op in _EQUALITY_OPS:
        return _EQUALITY_OPS[op](left, right)
    if op in _NUMERIC_OPS:
        return _NUMERIC_OPS[op](to_number(left), to_number(right))
    raise UnsupportedOperatorError(f"Unsupported operator in condition: {op}")


def evaluate_condition(row: Row, condition: Condition, table: str | None = None) -> bool:
    return compare(lookup(row, condition.field, table), condition.operator, condition.value)


def evaluate_conditions(
    row: Row, conditions: Sequence[Condition], table: str | None = None
) -> bool:
    """Evaluate a condition chain strictly left to right.

    AND does not bind tighter than OR: ``A OR B AND C`` is ``(A OR B) AND C``.
    An empty chain matches every row.
    """
    if not conditions:
        return True

    result = evaluate_condition(row, conditions[0], table)
    for condition in conditions[1:]:
        if condition.relation == "AND":
            result = result and evaluate_condition(row, condition, table)
        elif condition.relation == "OR":
            result = result or evaluate_condition(row, condition, table)
        else:
            raise UnsupportedOperatorError(f"Unknown condition relation: {condition.relation}")
    return result
