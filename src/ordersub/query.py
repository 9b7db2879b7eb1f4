"""Typed record queries.

A Query is a conjunction of (field, operator, value) conditions plus an
optional sort and limit. Stores either evaluate it in memory (``matches``)
or render it to a PocketBase filter expression (``to_filter``), so no caller
ever builds filter strings by hand.
"""

import math
from dataclasses import dataclass, replace
from typing import Any

from .utils import parse_bool

OPERATORS = ("=", "!=", ">", ">=", "<", "<=", "~")


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")
        if not self.field.replace("_", "").isalnum():
            raise ValueError(f"Invalid field name: {self.field}")

    def matches(self, record: dict[str, Any]) -> bool:
        actual = _coerce(record.get(self.field), self.value)
        expected = self.value
        if self.op == "=":
            return actual == expected
        if self.op == "!=":
            return actual != expected
        if self.op == "~":
            return actual is not None and str(expected) in str(actual)
        if actual is None or expected is None:
            return False
        try:
            if self.op == ">":
                return actual > expected
            if self.op == ">=":
                return actual >= expected
            if self.op == "<":
                return actual < expected
            return actual <= expected
        except TypeError:
            return False

    def to_filter(self) -> str:
        return f"{self.field}{self.op}{_literal(self.value)}"


@dataclass(frozen=True)
class Query:
    """Immutable query; builder methods return a new instance."""

    conditions: tuple[Condition, ...] = ()
    sort: tuple[str, ...] = ()
    limit: int | None = None

    def where(self, field: str, op: str, value: Any) -> "Query":
        return replace(self, conditions=self.conditions + (Condition(field, op, value),))

    def eq(self, field: str, value: Any) -> "Query":
        return self.where(field, "=", value)

    def order_by(self, *fields: str) -> "Query":
        """Sort by fields; prefix a field with '-' for descending order."""
        return replace(self, sort=tuple(fields))

    def take(self, limit: int) -> "Query":
        return replace(self, limit=limit)

    def matches(self, record: dict[str, Any]) -> bool:
        return all(c.matches(record) for c in self.conditions)

    def to_filter(self) -> str:
        if not self.conditions:
            return ""
        return "(" + " && ".join(c.to_filter() for c in self.conditions) + ")"

    def to_sort(self) -> str:
        return ",".join(self.sort)

    def apply(self, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Filter, sort and limit an in-memory list of records."""
        result = [r for r in records if self.matches(r)]
        # Stable sorts applied from the least significant key.
        for key in reversed(self.sort):
            descending = key.startswith("-")
            name = key.lstrip("-+")
            result.sort(key=lambda r: _sort_key(r.get(name)), reverse=descending)
        if self.limit is not None:
            result = result[: self.limit]
        return result


def _coerce(actual: Any, expected: Any) -> Any:
    """Align a stored value with the type of the value it's compared against."""
    if actual is None or expected is None:
        return actual
    if isinstance(expected, bool):
        return parse_bool(actual)
    if isinstance(expected, str) and not isinstance(actual, str):
        return str(actual)
    if isinstance(expected, (int, float)) and isinstance(actual, str):
        try:
            return float(actual)
        except ValueError:
            return actual
    return actual


def _sort_key(value: Any) -> tuple[int, Any]:
    """Numbers, including numeric strings, sort before other text."""
    if value is None or value == "":
        return (0, "")
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return (2, str(value))
    if not math.isfinite(number):
        return (2, str(value))
    return (1, number)


def _literal(value: Any) -> str:
    """Render a value as a PocketBase filter literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
