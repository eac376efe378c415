"""Criteria expression tree and its translation to parameterized SQL.

Criteria are never evaluated in-process: ``render_criteria`` turns a tree into a
SQL fragment plus an ordered parameter list, or raises ``InvalidCriteriaError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Tuple, Union

from relational.errors import InvalidCriteriaError, UnsupportedValueError
from relational.row import check_value


COMPARISON_OPS = {"=", "!=", "<", "<=", ">", ">=", "like", "not like", "in", "not in", "between"}

ColumnResolver = Callable[[str], str]


class Criteria:
    def __and__(self, other: "Criteria") -> "And":
        return And(self, other)

    def __or__(self, other: "Criteria") -> "Or":
        return Or(self, other)

    def __invert__(self) -> "Not":
        return Not(self)


@dataclass(frozen=True)
class Comparison(Criteria):
    column: str
    op: str
    value: Any = None


@dataclass(frozen=True)
class And(Criteria):
    left: Criteria
    right: Criteria


@dataclass(frozen=True)
class Or(Criteria):
    left: Criteria
    right: Criteria


@dataclass(frozen=True)
class Not(Criteria):
    operand: Criteria


class AllRows:
    """Marker that an update or delete is meant to touch every row."""

    _instance = None

    def __new__(cls) -> "AllRows":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ALL_ROWS"


ALL_ROWS = AllRows()

CriteriaArg = Union[Criteria, AllRows, None]


def eq(column: str, value: Any) -> Comparison:
    return Comparison(column, "=", value)


def ne(column: str, value: Any) -> Comparison:
    return Comparison(column, "!=", value)


def lt(column: str, value: Any) -> Comparison:
    return Comparison(column, "<", value)


def le(column: str, value: Any) -> Comparison:
    return Comparison(column, "<=", value)


def gt(column: str, value: Any) -> Comparison:
    return Comparison(column, ">", value)


def ge(column: str, value: Any) -> Comparison:
    return Comparison(column, ">=", value)


def like(column: str, pattern: str) -> Comparison:
    return Comparison(column, "like", pattern)


def in_(column: str, values: Any) -> Comparison:
    return Comparison(column, "in", tuple(values))


def between(column: str, low: Any, high: Any) -> Comparison:
    return Comparison(column, "between", (low, high))


def match(values: Mapping[str, Any]) -> Criteria:
    """AND together one equality per mapping entry."""
    items = list(values.items())
    if not items:
        raise InvalidCriteriaError("Cannot build criteria from an empty mapping")
    result: Criteria = eq(*items[0])
    for column, value in items[1:]:
        result = And(result, eq(column, value))
    return result


def criteria_values(criteria: Criteria) -> List[Any]:
    """Literal values of a tree in the order ``render_criteria`` binds them."""
    if isinstance(criteria, Comparison):
        if criteria.op in {"in", "not in", "between"}:
            return list(criteria.value)
        if criteria.value is None:
            return []
        return [criteria.value]
    if isinstance(criteria, (And, Or)):
        return criteria_values(criteria.left) + criteria_values(criteria.right)
    if isinstance(criteria, Not):
        return criteria_values(criteria.operand)
    raise InvalidCriteriaError(f"Unsupported criteria node: {type(criteria).__name__}")


def _bind(value: Any, column: str) -> Any:
    try:
        return check_value(value, column)
    except UnsupportedValueError as exc:
        raise InvalidCriteriaError(str(exc)) from exc


def _render_comparison(node: Comparison, resolve_column: ColumnResolver, placeholder: str) -> Tuple[str, List[Any]]:
    op = node.op.lower()
    if op not in COMPARISON_OPS:
        raise InvalidCriteriaError(f"Unsupported comparison operator: {node.op}")
    column_sql = resolve_column(node.column)

    if op in {"in", "not in"}:
        if isinstance(node.value, (str, bytes)) or not hasattr(node.value, "__iter__"):
            raise InvalidCriteriaError(f"'{op}' expects a collection of values for {node.column!r}")
        values = [_bind(v, node.column) for v in node.value]
        if not values:
            return ("1 = 0" if op == "in" else "1 = 1"), []
        marks = ", ".join(placeholder for _ in values)
        return f"{column_sql} {op.upper()} ({marks})", values

    if op == "between":
        try:
            low, high = node.value
        except (TypeError, ValueError) as exc:
            raise InvalidCriteriaError(f"'between' expects a (low, high) pair for {node.column!r}") from exc
        return (
            f"{column_sql} BETWEEN {placeholder} AND {placeholder}",
            [_bind(low, node.column), _bind(high, node.column)],
        )

    if node.value is None:
        if op == "=":
            return f"{column_sql} IS NULL", []
        if op == "!=":
            return f"{column_sql} IS NOT NULL", []
        raise InvalidCriteriaError(f"Cannot compare {node.column!r} to NULL with '{op}'")

    if op in {"like", "not like"} and not isinstance(node.value, str):
        raise InvalidCriteriaError(f"'{op}' expects a string pattern for {node.column!r}")

    sql_op = "<>" if op == "!=" else op.upper()
    return f"{column_sql} {sql_op} {placeholder}", [_bind(node.value, node.column)]


def render_criteria(criteria: Criteria, resolve_column: ColumnResolver, placeholder: str) -> Tuple[str, List[Any]]:
    if isinstance(criteria, Comparison):
        return _render_comparison(criteria, resolve_column, placeholder)
    if isinstance(criteria, (And, Or)):
        left_sql, left_params = render_criteria(criteria.left, resolve_column, placeholder)
        right_sql, right_params = render_criteria(criteria.right, resolve_column, placeholder)
        joiner = "AND" if isinstance(criteria, And) else "OR"
        return f"({left_sql} {joiner} {right_sql})", left_params + right_params
    if isinstance(criteria, Not):
        inner_sql, inner_params = render_criteria(criteria.operand, resolve_column, placeholder)
        return f"NOT ({inner_sql})", inner_params
    raise InvalidCriteriaError(f"Unsupported criteria node: {type(criteria).__name__}")
