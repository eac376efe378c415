"""Schema-driven relational table adapter."""

from relational.adapter import Adapter
from relational.commands import CommandSpec
from relational.criteria import (
    ALL_ROWS,
    And,
    Comparison,
    Criteria,
    Not,
    Or,
    between,
    eq,
    ge,
    gt,
    in_,
    le,
    like,
    lt,
    match,
    ne,
)
from relational.errors import (
    AdapterError,
    CommandExecutionError,
    EmptyUpdateError,
    InvalidCriteriaError,
    MissingKeyError,
    NoRelationError,
    ParameterMismatchError,
    SchemaLoadError,
    TransactionClosedError,
    UnknownColumnError,
    UnknownTableError,
    UnsupportedValueError,
)
from relational.factory import create_adapter
from relational.query import Query
from relational.row import Row
from relational.settings import AdapterSettings
from relational.transactions import IsolationLevel, TransactionHandle

__all__ = [
    "ALL_ROWS",
    "Adapter",
    "AdapterError",
    "AdapterSettings",
    "And",
    "CommandExecutionError",
    "CommandSpec",
    "Comparison",
    "Criteria",
    "EmptyUpdateError",
    "InvalidCriteriaError",
    "IsolationLevel",
    "MissingKeyError",
    "NoRelationError",
    "Not",
    "Or",
    "ParameterMismatchError",
    "Query",
    "Row",
    "SchemaLoadError",
    "TransactionClosedError",
    "TransactionHandle",
    "UnknownColumnError",
    "UnknownTableError",
    "UnsupportedValueError",
    "between",
    "create_adapter",
    "eq",
    "ge",
    "gt",
    "in_",
    "le",
    "like",
    "lt",
    "match",
    "ne",
]
