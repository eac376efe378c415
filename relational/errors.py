from __future__ import annotations

from typing import Any, Optional, Sequence


class AdapterError(RuntimeError):
    pass


class UnknownTableError(AdapterError):
    def __init__(self, table_name: str):
        super().__init__(f"Unknown table: {table_name}")
        self.table_name = table_name


class UnknownColumnError(AdapterError):
    def __init__(self, table_name: str, column_name: str):
        super().__init__(f"Unknown column {column_name!r} for table {table_name!r}")
        self.table_name = table_name
        self.column_name = column_name


class UnsupportedValueError(AdapterError):
    pass


class InvalidCriteriaError(AdapterError):
    pass


class EmptyUpdateError(AdapterError):
    pass


class MissingKeyError(AdapterError):
    pass


class ParameterMismatchError(AdapterError):
    pass


class NoRelationError(AdapterError, NotImplementedError):
    def __init__(self, table_name: str, related_table_name: str):
        super().__init__(f"No relation between {table_name!r} and {related_table_name!r}")
        self.table_name = table_name
        self.related_table_name = related_table_name


class TransactionClosedError(AdapterError):
    pass


class CommandExecutionError(AdapterError):
    """A database error raised while executing a command, with the command attached."""

    def __init__(self, message: str, sql: str, parameters: Sequence[Any]):
        super().__init__(f"{message} [sql: {sql}]")
        self.sql = sql
        self.parameters = tuple(parameters)


class SchemaLoadError(AdapterError):
    """Schema introspection failed; the driver error is chained as ``__cause__``."""

    def __init__(self, message: str, engine: str, schema_name: Optional[str] = None):
        super().__init__(f"Could not load schema from {engine}: {message}")
        self.engine = engine
        self.schema_name = schema_name
