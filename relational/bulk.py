"""Single and multi-row writes.

Multi-row writes are not atomic on their own: without a ``TransactionHandle``
each statement is committed as it completes, so a failure part-way leaves the
earlier rows written. Pass a transaction to make a batch all-or-nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from providers.base import ConnectionProvider, register_custom_provider
from providers.sql_renderer import SQLDialect
from relational.builders import InsertBuilder, UpdateBuilder, validate_row
from relational.commands import CommandSpec
from relational.errors import EmptyUpdateError, MissingKeyError, UnknownColumnError
from relational.metadata import TableMetadata
from relational.row import Row
from relational.transactions import ExecutionContext

logger = structlog.get_logger()


def _first(command: CommandSpec, connection: Any) -> Optional[Row]:
    rows = list(command.get_command(connection).execute_reader(fetch_size=1))
    return rows[0] if rows else None


class Inserter:
    def __init__(self, provider: ConnectionProvider, context: ExecutionContext):
        self.provider = provider
        self.dialect = provider.dialect
        self.context = context
        self.builder = InsertBuilder(self.dialect)

    def _insert(self, connection: Any, table: TableMetadata, row: Row, command: CommandSpec) -> Row:
        if self.dialect.supports_returning:
            returned = _first(command, connection)
            return returned if returned is not None else row

        command.get_command(connection).execute_non_query()
        identity = table.identity_column
        identity_function = self.provider.get_identity_function()
        if identity is not None and row.get(identity.name) is None and identity_function:
            fetched = _first(self.builder.build_identity_fetch(table, identity_function), connection)
        elif table.primary_key and all(row.get(col) is not None for col in table.primary_key):
            fetched = _first(self.builder.build_key_fetch(table, row), connection)
        else:
            fetched = None
        return fetched if fetched is not None else row

    def insert(self, table: TableMetadata, data: Mapping[str, Any]) -> Row:
        row = Row(data)
        command = self.builder.build(table, row)
        with self.context.connection(write=True) as conn:
            return self._insert(conn, table, row, command)

    def insert_many(self, table: TableMetadata, data: Iterable[Mapping[str, Any]]) -> List[Row]:
        rows = [Row(item) for item in data]
        commands = [self.builder.build(table, row) for row in rows]
        inserted: List[Row] = []
        with self.context.connection(write=True) as conn:
            for row, command in zip(rows, commands):
                inserted.append(self._insert(conn, table, row, command))
                if self.context.owns_connection:
                    conn.commit()
        return inserted


@dataclass
class UpdateGroup:
    """Rows that change the same set of columns and can share one statement."""

    columns: Tuple[str, ...]
    key_fields: Tuple[str, ...]
    rows: List[Row]

    def values(self, row: Row) -> List[Any]:
        return [row[col] for col in self.columns] + [row[key] for key in self.key_fields]


def plan_bulk_update(
    table: TableMetadata,
    data: Iterable[Mapping[str, Any]],
    key_fields: Optional[Sequence[str]] = None,
) -> List[UpdateGroup]:
    """Validate every row and group them by changed-column set, before anything executes."""
    requested = list(key_fields) if key_fields else list(table.primary_key)
    if not requested:
        raise MissingKeyError(f"Table {table.name!r} has no primary key and no key fields were given")
    keys = []
    for name in requested:
        column = table.find_column(name)
        if column is None:
            raise UnknownColumnError(table.name, name)
        keys.append(column.name)
    folded_keys = {k.casefold() for k in keys}

    groups: Dict[frozenset, UpdateGroup] = {}
    for item in data:
        row = Row((column.name, value) for column, value in validate_row(table, item))
        missing = [k for k in keys if k not in row]
        if missing:
            raise MissingKeyError(f"Row for table {table.name!r} is missing key field(s): {', '.join(missing)}")
        columns = tuple(name for name in row if name.casefold() not in folded_keys)
        if not columns:
            raise EmptyUpdateError(f"Row for table {table.name!r} has no columns to update besides its key")
        signature = frozenset(name.casefold() for name in columns)
        group = groups.get(signature)
        if group is None:
            group = groups[signature] = UpdateGroup(columns, tuple(keys), [])
        group.rows.append(row)
    logger.debug("bulk_update_planned", table=table.name, groups=len(groups), key_fields=keys)
    return list(groups.values())


class BulkUpdater:
    """Fallback strategy: one prepared UPDATE per column group, executed once per row."""

    def update(
        self,
        table: TableMetadata,
        dialect: SQLDialect,
        connection: Any,
        groups: Sequence[UpdateGroup],
        commit_each: bool = False,
    ) -> int:
        builder = UpdateBuilder(dialect)
        affected = 0
        for group in groups:
            template = builder.build_keyed(table, group.columns, group.key_fields)
            for row in group.rows:
                affected += template.with_parameters(group.values(row)).get_command(connection).execute_non_query()
                if commit_each:
                    connection.commit()
        return affected


class ValuesListBulkUpdater:
    """Set-based strategy: one ``UPDATE ... FROM (VALUES ...)`` statement per batch of a column group.

    A batch holds at most ``max_rows`` rows and stays under ``max_parameters`` binds,
    the PostgreSQL wire protocol's limit per statement.
    """

    def __init__(self, max_rows: int = 1000, max_parameters: int = 65535):
        if max_rows < 1 or max_parameters < 1:
            raise ValueError("max_rows and max_parameters must be positive")
        self.max_rows = max_rows
        self.max_parameters = max_parameters

    def batch_size(self, group: UpdateGroup) -> int:
        width = len(group.key_fields) + len(group.columns)
        return max(1, min(self.max_rows, self.max_parameters // width))

    def batches(self, group: UpdateGroup) -> List[List[Row]]:
        size = self.batch_size(group)
        return [group.rows[start : start + size] for start in range(0, len(group.rows), size)]

    def build(
        self,
        table: TableMetadata,
        dialect: SQLDialect,
        group: UpdateGroup,
        rows: Optional[Sequence[Row]] = None,
    ) -> CommandSpec:
        rows = group.rows if rows is None else rows
        q = dialect.quote
        names = group.key_fields + group.columns
        casts = []
        for name in names:
            column = table.find_column(name)
            type_name = (column.udt_name or column.data_type) if column else "text"
            casts.append(f"CAST({dialect.placeholder} AS {type_name})")
        tuple_sql = f"({', '.join(casts)})"
        values_sql = ", ".join(tuple_sql for _ in rows)
        assignments = ", ".join(f"{q(col)} = {q('_v')}.{q(col)}" for col in group.columns)
        matches = " AND ".join(f"{q(table.name)}.{q(key)} = {q('_v')}.{q(key)}" for key in group.key_fields)
        text = (
            f"UPDATE {q(table.name)} SET {assignments} "
            f"FROM (VALUES {values_sql}) AS {q('_v')} ({', '.join(q(n) for n in names)}) "
            f"WHERE {matches}"
        )
        params: List[Any] = []
        for row in rows:
            params.extend(row[name] for name in names)
        return CommandSpec(text, params, dialect.placeholder)

    def update(
        self,
        table: TableMetadata,
        dialect: SQLDialect,
        connection: Any,
        groups: Sequence[UpdateGroup],
        commit_each: bool = False,
    ) -> int:
        affected = 0
        for group in groups:
            for rows in self.batches(group):
                affected += self.build(table, dialect, group, rows).get_command(connection).execute_non_query()
                if commit_each:
                    connection.commit()
        return affected


register_custom_provider("postgres", "bulk_updater", ValuesListBulkUpdater())
