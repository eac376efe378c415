"""Schema-informed SQL command builders.

Each builder works from a ``TableMetadata`` snapshot and a ``SQLDialect`` and
returns a connection-agnostic ``CommandSpec``. Validation happens here, before
any SQL reaches a connection.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from providers.sql_renderer import SQLDialect
from relational.catalog import SchemaCatalog
from relational.commands import CommandSpec
from relational.criteria import AllRows, Criteria, CriteriaArg, render_criteria
from relational.errors import (
    EmptyUpdateError,
    InvalidCriteriaError,
    MissingKeyError,
    NoRelationError,
    UnknownColumnError,
)
from relational.metadata import ColumnMetadata, TableMetadata
from relational.query import Query
from relational.row import Row, check_value

ROW_NUMBER_ALIAS = "_row_number"


def validate_row(table: TableMetadata, data: Mapping[str, Any]) -> List[Tuple[ColumnMetadata, Any]]:
    """Match row keys to table columns; unknown columns and unsupported values are errors."""
    matched = []
    for key, value in data.items():
        column = table.find_column(key)
        if column is None:
            raise UnknownColumnError(table.name, key)
        matched.append((column, check_value(value, column.name)))
    return matched


class _ColumnScope:
    """Resolves criteria/projection column references against the tables of one statement."""

    def __init__(self, dialect: SQLDialect, tables: Sequence[TableMetadata], qualify: bool):
        self.dialect = dialect
        self.tables = list(tables)
        self.qualify = qualify

    def lookup(self, name: str) -> Tuple[TableMetadata, ColumnMetadata]:
        if "." in name:
            table_part, column_part = name.rsplit(".", 1)
            candidates = [t for t in self.tables if t.name.casefold() == table_part.casefold()]
            if not candidates:
                raise InvalidCriteriaError(f"Table {table_part!r} is not part of this query")
        else:
            column_part = name
            candidates = self.tables
        for table in candidates:
            column = table.find_column(column_part)
            if column is not None:
                return table, column
        raise InvalidCriteriaError(f"Column {name!r} does not exist in {', '.join(t.name for t in candidates)}")

    def resolve(self, name: str) -> str:
        table, column = self.lookup(name)
        if self.qualify:
            return f"{self.dialect.quote(table.name)}.{self.dialect.quote(column.name)}"
        return self.dialect.quote(column.name)


def _where_clause(criteria: Optional[Criteria], scope: _ColumnScope) -> Tuple[str, List[Any]]:
    if criteria is None:
        return "", []
    sql, params = render_criteria(criteria, scope.resolve, scope.dialect.placeholder)
    return f" WHERE {sql}", params


def _require_criteria(criteria: CriteriaArg, action: str) -> Optional[Criteria]:
    if criteria is None:
        raise InvalidCriteriaError(f"{action} requires criteria; pass ALL_ROWS to target every row")
    if isinstance(criteria, AllRows):
        return None
    return criteria


def _output_names(resolved: Sequence[Tuple[TableMetadata, ColumnMetadata]]) -> List[str]:
    """Bare column names, or ``table_column`` where a bare name is selected from more than one table."""
    counts: Dict[str, int] = {}
    for _, column in resolved:
        counts[column.name.casefold()] = counts.get(column.name.casefold(), 0) + 1
    names = [
        f"{table.name}_{column.name}" if counts[column.name.casefold()] > 1 else column.name
        for table, column in resolved
    ]
    seen = set()
    for name in names:
        if name.casefold() in seen:
            raise InvalidCriteriaError(f"Column {name!r} is selected more than once")
        seen.add(name.casefold())
    return names


class SelectBuilder:
    def __init__(self, catalog: SchemaCatalog, dialect: SQLDialect):
        self.catalog = catalog
        self.dialect = dialect

    def build(self, table_name: str, criteria: Optional[Criteria] = None, limit: Optional[int] = None) -> CommandSpec:
        return self.build_query(Query(table_name, criteria=criteria, limit=limit))

    def _join_condition(self, joined: TableMetadata, in_scope: Sequence[TableMetadata]) -> str:
        q = self.dialect.quote
        for existing in in_scope:
            for child, parent in ((joined, existing), (existing, joined)):
                for fk in child.foreign_keys:
                    if fk.referenced_table == parent.name:
                        pairs = zip(fk.columns, fk.referenced_columns)
                        return " AND ".join(
                            f"{q(child.name)}.{q(col)} = {q(parent.name)}.{q(ref)}" for col, ref in pairs
                        )
        raise NoRelationError(in_scope[0].name, joined.name)

    def build_query(self, query: Query) -> CommandSpec:
        q = self.dialect.quote
        main = self.catalog.get_table(query.table)
        tables = [main]
        join_sql = ""
        for join in query.joins:
            joined = self.catalog.get_table(join.table)
            condition = self._join_condition(joined, tables)
            join_sql += f" {join.kind} JOIN {q(joined.name)} ON {condition}"
            tables.append(joined)

        scope = _ColumnScope(self.dialect, tables, qualify=bool(query.joins))
        if query.columns:
            resolved = [scope.lookup(name) for name in query.columns]
            output_names = _output_names(resolved)
            projection = ", ".join(
                f"{scope.resolve(f'{table.name}.{column.name}')} AS {q(alias)}"
                if query.joins
                else q(column.name)
                for (table, column), alias in zip(resolved, output_names)
            )
        else:
            output_names = list(main.column_names)
            projection = f"{q(main.name)}.*" if query.joins else "*"

        where_sql, params = _where_clause(query.criteria, scope)
        from_sql = f" FROM {q(main.name)}{join_sql}{where_sql}"

        order_terms = [f"{scope.resolve(col)}{' DESC' if desc else ''}" for col, desc in query.order]
        paged = query.limit is not None or bool(query.offset)

        if paged and not self.dialect.supports_native_paging:
            if not order_terms:
                key = main.primary_key or main.column_names[:1]
                order_terms = [scope.resolve(f"{main.name}.{col}") for col in key]
            inner_projection = projection if query.columns else f"{q(main.name)}.*"
            inner = (
                f"SELECT {inner_projection}, ROW_NUMBER() OVER (ORDER BY {', '.join(order_terms)}) "
                f"AS {q(ROW_NUMBER_ALIAS)}{from_sql}"
            )
            low = int(query.offset or 0)
            bounds = f"{q(ROW_NUMBER_ALIAS)} > {low}"
            if query.limit is not None:
                bounds += f" AND {q(ROW_NUMBER_ALIAS)} <= {low + int(query.limit)}"
            outer_columns = ", ".join(q(name) for name in output_names)
            text = (
                f"SELECT {outer_columns} FROM ({inner}) AS {q('_paged')} "
                f"WHERE {bounds} ORDER BY {q(ROW_NUMBER_ALIAS)}"
            )
            return CommandSpec(text, params, self.dialect.placeholder)

        text = f"SELECT {projection}{from_sql}"
        if order_terms:
            text += f" ORDER BY {', '.join(order_terms)}"
        if paged:
            text += self.dialect.render_paging(query.offset, query.limit)
        return CommandSpec(text, params, self.dialect.placeholder)


class InsertBuilder:
    def __init__(self, dialect: SQLDialect):
        self.dialect = dialect

    def build(self, table: TableMetadata, data: Mapping[str, Any]) -> CommandSpec:
        q = self.dialect.quote
        # An identity given as None is left for the database to assign.
        matched = [
            (column, value)
            for column, value in validate_row(table, data)
            if not (column.is_identity and value is None)
        ]
        if matched:
            columns = ", ".join(q(column.name) for column, _ in matched)
            marks = ", ".join(self.dialect.placeholder for _ in matched)
            text = f"INSERT INTO {q(table.name)} ({columns}) VALUES ({marks})"
        elif self.dialect.engine == "mysql":
            text = f"INSERT INTO {q(table.name)} () VALUES ()"
        else:
            text = f"INSERT INTO {q(table.name)} DEFAULT VALUES"
        if self.dialect.supports_returning:
            text += " RETURNING *"
        return CommandSpec(text, [value for _, value in matched], self.dialect.placeholder)

    def build_identity_fetch(self, table: TableMetadata, identity_function: str) -> CommandSpec:
        q = self.dialect.quote
        identity = table.identity_column
        if identity is None or not identity_function:
            raise MissingKeyError(f"Table {table.name!r} has no identity column to read back")
        text = f"SELECT * FROM {q(table.name)} WHERE {q(identity.name)} = {identity_function}"
        return CommandSpec(text, (), self.dialect.placeholder)

    def build_key_fetch(self, table: TableMetadata, data: Mapping[str, Any]) -> CommandSpec:
        q = self.dialect.quote
        row = Row(data)
        terms = " AND ".join(f"{q(col)} = {self.dialect.placeholder}" for col in table.primary_key)
        text = f"SELECT * FROM {q(table.name)} WHERE {terms}"
        return CommandSpec(text, [row[col] for col in table.primary_key], self.dialect.placeholder)


class UpdateBuilder:
    def __init__(self, dialect: SQLDialect):
        self.dialect = dialect

    def build(self, table: TableMetadata, data: Mapping[str, Any], criteria: CriteriaArg) -> CommandSpec:
        if not data:
            raise EmptyUpdateError(f"No columns to update in table {table.name!r}")
        matched = validate_row(table, data)
        where = _require_criteria(criteria, "Update")
        q = self.dialect.quote
        assignments = ", ".join(f"{q(column.name)} = {self.dialect.placeholder}" for column, _ in matched)
        where_sql, where_params = _where_clause(where, _ColumnScope(self.dialect, [table], qualify=False))
        text = f"UPDATE {q(table.name)} SET {assignments}{where_sql}"
        return CommandSpec(text, [value for _, value in matched] + where_params, self.dialect.placeholder)

    def build_keyed(self, table: TableMetadata, columns: Sequence[str], key_fields: Sequence[str]) -> CommandSpec:
        """Template ``UPDATE ... WHERE key = ?`` reused for every row that changes the same columns.

        Parameters are the ``columns`` values followed by the ``key_fields`` values.
        """
        if not columns:
            raise EmptyUpdateError(f"No columns to update in table {table.name!r}")
        q = self.dialect.quote
        mark = self.dialect.placeholder
        assignments = ", ".join(f"{q(col)} = {mark}" for col in columns)
        keys = " AND ".join(f"{q(col)} = {mark}" for col in key_fields)
        text = f"UPDATE {q(table.name)} SET {assignments} WHERE {keys}"
        return CommandSpec(text, [None] * (len(columns) + len(key_fields)), mark)


class DeleteBuilder:
    def __init__(self, dialect: SQLDialect):
        self.dialect = dialect

    def build(self, table: TableMetadata, criteria: CriteriaArg) -> CommandSpec:
        where = _require_criteria(criteria, "Delete")
        where_sql, params = _where_clause(where, _ColumnScope(self.dialect, [table], qualify=False))
        return CommandSpec(f"DELETE FROM {self.dialect.quote(table.name)}{where_sql}", params, self.dialect.placeholder)

