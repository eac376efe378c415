"""Table-level CRUD and query facade over a ``ConnectionProvider``.

Every table operation accepts an optional ``transaction``. Without one the call
opens its own connection, runs, and closes it before returning (lazy reads close
once iteration finishes). With one, the call runs on the transaction's
connection and never opens a second.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Union

import structlog

from providers.base import ConnectionProvider
from relational.builders import DeleteBuilder, SelectBuilder, UpdateBuilder
from relational.bulk import BulkUpdater, Inserter, plan_bulk_update
from relational.catalog import SchemaCatalog
from relational.commands import CommandSpec
from relational.criteria import Criteria, CriteriaArg
from relational.finder import Finder, RowSequence
from relational.query import Query
from relational.relations import RelationResolver
from relational.row import Row
from relational.transactions import ExecutionContext, IsolationLevel, TransactionHandle

logger = structlog.get_logger()


class Adapter:
    def __init__(self, provider: ConnectionProvider, schema_name: Optional[str] = None, fetch_size: int = 500):
        self.provider = provider
        self.dialect = provider.dialect
        self.fetch_size = fetch_size
        self.catalog = SchemaCatalog(provider, schema_name=schema_name)
        self._select_builder = SelectBuilder(self.catalog, self.dialect)
        self._relations = RelationResolver(self.catalog)
        self._bulk_updater = provider.get_custom_provider("bulk_updater") or BulkUpdater()
        logger.debug(
            "bulk_update_strategy",
            engine=provider.engine,
            strategy=type(self._bulk_updater).__name__,
        )

    def _context(self, transaction: Optional[TransactionHandle]) -> ExecutionContext:
        context = ExecutionContext(self.provider, transaction)
        if transaction is not None and not self.catalog.is_loaded:
            # A handle-bound call never opens a second connection, not even for the schema.
            self.catalog.load(connection=transaction.connection)
        return context

    def _finder(self, transaction: Optional[TransactionHandle]) -> Finder:
        return Finder(self._select_builder, self._context(transaction), self.fetch_size)

    def _execute(self, command: CommandSpec, context: ExecutionContext) -> int:
        with context.connection(write=True) as conn:
            return command.get_command(conn).execute_non_query()

    # reads

    def find(
        self,
        table_name: str,
        criteria: Optional[Criteria] = None,
        transaction: Optional[TransactionHandle] = None,
    ) -> RowSequence:
        return self._finder(transaction).find(table_name, criteria)

    def find_one(
        self,
        table_name: str,
        criteria: Optional[Criteria] = None,
        transaction: Optional[TransactionHandle] = None,
    ) -> Optional[Row]:
        return self._finder(transaction).find_one(table_name, criteria)

    def run_query(self, query: Query, transaction: Optional[TransactionHandle] = None) -> RowSequence:
        return self._finder(transaction).run_query(query)

    def create_find_delegate(
        self,
        table_name: str,
        criteria: Criteria,
        transaction: Optional[TransactionHandle] = None,
    ) -> Callable[..., RowSequence]:
        return self._finder(transaction).create_find_delegate(table_name, criteria)

    def create_find_one_delegate(
        self,
        table_name: str,
        criteria: Criteria,
        transaction: Optional[TransactionHandle] = None,
    ) -> Callable[..., Optional[Row]]:
        return self._finder(transaction).create_find_one_delegate(table_name, criteria)

    # writes

    def insert(
        self,
        table_name: str,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> Row:
        context = self._context(transaction)
        table = self.catalog.get_table(table_name)
        return Inserter(self.provider, context).insert(table, data)

    def insert_many(
        self,
        table_name: str,
        data: Iterable[Mapping[str, Any]],
        transaction: Optional[TransactionHandle] = None,
    ) -> List[Row]:
        context = self._context(transaction)
        table = self.catalog.get_table(table_name)
        return Inserter(self.provider, context).insert_many(table, data)

    def update(
        self,
        table_name: str,
        data: Mapping[str, Any],
        criteria: CriteriaArg,
        transaction: Optional[TransactionHandle] = None,
    ) -> int:
        context = self._context(transaction)
        table = self.catalog.get_table(table_name)
        command = UpdateBuilder(self.dialect).build(table, data, criteria)
        return self._execute(command, context)

    def update_many(
        self,
        table_name: str,
        data: Iterable[Mapping[str, Any]],
        key_fields: Optional[Sequence[str]] = None,
        transaction: Optional[TransactionHandle] = None,
    ) -> int:
        context = self._context(transaction)
        table = self.catalog.get_table(table_name)
        groups = plan_bulk_update(table, data, key_fields)
        if not groups:
            return 0
        with context.connection(write=True) as conn:
            return self._bulk_updater.update(
                table,
                self.dialect,
                conn,
                groups,
                commit_each=context.owns_connection,
            )

    def delete(
        self,
        table_name: str,
        criteria: CriteriaArg,
        transaction: Optional[TransactionHandle] = None,
    ) -> int:
        context = self._context(transaction)
        table = self.catalog.get_table(table_name)
        command = DeleteBuilder(self.dialect).build(table, criteria)
        return self._execute(command, context)

    # schema and relations

    def get_key_field_names(self, table_name: str) -> List[str]:
        return self.catalog.primary_key(table_name)

    def is_valid_relation(self, table_name: str, related_table_name: str) -> bool:
        return self._relations.is_valid_relation(table_name, related_table_name)

    def find_related(
        self,
        table_name: str,
        row: Mapping[str, Any],
        related_table_name: str,
        transaction: Optional[TransactionHandle] = None,
    ) -> Union[RowSequence, Sequence[Row], Optional[Row]]:
        return self._relations.find_related(self._finder(transaction), table_name, row, related_table_name)

    # provider capabilities

    def begin_transaction(
        self,
        isolation_level: Optional[Union[IsolationLevel, str]] = None,
        name: Optional[str] = None,
    ) -> TransactionHandle:
        if isinstance(isolation_level, str) and not isinstance(isolation_level, IsolationLevel):
            isolation_level = IsolationLevel(isolation_level.upper().replace("_", " "))
        return TransactionHandle.begin(self.provider, isolation_level=isolation_level, name=name)

    def get_identity_function(self) -> str:
        return self.provider.get_identity_function()

    @property
    def provider_supports_compound_statements(self) -> bool:
        return self.provider.supports_compound_statements

    @property
    def schema_provider(self) -> ConnectionProvider:
        return self.provider.get_schema_provider()
