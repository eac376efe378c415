from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator, Optional

from relational.builders import SelectBuilder
from relational.commands import CommandSpec
from relational.criteria import Criteria, criteria_values
from relational.errors import ParameterMismatchError
from relational.query import Query
from relational.row import Row
from relational.transactions import ExecutionContext


class RowSequence(Iterable[Row]):
    """Rows of one command, fetched lazily.

    Each iteration executes the command again; nothing is cached client-side.
    """

    def __init__(self, context: ExecutionContext, command: CommandSpec, fetch_size: int = 500):
        self.context = context
        self.command = command
        self.fetch_size = fetch_size

    def __iter__(self) -> Iterator[Row]:
        with self.context.connection() as conn:
            yield from self.command.get_command(conn).execute_reader(self.fetch_size)

    def first(self) -> Optional[Row]:
        rows = iter(self)
        try:
            return next(rows, None)
        finally:
            rows.close()

    def to_list(self) -> list:
        return list(self)


class Finder:
    def __init__(self, select_builder: SelectBuilder, context: ExecutionContext, fetch_size: int = 500):
        self.select_builder = select_builder
        self.context = context
        self.fetch_size = fetch_size

    def _rows(self, command: CommandSpec) -> RowSequence:
        return RowSequence(self.context, command, self.fetch_size)

    def find(self, table_name: str, criteria: Optional[Criteria] = None) -> RowSequence:
        return self._rows(self.select_builder.build(table_name, criteria))

    def find_one(self, table_name: str, criteria: Optional[Criteria] = None) -> Optional[Row]:
        # The single-row limit is part of the statement, so more than one row never comes back.
        return self._rows(self.select_builder.build(table_name, criteria, limit=1)).first()

    def run_query(self, query: Query) -> RowSequence:
        return self._rows(self.select_builder.build_query(query))

    def create_find_delegate(self, table_name: str, criteria: Criteria) -> Callable[..., RowSequence]:
        command = self.select_builder.build(table_name, criteria)
        return _prepared(command, criteria, lambda spec: self._rows(spec))

    def create_find_one_delegate(self, table_name: str, criteria: Criteria) -> Callable[..., Optional[Row]]:
        command = self.select_builder.build(table_name, criteria, limit=1)
        return _prepared(command, criteria, lambda spec: self._rows(spec).first())


def _prepared(command: CommandSpec, criteria: Criteria, run: Callable[[CommandSpec], Any]) -> Callable[..., Any]:
    expected = len(criteria_values(criteria))

    def delegate(*values: Any) -> Any:
        if len(values) != expected:
            raise ParameterMismatchError(f"Prepared find expects {expected} value(s), got {len(values)}")
        return run(command.with_parameters(values))

    return delegate
