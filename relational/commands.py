from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, List, Sequence, Tuple

import structlog

from relational.errors import CommandExecutionError, ParameterMismatchError
from relational.row import Row

logger = structlog.get_logger()


def count_placeholders(sql: str, placeholder: str) -> int:
    """Count bind markers outside quoted literals and identifiers."""
    count = 0
    quote = None
    i = 0
    while i < len(sql):
        ch = sql[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif placeholder == "?" and ch == "?":
            count += 1
        elif placeholder == "%s" and ch == "%":
            nxt = sql[i + 1 : i + 2]
            if nxt == "s":
                count += 1
            i += 1
        i += 1
    return count


@dataclass(frozen=True)
class CommandSpec:
    """SQL text plus its ordered parameters; not tied to any connection."""

    text: str
    parameters: Tuple[Any, ...] = ()
    placeholder: str = "?"

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", tuple(self.parameters))
        expected = count_placeholders(self.text, self.placeholder)
        if expected != len(self.parameters):
            raise ParameterMismatchError(
                f"Command has {expected} placeholder(s) but {len(self.parameters)} parameter(s): {self.text}"
            )

    def with_parameters(self, values: Sequence[Any]) -> "CommandSpec":
        return CommandSpec(self.text, tuple(values), self.placeholder)

    def get_command(self, connection: Any) -> "BoundCommand":
        return BoundCommand(self, connection)


class BoundCommand:
    """A ``CommandSpec`` bound to one connection; the only place driver errors are caught."""

    def __init__(self, spec: CommandSpec, connection: Any):
        self.spec = spec
        self.connection = connection

    def _fail(self, exc: Exception) -> CommandExecutionError:
        logger.warning("command_failed", sql=self.spec.text, error=str(exc))
        return CommandExecutionError(str(exc), self.spec.text, self.spec.parameters)

    def _run(self, cursor: Any) -> None:
        logger.debug("command_executing", sql=self.spec.text, parameters=len(self.spec.parameters))
        try:
            cursor.execute(self.spec.text, self.spec.parameters)
        except Exception as exc:
            raise self._fail(exc) from exc

    def execute_non_query(self) -> int:
        cursor = self.connection.cursor()
        try:
            self._run(cursor)
            return max(int(cursor.rowcount or 0), 0)
        finally:
            cursor.close()

    def execute_reader(self, fetch_size: int = 500) -> Iterator[Row]:
        cursor = self.connection.cursor()
        try:
            self._run(cursor)
            columns: List[str] = [desc[0] for desc in cursor.description or ()]
            while True:
                try:
                    batch = cursor.fetchmany(fetch_size)
                except Exception as exc:
                    raise self._fail(exc) from exc
                if not batch:
                    break
                for record in batch:
                    yield Row(zip(columns, record))
        finally:
            cursor.close()

    def execute_scalar(self) -> Any:
        cursor = self.connection.cursor()
        try:
            self._run(cursor)
            try:
                record = cursor.fetchone()
            except Exception as exc:
                raise self._fail(exc) from exc
            return None if record is None else record[0]
        finally:
            cursor.close()
