"""Transaction handles and the execution context every operation runs through.

A ``TransactionHandle`` is single-owner: callers must not use one handle from
several threads at once. This is a documented precondition and is not checked.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional

import structlog

from providers.base import ConnectionProvider
from relational.errors import TransactionClosedError

logger = structlog.get_logger()


class IsolationLevel(str, Enum):
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


class TransactionHandle:
    def __init__(
        self,
        connection: Any,
        isolation_level: Optional[IsolationLevel] = None,
        name: Optional[str] = None,
    ):
        self._connection = connection
        self.isolation_level = isolation_level
        self.name = name

    @classmethod
    def begin(
        cls,
        provider: ConnectionProvider,
        isolation_level: Optional[IsolationLevel] = None,
        name: Optional[str] = None,
    ) -> "TransactionHandle":
        connection = provider.create_connection()
        try:
            provider.begin_transaction(connection, isolation_level.value if isolation_level else None)
        except Exception:
            connection.close()
            raise
        logger.info("transaction_begun", engine=provider.engine, name=name, isolation_level=isolation_level)
        return cls(connection, isolation_level=isolation_level, name=name)

    @property
    def is_active(self) -> bool:
        return self._connection is not None

    def ensure_open(self) -> None:
        if self._connection is None:
            label = f" {self.name!r}" if self.name else ""
            raise TransactionClosedError(f"Transaction{label} has already been released")

    @property
    def connection(self) -> Any:
        self.ensure_open()
        return self._connection

    def _release(self) -> None:
        connection, self._connection = self._connection, None
        connection.close()

    def commit(self) -> None:
        connection = self.connection
        try:
            connection.commit()
            logger.info("transaction_committed", name=self.name)
        finally:
            self._release()

    def rollback(self) -> None:
        connection = self.connection
        try:
            connection.rollback()
            logger.info("transaction_rolled_back", name=self.name)
        finally:
            self._release()

    def close(self) -> None:
        """Roll back if still open and release the connection; safe to call more than once."""
        if self._connection is not None:
            self.rollback()

    def __enter__(self) -> "TransactionHandle":
        self.ensure_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._connection is None:
            return False
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False


class ExecutionContext:
    """Either an owned short-lived connection per call, or a borrowed transaction connection."""

    def __init__(self, provider: ConnectionProvider, transaction: Optional[TransactionHandle] = None):
        self.provider = provider
        self.transaction = transaction
        if transaction is not None:
            transaction.ensure_open()

    @property
    def owns_connection(self) -> bool:
        return self.transaction is None

    @contextmanager
    def connection(self, write: bool = False) -> Iterator[Any]:
        if self.transaction is not None:
            yield self.transaction.connection
            return
        conn = self.provider.create_connection()
        try:
            yield conn
            if write:
                conn.commit()
        except Exception:
            if write:
                conn.rollback()
            raise
        finally:
            conn.close()
