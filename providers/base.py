from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from providers.sql_renderer import SQLDialect, get_sql_dialect


class ProviderError(RuntimeError):
    pass


_CUSTOM_PROVIDERS: Dict[Tuple[str, str], Any] = {}


def register_custom_provider(engine: str, capability: str, implementation: Any) -> None:
    """Register an engine-specific implementation of an optional capability, e.g. ``bulk_updater``."""
    _CUSTOM_PROVIDERS[(engine.strip().lower(), capability)] = implementation


class ConnectionProvider(ABC):
    engine: str = "unknown"

    def __init__(self, source_config: Optional[Dict[str, Any]] = None):
        self.source_config = source_config or {}

    @property
    def dialect(self) -> SQLDialect:
        return get_sql_dialect(self.engine)

    @property
    def supports_compound_statements(self) -> bool:
        return False

    @abstractmethod
    def create_connection(self) -> Any:
        raise NotImplementedError

    @abstractmethod
    def introspect_schema(self, schema_name: Optional[str] = None, connection: Any = None) -> Dict[str, Any]:
        """Table, column, key and foreign-key payload for ``schema_name``.

        Runs on ``connection`` when one is given (and leaves it open), otherwise on a
        connection of its own.
        """
        raise NotImplementedError

    def get_schema_provider(self) -> "ConnectionProvider":
        return self

    def get_identity_function(self) -> str:
        return self.dialect.identity_function

    def get_custom_provider(self, capability: str) -> Any:
        return _CUSTOM_PROVIDERS.get((self.engine, capability))

    def begin_transaction(self, connection: Any, isolation_level: Optional[str] = None) -> None:
        cursor = connection.cursor()
        try:
            if isolation_level:
                cursor.execute(f"SET TRANSACTION ISOLATION LEVEL {isolation_level}")
            cursor.execute("BEGIN")
        finally:
            cursor.close()
