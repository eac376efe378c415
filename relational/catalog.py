"""Per-adapter cache of table, key and foreign-key metadata."""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Tuple

import structlog

from providers.base import ConnectionProvider
from relational.errors import AdapterError, SchemaLoadError, UnknownTableError
from relational.metadata import ColumnMetadata, ForeignKey, TableMetadata

logger = structlog.get_logger()


def build_tables(metadata: Dict[str, Any]) -> Dict[str, TableMetadata]:
    """Turn a provider's ``introspect_schema`` payload into ``TableMetadata`` keyed by table name."""
    primary_keys: Dict[str, List[str]] = {}
    columns_by_table: Dict[str, Tuple[ColumnMetadata, ...]] = {}
    for table in metadata.get("tables", []):
        table_name = table["table_name"]
        columns = []
        keyed = []
        for col in sorted(table.get("columns", []), key=lambda c: c.get("ordinal_position", 0)):
            columns.append(
                ColumnMetadata(
                    name=col["column_name"],
                    data_type=col.get("data_type") or "text",
                    udt_name=col.get("udt_name") or "",
                    is_nullable=bool(col.get("is_nullable", True)),
                    is_primary_key=bool(col.get("is_primary_key")),
                    is_identity=bool(col.get("is_identity")),
                    has_default=bool(col.get("has_default")),
                    ordinal_position=int(col.get("ordinal_position", 0)),
                )
            )
            if col.get("is_primary_key"):
                keyed.append((int(col.get("primary_key_position") or 0), int(col.get("ordinal_position", 0)), col["column_name"]))
        columns_by_table[table_name] = tuple(columns)
        primary_keys[table_name] = [name for _, _, name in sorted(keyed)]

    # Engines report FK targets as spelled in the DDL; map them onto the catalog's own names.
    folded_tables = {name.casefold(): name for name in columns_by_table}

    def canonical_column(table_name: str, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        folded = name.casefold()
        return next((col.name for col in columns_by_table[table_name] if col.name.casefold() == folded), name)

    grouped: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
    for rel in metadata.get("relationships", []):
        table_name = folded_tables.get(rel["from_table"].casefold())
        if table_name is None:
            continue
        key = (table_name, rel.get("constraint_name") or f"{table_name}_{rel['from_column']}_fk")
        grouped.setdefault(key, []).append(rel)

    foreign_keys: Dict[str, List[ForeignKey]] = {}
    for (table_name, constraint_name), parts in grouped.items():
        parts = sorted(parts, key=lambda p: p.get("position", 0))
        referenced_table = folded_tables.get(parts[0]["to_table"].casefold())
        if referenced_table is None:
            continue
        referenced_pk = primary_keys.get(referenced_table, [])
        columns = []
        referenced_columns = []
        for index, part in enumerate(parts):
            columns.append(canonical_column(table_name, part["from_column"]))
            # sqlite leaves the target column empty when the parent's primary key is implied.
            if part.get("to_column"):
                target = canonical_column(referenced_table, part["to_column"])
            else:
                target = referenced_pk[index] if index < len(referenced_pk) else None
            referenced_columns.append(target)
        if None in columns or None in referenced_columns:
            continue
        foreign_keys.setdefault(table_name, []).append(
            ForeignKey(
                name=constraint_name,
                table=table_name,
                columns=tuple(columns),
                referenced_table=referenced_table,
                referenced_columns=tuple(referenced_columns),
            )
        )

    return {
        name: TableMetadata(
            name=name,
            columns=columns,
            primary_key=tuple(primary_keys.get(name, [])),
            foreign_keys=tuple(foreign_keys.get(name, [])),
        )
        for name, columns in columns_by_table.items()
    }


class SchemaCatalog:
    """Loads schema metadata from the provider once, on first access, and serves it from memory.

    The snapshot is never refreshed; create a new adapter to pick up DDL changes.
    Concurrent first callers block on a lock so the provider is queried at most once.
    """

    def __init__(self, provider: ConnectionProvider, schema_name: Optional[str] = None):
        self._provider = provider
        self._schema_name = schema_name
        self._tables: Optional[Dict[str, TableMetadata]] = None
        self._folded: Dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, connection: Any = None) -> Dict[str, TableMetadata]:
        """Load the snapshot if needed, on ``connection`` when given (e.g. an open transaction's)."""
        tables = self._tables
        if tables is not None:
            return tables
        with self._lock:
            if self._tables is None:
                schema_provider = self._provider.get_schema_provider()
                try:
                    payload = schema_provider.introspect_schema(schema_name=self._schema_name, connection=connection)
                except AdapterError:
                    raise
                except Exception as exc:
                    logger.warning(
                        "schema_load_failed",
                        engine=self._provider.engine,
                        schema_name=self._schema_name,
                        error=str(exc),
                    )
                    raise SchemaLoadError(str(exc), self._provider.engine, self._schema_name) from exc
                loaded = build_tables(payload)
                self._folded = {name.casefold(): name for name in loaded}
                self._tables = loaded
                logger.info(
                    "schema_loaded",
                    engine=self._provider.engine,
                    tables=len(loaded),
                    foreign_keys=sum(len(t.foreign_keys) for t in loaded.values()),
                )
            return self._tables

    @property
    def is_loaded(self) -> bool:
        return self._tables is not None

    def table_names(self) -> List[str]:
        return list(self.load())

    def get_table(self, name: str) -> TableMetadata:
        tables = self.load()
        table = tables.get(name)
        if table is not None:
            return table
        actual = self._folded.get(name.casefold())
        if actual is None:
            raise UnknownTableError(name)
        return tables[actual]

    def primary_key(self, name: str) -> List[str]:
        return list(self.get_table(name).primary_key)

    def foreign_keys(self, name: str) -> List[ForeignKey]:
        return list(self.get_table(name).foreign_keys)

    def referencing_keys(self, name: str) -> List[ForeignKey]:
        """Foreign keys in other tables that point at ``name``."""
        target = self.get_table(name).name
        return [fk for table in self.load().values() for fk in table.foreign_keys if fk.referenced_table == target]
