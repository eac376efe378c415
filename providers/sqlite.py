from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from providers.base import ConnectionProvider
from utils.env_loader import load_environments


_ISOLATION_BEGIN = {
    "READ UNCOMMITTED": "BEGIN DEFERRED",
    "READ COMMITTED": "BEGIN DEFERRED",
    "REPEATABLE READ": "BEGIN IMMEDIATE",
    "SERIALIZABLE": "BEGIN EXCLUSIVE",
}


def _sqlite_type_to_generic(data_type: str) -> str:
    lowered = (data_type or "").lower()
    if "int" in lowered:
        return "integer"
    if any(tok in lowered for tok in ("real", "floa", "doub", "dec", "num")):
        return "numeric"
    if any(tok in lowered for tok in ("date", "time")):
        return "timestamp without time zone"
    if "blob" in lowered:
        return "bytea"
    return "text"


class SQLiteProvider(ConnectionProvider):
    engine = "sqlite"

    def _db_path(self) -> str:
        load_environments()
        raw = self.source_config.get("db_path") or os.getenv("SQLITE_DB_PATH")
        if not raw:
            raise ValueError("SQLITE_DB_PATH is required for sqlite provider")
        db_path = Path(str(raw))
        if not db_path.exists():
            raise ValueError(f"SQLite database file does not exist: {db_path}")
        return str(db_path)

    def create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path())
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def begin_transaction(self, connection: Any, isolation_level: Optional[str] = None) -> None:
        if isolation_level == "READ UNCOMMITTED":
            connection.execute("PRAGMA read_uncommitted = 1")
        connection.execute(_ISOLATION_BEGIN.get(isolation_level or "", "BEGIN"))

    def introspect_schema(self, schema_name: Optional[str] = None, connection: Any = None) -> Dict[str, Any]:
        conn = connection or self.create_connection()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT name
                FROM sqlite_master
                WHERE type = 'table'
                  AND name NOT LIKE 'sqlite_%'
                ORDER BY name
                """
            )
            table_names = [row[0] for row in cur.fetchall()]

            tables: List[Dict[str, Any]] = []
            relationships: List[Dict[str, Any]] = []
            for table_name in table_names:
                cur.execute(f"PRAGMA table_info({self.dialect.quote(table_name)})")
                cols = cur.fetchall()
                pk_cols = [col for col in cols if col[5] > 0]
                columns = []
                for col in cols:
                    declared = str(col[2] or "")
                    # A lone INTEGER PRIMARY KEY aliases the rowid and is assigned by the engine.
                    is_identity = len(pk_cols) == 1 and col[5] == 1 and declared.upper() == "INTEGER"
                    columns.append(
                        {
                            "column_name": col[1],
                            "data_type": _sqlite_type_to_generic(declared),
                            "udt_name": declared,
                            "is_nullable": col[3] == 0,
                            "is_primary_key": col[5] > 0,
                            "primary_key_position": int(col[5]),
                            "is_identity": is_identity,
                            "has_default": col[4] is not None or is_identity,
                            "ordinal_position": int(col[0]) + 1,
                        }
                    )

                cur.execute(f"PRAGMA foreign_key_list({self.dialect.quote(table_name)})")
                for fk in cur.fetchall():
                    relationships.append(
                        {
                            "constraint_name": f"{table_name}_fk_{fk[0]}",
                            "position": int(fk[1]) + 1,
                            "from_table": table_name,
                            "from_column": fk[3],
                            "to_table": fk[2],
                            "to_column": fk[4],
                        }
                    )

                tables.append({"table_name": table_name, "columns": columns})

            return {
                "source": {"db_engine": "sqlite", "schema_name": schema_name or "main"},
                "profile": {"table_count": len(tables), "relationship_count": len(relationships)},
                "tables": tables,
                "relationships": relationships,
            }
        finally:
            if connection is None:
                conn.close()
