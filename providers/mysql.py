from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from providers.base import ConnectionProvider
from utils.env_loader import load_environments


class MySQLProvider(ConnectionProvider):
    engine = "mysql"

    def _db_params(self) -> Dict[str, Any]:
        load_environments()
        host = self.source_config.get("host") or os.getenv("DB_HOST")
        dbname = self.source_config.get("dbname") or os.getenv("DB_NAME")
        user = self.source_config.get("user") or os.getenv("DB_USER")
        password = self.source_config.get("password") or os.getenv("DB_PASSWORD")
        port_raw = self.source_config.get("port") or os.getenv("DB_PORT", "3306")
        if not host:
            raise ValueError("DB_HOST is required")
        if not dbname:
            raise ValueError("DB_NAME is required")
        if not user:
            raise ValueError("DB_USER is required")
        if not password:
            raise ValueError("DB_PASSWORD is required")
        return {
            "host": host,
            "port": int(port_raw),
            "database": dbname,
            "user": user,
            "password": password,
        }

    def create_connection(self) -> Any:
        params = self._db_params()
        try:
            import pymysql  # type: ignore

            return pymysql.connect(**params)
        except ImportError:
            try:
                import mysql.connector  # type: ignore

                return mysql.connector.connect(**params)
            except ImportError as exc:
                raise ImportError(
                    "No MySQL driver found. Install one of: "
                    "`python -m pip install pymysql` or `python -m pip install mysql-connector-python`."
                ) from exc

    def introspect_schema(self, schema_name: Optional[str] = None, connection: Any = None) -> Dict[str, Any]:
        target_schema = schema_name or self._db_params()["database"]
        conn = connection or self.create_connection()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = %s
                  AND table_type = 'BASE TABLE'
                ORDER BY table_name
                """,
                (target_schema,),
            )
            table_names = [r[0] for r in cur.fetchall()]

            cur.execute(
                """
                SELECT
                    table_name,
                    column_name,
                    data_type,
                    is_nullable,
                    ordinal_position,
                    column_key,
                    column_default,
                    extra
                FROM information_schema.columns
                WHERE table_schema = %s
                ORDER BY table_name, ordinal_position
                """,
                (target_schema,),
            )
            column_rows = cur.fetchall()

            cur.execute(
                """
                SELECT table_name, column_name, ordinal_position
                FROM information_schema.key_column_usage
                WHERE table_schema = %s
                  AND constraint_name = 'PRIMARY'
                """,
                (target_schema,),
            )
            pk_rows = cur.fetchall()

            cur.execute(
                """
                SELECT
                    constraint_name,
                    ordinal_position,
                    table_name AS from_table,
                    column_name AS from_column,
                    referenced_table_name AS to_table,
                    referenced_column_name AS to_column
                FROM information_schema.key_column_usage
                WHERE table_schema = %s
                  AND referenced_table_name IS NOT NULL
                ORDER BY constraint_name, ordinal_position
                """,
                (target_schema,),
            )
            fk_rows = cur.fetchall()
            cur.close()
        finally:
            if connection is None:
                conn.close()

        pk_lookup: Dict[str, Dict[str, int]] = {}
        for table_name, column_name, position in pk_rows:
            pk_lookup.setdefault(table_name, {})[column_name] = int(position)

        columns_by_table: Dict[str, List[Dict[str, Any]]] = {}
        for table_name, column_name, data_type, is_nullable, ordinal, column_key, default, extra in column_rows:
            is_identity = "auto_increment" in str(extra or "").lower()
            columns_by_table.setdefault(table_name, []).append(
                {
                    "column_name": column_name,
                    "data_type": data_type,
                    "udt_name": data_type,
                    "is_nullable": str(is_nullable).upper() == "YES",
                    "is_primary_key": column_key == "PRI",
                    "primary_key_position": pk_lookup.get(table_name, {}).get(column_name, 0),
                    "is_identity": is_identity,
                    "has_default": default is not None or is_identity,
                    "ordinal_position": int(ordinal),
                }
            )

        relationships = [
            {
                "constraint_name": constraint_name,
                "position": int(position),
                "from_table": from_table,
                "from_column": from_column,
                "to_table": to_table,
                "to_column": to_column,
            }
            for constraint_name, position, from_table, from_column, to_table, to_column in fk_rows
        ]

        tables = [{"table_name": t, "columns": columns_by_table.get(t, [])} for t in table_names]

        return {
            "source": {"db_engine": "mysql", "schema_name": target_schema},
            "profile": {"table_count": len(tables), "relationship_count": len(relationships)},
            "tables": tables,
            "relationships": relationships,
        }
