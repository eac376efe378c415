from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from providers.base import ConnectionProvider
from utils.env_loader import load_environments


class PostgresProvider(ConnectionProvider):
    engine = "postgres"

    def _db_params(self) -> Dict[str, Any]:
        load_environments()
        dsn = self.source_config.get("dsn")
        if dsn:
            return {"conninfo": dsn}
        host = self.source_config.get("host") or os.getenv("DB_HOST")
        dbname = self.source_config.get("dbname") or os.getenv("DB_NAME")
        user = self.source_config.get("user") or os.getenv("DB_USER")
        password = self.source_config.get("password") or os.getenv("DB_PASSWORD")
        port_raw = self.source_config.get("port") or os.getenv("DB_PORT", "5432")
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
            "dbname": dbname,
            "user": user,
            "password": password,
        }

    def create_connection(self) -> Any:
        params = self._db_params()
        try:
            import psycopg  # type: ignore

            if "conninfo" in params:
                return psycopg.connect(params["conninfo"])
            return psycopg.connect(**params)
        except ImportError:
            try:
                import psycopg2  # type: ignore

                if "conninfo" in params:
                    return psycopg2.connect(params["conninfo"])
                return psycopg2.connect(**params)
            except ImportError as exc:
                raise ImportError(
                    "No PostgreSQL driver found. Install one of: "
                    '`python -m pip install "psycopg[binary]"` or `python -m pip install psycopg2-binary`.'
                ) from exc

    def begin_transaction(self, connection: Any, isolation_level: Optional[str] = None) -> None:
        # The driver opens the transaction implicitly on the first statement.
        if isolation_level:
            cursor = connection.cursor()
            try:
                cursor.execute(f"SET TRANSACTION ISOLATION LEVEL {isolation_level}")
            finally:
                cursor.close()

    def introspect_schema(self, schema_name: Optional[str] = None, connection: Any = None) -> Dict[str, Any]:
        target_schema = schema_name or "public"
        conn = connection or self.create_connection()
        try:
            with conn.cursor() as cur:
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
                table_names = [row[0] for row in cur.fetchall()]

                cur.execute(
                    """
                    SELECT
                        table_name,
                        column_name,
                        data_type,
                        udt_name,
                        is_nullable,
                        ordinal_position,
                        column_default,
                        is_identity
                    FROM information_schema.columns
                    WHERE table_schema = %s
                    ORDER BY table_name, ordinal_position
                    """,
                    (target_schema,),
                )
                column_rows = cur.fetchall()

                cur.execute(
                    """
                    SELECT
                        tc.table_name,
                        kcu.column_name,
                        kcu.ordinal_position
                    FROM information_schema.table_constraints tc
                    JOIN information_schema.key_column_usage kcu
                      ON tc.constraint_name = kcu.constraint_name
                     AND tc.table_schema = kcu.table_schema
                    WHERE tc.table_schema = %s
                      AND tc.constraint_type = 'PRIMARY KEY'
                    """,
                    (target_schema,),
                )
                pk_rows = cur.fetchall()

                cur.execute(
                    """
                    SELECT
                        kcu.constraint_name,
                        kcu.ordinal_position,
                        kcu.table_name AS source_table,
                        kcu.column_name AS source_column,
                        ref.table_name AS target_table,
                        ref.column_name AS target_column
                    FROM information_schema.referential_constraints rc
                    JOIN information_schema.key_column_usage kcu
                      ON kcu.constraint_name = rc.constraint_name
                     AND kcu.constraint_schema = rc.constraint_schema
                    JOIN information_schema.key_column_usage ref
                      ON ref.constraint_name = rc.unique_constraint_name
                     AND ref.constraint_schema = rc.unique_constraint_schema
                     AND ref.ordinal_position = kcu.position_in_unique_constraint
                    WHERE kcu.table_schema = %s
                    ORDER BY kcu.constraint_name, kcu.ordinal_position
                    """,
                    (target_schema,),
                )
                fk_rows = cur.fetchall()
        finally:
            if connection is None:
                conn.close()

        pk_lookup: Dict[str, Dict[str, int]] = {}
        for table_name, column_name, position in pk_rows:
            pk_lookup.setdefault(table_name, {})[column_name] = int(position)

        table_columns: Dict[str, List[Dict[str, Any]]] = {}
        for table_name, column_name, data_type, udt_name, is_nullable, ordinal, default, is_identity in column_rows:
            is_serial = str(default or "").startswith("nextval(")
            table_columns.setdefault(table_name, []).append(
                {
                    "column_name": column_name,
                    "data_type": data_type,
                    "udt_name": udt_name,
                    "is_nullable": is_nullable == "YES",
                    "is_primary_key": column_name in pk_lookup.get(table_name, {}),
                    "primary_key_position": pk_lookup.get(table_name, {}).get(column_name, 0),
                    "is_identity": is_identity == "YES" or is_serial,
                    "has_default": default is not None or is_identity == "YES",
                    "ordinal_position": int(ordinal),
                }
            )

        relationships: List[Dict[str, Any]] = []
        for constraint_name, position, src_table, src_col, tgt_table, tgt_col in fk_rows:
            relationships.append(
                {
                    "constraint_name": constraint_name,
                    "position": int(position),
                    "from_table": src_table,
                    "from_column": src_col,
                    "to_table": tgt_table,
                    "to_column": tgt_col,
                }
            )

        tables = [{"table_name": t, "columns": table_columns.get(t, [])} for t in table_names]

        return {
            "source": {"db_engine": "postgres", "schema_name": target_schema},
            "profile": {"table_count": len(tables), "relationship_count": len(relationships)},
            "tables": tables,
            "relationships": relationships,
        }
