from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SQLDialect:
    engine: str
    placeholder: str
    quote_char: str = '"'
    identity_function: str = ""
    supports_native_paging: bool = True
    supports_returning: bool = False

    def quote(self, identifier: str) -> str:
        q = self.quote_char
        return ".".join(f"{q}{part.replace(q, q + q)}{q}" for part in identifier.split("."))

    def render_paging(self, offset: Optional[int], limit: Optional[int]) -> str:
        # Paging clause for dialects with native LIMIT/OFFSET; emulation lives in the select builder.
        if limit is None and not offset:
            return ""
        if limit is None:
            # LIMIT is mandatory before OFFSET in sqlite and mysql.
            if self.engine == "sqlite":
                return f" LIMIT -1 OFFSET {int(offset)}"
            if self.engine == "mysql":
                return f" LIMIT 18446744073709551615 OFFSET {int(offset)}"
            return f" OFFSET {int(offset)}"
        clause = f" LIMIT {int(limit)}"
        if offset:
            clause += f" OFFSET {int(offset)}"
        return clause


def get_sql_dialect(db_engine: str) -> SQLDialect:
    engine = (db_engine or "postgres").strip().lower()
    if engine in {"postgres", "postgresql"}:
        return SQLDialect(
            engine="postgres",
            placeholder="%s",
            identity_function="lastval()",
            supports_returning=True,
        )
    if engine == "sqlite":
        return SQLDialect(engine="sqlite", placeholder="?", identity_function="last_insert_rowid()")
    if engine == "mysql":
        return SQLDialect(engine="mysql", placeholder="%s", quote_char="`", identity_function="LAST_INSERT_ID()")
    return SQLDialect(engine=engine, placeholder="?", supports_native_paging=False)
