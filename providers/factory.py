from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

from providers.base import ConnectionProvider, ProviderError
from providers.mysql import MySQLProvider
from providers.postgres import PostgresProvider
from providers.sqlite import SQLiteProvider
from utils.env_loader import load_environments


_SQLITE_EXTENSIONS = {".db", ".sqlite", ".sqlite3"}


def get_provider(db_engine: Optional[str] = None, source_config: Optional[Dict[str, Any]] = None) -> ConnectionProvider:
    load_environments()
    engine = (db_engine or os.getenv("DB_ENGINE", "postgres")).strip().lower()
    if engine in {"postgres", "postgresql"}:
        return PostgresProvider(source_config=source_config)
    if engine == "sqlite":
        return SQLiteProvider(source_config=source_config)
    if engine == "mysql":
        return MySQLProvider(source_config=source_config)
    raise ProviderError(f"Unsupported db_engine: {engine}")


def get_provider_by_filename(filename: str) -> ConnectionProvider:
    suffix = Path(filename).suffix.lower()
    if suffix not in _SQLITE_EXTENSIONS:
        raise ProviderError(f"No provider registered for file extension: {suffix or filename}")
    return SQLiteProvider(source_config={"db_path": filename})


def get_provider_by_connection_string(connection_string: str, provider_name: Optional[str] = None) -> ConnectionProvider:
    parsed = urlparse(connection_string)
    engine = (provider_name or parsed.scheme.split("+", 1)[0]).strip().lower()
    if engine == "sqlite":
        # sqlite:///relative.db and sqlite:////abs/path.db
        path = connection_string.split(":///", 1)[1] if ":///" in connection_string else parsed.path
        return SQLiteProvider(source_config={"db_path": unquote(path)})
    if engine in {"postgres", "postgresql"}:
        # libpq rejects driver-qualified schemes such as postgresql+psycopg://
        dsn = parsed._replace(scheme="postgresql").geturl() if "+" in parsed.scheme else connection_string
        return PostgresProvider(source_config={"dsn": dsn})
    if engine == "mysql":
        source_config: Dict[str, Any] = {
            "host": parsed.hostname,
            "dbname": parsed.path.lstrip("/"),
            "user": unquote(parsed.username or ""),
            "password": unquote(parsed.password or ""),
        }
        if parsed.port:
            source_config["port"] = parsed.port
        return MySQLProvider(source_config=source_config)
    raise ProviderError(f"Unsupported connection string scheme: {engine or connection_string}")
