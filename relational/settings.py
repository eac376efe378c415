from __future__ import annotations

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from utils.env_loader import load_environments


class AdapterSettings(BaseModel):
    db_engine: Optional[str] = Field(default=None, min_length=3, max_length=30)
    connection_string: Optional[str] = Field(default=None, description="URL such as postgresql://... or sqlite:///app.db")
    provider_name: Optional[str] = Field(default=None, description="Forces the provider for connection_string")
    filename: Optional[str] = Field(default=None, description="Database file; the provider is chosen by extension")
    schema_name: Optional[str] = Field(default=None, max_length=120)
    source_config: Dict[str, Any] = Field(default_factory=dict)
    fetch_size: int = Field(default=500, ge=1, le=100000)

    @classmethod
    def from_env(cls, **overrides: Any) -> "AdapterSettings":
        load_environments()
        values: Dict[str, Any] = {
            "db_engine": os.getenv("DB_ENGINE") or None,
            "connection_string": os.getenv("DB_CONNECTION_STRING") or None,
            "filename": os.getenv("SQLITE_DB_PATH") if os.getenv("DB_ENGINE", "").lower() == "sqlite" else None,
            "schema_name": os.getenv("DB_SCHEMA") or None,
            "fetch_size": int(os.getenv("DB_FETCH_SIZE", "500")),
        }
        values.update(overrides)
        return cls(**values)
