from __future__ import annotations

from typing import Any, Optional

from providers.base import ConnectionProvider
from providers.factory import get_provider, get_provider_by_connection_string, get_provider_by_filename
from relational.adapter import Adapter
from relational.settings import AdapterSettings


def resolve_provider(settings: AdapterSettings) -> ConnectionProvider:
    if settings.connection_string:
        return get_provider_by_connection_string(settings.connection_string, settings.provider_name)
    if settings.filename:
        return get_provider_by_filename(settings.filename)
    return get_provider(db_engine=settings.db_engine, source_config=settings.source_config)


def create_adapter(settings: Optional[AdapterSettings] = None, **overrides: Any) -> Adapter:
    """Build an adapter from explicit settings, or from the environment plus ``overrides``."""
    if settings is None:
        settings = AdapterSettings.from_env(**overrides)
    elif overrides:
        settings = settings.model_copy(update=overrides)
    provider = resolve_provider(settings)
    return Adapter(provider, schema_name=settings.schema_name, fetch_size=settings.fetch_size)
