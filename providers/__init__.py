"""Database provider layer: connections, dialects and schema introspection per engine."""

from providers.base import ConnectionProvider, ProviderError, register_custom_provider
from providers.factory import get_provider, get_provider_by_connection_string, get_provider_by_filename

__all__ = [
    "ConnectionProvider",
    "ProviderError",
    "get_provider",
    "get_provider_by_connection_string",
    "get_provider_by_filename",
    "register_custom_provider",
]
