import pytest
from pydantic import ValidationError

from providers.base import ProviderError
from providers.factory import get_provider, get_provider_by_connection_string, get_provider_by_filename
from providers.mysql import MySQLProvider
from providers.postgres import PostgresProvider
from providers.sqlite import SQLiteProvider
from relational.factory import create_adapter, resolve_provider
from relational.settings import AdapterSettings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("ADAPTER_ENV_FILE", str(tmp_path / "missing.env"))
    for key in ("DB_ENGINE", "DB_CONNECTION_STRING", "SQLITE_DB_PATH", "DB_SCHEMA", "DB_FETCH_SIZE", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


def test_get_provider_by_engine(monkeypatch):
    assert isinstance(get_provider("sqlite"), SQLiteProvider)
    assert isinstance(get_provider("PostgreSQL"), PostgresProvider)
    assert isinstance(get_provider("mysql"), MySQLProvider)
    monkeypatch.setenv("DB_ENGINE", "sqlite")
    assert get_provider().engine == "sqlite"
    with pytest.raises(ProviderError, match="oracle"):
        get_provider("oracle")


def test_get_provider_by_filename():
    provider = get_provider_by_filename("data/shop.sqlite3")
    assert isinstance(provider, SQLiteProvider)
    assert provider.source_config == {"db_path": "data/shop.sqlite3"}
    with pytest.raises(ProviderError, match=".csv"):
        get_provider_by_filename("shop.csv")


def test_get_provider_by_connection_string():
    sqlite = get_provider_by_connection_string("sqlite:////var/data/shop.db")
    assert sqlite.source_config == {"db_path": "/var/data/shop.db"}

    postgres = get_provider_by_connection_string("postgresql+psycopg://app:secret@db/shop")
    assert isinstance(postgres, PostgresProvider)
    assert postgres.source_config == {"dsn": "postgresql://app:secret@db/shop"}
    plain = get_provider_by_connection_string("postgres://db/shop?sslmode=require")
    assert plain.source_config == {"dsn": "postgres://db/shop?sslmode=require"}

    mysql = get_provider_by_connection_string("mysql://app:p%40ss@db:3307/shop")
    assert isinstance(mysql, MySQLProvider)
    assert mysql.source_config == {"host": "db", "dbname": "shop", "user": "app", "password": "p@ss", "port": 3307}

    forced = get_provider_by_connection_string("custom://db/shop", provider_name="postgres")
    assert isinstance(forced, PostgresProvider)

    with pytest.raises(ProviderError):
        get_provider_by_connection_string("oracle://db/shop")


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DB_ENGINE", "sqlite")
    monkeypatch.setenv("SQLITE_DB_PATH", "/tmp/shop.db")
    monkeypatch.setenv("DB_FETCH_SIZE", "50")

    settings = AdapterSettings.from_env(schema_name="main")

    assert settings.db_engine == "sqlite"
    assert settings.filename == "/tmp/shop.db"
    assert settings.fetch_size == 50
    assert settings.schema_name == "main"
    assert settings.connection_string is None


def test_settings_reject_bad_fetch_size():
    with pytest.raises(ValidationError):
        AdapterSettings(fetch_size=0)


def test_connection_string_wins_over_filename_and_engine():
    settings = AdapterSettings(
        db_engine="mysql",
        filename="shop.db",
        connection_string="postgresql://db/shop",
    )
    assert isinstance(resolve_provider(settings), PostgresProvider)
    assert isinstance(resolve_provider(settings.model_copy(update={"connection_string": None})), SQLiteProvider)


def test_create_adapter_from_filename(shop_db):
    adapter = create_adapter(AdapterSettings(filename=str(shop_db)), fetch_size=10)
    assert adapter.fetch_size == 10
    assert adapter.insert("users", {"name": "Ann"}) == {"id": 1, "name": "Ann"}


def test_create_adapter_from_environment(monkeypatch, shop_db):
    monkeypatch.setenv("DB_CONNECTION_STRING", f"sqlite:///{shop_db}")
    adapter = create_adapter()
    assert adapter.provider.engine == "sqlite"
    assert adapter.get_key_field_names("customers") == ["id"]
