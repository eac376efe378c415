import sqlite3

import pytest

from providers.base import ConnectionProvider
from providers.sqlite import SQLiteProvider
from relational.adapter import Adapter


SHOP_DDL = """
CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT);
CREATE TABLE products (id INTEGER PRIMARY KEY, title TEXT NOT NULL, price REAL DEFAULT 0);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    customer_id INTEGER NOT NULL REFERENCES customers(id),
    total REAL,
    status TEXT DEFAULT 'new'
);
CREATE TABLE order_lines (
    order_id INTEGER NOT NULL,
    line_no INTEGER NOT NULL,
    product_id INTEGER REFERENCES products,
    qty INTEGER,
    PRIMARY KEY (order_id, line_no),
    FOREIGN KEY (order_id) REFERENCES orders(id)
);
CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT);
CREATE TABLE audit_log (event TEXT, created_at TEXT);
"""


@pytest.fixture
def shop_db(tmp_path):
    db_path = tmp_path / "shop.db"
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(SHOP_DDL)
        conn.commit()
    finally:
        conn.close()
    return db_path


@pytest.fixture
def provider(shop_db):
    return SQLiteProvider(source_config={"db_path": str(shop_db)})


@pytest.fixture
def adapter(provider):
    return Adapter(provider)


class StaticProvider(ConnectionProvider):
    """Serves a fixed schema payload and refuses to open connections."""

    def __init__(self, payload, engine="sqlite"):
        super().__init__()
        self.engine = engine
        self.payload = payload
        self.introspections = 0
        self.connections = 0

    def create_connection(self):
        self.connections += 1
        raise AssertionError("no connection expected")

    def introspect_schema(self, schema_name=None, connection=None):
        self.introspections += 1
        self.introspected_on = connection
        return self.payload


def column(name, pk=0, identity=False, data_type="integer", udt_name=None, position=1):
    return {
        "column_name": name,
        "data_type": data_type,
        "udt_name": udt_name or data_type,
        "is_nullable": not pk,
        "is_primary_key": pk > 0,
        "primary_key_position": pk,
        "is_identity": identity,
        "has_default": identity,
        "ordinal_position": position,
    }


SHOP_PAYLOAD = {
    "tables": [
        {
            "table_name": "customers",
            "columns": [
                column("id", pk=1, identity=True, position=1),
                column("name", data_type="text", position=2),
            ],
        },
        {
            "table_name": "orders",
            "columns": [
                column("id", pk=1, identity=True, position=1),
                column("customer_id", position=2),
                column("total", data_type="numeric", position=3),
            ],
        },
        {
            "table_name": "products",
            "columns": [
                column("id", pk=1, position=1),
                column("title", data_type="character varying", udt_name="varchar", position=2),
            ],
        },
        {
            "table_name": "events",
            "columns": [column("kind", data_type="text", position=1)],
        },
    ],
    "relationships": [
        {
            "constraint_name": "orders_customer_fk",
            "position": 1,
            "from_table": "orders",
            "from_column": "customer_id",
            "to_table": "customers",
            "to_column": "id",
        }
    ],
}


@pytest.fixture
def static_provider():
    def _make(engine="sqlite", payload=None):
        return StaticProvider(payload or SHOP_PAYLOAD, engine=engine)

    return _make
