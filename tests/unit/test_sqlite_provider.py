import pytest

from providers.sqlite import SQLiteProvider


def test_sqlite_provider_introspects_keys_and_relationships(provider):
    meta = provider.introspect_schema()
    assert meta["source"]["db_engine"] == "sqlite"
    tables = {t["table_name"]: t for t in meta["tables"]}
    assert set(tables) == {"customers", "products", "orders", "order_lines", "users", "audit_log"}

    users_id = tables["users"]["columns"][0]
    assert users_id["is_primary_key"] is True
    assert users_id["is_identity"] is True

    line_cols = {c["column_name"]: c for c in tables["order_lines"]["columns"]}
    assert line_cols["order_id"]["primary_key_position"] == 1
    assert line_cols["line_no"]["primary_key_position"] == 2
    assert line_cols["order_id"]["is_identity"] is False

    product_cols = {c["column_name"]: c for c in tables["products"]["columns"]}
    assert product_cols["price"]["has_default"] is True
    assert product_cols["title"]["has_default"] is False

    rels = {(r["from_table"], r["from_column"]): r for r in meta["relationships"]}
    assert rels[("orders", "customer_id")]["to_table"] == "customers"
    assert rels[("order_lines", "product_id")]["to_column"] is None


def test_sqlite_provider_requires_existing_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SQLITE_DB_PATH", raising=False)
    with pytest.raises(ValueError, match="SQLITE_DB_PATH is required"):
        SQLiteProvider().create_connection()
    with pytest.raises(ValueError, match="does not exist"):
        SQLiteProvider(source_config={"db_path": str(tmp_path / "missing.db")}).create_connection()


def test_sqlite_provider_enables_foreign_keys(provider):
    conn = provider.create_connection()
    try:
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    finally:
        conn.close()
