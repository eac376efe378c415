import pytest

from providers.sql_renderer import SQLDialect, get_sql_dialect
from relational.builders import DeleteBuilder, InsertBuilder, SelectBuilder, UpdateBuilder
from relational.catalog import SchemaCatalog
from relational.criteria import ALL_ROWS, eq, gt
from relational.errors import (
    EmptyUpdateError,
    InvalidCriteriaError,
    NoRelationError,
    UnknownColumnError,
    UnsupportedValueError,
)
from relational.query import Query


@pytest.fixture
def catalog(static_provider):
    return SchemaCatalog(static_provider())


def test_select_with_criteria_order_and_native_paging(catalog):
    builder = SelectBuilder(catalog, get_sql_dialect("sqlite"))
    query = Query("ORDERS").where(gt("total", 5)).order_by("id", descending=True).skip(10).take(5)
    spec = builder.build_query(query)
    assert spec.text == 'SELECT * FROM "orders" WHERE "total" > ? ORDER BY "id" DESC LIMIT 5 OFFSET 10'
    assert spec.parameters == (5,)


def test_select_emulates_paging_with_row_numbers(catalog):
    dialect = SQLDialect(engine="mssql", placeholder="?", supports_native_paging=False)
    spec = SelectBuilder(catalog, dialect).build_query(Query("customers").skip(2).take(3))
    assert spec.text == (
        'SELECT "id", "name" FROM (SELECT "customers".*, ROW_NUMBER() OVER (ORDER BY "id") AS "_row_number" '
        'FROM "customers") AS "_paged" WHERE "_row_number" > 2 AND "_row_number" <= 5 ORDER BY "_row_number"'
    )


def test_select_join_is_inferred_from_foreign_keys(catalog):
    query = Query("orders").join("customers").select("orders.id", "customers.name").where(eq("name", "Ann"))
    spec = SelectBuilder(catalog, get_sql_dialect("postgres")).build_query(query)
    assert spec.text == (
        'SELECT "orders"."id" AS "id", "customers"."name" AS "name" FROM "orders" '
        'INNER JOIN "customers" ON "orders"."customer_id" = "customers"."id" '
        'WHERE "customers"."name" = %s'
    )


def test_select_join_without_relation_fails(catalog):
    with pytest.raises(NoRelationError):
        SelectBuilder(catalog, get_sql_dialect("sqlite")).build_query(Query("orders").join("products"))


def test_select_rejects_unknown_criteria_column(catalog):
    with pytest.raises(InvalidCriteriaError, match="nope"):
        SelectBuilder(catalog, get_sql_dialect("sqlite")).build("orders", eq("nope", 1))


def test_insert_appends_returning_when_supported(catalog):
    table = catalog.get_table("customers")
    spec = InsertBuilder(get_sql_dialect("postgres")).build(table, {"NAME": "Ann"})
    assert spec.text == 'INSERT INTO "customers" ("name") VALUES (%s) RETURNING *'
    assert spec.parameters == ("Ann",)

    identity = InsertBuilder(get_sql_dialect("sqlite")).build_identity_fetch(table, "last_insert_rowid()")
    assert identity.text == 'SELECT * FROM "customers" WHERE "id" = last_insert_rowid()'


def test_insert_without_values_uses_defaults(catalog):
    table = catalog.get_table("events")
    assert InsertBuilder(get_sql_dialect("sqlite")).build(table, {}).text == 'INSERT INTO "events" DEFAULT VALUES'
    assert InsertBuilder(get_sql_dialect("mysql")).build(table, {}).text == "INSERT INTO `events` () VALUES ()"


def test_insert_rejects_unknown_columns_and_values(catalog):
    table = catalog.get_table("customers")
    builder = InsertBuilder(get_sql_dialect("sqlite"))
    with pytest.raises(UnknownColumnError, match="nickname"):
        builder.build(table, {"name": "Ann", "nickname": "A"})
    with pytest.raises(UnsupportedValueError):
        builder.build(table, {"name": ["Ann"]})


def test_update_requires_columns_and_explicit_scope(catalog):
    table = catalog.get_table("orders")
    builder = UpdateBuilder(get_sql_dialect("sqlite"))
    with pytest.raises(EmptyUpdateError):
        builder.build(table, {}, eq("id", 1))
    with pytest.raises(InvalidCriteriaError, match="ALL_ROWS"):
        builder.build(table, {"total": 1}, None)

    spec = builder.build(table, {"total": 9.5}, eq("id", 3))
    assert spec.text == 'UPDATE "orders" SET "total" = ? WHERE "id" = ?'
    assert spec.parameters == (9.5, 3)

    assert builder.build(table, {"total": 0}, ALL_ROWS).text == 'UPDATE "orders" SET "total" = ?'


def test_delete_requires_explicit_scope(catalog):
    table = catalog.get_table("orders")
    builder = DeleteBuilder(get_sql_dialect("mysql"))
    with pytest.raises(InvalidCriteriaError):
        builder.build(table, None)
    assert builder.build(table, ALL_ROWS).text == "DELETE FROM `orders`"
    spec = builder.build(table, eq("customer_id", 4))
    assert spec.text == "DELETE FROM `orders` WHERE `customer_id` = %s"


def test_keyed_update_template(catalog):
    table = catalog.get_table("orders")
    spec = UpdateBuilder(get_sql_dialect("sqlite")).build_keyed(table, ["total"], ["id"])
    assert spec.text == 'UPDATE "orders" SET "total" = ? WHERE "id" = ?'
    assert spec.with_parameters([1.5, 2]).parameters == (1.5, 2)


def test_insert_leaves_null_identity_to_the_database(catalog):
    table = catalog.get_table("customers")
    spec = InsertBuilder(get_sql_dialect("sqlite")).build(table, {"id": None, "name": "Ann"})
    assert spec.text == 'INSERT INTO "customers" ("name") VALUES (?)'
    assert spec.parameters == ("Ann",)
    assert InsertBuilder(get_sql_dialect("sqlite")).build(table, {"ID": None}).text == (
        'INSERT INTO "customers" DEFAULT VALUES'
    )


def test_same_column_name_from_two_tables_is_prefixed(catalog):
    dialect = SQLDialect(engine="mssql", placeholder="?", supports_native_paging=False)
    query = Query("orders").join("customers").select("orders.id", "customers.id", "total").take(2)
    spec = SelectBuilder(catalog, dialect).build_query(query)
    assert spec.text == (
        'SELECT "orders_id", "customers_id", "total" FROM (SELECT "orders"."id" AS "orders_id", '
        '"customers"."id" AS "customers_id", "orders"."total" AS "total", '
        'ROW_NUMBER() OVER (ORDER BY "orders"."id") AS "_row_number" FROM "orders" '
        'INNER JOIN "customers" ON "orders"."customer_id" = "customers"."id") AS "_paged" '
        'WHERE "_row_number" > 0 AND "_row_number" <= 2 ORDER BY "_row_number"'
    )
    with pytest.raises(InvalidCriteriaError, match="more than once"):
        SelectBuilder(catalog, dialect).build_query(Query("orders").select("id", "ID"))
