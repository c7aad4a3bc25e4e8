"""
Unit tests for DDL generation.
"""

import pytest

from tenantstore.directory.models import IsolationMode
from tenantstore.schema.ddl import (
    generate_add_column,
    generate_column,
    generate_create_index,
    generate_create_table,
    generate_table_statements,
    normalize_dialect,
)
from tenantstore.schema.definitions import ColumnDef, ColumnType, IndexDef
from tenantstore.schema.templates import TENANT_TABLES


def _template(name: str):
    return next(table for table in TENANT_TABLES if table.name == name)


class TestGenerateColumn:
    def test_primary_key_per_dialect(self):
        column = ColumnDef("id", ColumnType.INTEGER, nullable=False, primary_key=True)
        assert generate_column(column, "postgresql") == "id SERIAL PRIMARY KEY"
        assert generate_column(column, "sqlite") == "id INTEGER PRIMARY KEY AUTOINCREMENT"

    @pytest.mark.parametrize(
        "type_,postgresql,sqlite",
        [
            (ColumnType.JSON, "JSONB", "TEXT"),
            (ColumnType.TIMESTAMP, "TIMESTAMP WITH TIME ZONE", "TEXT"),
            (ColumnType.DATE, "DATE", "TEXT"),
            (ColumnType.BOOLEAN, "BOOLEAN", "INTEGER"),
            (ColumnType.DECIMAL, "DECIMAL(10, 2)", "NUMERIC"),
        ],
    )
    def test_type_mapping(self, type_, postgresql, sqlite):
        column = ColumnDef("value", type_)
        assert generate_column(column, "postgresql") == f"value {postgresql}"
        assert generate_column(column, "sqlite") == f"value {sqlite}"

    def test_string_length_and_not_null(self):
        column = ColumnDef("sku", ColumnType.STRING, length=100, nullable=False)
        assert generate_column(column, "postgresql") == "sku VARCHAR(100) NOT NULL"

    def test_defaults(self):
        flag = ColumnDef("is_active", ColumnType.BOOLEAN, default=True)
        assert generate_column(flag, "postgresql").endswith("DEFAULT TRUE")
        assert generate_column(flag, "sqlite").endswith("DEFAULT 1")

        quoted = ColumnDef("kind", ColumnType.STRING, length=20, default="o'brien")
        assert generate_column(quoted, "sqlite").endswith("DEFAULT 'o''brien'")

        stamped = ColumnDef("created_at", ColumnType.TIMESTAMP, default_now=True)
        assert generate_column(stamped, "sqlite").endswith("DEFAULT CURRENT_TIMESTAMP")


class TestGenerateCreateTable:
    def test_shared_products(self):
        products = _template("products").compile(IsolationMode.SHARED)

        sql = generate_create_table(products, "postgresql")

        assert sql.startswith("CREATE TABLE IF NOT EXISTS products (")
        assert "tenant_id INTEGER NOT NULL" in sql
        assert "CONSTRAINT uq_products_tenant_id_sku UNIQUE (tenant_id, sku)" in sql

    def test_isolated_products_have_no_discriminator(self):
        products = _template("products").compile(IsolationMode.ISOLATED)

        sql = generate_create_table(products, "sqlite")

        assert "tenant_id" not in sql
        assert "CONSTRAINT uq_products_sku UNIQUE (sku)" in sql

    def test_foreign_keys(self):
        items = _template("invoice_items").compile(IsolationMode.ISOLATED)

        sql = generate_create_table(items, "postgresql")

        assert "FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE" in sql
        assert "FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE SET NULL" in sql

    def test_table_statements_include_indexes(self):
        stores = _template("stores").compile(IsolationMode.SHARED)

        statements = generate_table_statements(stores, "sqlite")

        assert statements[0].startswith("CREATE TABLE")
        assert (
            "CREATE INDEX IF NOT EXISTS idx_stores_tenant_id ON stores (tenant_id)" in statements
        )


class TestIndexesAndColumns:
    def test_unique_index(self):
        sql = generate_create_index("orders", IndexDef(("tenant_id", "key"), unique=True))
        assert sql == (
            "CREATE UNIQUE INDEX IF NOT EXISTS uq_orders_tenant_id_key ON orders (tenant_id, key)"
        )

    def test_add_column(self):
        column = ColumnDef("pdf_url", ColumnType.STRING, length=500)
        assert generate_add_column("invoices", column, "sqlite") == (
            "ALTER TABLE invoices ADD COLUMN pdf_url VARCHAR(500)"
        )

    def test_add_not_null_column_without_default_is_rejected(self):
        column = ColumnDef("code", ColumnType.STRING, length=10, nullable=False)
        with pytest.raises(ValueError, match="needs a default"):
            generate_add_column("invoices", column)


class TestNormalizeDialect:
    def test_supported(self):
        assert normalize_dialect("sqlite") == "sqlite"
        assert normalize_dialect("postgresql") == "postgresql"

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported dialect"):
            normalize_dialect("mysql")
