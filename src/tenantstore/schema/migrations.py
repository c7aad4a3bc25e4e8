"""
Versioned forward column migrations.

Each entry adds one nullable column (and optionally an index) to a table
that already shipped. Entries are applied in order and recorded in the
store's ``schema_migrations`` ledger; an entry whose column cannot be
added stays unrecorded and is retried on the next schema check.

Versions are permanent: never renumber or remove an entry, only append.
"""

from __future__ import annotations

from dataclasses import dataclass

from tenantstore.directory.models import IsolationMode
from tenantstore.schema.definitions import ColumnDef, ColumnType, IndexDef, widen_index


@dataclass(frozen=True)
class ColumnMigration:
    """
    Add a column to an existing table.

    Attributes:
        version: Permanent ledger identifier.
        table: Table receiving the column.
        column: The column to add; must be nullable or defaulted.
        index: Optional index created alongside the column.
    """

    version: str
    table: str
    column: ColumnDef
    index: IndexDef | None = None

    def index_for(self, mode: IsolationMode) -> IndexDef | None:
        """The index as it must exist in a store of the given mode."""
        if self.index is None or mode == IsolationMode.ISOLATED:
            return self.index
        return widen_index(self.index)


def _nullable(name: str, type_: ColumnType, length: int | None = None) -> ColumnDef:
    return ColumnDef(name, type_, length=length)


COLUMN_MIGRATIONS: tuple[ColumnMigration, ...] = (
    ColumnMigration(
        "0001_invoices_template_id",
        "invoices",
        _nullable("template_id", ColumnType.STRING, 100),
    ),
    ColumnMigration(
        "0002_invoices_template_data",
        "invoices",
        _nullable("template_data", ColumnType.JSON),
    ),
    ColumnMigration(
        "0003_invoices_pdf_url",
        "invoices",
        _nullable("pdf_url", ColumnType.STRING, 500),
    ),
    ColumnMigration(
        "0004_invoices_preview_url",
        "invoices",
        _nullable("preview_url", ColumnType.STRING, 500),
    ),
    ColumnMigration(
        "0005_online_stores_paystack_subaccount_code",
        "online_stores",
        _nullable("paystack_subaccount_code", ColumnType.STRING, 100),
    ),
    ColumnMigration(
        "0006_online_store_orders_idempotency_key",
        "online_store_orders",
        _nullable("idempotency_key", ColumnType.STRING, 255),
        index=IndexDef(("idempotency_key",), unique=True),
    ),
    ColumnMigration(
        "0007_online_store_order_items_variation_id",
        "online_store_order_items",
        _nullable("variation_id", ColumnType.INTEGER),
        index=IndexDef(("variation_id",)),
    ),
    ColumnMigration(
        "0008_online_store_order_items_variation_option_id",
        "online_store_order_items",
        _nullable("variation_option_id", ColumnType.INTEGER),
    ),
    ColumnMigration(
        "0009_online_store_order_items_variation_name",
        "online_store_order_items",
        _nullable("variation_name", ColumnType.STRING, 100),
    ),
    ColumnMigration(
        "0010_online_store_order_items_variation_option_value",
        "online_store_order_items",
        _nullable("variation_option_value", ColumnType.STRING, 255),
    ),
    ColumnMigration(
        "0011_ai_agent_configs_whatsapp_token_expires_at",
        "ai_agent_configs",
        _nullable("whatsapp_token_expires_at", ColumnType.TIMESTAMP),
        index=IndexDef(("whatsapp_token_expires_at",)),
    ),
    ColumnMigration(
        "0012_ai_agent_configs_instagram_token_expires_at",
        "ai_agent_configs",
        _nullable("instagram_token_expires_at", ColumnType.TIMESTAMP),
    ),
    ColumnMigration(
        "0013_whatsapp_connections_token_expires_at",
        "whatsapp_connections",
        _nullable("token_expires_at", ColumnType.TIMESTAMP),
        index=IndexDef(("token_expires_at",)),
    ),
    ColumnMigration(
        "0014_invoice_templates_pdf_url",
        "invoice_templates",
        _nullable("pdf_url", ColumnType.STRING, 500),
    ),
)


def find_column(
    table: str,
    column: str,
    migrations: tuple[ColumnMigration, ...] = COLUMN_MIGRATIONS,
) -> ColumnMigration | None:
    """Find the migration that introduces ``table.column``, if any."""
    for migration in migrations:
        if migration.table == table and migration.column.name == column:
            return migration
    return None


__all__ = [
    "ColumnMigration",
    "COLUMN_MIGRATIONS",
    "find_column",
]
