"""
Table templates for tenant stores.

TENANT_TABLES lists every table of a tenant store in foreign-key order:
a table only references tables that appear before it. Columns added
after a table first shipped are not listed here; they live in the
versioned column migrations (see tenantstore.schema.migrations) so that
existing stores evolve the same way fresh ones do.
"""

from __future__ import annotations

from tenantstore.directory.models import IsolationMode
from tenantstore.schema.definitions import (
    ColumnDef,
    ColumnType,
    ForeignKeyDef,
    IndexDef,
    TableDef,
    UniqueDef,
)

# =============================================================================
# Column helpers
# =============================================================================


def _id() -> ColumnDef:
    return ColumnDef("id", ColumnType.INTEGER, nullable=False, primary_key=True)


def _int(name: str, nullable: bool = True, default: int | None = None) -> ColumnDef:
    return ColumnDef(name, ColumnType.INTEGER, nullable=nullable, default=default)


def _str(
    name: str, length: int = 255, nullable: bool = True, default: str | None = None
) -> ColumnDef:
    return ColumnDef(name, ColumnType.STRING, length=length, nullable=nullable, default=default)


def _text(name: str) -> ColumnDef:
    return ColumnDef(name, ColumnType.TEXT)


def _money(name: str, nullable: bool = True, default: float | None = 0.0) -> ColumnDef:
    return ColumnDef(name, ColumnType.DECIMAL, nullable=nullable, default=default)


def _bool(name: str, default: bool) -> ColumnDef:
    return ColumnDef(name, ColumnType.BOOLEAN, default=default)


def _json(name: str) -> ColumnDef:
    return ColumnDef(name, ColumnType.JSON)


def _created() -> ColumnDef:
    return ColumnDef("created_at", ColumnType.TIMESTAMP, default_now=True)


def _updated() -> ColumnDef:
    return ColumnDef("updated_at", ColumnType.TIMESTAMP, default_now=True)


def _fk(column: str, table: str, on_delete: str = "CASCADE") -> ForeignKeyDef:
    return ForeignKeyDef(column, table, on_delete=on_delete)


def _idx(*columns: str) -> IndexDef:
    return IndexDef(tuple(columns))


def _uq(*columns: str) -> UniqueDef:
    return UniqueDef(tuple(columns))


# =============================================================================
# Tables
# =============================================================================

STORES = TableDef(
    name="stores",
    columns=(
        _id(),
        _str("name", nullable=False),
        _str("store_type", 20, default="retail_store"),
        _text("address"),
        _str("city", 100),
        _str("state", 100),
        _str("country", 100),
        _str("postal_code", 20),
        _str("phone", 50),
        _str("email"),
        _str("manager_name"),
        _json("opening_hours"),
        _bool("is_active", True),
        _created(),
        _updated(),
    ),
    indexes=(_idx("is_active"),),
)

PRODUCTS = TableDef(
    name="products",
    columns=(
        _id(),
        _str("name", nullable=False),
        _text("description"),
        _str("sku", 100),
        _str("barcode", 100),
        _money("price"),
        _money("cost_price", default=None),
        _int("stock", default=0),
        _int("low_stock_threshold", default=10),
        _str("category", 100),
        _str("image_url", 500),
        ColumnDef("expiry_date", ColumnType.DATE),
        _bool("is_active", True),
        _created(),
        _updated(),
    ),
    indexes=(_idx("category"), _idx("is_active")),
    uniques=(_uq("sku"), _uq("barcode")),
)

PRODUCT_STORES = TableDef(
    name="product_stores",
    columns=(
        _id(),
        _int("product_id", nullable=False),
        _int("store_id", nullable=False),
        _int("stock", default=0),
        _money("price_override", default=None),
        _created(),
    ),
    indexes=(_idx("product_id"), _idx("store_id")),
    uniques=(_uq("product_id", "store_id"),),
    foreign_keys=(_fk("product_id", "products"), _fk("store_id", "stores")),
)

CUSTOMERS = TableDef(
    name="customers",
    columns=(
        _id(),
        _str("name", nullable=False),
        _str("email"),
        _str("phone", 50),
        _text("address"),
        _str("city", 100),
        _str("state", 100),
        _str("country", 100),
        _str("customer_type", 20, default="individual"),
        _created(),
        _updated(),
    ),
    indexes=(_idx("email"), _idx("phone")),
)

INVOICES = TableDef(
    name="invoices",
    columns=(
        _id(),
        _str("invoice_number", 50, nullable=False),
        _int("store_id"),
        _int("customer_id"),
        ColumnDef("issue_date", ColumnType.DATE, nullable=False),
        ColumnDef("due_date", ColumnType.DATE),
        _money("subtotal", nullable=False),
        _money("tax_amount"),
        _money("vat_amount"),
        _money("discount_amount"),
        _money("total", nullable=False),
        _json("tax_breakdown"),
        _str("status", 20, default="draft"),
        _str("payment_method", 50),
        ColumnDef("payment_date", ColumnType.DATE),
        _text("notes"),
        _created(),
        _updated(),
    ),
    indexes=(_idx("customer_id"), _idx("store_id"), _idx("status"), _idx("issue_date")),
    uniques=(_uq("invoice_number"),),
    foreign_keys=(
        _fk("store_id", "stores", "SET NULL"),
        _fk("customer_id", "customers", "SET NULL"),
    ),
)

INVOICE_ITEMS = TableDef(
    name="invoice_items",
    columns=(
        _id(),
        _int("invoice_id", nullable=False),
        _int("product_id"),
        _str("item_name", nullable=False),
        _text("description"),
        _money("quantity", nullable=False, default=None),
        _money("unit_price", nullable=False, default=None),
        _money("discount_amount"),
        _money("total", nullable=False, default=None),
        _created(),
    ),
    indexes=(_idx("invoice_id"), _idx("product_id")),
    foreign_keys=(
        _fk("invoice_id", "invoices"),
        _fk("product_id", "products", "SET NULL"),
    ),
)

STORE_SERVICES = TableDef(
    name="store_services",
    columns=(
        _id(),
        _int("store_id"),
        _str("service_title", nullable=False),
        _text("description"),
        _money("price", default=None),
        _str("service_image_url", 500),
        _int("duration_minutes", default=30),
        _str("location_type", 20, default="in_person"),
        _json("availability"),
        _bool("is_active", True),
        _int("sort_order", default=1),
        _created(),
        _updated(),
    ),
    indexes=(_idx("store_id"), _idx("is_active")),
    foreign_keys=(_fk("store_id", "stores", "SET NULL"),),
)

BOOKINGS = TableDef(
    name="bookings",
    columns=(
        _id(),
        _int("store_id"),
        _int("service_id"),
        _int("customer_id"),
        _str("customer_name"),
        _str("customer_email"),
        _str("customer_phone", 50),
        _str("service_title", nullable=False),
        ColumnDef("scheduled_at", ColumnType.TIMESTAMP, nullable=False),
        _int("duration_minutes", default=60),
        _str("timezone", 50, default="Africa/Lagos"),
        _str("location_type", 20, default="in_person"),
        _str("status", 20, default="pending"),
        _text("notes"),
        _created(),
        _updated(),
    ),
    indexes=(_idx("store_id"), _idx("service_id"), _idx("scheduled_at"), _idx("status")),
    foreign_keys=(
        _fk("store_id", "stores", "SET NULL"),
        _fk("service_id", "store_services", "SET NULL"),
        _fk("customer_id", "customers", "SET NULL"),
    ),
)

BOOKING_AVAILABILITY = TableDef(
    name="booking_availability",
    columns=(
        _id(),
        _int("store_id", nullable=False),
        _int("service_id"),
        _int("day_of_week", nullable=False),
        ColumnDef("start_time", ColumnType.TIME, nullable=False),
        ColumnDef("end_time", ColumnType.TIME, nullable=False),
        _bool("is_available", True),
        _int("max_bookings_per_slot", default=1),
        _created(),
        _updated(),
    ),
    indexes=(_idx("store_id"), _idx("service_id"), _idx("day_of_week")),
    foreign_keys=(
        _fk("store_id", "stores"),
        _fk("service_id", "store_services", "SET NULL"),
    ),
)

ONLINE_STORES = TableDef(
    name="online_stores",
    columns=(
        _id(),
        _str("username", 100, nullable=False),
        _str("store_name", nullable=False),
        _text("store_description"),
        _str("profile_logo_url", 500),
        _str("banner_image_url", 500),
        _str("background_color", 7, default="#F2EFEF"),
        _str("button_style", 20, default="rounded"),
        _bool("is_location_based", False),
        _json("social_links"),
        _bool("is_published", False),
        _bool("setup_completed", False),
        _created(),
        _updated(),
    ),
    indexes=(_idx("is_published"),),
    uniques=(_uq("username"),),
)

ONLINE_STORE_LOCATIONS = TableDef(
    name="online_store_locations",
    columns=(
        _id(),
        _int("online_store_id", nullable=False),
        _int("store_id", nullable=False),
        _bool("is_default", False),
        _created(),
    ),
    indexes=(_idx("online_store_id"), _idx("store_id")),
    uniques=(_uq("online_store_id", "store_id"),),
    foreign_keys=(_fk("online_store_id", "online_stores"), _fk("store_id", "stores")),
)

STORE_PRODUCTS = TableDef(
    name="store_products",
    columns=(
        _id(),
        _int("product_id", nullable=False),
        _bool("is_published", False),
        _bool("featured", False),
        _int("sort_order", default=1),
        _created(),
        _updated(),
    ),
    indexes=(_idx("is_published"), _idx("featured")),
    uniques=(_uq("product_id"),),
    foreign_keys=(_fk("product_id", "products"),),
)

ONLINE_STORE_SERVICES = TableDef(
    name="online_store_services",
    columns=(
        _id(),
        _int("online_store_id", nullable=False),
        _int("service_id", nullable=False),
        _bool("is_visible", True),
        _int("sort_order", default=1),
        _created(),
    ),
    indexes=(_idx("online_store_id"), _idx("service_id")),
    uniques=(_uq("online_store_id", "service_id"),),
    foreign_keys=(_fk("online_store_id", "online_stores"), _fk("service_id", "store_services")),
)

STORE_COLLECTIONS = TableDef(
    name="store_collections",
    columns=(
        _id(),
        _int("online_store_id", nullable=False),
        _str("collection_name", nullable=False),
        _str("collection_type", 20, nullable=False, default="product"),
        _str("layout_type", 20, default="grid"),
        _bool("is_pinned", False),
        _bool("is_visible", True),
        _int("sort_order", default=1),
        _created(),
        _updated(),
    ),
    indexes=(_idx("online_store_id"), _idx("sort_order")),
    foreign_keys=(_fk("online_store_id", "online_stores"),),
)

STORE_COLLECTION_PRODUCTS = TableDef(
    name="store_collection_products",
    columns=(
        _id(),
        _int("collection_id", nullable=False),
        _int("product_id", nullable=False),
        _int("store_id"),
        _bool("is_pinned", False),
        _int("sort_order", default=1),
        _created(),
    ),
    indexes=(_idx("collection_id"), _idx("product_id"), _idx("store_id")),
    foreign_keys=(
        _fk("collection_id", "store_collections"),
        _fk("product_id", "products"),
        _fk("store_id", "stores", "SET NULL"),
    ),
)

STORE_COLLECTION_SERVICES = TableDef(
    name="store_collection_services",
    columns=(
        _id(),
        _int("collection_id", nullable=False),
        _int("service_id", nullable=False),
        _int("store_id"),
        _bool("is_pinned", False),
        _int("sort_order", default=1),
        _created(),
    ),
    indexes=(_idx("collection_id"), _idx("service_id"), _idx("store_id")),
    foreign_keys=(
        _fk("collection_id", "store_collections"),
        _fk("service_id", "store_services"),
        _fk("store_id", "stores", "SET NULL"),
    ),
)

PRODUCT_VARIATIONS = TableDef(
    name="product_variations",
    columns=(
        _id(),
        _int("product_id", nullable=False),
        _str("variation_name", 100, nullable=False),
        _str("variation_type", 20, nullable=False),
        _bool("is_required", False),
        _int("sort_order", default=0),
        _created(),
    ),
    indexes=(_idx("product_id"), _idx("variation_type")),
    foreign_keys=(_fk("product_id", "products"),),
)

PRODUCT_VARIATION_OPTIONS = TableDef(
    name="product_variation_options",
    columns=(
        _id(),
        _int("variation_id", nullable=False),
        _str("option_value", nullable=False),
        _str("option_display_name"),
        _money("price_adjustment"),
        _int("stock", default=0),
        _str("sku", 100),
        _str("image_url", 500),
        _bool("is_default", False),
        _bool("is_available", True),
        _int("sort_order", default=0),
        _created(),
    ),
    indexes=(_idx("variation_id"), _idx("sku"), _idx("is_available")),
    foreign_keys=(_fk("variation_id", "product_variations"),),
)

ONLINE_STORE_ORDERS = TableDef(
    name="online_store_orders",
    columns=(
        _id(),
        _int("online_store_id", nullable=False),
        _int("store_id"),
        _str("order_number", 50, nullable=False),
        _str("customer_name", nullable=False),
        _str("customer_email"),
        _str("customer_phone", 50),
        _text("customer_address"),
        ColumnDef("delivery_date", ColumnType.DATE),
        _money("subtotal", nullable=False),
        _money("shipping_amount"),
        _money("total", nullable=False),
        _str("status", 20, default="pending"),
        _str("payment_status", 20, default="pending"),
        _str("payment_method", 50),
        _text("notes"),
        _created(),
        _updated(),
    ),
    indexes=(_idx("status"), _idx("payment_status"), _idx("online_store_id")),
    uniques=(_uq("order_number"),),
    foreign_keys=(
        _fk("online_store_id", "online_stores"),
        _fk("store_id", "stores", "SET NULL"),
    ),
)

ONLINE_STORE_ORDER_ITEMS = TableDef(
    name="online_store_order_items",
    columns=(
        _id(),
        _int("order_id", nullable=False),
        _int("product_id"),
        _str("product_name", nullable=False),
        _str("product_sku", 100),
        _money("quantity", nullable=False, default=None),
        _money("unit_price", nullable=False, default=None),
        _money("total", nullable=False, default=None),
        _created(),
    ),
    indexes=(_idx("order_id"), _idx("product_id")),
    foreign_keys=(
        _fk("order_id", "online_store_orders"),
        _fk("product_id", "products", "SET NULL"),
    ),
)

STAFF = TableDef(
    name="staff",
    columns=(
        _id(),
        _int("store_id"),
        _str("name", nullable=False),
        _str("email"),
        _str("phone", 50),
        _int("role_id"),
        _str("employee_id", 50),
        ColumnDef("hire_date", ColumnType.DATE),
        _money("salary", default=None),
        _str("status", 20, default="active"),
        ColumnDef("last_login", ColumnType.TIMESTAMP),
        _created(),
        _updated(),
    ),
    indexes=(_idx("role_id"), _idx("store_id"), _idx("status")),
    uniques=(_uq("email"),),
    foreign_keys=(_fk("store_id", "stores", "SET NULL"),),
)

PAYMENT_GATEWAYS = TableDef(
    name="payment_gateways",
    columns=(
        _id(),
        _str("gateway_name", 20, nullable=False),
        _bool("is_active", True),
        _bool("is_default", False),
        _str("public_key", nullable=False),
        _str("secret_key", 500, nullable=False),
        _str("webhook_secret", 500),
        _bool("test_mode", False),
        _money("transaction_fee_percentage"),
        _json("metadata"),
        _created(),
        _updated(),
    ),
    indexes=(_idx("gateway_name"), _idx("is_active")),
)

# order_id and invoice_id carry no foreign keys
PAYMENT_TRANSACTIONS = TableDef(
    name="payment_transactions",
    columns=(
        _id(),
        _int("order_id"),
        _int("invoice_id"),
        _str("transaction_reference", 100, nullable=False),
        _str("gateway_name", 20, nullable=False),
        _str("gateway_transaction_id"),
        _money("amount", nullable=False, default=None),
        _str("currency", 10, default="NGN"),
        _money("platform_fee"),
        _money("merchant_amount", nullable=False, default=None),
        _str("customer_email"),
        _str("customer_name"),
        _str("payment_method", 50),
        _str("status", 20, default="pending"),
        _json("gateway_response"),
        _text("failure_reason"),
        ColumnDef("paid_at", ColumnType.TIMESTAMP),
        _created(),
        _updated(),
    ),
    indexes=(
        _idx("gateway_transaction_id"),
        _idx("status"),
        _idx("order_id"),
        _idx("invoice_id"),
    ),
    uniques=(_uq("transaction_reference"),),
)

BRAND_COLORS = TableDef(
    name="brand_colors",
    columns=(
        _id(),
        _str("logo_url", 500),
        _str("primary_color", 7),
        _str("secondary_color", 7),
        _str("accent_color", 7),
        _str("text_color", 7),
        _str("background_color", 7),
        _str("border_color", 7),
        _json("color_palette"),
        _bool("extracted_from_logo", False),
        ColumnDef("extracted_at", ColumnType.TIMESTAMP),
        _created(),
        _updated(),
    ),
)

INVOICE_TEMPLATES = TableDef(
    name="invoice_templates",
    columns=(
        _id(),
        _int("invoice_id", nullable=False),
        _str("template_id", 100, nullable=False),
        _str("template_name"),
        _json("template_data"),
        _str("preview_url", 500),
        _bool("is_selected", False),
        _created(),
    ),
    indexes=(_idx("invoice_id"), _idx("template_id"), _idx("is_selected")),
    uniques=(_uq("invoice_id", "template_id"),),
    foreign_keys=(_fk("invoice_id", "invoices"),),
)

# invoice_id is NULL for standalone sales receipts
RECEIPTS = TableDef(
    name="receipts",
    columns=(
        _id(),
        _int("invoice_id"),
        _str("receipt_number", 100, nullable=False),
        _str("preview_url", 500),
        _str("pdf_url", 500),
        _text("esc_pos_commands"),
        _created(),
    ),
    indexes=(_idx("invoice_id"), _idx("receipt_number")),
    uniques=(_uq("invoice_id", "receipt_number"),),
    foreign_keys=(_fk("invoice_id", "invoices"),),
)

AI_AGENT_CONFIGS = TableDef(
    name="ai_agent_configs",
    columns=(
        _id(),
        _bool("whatsapp_enabled", False),
        _bool("instagram_enabled", False),
        _str("whatsapp_phone_number", 50),
        _str("whatsapp_phone_number_id", 100),
        _text("whatsapp_access_token"),
        _str("instagram_account_id", 100),
        _text("instagram_access_token"),
        _text("greeting_message"),
        _json("business_hours"),
        _json("settings"),
        _created(),
        _updated(),
    ),
    indexes=(_idx("whatsapp_enabled"), _idx("instagram_enabled")),
)

WHATSAPP_CONNECTIONS = TableDef(
    name="whatsapp_connections",
    columns=(
        _id(),
        _str("phone_number_id", nullable=False),
        _str("waba_id"),
        ColumnDef("access_token", ColumnType.TEXT, nullable=False),
        ColumnDef("connected_at", ColumnType.TIMESTAMP, default_now=True),
        _updated(),
    ),
    uniques=(_uq("phone_number_id"),),
)

TENANT_TABLES: tuple[TableDef, ...] = (
    STORES,
    PRODUCTS,
    PRODUCT_STORES,
    CUSTOMERS,
    INVOICES,
    INVOICE_ITEMS,
    STORE_SERVICES,
    BOOKINGS,
    BOOKING_AVAILABILITY,
    ONLINE_STORES,
    ONLINE_STORE_LOCATIONS,
    STORE_PRODUCTS,
    ONLINE_STORE_SERVICES,
    STORE_COLLECTIONS,
    STORE_COLLECTION_PRODUCTS,
    STORE_COLLECTION_SERVICES,
    PRODUCT_VARIATIONS,
    PRODUCT_VARIATION_OPTIONS,
    ONLINE_STORE_ORDERS,
    ONLINE_STORE_ORDER_ITEMS,
    STAFF,
    PAYMENT_GATEWAYS,
    PAYMENT_TRANSACTIONS,
    BRAND_COLORS,
    INVOICE_TEMPLATES,
    RECEIPTS,
    AI_AGENT_CONFIGS,
    WHATSAPP_CONNECTIONS,
)


def compile_tables(
    mode: IsolationMode,
    templates: tuple[TableDef, ...] = TENANT_TABLES,
) -> tuple[TableDef, ...]:
    """
    Compile every template for a store of the given isolation mode.

    Example:
        >>> shared = compile_tables(IsolationMode.SHARED)
        >>> all(t.has_discriminator for t in shared)
        True
    """
    return tuple(table.compile(mode) for table in templates)


def table_names(templates: tuple[TableDef, ...] = TENANT_TABLES) -> tuple[str, ...]:
    return tuple(table.name for table in templates)


__all__ = [
    "TENANT_TABLES",
    "compile_tables",
    "table_names",
]
