"""
Schema provisioning for tenant stores.

Declarative table templates compiled per isolation mode, dialect-aware
DDL generation, a versioned column-migration ledger and the
SchemaProvisioner that ties them together.

Example:
    >>> from tenantstore.schema import SchemaProvisioner, compile_tables
    >>> from tenantstore.directory import IsolationMode
    >>>
    >>> tables = compile_tables(IsolationMode.SHARED)
    >>> result = await provisioner.ensure_schema("tenantstore_shared", IsolationMode.SHARED)
"""

from tenantstore.schema.ddl import (
    LEDGER_TABLE,
    POSTGRESQL_TYPE_MAP,
    SQLITE_TYPE_MAP,
    generate_add_column,
    generate_create_index,
    generate_create_table,
    generate_table_statements,
)
from tenantstore.schema.definitions import (
    TENANT_COLUMN,
    ColumnDef,
    ColumnType,
    ForeignKeyDef,
    IndexDef,
    TableDef,
    UniqueDef,
)
from tenantstore.schema.migrations import COLUMN_MIGRATIONS, ColumnMigration, find_column
from tenantstore.schema.provisioner import ProvisionResult, SchemaProvisioner
from tenantstore.schema.state import SchemaState, read_schema_state
from tenantstore.schema.templates import TENANT_TABLES, compile_tables, table_names

__all__ = [
    # Definitions
    "TENANT_COLUMN",
    "ColumnType",
    "ColumnDef",
    "IndexDef",
    "UniqueDef",
    "ForeignKeyDef",
    "TableDef",
    # Templates
    "TENANT_TABLES",
    "compile_tables",
    "table_names",
    # DDL
    "LEDGER_TABLE",
    "POSTGRESQL_TYPE_MAP",
    "SQLITE_TYPE_MAP",
    "generate_create_table",
    "generate_create_index",
    "generate_table_statements",
    "generate_add_column",
    # Migrations
    "ColumnMigration",
    "COLUMN_MIGRATIONS",
    "find_column",
    # State
    "SchemaState",
    "read_schema_state",
    # Provisioner
    "ProvisionResult",
    "SchemaProvisioner",
]
