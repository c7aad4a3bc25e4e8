"""
Standard span attributes for tenantstore.

Attribute names used by every tenantstore component so that spans from the
directory, the provisioner, the connection registry and the tier migrator
can be correlated. Database attributes follow OpenTelemetry semantic
conventions.

Example:
    >>> from tenantstore.observability.attributes import (
    ...     ATTR_TENANT_ID,
    ...     ATTR_STORE_LOCATOR,
    ... )
    >>>
    >>> with tracer.span(
    ...     "tenantstore.registry.acquire",
    ...     {ATTR_TENANT_ID: tenant.id, ATTR_STORE_LOCATOR: tenant.storage_locator},
    ... ):
    ...     pass
"""

# =============================================================================
# Tenant Attributes
# =============================================================================

ATTR_TENANT_ID = "tenantstore.tenant.id"
"""Identifier of the tenant (integer)."""

ATTR_TENANT_KEY = "tenantstore.tenant.key"
"""Registry key: tenant id or the shared pool sentinel (string)."""

ATTR_SUBDOMAIN = "tenantstore.tenant.subdomain"
"""Subdomain used to look up a tenant (string)."""

ATTR_ISOLATION_MODE = "tenantstore.tenant.isolation_mode"
"""Isolation mode of the tenant or schema ('shared' or 'isolated')."""

# =============================================================================
# Store Attributes
# =============================================================================

ATTR_STORE_LOCATOR = "tenantstore.store.locator"
"""Physical store (database) name the operation targets."""

ATTR_HANDLE_GENERATION = "tenantstore.handle.generation"
"""Generation counter of a connection handle (integer)."""

ATTR_CACHE_HIT = "tenantstore.cache.hit"
"""Whether a lookup was served from cache (boolean)."""

# =============================================================================
# Schema Attributes
# =============================================================================

ATTR_TABLE_NAME = "tenantstore.schema.table"
"""Table being provisioned, evolved or copied."""

ATTR_COLUMN_NAME = "tenantstore.schema.column"
"""Column being added by a forward migration."""

ATTR_MIGRATION_VERSION = "tenantstore.schema.migration_version"
"""Identifier of a ledger migration entry."""

# =============================================================================
# Database Attributes (OpenTelemetry semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'sqlite')."""

ATTR_DB_NAME = "db.name"
"""Database name."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation (e.g., 'SELECT', 'INSERT', 'CREATE TABLE')."""

# =============================================================================
# Tier Migration Attributes
# =============================================================================

ATTR_MIGRATION_JOB_ID = "tenantstore.migration.job_id"
"""Identifier of a tier migration job (UUID string)."""

ATTR_MIGRATION_STATUS = "tenantstore.migration.status"
"""Current status of a tier migration job."""

ATTR_SOURCE_LOCATOR = "tenantstore.migration.source_locator"
"""Store rows are copied from."""

ATTR_TARGET_LOCATOR = "tenantstore.migration.target_locator"
"""Store rows are copied into."""

ATTR_ROW_COUNT = "tenantstore.migration.row_count"
"""Number of rows read or written (integer)."""

ATTR_ERROR_TYPE = "error.type"
"""Exception class name for failed operations."""

# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    # Tenant
    "ATTR_TENANT_ID",
    "ATTR_TENANT_KEY",
    "ATTR_SUBDOMAIN",
    "ATTR_ISOLATION_MODE",
    # Store
    "ATTR_STORE_LOCATOR",
    "ATTR_HANDLE_GENERATION",
    "ATTR_CACHE_HIT",
    # Schema
    "ATTR_TABLE_NAME",
    "ATTR_COLUMN_NAME",
    "ATTR_MIGRATION_VERSION",
    # Database (OTEL semantic)
    "ATTR_DB_SYSTEM",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    # Tier migration
    "ATTR_MIGRATION_JOB_ID",
    "ATTR_MIGRATION_STATUS",
    "ATTR_SOURCE_LOCATOR",
    "ATTR_TARGET_LOCATOR",
    "ATTR_ROW_COUNT",
    "ATTR_ERROR_TYPE",
]
