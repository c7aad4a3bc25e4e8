"""
Observability utilities for tenantstore.

Provides composition-based tracing and the standard attribute names used by
every component.

Example:
    >>> from tenantstore.observability import create_tracer, ATTR_TENANT_ID
    >>>
    >>> class MyComponent:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
    ...
    ...     async def run(self, tenant_id: int) -> None:
    ...         with self._tracer.span("my_component.run", {ATTR_TENANT_ID: tenant_id}):
    ...             pass
"""

from tenantstore.observability.attributes import (
    ATTR_CACHE_HIT,
    ATTR_COLUMN_NAME,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ERROR_TYPE,
    ATTR_HANDLE_GENERATION,
    ATTR_ISOLATION_MODE,
    ATTR_MIGRATION_JOB_ID,
    ATTR_MIGRATION_STATUS,
    ATTR_MIGRATION_VERSION,
    ATTR_ROW_COUNT,
    ATTR_SOURCE_LOCATOR,
    ATTR_STORE_LOCATOR,
    ATTR_SUBDOMAIN,
    ATTR_TABLE_NAME,
    ATTR_TARGET_LOCATOR,
    ATTR_TENANT_ID,
    ATTR_TENANT_KEY,
)
from tenantstore.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer (composition-based API)
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes - Tenant
    "ATTR_TENANT_ID",
    "ATTR_TENANT_KEY",
    "ATTR_SUBDOMAIN",
    "ATTR_ISOLATION_MODE",
    # Attributes - Store
    "ATTR_STORE_LOCATOR",
    "ATTR_HANDLE_GENERATION",
    "ATTR_CACHE_HIT",
    # Attributes - Schema
    "ATTR_TABLE_NAME",
    "ATTR_COLUMN_NAME",
    "ATTR_MIGRATION_VERSION",
    # Attributes - Database
    "ATTR_DB_SYSTEM",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    # Attributes - Tier migration
    "ATTR_MIGRATION_JOB_ID",
    "ATTR_MIGRATION_STATUS",
    "ATTR_SOURCE_LOCATOR",
    "ATTR_TARGET_LOCATOR",
    "ATTR_ROW_COUNT",
    "ATTR_ERROR_TYPE",
]
