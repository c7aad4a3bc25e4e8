"""
tenantstore - tenant database routing and provisioning.

This library provides:
- A tenant directory with license-gated registration and subdomain lookup
- Schema provisioning for shared and per-tenant stores with a versioned
  column-migration ledger
- A connection registry handing out one cached, self-healing handle per
  tenant key
- Shared -> isolated tier migration with per-table outcomes and an
  explicit source cleanup step
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tenantstore")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from tenantstore.config import TenantStoreSettings, get_settings
from tenantstore.connections import (
    SHARED_POOL_KEY,
    ConnectionHandle,
    ConnectionRegistry,
    RegistryStats,
    StoreEngineFactory,
    TenantSession,
)
from tenantstore.directory import (
    InMemoryTenantDirectory,
    IsolationMode,
    LicenseKey,
    LicenseStatus,
    SQLTenantDirectory,
    SubscriptionTier,
    Tenant,
    TenantCreate,
    TenantDirectory,
    TenantResolver,
    TenantStatus,
)
from tenantstore.exceptions import (
    AcquireTimeoutError,
    ColumnEvolutionError,
    ConnectionFailedError,
    ErrorClassification,
    ErrorRecoverability,
    ErrorSeverity,
    LicenseInvalidError,
    MigrationJobNotFoundError,
    MigrationTableError,
    SchemaProvisionError,
    SubdomainTakenError,
    TenantNotFoundError,
    TenantScopeError,
    TenantStateError,
    TenantStoreError,
)
from tenantstore.migration import (
    InMemoryMigrationJobRepository,
    MigrationConfig,
    MigrationJob,
    MigrationStatus,
    SourceCleaner,
    SQLMigrationJobRepository,
    TableOutcome,
    TierMigrator,
)
from tenantstore.schema import ProvisionResult, SchemaProvisioner, SchemaState

__all__ = [
    "__version__",
    # Configuration
    "TenantStoreSettings",
    "get_settings",
    # Directory
    "IsolationMode",
    "SubscriptionTier",
    "TenantStatus",
    "LicenseStatus",
    "Tenant",
    "TenantCreate",
    "LicenseKey",
    "TenantDirectory",
    "SQLTenantDirectory",
    "InMemoryTenantDirectory",
    "TenantResolver",
    # Schema
    "SchemaProvisioner",
    "ProvisionResult",
    "SchemaState",
    # Connections
    "SHARED_POOL_KEY",
    "StoreEngineFactory",
    "ConnectionHandle",
    "ConnectionRegistry",
    "RegistryStats",
    "TenantSession",
    # Migration
    "MigrationStatus",
    "TableOutcome",
    "MigrationConfig",
    "MigrationJob",
    "TierMigrator",
    "SourceCleaner",
    "SQLMigrationJobRepository",
    "InMemoryMigrationJobRepository",
    # Exceptions
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "TenantStoreError",
    "TenantNotFoundError",
    "LicenseInvalidError",
    "SubdomainTakenError",
    "TenantStateError",
    "ConnectionFailedError",
    "AcquireTimeoutError",
    "SchemaProvisionError",
    "ColumnEvolutionError",
    "MigrationTableError",
    "MigrationJobNotFoundError",
    "TenantScopeError",
]
