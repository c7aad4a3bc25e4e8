"""
Tenant directory: control-plane records for tenants and license keys.

Example:
    >>> from tenantstore.directory import InMemoryTenantDirectory, TenantCreate
    >>>
    >>> directory = InMemoryTenantDirectory()
    >>> tenant = await directory.create(TenantCreate(name="Acme", subdomain="acme"))
"""

from tenantstore.directory.licenses import (
    LICENSE_ALPHABET,
    generate_license_key,
    is_well_formed,
    normalize_license_key,
)
from tenantstore.directory.models import (
    RESERVED_SUBDOMAINS,
    IsolationMode,
    LicenseKey,
    LicenseStatus,
    SubscriptionTier,
    Tenant,
    TenantCreate,
    TenantStatus,
    normalize_subdomain,
)
from tenantstore.directory.repository import (
    InMemoryTenantDirectory,
    SQLTenantDirectory,
    TenantDirectory,
)
from tenantstore.directory.resolver import SUBDOMAIN_HEADER, TenantResolver, extract_subdomain

__all__ = [
    # Models
    "IsolationMode",
    "SubscriptionTier",
    "TenantStatus",
    "LicenseStatus",
    "Tenant",
    "TenantCreate",
    "LicenseKey",
    "RESERVED_SUBDOMAINS",
    "normalize_subdomain",
    # Licenses
    "LICENSE_ALPHABET",
    "generate_license_key",
    "normalize_license_key",
    "is_well_formed",
    # Repository
    "TenantDirectory",
    "SQLTenantDirectory",
    "InMemoryTenantDirectory",
    # Resolver
    "SUBDOMAIN_HEADER",
    "TenantResolver",
    "extract_subdomain",
]
