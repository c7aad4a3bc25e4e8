"""
Data models for the tenant directory.

The directory is the control plane's record of every tenant: who it is,
which subscription tier it is on and which physical store holds its rows.

Models:
    - Tenant: Directory record for one tenant
    - TenantCreate: Registration payload validated before insert
    - LicenseKey: Enterprise license key and its redemption state

Enums:
    - IsolationMode: Shared multi-tenant store or a dedicated store
    - SubscriptionTier: Billing tier
    - TenantStatus: Lifecycle status
    - LicenseStatus: Redemption status of a license key
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class IsolationMode(Enum):
    """
    Where a tenant's rows live.

    The only permitted transition is SHARED -> ISOLATED, performed once by
    the tier migrator.
    """

    SHARED = "shared"
    """Rows live in the shared store, scoped by the tenant_id discriminator."""

    ISOLATED = "isolated"
    """Rows live in a dedicated store with no discriminator column."""

    def can_transition_to(self, target: IsolationMode) -> bool:
        return self == IsolationMode.SHARED and target == IsolationMode.ISOLATED


class SubscriptionTier(Enum):
    FREE = "free"
    ENTERPRISE = "enterprise"


class TenantStatus(Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class LicenseStatus(Enum):
    """Redemption status of a license key."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"
    REVOKED = "revoked"


SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

RESERVED_SUBDOMAINS = frozenset({"www", "api", "admin", "app", "mail", "ftp", "cpanel"})
"""Host labels that never name a tenant."""


def normalize_subdomain(value: str) -> str:
    """Lower-case and strip a subdomain; raise ValueError if it is not usable."""
    subdomain = value.strip().lower()
    if not SUBDOMAIN_PATTERN.match(subdomain):
        raise ValueError(f"Invalid subdomain: {value!r}")
    if subdomain in RESERVED_SUBDOMAINS:
        raise ValueError(f"Subdomain is reserved: {value!r}")
    return subdomain


@dataclass(frozen=True)
class Tenant:
    """
    Directory record for one tenant.

    Attributes:
        id: Integer tenant identifier assigned by the directory.
        name: Display name of the business.
        subdomain: Globally unique, lower-case subdomain.
        isolation_mode: Shared or isolated storage.
        subscription_tier: Billing tier.
        storage_locator: Name of the physical store backing the tenant.
        status: Lifecycle status.
        created_at: When the tenant was registered.
        updated_at: When the record last changed.
    """

    id: int
    name: str
    subdomain: str
    isolation_mode: IsolationMode
    subscription_tier: SubscriptionTier
    storage_locator: str
    status: TenantStatus = TenantStatus.ACTIVE
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_shared(self) -> bool:
        return self.isolation_mode == IsolationMode.SHARED

    @property
    def is_isolated(self) -> bool:
        return self.isolation_mode == IsolationMode.ISOLATED

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to the external tenant record shape.

        Returns:
            Dictionary with enum values flattened to strings.
        """
        return {
            "id": self.id,
            "name": self.name,
            "subdomain": self.subdomain,
            "isolation_mode": self.isolation_mode.value,
            "subscription_tier": self.subscription_tier.value,
            "storage_locator": self.storage_locator,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class TenantCreate:
    """
    Registration payload for a new tenant.

    The subdomain is normalized on construction.

    Raises:
        ValueError: If the name is blank or the subdomain is malformed or reserved.
    """

    name: str
    subdomain: str
    contact_email: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("name must not be empty")
        object.__setattr__(self, "subdomain", normalize_subdomain(self.subdomain))


@dataclass
class LicenseKey:
    """
    Enterprise license key.

    A key is redeemable while it is ACTIVE and not past expires_at.
    Redeeming it moves it to USED and binds it to a tenant.

    Attributes:
        key: The XXXX-XXXX-XXXX-XXXX key string.
        status: Redemption status.
        tenant_id: Tenant the key was redeemed for, once used.
        expires_at: Optional expiry; None never expires.
        used_at: When the key was redeemed.
        purchaser_email: Email of the buyer or redeemer.
        created_at: When the key was issued.
    """

    key: str
    status: LicenseStatus = LicenseStatus.ACTIVE
    tenant_id: int | None = None
    expires_at: datetime | None = None
    used_at: datetime | None = None
    purchaser_email: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def rejection_reason(self, now: datetime | None = None) -> str | None:
        """
        Explain why this key cannot be redeemed.

        Returns:
            "used", "revoked", "expired", or None if the key is redeemable.
        """
        if self.status == LicenseStatus.USED:
            return "used"
        if self.status == LicenseStatus.REVOKED:
            return "revoked"
        if self.status == LicenseStatus.EXPIRED:
            return "expired"
        now = now or datetime.now(UTC)
        if self.expires_at is not None and self.expires_at <= now:
            return "expired"
        return None


__all__ = [
    "IsolationMode",
    "SubscriptionTier",
    "TenantStatus",
    "LicenseStatus",
    "RESERVED_SUBDOMAINS",
    "normalize_subdomain",
    "Tenant",
    "TenantCreate",
    "LicenseKey",
]
