"""
TenantDirectory - control-plane records for tenants and license keys.

The directory answers "who is this tenant and where do its rows live".
It owns the Tenant record, including the one-way shared -> isolated flip
performed by the tier migrator, and the enterprise license keys redeemed
at registration.

Implementations:
    - SQLTenantDirectory: SQLAlchemy async over the control-plane database,
      with a short TTL lookup cache
    - InMemoryTenantDirectory: dictionaries, for tests and local tooling

Locators:
    - shared tenants: ``settings.shared_store_name``
    - isolated tenants: ``settings.tenant_store_prefix + str(tenant.id)``

Usage:
    >>> directory = SQLTenantDirectory(engine)
    >>> await directory.initialize()
    >>> key = await directory.issue_license(purchaser_email="owner@example.com")
    >>> tenant = await directory.create(
    ...     TenantCreate(name="Acme", subdomain="acme"),
    ...     license_key=key.key,
    ... )
    >>> tenant.storage_locator
    'tenantstore_tenant_1'
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from tenantstore._connection import dialect_name, execute_with_connection
from tenantstore.config import TenantStoreSettings, get_settings
from tenantstore.directory.licenses import generate_license_key, normalize_license_key
from tenantstore.directory.models import (
    IsolationMode,
    LicenseKey,
    LicenseStatus,
    SubscriptionTier,
    Tenant,
    TenantCreate,
    TenantStatus,
)
from tenantstore.exceptions import (
    LicenseInvalidError,
    SubdomainTakenError,
    TenantNotFoundError,
    TenantStateError,
)
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import (
    ATTR_CACHE_HIT,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ISOLATION_MODE,
    ATTR_SUBDOMAIN,
    ATTR_TENANT_ID,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class TenantDirectory(Protocol):
    """
    Protocol for the tenant directory.

    Lookups raise TenantNotFoundError rather than returning None so that
    callers on the request path never route a missing tenant.
    """

    async def get_by_id(self, tenant_id: int) -> Tenant:
        """
        Get a tenant by id.

        Raises:
            TenantNotFoundError: If no tenant has this id
        """
        ...

    async def get_by_subdomain(self, subdomain: str) -> Tenant:
        """
        Get a tenant by subdomain (case-insensitive).

        Raises:
            TenantNotFoundError: If no tenant has this subdomain
        """
        ...

    async def create(self, data: TenantCreate, license_key: str | None = None) -> Tenant:
        """
        Register a tenant.

        With a license key the tenant is enterprise/isolated and the key is
        marked used. Without one the tenant is free/shared.

        Raises:
            LicenseInvalidError: If the key is unknown, used, revoked or expired
            SubdomainTakenError: If the subdomain is already registered
        """
        ...

    async def mark_isolated(
        self,
        tenant_id: int,
        tier: SubscriptionTier = SubscriptionTier.ENTERPRISE,
    ) -> Tenant:
        """
        Flip a shared tenant to isolated and point it at its dedicated store.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            TenantStateError: If the tenant is already isolated
        """
        ...

    async def set_status(self, tenant_id: int, status: TenantStatus) -> Tenant:
        """Change a tenant's lifecycle status."""
        ...

    async def list_tenants(self, isolation_mode: IsolationMode | None = None) -> list[Tenant]:
        """List tenants ordered by id, optionally filtered by isolation mode."""
        ...

    async def issue_license(
        self,
        *,
        purchaser_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> LicenseKey:
        """Generate and store a new ACTIVE license key."""
        ...

    async def redeem_license(
        self,
        key: str,
        email: str | None = None,
        tenant_id: int | None = None,
    ) -> LicenseKey:
        """
        Validate a license key and mark it used.

        Raises:
            LicenseInvalidError: If the key is unknown, used, revoked or expired
        """
        ...

    async def revoke_license(self, key: str) -> LicenseKey:
        """Revoke a license key so it can no longer be redeemed."""
        ...


# =============================================================================
# Control-plane DDL
# =============================================================================

_DDL: dict[str, list[str]] = {
    "postgresql": [
        """
        CREATE TABLE IF NOT EXISTS tenants (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            subdomain VARCHAR(63) NOT NULL UNIQUE,
            contact_email VARCHAR(255),
            isolation_mode VARCHAR(20) NOT NULL,
            subscription_tier VARCHAR(20) NOT NULL,
            storage_locator VARCHAR(255) NOT NULL,
            status VARCHAR(20) NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS license_keys (
            license_key VARCHAR(19) PRIMARY KEY,
            status VARCHAR(20) NOT NULL,
            tenant_id BIGINT REFERENCES tenants(id),
            expires_at TIMESTAMP WITH TIME ZONE,
            used_at TIMESTAMP WITH TIME ZONE,
            purchaser_email VARCHAR(255),
            created_at TIMESTAMP WITH TIME ZONE NOT NULL
        )
        """,
    ],
    "sqlite": [
        """
        CREATE TABLE IF NOT EXISTS tenants (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            subdomain TEXT NOT NULL UNIQUE,
            contact_email TEXT,
            isolation_mode TEXT NOT NULL,
            subscription_tier TEXT NOT NULL,
            storage_locator TEXT NOT NULL,
            status TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS license_keys (
            license_key TEXT PRIMARY KEY,
            status TEXT NOT NULL,
            tenant_id INTEGER REFERENCES tenants(id),
            expires_at TEXT,
            used_at TEXT,
            purchaser_email TEXT,
            created_at TEXT NOT NULL
        )
        """,
    ],
}

_TENANT_COLUMNS = (
    "id, name, subdomain, isolation_mode, subscription_tier, "
    "storage_locator, status, created_at, updated_at"
)
_LICENSE_COLUMNS = "license_key, status, tenant_id, expires_at, used_at, purchaser_email, created_at"


def _parse_timestamp(value: Any) -> datetime | None:
    """SQLite hands timestamps back as ISO 8601 TEXT."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _row_to_tenant(row: Sequence[Any]) -> Tenant:
    return Tenant(
        id=int(row[0]),
        name=row[1],
        subdomain=row[2],
        isolation_mode=IsolationMode(row[3]),
        subscription_tier=SubscriptionTier(row[4]),
        storage_locator=row[5],
        status=TenantStatus(row[6]),
        created_at=_parse_timestamp(row[7]),
        updated_at=_parse_timestamp(row[8]),
    )


def _row_to_license(row: Sequence[Any]) -> LicenseKey:
    return LicenseKey(
        key=row[0],
        status=LicenseStatus(row[1]),
        tenant_id=row[2],
        expires_at=_parse_timestamp(row[3]),
        used_at=_parse_timestamp(row[4]),
        purchaser_email=row[5],
        created_at=_parse_timestamp(row[6]) or datetime.now(UTC),
    )


class SQLTenantDirectory:
    """
    SQLAlchemy implementation of TenantDirectory.

    Persists tenants to the ``tenants`` table and license keys to the
    ``license_keys`` table of the control-plane database. Works on
    PostgreSQL (asyncpg) and SQLite (aiosqlite).

    Lookups are cached per process with a short TTL. Writes made through
    this instance invalidate the cache immediately; writes made by other
    processes become visible after at most ``cache_ttl_seconds``.

    Example:
        >>> engine = create_async_engine("sqlite+aiosqlite:///control.db")
        >>> directory = SQLTenantDirectory(engine)
        >>> await directory.initialize()
        >>> tenant = await directory.get_by_subdomain("acme")
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        settings: TenantStoreSettings | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        enable_cache: bool = True,
        cache_ttl_seconds: float | None = None,
    ) -> None:
        """
        Initialize the directory.

        Args:
            conn: Control-plane connection or engine
            settings: Settings providing locator naming (defaults to env settings)
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing
            enable_cache: Whether to cache lookups
            cache_ttl_seconds: Cache TTL (defaults to settings.directory_cache_ttl_s)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._conn = conn
        self._settings = settings or get_settings()
        self._dialect = dialect_name(conn)
        self._enable_cache = enable_cache
        self._cache_ttl = (
            cache_ttl_seconds
            if cache_ttl_seconds is not None
            else self._settings.directory_cache_ttl_s
        )
        self._cache: dict[int, tuple[Tenant, float]] = {}
        self._subdomain_index: dict[str, int] = {}
        self._cache_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the control-plane tables if they do not exist."""
        statements = _DDL["postgresql" if self._dialect == "postgresql" else "sqlite"]
        async with execute_with_connection(self._conn, transactional=True) as conn:
            for statement in statements:
                await conn.execute(text(statement))

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_by_id(self, tenant_id: int) -> Tenant:
        with self._tracer.span(
            "tenantstore.directory.get_by_id",
            {ATTR_TENANT_ID: tenant_id, ATTR_DB_SYSTEM: self._dialect},
        ) as span:
            if self._enable_cache:
                cached = await self._get_from_cache(tenant_id)
                if span:
                    span.set_attribute(ATTR_CACHE_HIT, cached is not None)
                if cached is not None:
                    return cached

            query = text(f"SELECT {_TENANT_COLUMNS} FROM tenants WHERE id = :id")
            async with execute_with_connection(self._conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": tenant_id})
                row = result.fetchone()

            if row is None:
                raise TenantNotFoundError(tenant_id)

            tenant = _row_to_tenant(row)
            if self._enable_cache:
                await self._set_cache(tenant)
            return tenant

    async def get_by_subdomain(self, subdomain: str) -> Tenant:
        subdomain = subdomain.strip().lower()
        with self._tracer.span(
            "tenantstore.directory.get_by_subdomain",
            {ATTR_SUBDOMAIN: subdomain, ATTR_DB_SYSTEM: self._dialect},
        ) as span:
            if self._enable_cache:
                cached = await self._get_subdomain_from_cache(subdomain)
                if span:
                    span.set_attribute(ATTR_CACHE_HIT, cached is not None)
                if cached is not None:
                    return cached

            query = text(f"SELECT {_TENANT_COLUMNS} FROM tenants WHERE subdomain = :subdomain")
            async with execute_with_connection(self._conn, transactional=False) as conn:
                result = await conn.execute(query, {"subdomain": subdomain})
                row = result.fetchone()

            if row is None:
                raise TenantNotFoundError(subdomain)

            tenant = _row_to_tenant(row)
            if self._enable_cache:
                await self._set_cache(tenant)
            return tenant

    async def list_tenants(self, isolation_mode: IsolationMode | None = None) -> list[Tenant]:
        with self._tracer.span(
            "tenantstore.directory.list_tenants",
            {
                ATTR_ISOLATION_MODE: isolation_mode.value if isolation_mode else "any",
                ATTR_DB_SYSTEM: self._dialect,
            },
        ):
            if isolation_mode is None:
                query = text(f"SELECT {_TENANT_COLUMNS} FROM tenants ORDER BY id")
                params: dict[str, Any] = {}
            else:
                query = text(
                    f"SELECT {_TENANT_COLUMNS} FROM tenants "
                    "WHERE isolation_mode = :mode ORDER BY id"
                )
                params = {"mode": isolation_mode.value}

            async with execute_with_connection(self._conn, transactional=False) as conn:
                result = await conn.execute(query, params)
                rows = result.fetchall()

            return [_row_to_tenant(row) for row in rows]

    # =========================================================================
    # Registration
    # =========================================================================

    async def create(self, data: TenantCreate, license_key: str | None = None) -> Tenant:
        licensed = license_key is not None
        with self._tracer.span(
            "tenantstore.directory.create",
            {
                ATTR_SUBDOMAIN: data.subdomain,
                ATTR_ISOLATION_MODE: "isolated" if licensed else "shared",
                ATTR_DB_SYSTEM: self._dialect,
                ATTR_DB_OPERATION: "INSERT",
            },
        ):
            now = datetime.now(UTC)
            mode = IsolationMode.ISOLATED if licensed else IsolationMode.SHARED
            tier = SubscriptionTier.ENTERPRISE if licensed else SubscriptionTier.FREE

            try:
                async with execute_with_connection(self._conn, transactional=True) as conn:
                    key = None
                    if license_key is not None:
                        key = normalize_license_key(license_key)
                        await self._check_license(conn, key, now)

                    taken = await conn.execute(
                        text("SELECT 1 FROM tenants WHERE subdomain = :subdomain"),
                        {"subdomain": data.subdomain},
                    )
                    if taken.fetchone() is not None:
                        raise SubdomainTakenError(data.subdomain)

                    result = await conn.execute(
                        text("""
                            INSERT INTO tenants (
                                name, subdomain, contact_email, isolation_mode,
                                subscription_tier, storage_locator, status,
                                created_at, updated_at
                            ) VALUES (
                                :name, :subdomain, :contact_email, :mode,
                                :tier, :locator, :status,
                                :created_at, :updated_at
                            )
                            RETURNING id
                        """),
                        {
                            "name": data.name,
                            "subdomain": data.subdomain,
                            "contact_email": data.contact_email,
                            "mode": mode.value,
                            "tier": tier.value,
                            "locator": self._settings.shared_store_name,
                            "status": TenantStatus.ACTIVE.value,
                            "created_at": self._ts(now),
                            "updated_at": self._ts(now),
                        },
                    )
                    tenant_id = int(result.scalar_one())

                    locator = self._settings.shared_store_name
                    if key is not None:
                        locator = self._settings.tenant_locator(tenant_id)
                        await conn.execute(
                            text("UPDATE tenants SET storage_locator = :locator WHERE id = :id"),
                            {"locator": locator, "id": tenant_id},
                        )
                        await self._consume_license(conn, key, tenant_id, data.contact_email, now)
            except IntegrityError as e:
                # Lost a race with a concurrent registration of the same subdomain
                raise SubdomainTakenError(data.subdomain) from e

            tenant = Tenant(
                id=tenant_id,
                name=data.name,
                subdomain=data.subdomain,
                isolation_mode=mode,
                subscription_tier=tier,
                storage_locator=locator,
                status=TenantStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            logger.info(
                "Registered tenant %s (%s) as %s on %s",
                tenant.id,
                tenant.subdomain,
                tenant.isolation_mode.value,
                tenant.storage_locator,
            )
            return tenant

    # =========================================================================
    # State changes
    # =========================================================================

    async def mark_isolated(
        self,
        tenant_id: int,
        tier: SubscriptionTier = SubscriptionTier.ENTERPRISE,
    ) -> Tenant:
        with self._tracer.span(
            "tenantstore.directory.mark_isolated",
            {ATTR_TENANT_ID: tenant_id, ATTR_DB_SYSTEM: self._dialect, ATTR_DB_OPERATION: "UPDATE"},
        ):
            now = datetime.now(UTC)
            async with execute_with_connection(self._conn, transactional=True) as conn:
                result = await conn.execute(
                    text("""
                        UPDATE tenants
                        SET isolation_mode = :isolated,
                            subscription_tier = :tier,
                            storage_locator = :locator,
                            updated_at = :updated_at
                        WHERE id = :id AND isolation_mode = :shared
                    """),
                    {
                        "isolated": IsolationMode.ISOLATED.value,
                        "shared": IsolationMode.SHARED.value,
                        "tier": tier.value,
                        "locator": self._settings.tenant_locator(tenant_id),
                        "updated_at": self._ts(now),
                        "id": tenant_id,
                    },
                )
                flipped = result.rowcount > 0

            await self._invalidate_cache(tenant_id)

            if not flipped:
                # Raises TenantNotFoundError when the id is unknown
                await self.get_by_id(tenant_id)
                raise TenantStateError(
                    f"Tenant {tenant_id} is already isolated",
                    tenant_id=tenant_id,
                    operation="mark_isolated",
                )

            tenant = await self.get_by_id(tenant_id)
            logger.info(
                "Tenant %s flipped to isolated on %s", tenant_id, tenant.storage_locator
            )
            return tenant

    async def set_status(self, tenant_id: int, status: TenantStatus) -> Tenant:
        with self._tracer.span(
            "tenantstore.directory.set_status",
            {ATTR_TENANT_ID: tenant_id, ATTR_DB_SYSTEM: self._dialect, ATTR_DB_OPERATION: "UPDATE"},
        ):
            async with execute_with_connection(self._conn, transactional=True) as conn:
                result = await conn.execute(
                    text(
                        "UPDATE tenants SET status = :status, updated_at = :updated_at "
                        "WHERE id = :id"
                    ),
                    {
                        "status": status.value,
                        "updated_at": self._ts(datetime.now(UTC)),
                        "id": tenant_id,
                    },
                )
                updated = result.rowcount > 0

            await self._invalidate_cache(tenant_id)
            if not updated:
                raise TenantNotFoundError(tenant_id)
            return await self.get_by_id(tenant_id)

    # =========================================================================
    # License keys
    # =========================================================================

    async def issue_license(
        self,
        *,
        purchaser_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> LicenseKey:
        with self._tracer.span(
            "tenantstore.directory.issue_license",
            {ATTR_DB_SYSTEM: self._dialect, ATTR_DB_OPERATION: "INSERT"},
        ):
            license_ = LicenseKey(
                key=generate_license_key(),
                purchaser_email=purchaser_email,
                expires_at=expires_at,
            )
            async with execute_with_connection(self._conn, transactional=True) as conn:
                await conn.execute(
                    text(f"""
                        INSERT INTO license_keys ({_LICENSE_COLUMNS})
                        VALUES (
                            :key, :status, NULL, :expires_at, NULL,
                            :purchaser_email, :created_at
                        )
                    """),
                    {
                        "key": license_.key,
                        "status": license_.status.value,
                        "expires_at": self._ts(expires_at),
                        "purchaser_email": purchaser_email,
                        "created_at": self._ts(license_.created_at),
                    },
                )
            return license_

    async def get_license(self, key: str) -> LicenseKey | None:
        async with execute_with_connection(self._conn, transactional=False) as conn:
            return await self._fetch_license(conn, normalize_license_key(key))

    async def redeem_license(
        self,
        key: str,
        email: str | None = None,
        tenant_id: int | None = None,
    ) -> LicenseKey:
        with self._tracer.span(
            "tenantstore.directory.redeem_license",
            {ATTR_DB_SYSTEM: self._dialect, ATTR_DB_OPERATION: "UPDATE"},
        ):
            key = normalize_license_key(key)
            now = datetime.now(UTC)
            async with execute_with_connection(self._conn, transactional=True) as conn:
                license_ = await self._check_license(conn, key, now)
                await self._consume_license(conn, key, tenant_id, email, now)

            license_.status = LicenseStatus.USED
            license_.used_at = now
            license_.tenant_id = tenant_id
            if email:
                license_.purchaser_email = email
            return license_

    async def revoke_license(self, key: str) -> LicenseKey:
        key = normalize_license_key(key)
        async with execute_with_connection(self._conn, transactional=True) as conn:
            license_ = await self._fetch_license(conn, key)
            if license_ is None:
                raise LicenseInvalidError(key, "unknown")
            await conn.execute(
                text("UPDATE license_keys SET status = :status WHERE license_key = :key"),
                {"status": LicenseStatus.REVOKED.value, "key": key},
            )
        license_.status = LicenseStatus.REVOKED
        return license_

    async def _fetch_license(self, conn: AsyncConnection, key: str) -> LicenseKey | None:
        result = await conn.execute(
            text(f"SELECT {_LICENSE_COLUMNS} FROM license_keys WHERE license_key = :key"),
            {"key": key},
        )
        row = result.fetchone()
        return _row_to_license(row) if row is not None else None

    async def _check_license(self, conn: AsyncConnection, key: str, now: datetime) -> LicenseKey:
        license_ = await self._fetch_license(conn, key)
        if license_ is None:
            logger.warning("Rejected unknown license key %s", key)
            raise LicenseInvalidError(key, "unknown")
        reason = license_.rejection_reason(now)
        if reason is not None:
            logger.warning("Rejected license key %s: %s", key, reason)
            raise LicenseInvalidError(key, reason)
        return license_

    async def _consume_license(
        self,
        conn: AsyncConnection,
        key: str,
        tenant_id: int | None,
        email: str | None,
        now: datetime,
    ) -> None:
        # Conditional update so two concurrent redemptions cannot both win
        result = await conn.execute(
            text("""
                UPDATE license_keys
                SET status = :used,
                    tenant_id = :tenant_id,
                    used_at = :used_at,
                    purchaser_email = COALESCE(:email, purchaser_email)
                WHERE license_key = :key AND status = :active
            """),
            {
                "used": LicenseStatus.USED.value,
                "active": LicenseStatus.ACTIVE.value,
                "tenant_id": tenant_id,
                "used_at": self._ts(now),
                "email": email,
                "key": key,
            },
        )
        if result.rowcount == 0:
            raise LicenseInvalidError(key, "used")

    # =========================================================================
    # Cache management
    # =========================================================================

    async def _get_from_cache(self, tenant_id: int) -> Tenant | None:
        async with self._cache_lock:
            entry = self._cache.get(tenant_id)
            if entry is None:
                return None
            tenant, cached_at = entry
            if time.monotonic() - cached_at > self._cache_ttl:
                del self._cache[tenant_id]
                self._subdomain_index.pop(tenant.subdomain, None)
                return None
            return tenant

    async def _get_subdomain_from_cache(self, subdomain: str) -> Tenant | None:
        async with self._cache_lock:
            tenant_id = self._subdomain_index.get(subdomain)
        if tenant_id is None:
            return None
        return await self._get_from_cache(tenant_id)

    async def _set_cache(self, tenant: Tenant) -> None:
        async with self._cache_lock:
            self._cache[tenant.id] = (tenant, time.monotonic())
            self._subdomain_index[tenant.subdomain] = tenant.id

    async def _invalidate_cache(self, tenant_id: int) -> None:
        async with self._cache_lock:
            entry = self._cache.pop(tenant_id, None)
            if entry is not None:
                self._subdomain_index.pop(entry[0].subdomain, None)

    async def clear_cache(self) -> None:
        """Clear all cached tenants."""
        async with self._cache_lock:
            self._cache.clear()
            self._subdomain_index.clear()

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _ts(self, value: datetime | None) -> Any:
        """Bind value for a timestamp column on the current dialect."""
        if value is None or self._dialect == "postgresql":
            return value
        return value.isoformat()


class InMemoryTenantDirectory:
    """
    In-memory implementation of TenantDirectory.

    Behaves like SQLTenantDirectory, including license validation and the
    one-way isolation flip, without a database.

    Example:
        >>> directory = InMemoryTenantDirectory()
        >>> tenant = await directory.create(TenantCreate(name="Acme", subdomain="acme"))
        >>> tenant.is_shared
        True
    """

    def __init__(self, settings: TenantStoreSettings | None = None) -> None:
        self._settings = settings or get_settings()
        self._tenants: dict[int, Tenant] = {}
        self._licenses: dict[str, LicenseKey] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    def add_tenant(self, tenant: Tenant) -> Tenant:
        """Seed a tenant record directly, bypassing registration."""
        self._tenants[tenant.id] = tenant
        self._next_id = max(self._next_id, tenant.id + 1)
        return tenant

    async def get_by_id(self, tenant_id: int) -> Tenant:
        try:
            return self._tenants[tenant_id]
        except KeyError:
            raise TenantNotFoundError(tenant_id) from None

    async def get_by_subdomain(self, subdomain: str) -> Tenant:
        subdomain = subdomain.strip().lower()
        for tenant in self._tenants.values():
            if tenant.subdomain == subdomain:
                return tenant
        raise TenantNotFoundError(subdomain)

    async def list_tenants(self, isolation_mode: IsolationMode | None = None) -> list[Tenant]:
        return [
            tenant
            for _, tenant in sorted(self._tenants.items())
            if isolation_mode is None or tenant.isolation_mode == isolation_mode
        ]

    async def create(self, data: TenantCreate, license_key: str | None = None) -> Tenant:
        async with self._lock:
            now = datetime.now(UTC)
            license_ = None
            if license_key is not None:
                license_ = self._check_license(normalize_license_key(license_key), now)

            if any(t.subdomain == data.subdomain for t in self._tenants.values()):
                raise SubdomainTakenError(data.subdomain)

            tenant_id = self._next_id
            self._next_id += 1

            if license_ is not None:
                tenant = Tenant(
                    id=tenant_id,
                    name=data.name,
                    subdomain=data.subdomain,
                    isolation_mode=IsolationMode.ISOLATED,
                    subscription_tier=SubscriptionTier.ENTERPRISE,
                    storage_locator=self._settings.tenant_locator(tenant_id),
                    created_at=now,
                    updated_at=now,
                )
                license_.status = LicenseStatus.USED
                license_.tenant_id = tenant_id
                license_.used_at = now
                if data.contact_email:
                    license_.purchaser_email = data.contact_email
            else:
                tenant = Tenant(
                    id=tenant_id,
                    name=data.name,
                    subdomain=data.subdomain,
                    isolation_mode=IsolationMode.SHARED,
                    subscription_tier=SubscriptionTier.FREE,
                    storage_locator=self._settings.shared_store_name,
                    created_at=now,
                    updated_at=now,
                )

            self._tenants[tenant_id] = tenant
            return tenant

    async def mark_isolated(
        self,
        tenant_id: int,
        tier: SubscriptionTier = SubscriptionTier.ENTERPRISE,
    ) -> Tenant:
        async with self._lock:
            tenant = await self.get_by_id(tenant_id)
            if not tenant.isolation_mode.can_transition_to(IsolationMode.ISOLATED):
                raise TenantStateError(
                    f"Tenant {tenant_id} is already isolated",
                    tenant_id=tenant_id,
                    operation="mark_isolated",
                )
            tenant = replace(
                tenant,
                isolation_mode=IsolationMode.ISOLATED,
                subscription_tier=tier,
                storage_locator=self._settings.tenant_locator(tenant_id),
                updated_at=datetime.now(UTC),
            )
            self._tenants[tenant_id] = tenant
            return tenant

    async def set_status(self, tenant_id: int, status: TenantStatus) -> Tenant:
        tenant = await self.get_by_id(tenant_id)
        tenant = replace(tenant, status=status, updated_at=datetime.now(UTC))
        self._tenants[tenant_id] = tenant
        return tenant

    async def issue_license(
        self,
        *,
        purchaser_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> LicenseKey:
        license_ = LicenseKey(
            key=generate_license_key(),
            purchaser_email=purchaser_email,
            expires_at=expires_at,
        )
        self._licenses[license_.key] = license_
        return license_

    async def get_license(self, key: str) -> LicenseKey | None:
        return self._licenses.get(normalize_license_key(key))

    async def redeem_license(
        self,
        key: str,
        email: str | None = None,
        tenant_id: int | None = None,
    ) -> LicenseKey:
        async with self._lock:
            now = datetime.now(UTC)
            license_ = self._check_license(normalize_license_key(key), now)
            license_.status = LicenseStatus.USED
            license_.used_at = now
            license_.tenant_id = tenant_id
            if email:
                license_.purchaser_email = email
            return license_

    async def revoke_license(self, key: str) -> LicenseKey:
        key = normalize_license_key(key)
        license_ = self._licenses.get(key)
        if license_ is None:
            raise LicenseInvalidError(key, "unknown")
        license_.status = LicenseStatus.REVOKED
        return license_

    def _check_license(self, key: str, now: datetime) -> LicenseKey:
        license_ = self._licenses.get(key)
        if license_ is None:
            raise LicenseInvalidError(key, "unknown")
        reason = license_.rejection_reason(now)
        if reason is not None:
            raise LicenseInvalidError(key, reason)
        return license_


__all__ = [
    "TenantDirectory",
    "SQLTenantDirectory",
    "InMemoryTenantDirectory",
]
