"""
Shared pytest fixtures for the tenantstore tests.

This module provides:
- Settings pointing every physical store at files under ``tmp_path``
- Engine factory, provisioner, directory and registry fixtures
- Tenant seeding helpers for shared and isolated tenants
- A control-plane SQLite engine for the SQL repositories

All components are built with ``enable_tracing=False``.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from tenantstore.config import TenantStoreSettings
from tenantstore.connections.engines import StoreEngineFactory
from tenantstore.connections.registry import ConnectionRegistry
from tenantstore.directory.models import IsolationMode, SubscriptionTier, Tenant
from tenantstore.directory.repository import InMemoryTenantDirectory
from tenantstore.schema.provisioner import SchemaProvisioner

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that use file-backed SQLite stores")


# ============================================================================
# Settings and factories
# ============================================================================


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    path = tmp_path / "stores"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path, store_dir: Path) -> TenantStoreSettings:
    """
    Provide settings with every store in a per-test directory.

    Returns:
        TenantStoreSettings with short timeouts and tracing disabled.
    """
    return TenantStoreSettings(
        control_plane_url=f"sqlite+aiosqlite:///{tmp_path}/control.db",
        store_url_template=f"sqlite+aiosqlite:///{store_dir}/{{database}}.db",
        acquire_timeout_s=10.0,
        pool_timeout_s=5.0,
        enable_tracing=False,
        directory_cache_ttl_s=5.0,
    )


@pytest.fixture
def engines(settings: TenantStoreSettings) -> StoreEngineFactory:
    return StoreEngineFactory(settings, enable_tracing=False)


@pytest.fixture
def provisioner(engines: StoreEngineFactory) -> SchemaProvisioner:
    return SchemaProvisioner(engines, enable_tracing=False)


@pytest.fixture
def directory(settings: TenantStoreSettings) -> InMemoryTenantDirectory:
    return InMemoryTenantDirectory(settings)


@pytest_asyncio.fixture
async def registry(
    directory: InMemoryTenantDirectory,
    engines: StoreEngineFactory,
    provisioner: SchemaProvisioner,
    settings: TenantStoreSettings,
) -> AsyncGenerator[ConnectionRegistry, None]:
    """
    Provide a ConnectionRegistry with auto-provisioning on.

    Every cached handle is disposed after the test.
    """
    registry = ConnectionRegistry(
        directory,
        engines,
        provisioner,
        settings=settings,
        enable_tracing=False,
    )
    yield registry
    await registry.close()


@pytest_asyncio.fixture
async def control_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Provide a file-backed SQLite engine for the control plane."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/control.db")
    yield engine
    await engine.dispose()


# ============================================================================
# Tenant seeding
# ============================================================================


@pytest.fixture
def add_tenant(
    directory: InMemoryTenantDirectory,
    settings: TenantStoreSettings,
) -> Callable[..., Tenant]:
    """
    Provide a helper that seeds a tenant record into the directory.

    Example:
        >>> tenant = add_tenant(42)
        >>> isolated = add_tenant(7, IsolationMode.ISOLATED)
    """

    def _add(
        tenant_id: int,
        mode: IsolationMode = IsolationMode.SHARED,
        subdomain: str | None = None,
    ) -> Tenant:
        isolated = mode == IsolationMode.ISOLATED
        return directory.add_tenant(
            Tenant(
                id=tenant_id,
                name=f"Tenant {tenant_id}",
                subdomain=subdomain or f"tenant{tenant_id}",
                isolation_mode=mode,
                subscription_tier=(
                    SubscriptionTier.ENTERPRISE if isolated else SubscriptionTier.FREE
                ),
                storage_locator=(
                    settings.tenant_locator(tenant_id) if isolated else settings.shared_store_name
                ),
            )
        )

    return _add
