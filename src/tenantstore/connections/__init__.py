"""
Connection routing for tenant stores.

Example:
    >>> from tenantstore.connections import ConnectionRegistry, StoreEngineFactory
    >>>
    >>> registry = ConnectionRegistry(directory, StoreEngineFactory(settings), provisioner)
    >>> handle = await registry.acquire(42)
"""

from tenantstore.connections.engines import StoreEngineFactory, validate_locator
from tenantstore.connections.handle import SHARED_POOL_KEY, ConnectionHandle
from tenantstore.connections.registry import ConnectionRegistry, RegistryStats
from tenantstore.connections.session import TenantSession

__all__ = [
    "StoreEngineFactory",
    "validate_locator",
    "SHARED_POOL_KEY",
    "ConnectionHandle",
    "ConnectionRegistry",
    "RegistryStats",
    "TenantSession",
]
