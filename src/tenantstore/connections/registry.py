"""
ConnectionRegistry - process-wide cache of live store handles.

Every request resolves its tenant and calls ``acquire``. The registry
maps the tenant to a key (the tenant id for isolated tenants, one shared
sentinel for every shared tenant) and returns the cached handle for that
key, opening it on first use.

Guarantees:
    - At most one live handle per key.
    - Concurrent cold acquires for a key perform exactly one physical open;
      every caller receives the same handle. A failed open is raised to
      every waiter and is not cached.
    - A cached handle found closed or without its model registry is
      evicted, disposed and reopened transparently (self-heal).
    - Cold opens provision the store's schema when auto-provision is on.

Usage:
    >>> registry = ConnectionRegistry(directory, StoreEngineFactory(settings), provisioner)
    >>> handle = await registry.acquire(42)
    >>> async with registry.session(42) as session:
    ...     rows = await session.select("products")
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from tenantstore.config import TenantStoreSettings
from tenantstore.connections.engines import StoreEngineFactory
from tenantstore.connections.handle import SHARED_POOL_KEY, ConnectionHandle
from tenantstore.connections.session import TenantSession
from tenantstore.directory.models import IsolationMode, Tenant
from tenantstore.directory.repository import TenantDirectory
from tenantstore.exceptions import AcquireTimeoutError, ConnectionFailedError
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import (
    ATTR_CACHE_HIT,
    ATTR_HANDLE_GENERATION,
    ATTR_ISOLATION_MODE,
    ATTR_STORE_LOCATOR,
    ATTR_TENANT_ID,
    ATTR_TENANT_KEY,
)

if TYPE_CHECKING:
    from tenantstore.schema.provisioner import SchemaProvisioner

logger = logging.getLogger(__name__)


@dataclass
class RegistryStats:
    """
    Counters exposed for monitoring and tests.

    Attributes:
        opens: Physical opens that produced a cached handle.
        hits: Acquires served from cache.
        self_heals: Corrupted handles evicted and reopened.
        evictions: Handles released explicitly or by health checks.
        failures: Opens that raised.
    """

    opens: int = 0
    hits: int = 0
    self_heals: int = 0
    evictions: int = 0
    failures: int = 0


class ConnectionRegistry:
    """
    Cache of ConnectionHandles keyed by tenant.

    Args:
        directory: Source of tenant records for id lookups
        engines: Factory that opens engines for store locators
        provisioner: Schema provisioner run on cold opens when auto-provision is on
        settings: Settings for defaults (defaults to the factory's settings)
        acquire_timeout: Seconds an acquire may take, including a cold open
        auto_provision: Whether cold opens run ensure_schema
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        directory: TenantDirectory,
        engines: StoreEngineFactory,
        provisioner: SchemaProvisioner | None = None,
        *,
        settings: TenantStoreSettings | None = None,
        acquire_timeout: float | None = None,
        auto_provision: bool | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        settings = settings or engines.settings
        self._directory = directory
        self._engines = engines
        self._provisioner = provisioner
        self._acquire_timeout = (
            acquire_timeout if acquire_timeout is not None else settings.acquire_timeout_s
        )
        self._auto_provision = (
            auto_provision if auto_provision is not None else settings.auto_provision
        )
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

        self._handles: dict[int | str, ConnectionHandle] = {}
        self._inflight: dict[int | str, asyncio.Task[ConnectionHandle]] = {}
        self._generations: dict[int | str, int] = {}
        self._closing: set[asyncio.Future[None]] = set()
        self._lock = asyncio.Lock()
        self.stats = RegistryStats()

    # =========================================================================
    # Acquire
    # =========================================================================

    @staticmethod
    def key_for(tenant: Tenant) -> int | str:
        """Registry key for a tenant: shared tenants all share one key."""
        return SHARED_POOL_KEY if tenant.is_shared else tenant.id

    async def acquire(self, tenant: int | Tenant) -> ConnectionHandle:
        """
        Return the live handle for a tenant, opening it if needed.

        Args:
            tenant: Tenant id or Tenant record

        Raises:
            TenantNotFoundError: If a tenant id is unknown
            ConnectionFailedError: If the store cannot be opened
            AcquireTimeoutError: If the acquire exceeds acquire_timeout
            SchemaProvisionError: If provisioning a cold store fails
        """
        if not isinstance(tenant, Tenant):
            tenant = await self._directory.get_by_id(tenant)

        key = self.key_for(tenant)
        with self._tracer.span(
            "tenantstore.registry.acquire",
            {
                ATTR_TENANT_ID: tenant.id,
                ATTR_TENANT_KEY: str(key),
                ATTR_ISOLATION_MODE: tenant.isolation_mode.value,
                ATTR_STORE_LOCATOR: tenant.storage_locator,
            },
        ):
            return await self._acquire_with_timeout(
                key, tenant.storage_locator, tenant.isolation_mode
            )

    async def acquire_store(
        self,
        key: int | str,
        locator: str,
        mode: IsolationMode,
    ) -> ConnectionHandle:
        """
        Acquire a handle for an explicit store, bypassing the directory.

        Used for stores no tenant is routed to yet, such as the target of a
        tier migration.
        """
        with self._tracer.span(
            "tenantstore.registry.acquire_store",
            {
                ATTR_TENANT_KEY: str(key),
                ATTR_ISOLATION_MODE: mode.value,
                ATTR_STORE_LOCATOR: locator,
            },
        ):
            return await self._acquire_with_timeout(key, locator, mode)

    async def _acquire_with_timeout(
        self,
        key: int | str,
        locator: str,
        mode: IsolationMode,
    ) -> ConnectionHandle:
        try:
            return await asyncio.wait_for(
                self._get_or_open(key, locator, mode),
                timeout=self._acquire_timeout,
            )
        except TimeoutError as e:
            logger.warning("Acquire for %s timed out after %ss", key, self._acquire_timeout)
            raise AcquireTimeoutError(key, self._acquire_timeout) from e

    async def _get_or_open(
        self,
        key: int | str,
        locator: str,
        mode: IsolationMode,
    ) -> ConnectionHandle:
        stale: ConnectionHandle | None = None
        async with self._lock:
            handle = self._handles.get(key)
            if handle is not None:
                if handle.is_healthy:
                    self.stats.hits += 1
                    logger.debug("Cache hit for %s (generation %d)", key, handle.generation)
                    return handle
                stale = self._handles.pop(key)
                self.stats.self_heals += 1
                logger.warning(
                    "Evicting corrupted handle for %s (generation %d, closed=%s)",
                    key,
                    stale.generation,
                    stale.closed,
                )

            task = self._inflight.get(key)
            if task is None:
                generation = self._generations.get(key, 0) + 1
                task = asyncio.create_task(self._open(key, locator, mode, generation))
                task.add_done_callback(functools.partial(self._open_finished, key))
                self._inflight[key] = task

        if stale is not None:
            await stale.close()

        # Shielded so a caller timing out does not abort the open for other waiters
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise ConnectionFailedError(
                    locator, "open was abandoned before it finished"
                ) from None
            raise

    def _open_finished(self, key: int | str, task: asyncio.Task[ConnectionHandle]) -> None:
        if self._inflight.get(key) is not task:
            # Abandoned by release or close; its handle must not be cached
            if not task.cancelled() and task.exception() is None:
                closing = asyncio.ensure_future(task.result().close())
                self._closing.add(closing)
                closing.add_done_callback(self._closing.discard)
            return
        del self._inflight[key]
        if task.cancelled():
            return
        if task.exception() is not None:
            self.stats.failures += 1
            return
        handle = task.result()
        self._handles[key] = handle
        self._generations[key] = handle.generation
        self.stats.opens += 1

    async def _open(
        self,
        key: int | str,
        locator: str,
        mode: IsolationMode,
        generation: int,
    ) -> ConnectionHandle:
        with self._tracer.span(
            "tenantstore.registry.open",
            {
                ATTR_TENANT_KEY: str(key),
                ATTR_STORE_LOCATOR: locator,
                ATTR_HANDLE_GENERATION: generation,
                ATTR_CACHE_HIT: False,
            },
        ):
            provision = self._auto_provision and self._provisioner is not None
            if provision:
                await self._engines.create_database(locator)

            engine = await self._engines.open(locator)
            try:
                if provision:
                    assert self._provisioner is not None
                    await self._provisioner.ensure_schema(locator, mode, engine=engine)
                handle = ConnectionHandle(
                    key=key,
                    locator=locator,
                    mode=mode,
                    engine=engine,
                    generation=generation,
                )
                await handle.reflect()
            except SQLAlchemyError as e:
                await engine.dispose()
                logger.error("Failed to load models for store %s: %s", locator, e)
                raise ConnectionFailedError(locator, str(e)) from e
            except BaseException:
                await engine.dispose()
                raise

            logger.info(
                "Opened %s store %s for %s (generation %d)", mode.value, locator, key, generation
            )
            return handle

    # =========================================================================
    # Eviction and lifecycle
    # =========================================================================

    async def release(self, tenant: int | str | Tenant) -> bool:
        """
        Evict and dispose the cached handle for a tenant key.

        Args:
            tenant: A registry key (tenant id, SHARED_POOL_KEY, ad-hoc key) or a Tenant

        An open still in flight for the key is abandoned: its waiters get
        ConnectionFailedError and the handle it would produce is never cached.

        Returns:
            True if a cached handle was closed or an in-flight open abandoned
        """
        key = self.key_for(tenant) if isinstance(tenant, Tenant) else tenant
        async with self._lock:
            handle = self._handles.pop(key, None)
            task = self._inflight.pop(key, None)
        if task is not None:
            task.cancel()
            logger.info("Abandoned in-flight open for %s", key)
        if handle is None:
            return task is not None
        await handle.close()
        self.stats.evictions += 1
        logger.info("Released handle for %s", key)
        return True

    async def health_check(self) -> dict[int | str, bool]:
        """
        Ping every cached handle; unreachable ones are evicted.

        Returns:
            Mapping of key to whether the handle answered
        """
        async with self._lock:
            handles = list(self._handles.items())

        results: dict[int | str, bool] = {}
        for key, handle in handles:
            healthy = handle.is_healthy and await handle.ping()
            results[key] = healthy
            if not healthy:
                async with self._lock:
                    if self._handles.get(key) is handle:
                        del self._handles[key]
                await handle.close()
                self.stats.evictions += 1
        return results

    async def close(self) -> None:
        """Dispose every cached handle."""
        async with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
            inflight = list(self._inflight.values())
        for task in inflight:
            task.cancel()
        if inflight:
            await asyncio.gather(*inflight, return_exceptions=True)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        for handle in handles:
            await handle.close()
        logger.info("Connection registry closed (%d handles)", len(handles))

    def cached_keys(self) -> list[int | str]:
        return list(self._handles)

    def peek(self, key: int | str) -> ConnectionHandle | None:
        """Return the cached handle for a key without opening or healing it."""
        return self._handles.get(key)

    # =========================================================================
    # Scoped access
    # =========================================================================

    @asynccontextmanager
    async def session(self, tenant: int | Tenant) -> AsyncIterator[TenantSession]:
        """
        Yield a TenantSession scoped to the tenant.

        Example:
            >>> async with registry.session(42) as session:
            ...     await session.insert("customers", {"name": "Ada"})
        """
        if not isinstance(tenant, Tenant):
            tenant = await self._directory.get_by_id(tenant)
        handle = await self.acquire(tenant)
        yield TenantSession(handle, tenant.id)


__all__ = [
    "RegistryStats",
    "ConnectionRegistry",
]
