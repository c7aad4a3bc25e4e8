"""
Engine factory for physical tenant stores.

Turns a store locator (a database name) into a pooled SQLAlchemy
AsyncEngine, verifies liveness, and creates the physical database when
it does not exist yet.

Supported backends:
    - PostgreSQL via asyncpg (one database per store)
    - SQLite via aiosqlite (one file per store)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from sqlalchemy import make_url, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from tenantstore.config import TenantStoreSettings, get_settings
from tenantstore.exceptions import ConnectionFailedError
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_STORE_LOCATOR,
)

logger = logging.getLogger(__name__)

_LOCATOR_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,63}$")


def validate_locator(locator: str) -> str:
    """
    Check that a locator is a plain identifier.

    Locators end up inside CREATE DATABASE statements and file paths.

    Raises:
        ValueError: If the locator contains anything but letters, digits and underscores
    """
    if not _LOCATOR_PATTERN.match(locator):
        raise ValueError(f"Invalid store locator: {locator!r}")
    return locator


def _is_memory(url: URL) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


class StoreEngineFactory:
    """
    Creates engines for physical stores.

    Example:
        >>> factory = StoreEngineFactory(settings)
        >>> await factory.create_database("tenantstore_tenant_7")
        >>> engine = await factory.open("tenantstore_tenant_7")
    """

    def __init__(
        self,
        settings: TenantStoreSettings | None = None,
        *,
        engine_options: dict[str, Any] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the factory.

        Args:
            settings: URL templates and pool sizing (defaults to env settings)
            engine_options: Extra keyword arguments for create_async_engine
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._settings = settings or get_settings()
        self._engine_options = engine_options or {}
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def settings(self) -> TenantStoreSettings:
        return self._settings

    def url_for(self, locator: str) -> URL:
        return make_url(self._settings.store_url(validate_locator(locator)))

    def dialect_for(self, locator: str) -> str:
        return self.url_for(locator).get_backend_name()

    def create_engine(self, locator: str) -> AsyncEngine:
        """Create an engine without connecting."""
        url = self.url_for(locator)
        options: dict[str, Any] = {"pool_pre_ping": True}
        if not _is_memory(url):
            options.update(self._settings.pool_options(locator))
        options.update(self._engine_options)
        return create_async_engine(url, **options)

    async def open(self, locator: str) -> AsyncEngine:
        """
        Create an engine and verify it answers ``SELECT 1``.

        Raises:
            ConnectionFailedError: If the store cannot be reached
        """
        with self._tracer.span(
            "tenantstore.engines.open",
            {ATTR_STORE_LOCATOR: locator, ATTR_DB_SYSTEM: self.dialect_for(locator)},
        ):
            engine = self.create_engine(locator)
            try:
                await self.ping(engine)
            except SQLAlchemyError as e:
                await engine.dispose()
                logger.error("Liveness check failed for store %s: %s", locator, e)
                raise ConnectionFailedError(locator, str(e)) from e
            except OSError as e:
                await engine.dispose()
                logger.error("Store %s is unreachable: %s", locator, e)
                raise ConnectionFailedError(locator, str(e)) from e
            except BaseException:
                await engine.dispose()
                raise
            return engine

    async def ping(self, engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_database(self, locator: str) -> bool:
        """
        Create the physical database for a store if it is missing.

        Returns:
            True if a database was created, False if it already existed

        Raises:
            ConnectionFailedError: If the server cannot be reached
        """
        url = self.url_for(locator)
        backend = url.get_backend_name()
        with self._tracer.span(
            "tenantstore.engines.create_database",
            {
                ATTR_STORE_LOCATOR: locator,
                ATTR_DB_SYSTEM: backend,
                ATTR_DB_OPERATION: "CREATE DATABASE",
            },
        ):
            if backend == "sqlite":
                return self._create_sqlite_file(url)
            if backend == "postgresql":
                return await self._create_postgres_database(url, locator)
            raise ValueError(f"Unsupported backend for store {locator!r}: {backend}")

    def _create_sqlite_file(self, url: URL) -> bool:
        if _is_memory(url):
            return False
        path = Path(url.database or "")
        if path.exists():
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        return True

    async def _create_postgres_database(self, url: URL, locator: str) -> bool:
        admin_url = url.set(database=self._settings.admin_database)
        admin = create_async_engine(admin_url, isolation_level="AUTOCOMMIT")
        try:
            async with admin.connect() as conn:
                result = await conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"),
                    {"name": url.database},
                )
                if result.first() is not None:
                    return False
                try:
                    await conn.execute(text(f'CREATE DATABASE "{url.database}"'))
                except DBAPIError as e:
                    # Another process created it between the check and the create
                    if "already exists" in str(e).lower():
                        return False
                    raise
            logger.info("Created database %s for store %s", url.database, locator)
            return True
        except SQLAlchemyError as e:
            logger.error("Could not create database for store %s: %s", locator, e)
            raise ConnectionFailedError(locator, str(e)) from e
        except OSError as e:
            logger.error("Database server for store %s is unreachable: %s", locator, e)
            raise ConnectionFailedError(locator, str(e)) from e
        finally:
            await admin.dispose()


__all__ = [
    "StoreEngineFactory",
    "validate_locator",
]
