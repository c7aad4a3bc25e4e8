"""
ConnectionHandle - a live, cached connection to one physical store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import MetaData, Table, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from tenantstore.directory.models import IsolationMode

logger = logging.getLogger(__name__)

SHARED_POOL_KEY = "__shared__"
"""Registry key under which every shared-mode tenant's handle is cached."""


@dataclass(eq=False)
class ConnectionHandle:
    """
    Pooled engine for a store plus its reflected table registry.

    A handle is healthy while it is open and its model registry is
    populated. The registry treats anything else as corrupted and reopens
    the store transparently.

    Attributes:
        key: Tenant id, SHARED_POOL_KEY, or an ad-hoc key for unrouted stores.
        locator: Physical store name.
        mode: Isolation mode of the store.
        engine: Pooled SQLAlchemy engine.
        generation: 1 on first open; each reopen of the same key increments it.
        models: Reflected tables, or None when the handle is corrupted.
        opened_at: When the handle was opened.
        closed: Whether the engine has been disposed.
    """

    key: int | str
    locator: str
    mode: IsolationMode
    engine: AsyncEngine
    generation: int = 1
    models: MetaData | None = None
    opened_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    closed: bool = False

    @property
    def is_shared(self) -> bool:
        return self.mode == IsolationMode.SHARED

    @property
    def is_healthy(self) -> bool:
        return not self.closed and self.models is not None

    def table(self, name: str) -> Table:
        """
        Look up a reflected table.

        Raises:
            KeyError: If the table is unknown or the handle is corrupted
        """
        if self.models is None:
            raise KeyError(f"Handle for {self.locator} has no model registry")
        try:
            return self.models.tables[name]
        except KeyError:
            raise KeyError(f"Store {self.locator} has no table {name!r}") from None

    async def reflect(self) -> MetaData:
        """Populate the model registry from the live schema."""
        metadata = MetaData()
        async with self.engine.connect() as conn:
            await conn.run_sync(metadata.reflect)
        self.models = metadata
        return metadata

    async def ping(self) -> bool:
        if self.closed:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("Ping failed for store %s: %s", self.locator, e)
            return False
        return True

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.engine.dispose()


__all__ = [
    "SHARED_POOL_KEY",
    "ConnectionHandle",
]
