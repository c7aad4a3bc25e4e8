"""
SourceCleaner - explicit removal of a migrated tenant's shared rows.

Deleting the source copy is never part of a migration. It is a separate
step an operator runs once the tenant is routed to its dedicated store
and the copy has been verified. Only tables whose copy succeeded are
purged; everything else stays in the shared store.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from tenantstore.connections.handle import SHARED_POOL_KEY, ConnectionHandle
from tenantstore.connections.registry import ConnectionRegistry
from tenantstore.directory.models import IsolationMode
from tenantstore.directory.repository import TenantDirectory
from tenantstore.exceptions import MigrationTableError, TenantStateError
from tenantstore.migration.models import MigrationJob
from tenantstore.migration.plan import build_copy_plan
from tenantstore.migration.repository import MigrationJobRepository
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import (
    ATTR_MIGRATION_JOB_ID,
    ATTR_ROW_COUNT,
    ATTR_SOURCE_LOCATOR,
    ATTR_TABLE_NAME,
    ATTR_TENANT_ID,
)
from tenantstore.schema.definitions import TENANT_COLUMN, TableDef
from tenantstore.schema.templates import TENANT_TABLES

logger = logging.getLogger(__name__)


class SourceCleaner:
    """
    Deletes migrated rows from the shared store.

    Args:
        directory: Tenant directory, used to confirm the tenant was flipped
        registry: Connection registry providing the shared handle
        jobs: Job repository; the purge is recorded on the job
        templates: Table templates defining the dependency order
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing

    Example:
        >>> cleaner = SourceCleaner(directory, registry, migrator.jobs)
        >>> deleted = await cleaner.purge(job, authorized_by="ops@example.com")
    """

    def __init__(
        self,
        directory: TenantDirectory,
        registry: ConnectionRegistry,
        jobs: MigrationJobRepository,
        *,
        templates: tuple[TableDef, ...] = TENANT_TABLES,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._directory = directory
        self._registry = registry
        self._jobs = jobs
        self._plan = build_copy_plan(templates)
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def purge(self, job: MigrationJob, *, authorized_by: str) -> dict[str, int]:
        """
        Delete the tenant's shared rows for every successfully copied table.

        Tables are purged in reverse copy order so children go before the
        rows they reference. Every DELETE is scoped by ``tenant_id``.

        Args:
            job: A finished migration job whose tenant is now isolated
            authorized_by: Operator authorizing the deletion

        Returns:
            Rows deleted per table

        Raises:
            ValueError: If authorized_by is empty
            TenantStateError: If the job is not finished or the tenant
                still reads from the shared store
            MigrationTableError: If a delete fails; earlier tables stay purged
        """
        if not authorized_by.strip():
            raise ValueError("authorized_by is required to purge source rows")
        if not job.is_terminal:
            raise TenantStateError(
                f"Migration job {job.id} has not finished",
                tenant_id=job.tenant_id,
                operation="purge",
            )
        tenant = await self._directory.get_by_id(job.tenant_id)
        if tenant.is_shared:
            raise TenantStateError(
                f"Tenant {job.tenant_id} is still served from the shared store",
                tenant_id=job.tenant_id,
                operation="purge",
            )

        handle = await self._registry.acquire_store(
            SHARED_POOL_KEY, job.source_locator, IsolationMode.SHARED
        )
        succeeded = set(job.succeeded_tables)
        dependents: dict[str, list[str]] = {}
        for step in self._plan:
            for parent in step.depends_on:
                dependents.setdefault(parent, []).append(step.table)

        deleted: dict[str, int] = {}
        with self._tracer.span(
            "tenantstore.cleaner.purge",
            {
                ATTR_TENANT_ID: job.tenant_id,
                ATTR_MIGRATION_JOB_ID: str(job.id),
                ATTR_SOURCE_LOCATOR: job.source_locator,
            },
        ):
            # Children first, so cascading foreign keys never reach rows
            # of a table that was not copied
            for step in reversed(self._plan):
                name = step.table
                if name not in succeeded:
                    continue
                blocking = [
                    child
                    for child in dependents.get(name, [])
                    if child not in deleted and await self._has_rows(handle, child, job.tenant_id)
                ]
                if blocking:
                    logger.warning(
                        "Keeping %s for tenant %s: rows remain in dependent tables %s",
                        name,
                        job.tenant_id,
                        blocking,
                    )
                    continue
                deleted[name] = await self._purge_table(handle, name, job.tenant_id)

        job.purged_at = datetime.now(UTC)
        job.purged_by = authorized_by
        await self._jobs.update(job)

        skipped = [name for name in job.tables if name not in deleted]
        logger.info(
            "Purged %d rows of tenant %s from %s (authorized by %s); kept tables: %s",
            sum(deleted.values()),
            job.tenant_id,
            job.source_locator,
            authorized_by,
            skipped,
        )
        return deleted

    # =========================================================================
    # Helper methods
    # =========================================================================

    async def _has_rows(self, handle: ConnectionHandle, name: str, tenant_id: int) -> bool:
        table = handle.table(name)
        stmt = select(func.count()).select_from(table).where(table.c[TENANT_COLUMN] == tenant_id)
        async with handle.engine.connect() as conn:
            return (await conn.execute(stmt)).scalar_one() > 0

    async def _purge_table(self, handle: ConnectionHandle, name: str, tenant_id: int) -> int:
        with self._tracer.span(
            "tenantstore.cleaner.purge_table",
            {ATTR_TENANT_ID: tenant_id, ATTR_TABLE_NAME: name},
        ) as span:
            table = handle.table(name)
            try:
                async with handle.engine.begin() as conn:
                    result = await conn.execute(
                        delete(table).where(table.c[TENANT_COLUMN] == tenant_id)
                    )
            except SQLAlchemyError as e:
                logger.error("Purge of %s for tenant %s failed: %s", name, tenant_id, e)
                raise MigrationTableError(tenant_id, name, str(e)) from e
            if span:
                span.set_attribute(ATTR_ROW_COUNT, result.rowcount)
            return result.rowcount


__all__ = ["SourceCleaner"]
