"""
TierMigrator - moves a tenant from the shared store to a dedicated store.

The migrator runs out of band from request traffic:

    1. load the tenant; it must still be shared
    2. provision the dedicated store's isolated schema
    3. copy the tenant's rows table by table in dependency order,
       recording every table's outcome independently
    4. flip the tenant to isolated and drop cached handles once every
       table has been attempted (unless the config holds partial jobs back)

Source rows are never deleted here; see SourceCleaner for the separate,
explicitly authorized purge.

Usage:
    >>> migrator = TierMigrator(directory, registry, provisioner, settings=settings)
    >>> job = await migrator.migrate(42)
    >>> job.status
    <MigrationStatus.SUCCEEDED: 'succeeded'>
    >>> if job.failed_tables:
    ...     job = await migrator.retry_failed(job)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from tenantstore.config import TenantStoreSettings, get_settings
from tenantstore.connections.handle import SHARED_POOL_KEY
from tenantstore.connections.registry import ConnectionRegistry
from tenantstore.directory.models import IsolationMode, SubscriptionTier, Tenant
from tenantstore.directory.repository import TenantDirectory
from tenantstore.exceptions import (
    ConnectionFailedError,
    MigrationTableError,
    TenantStateError,
)
from tenantstore.migration.copier import TableCopier
from tenantstore.migration.models import (
    MigrationConfig,
    MigrationJob,
    MigrationStatus,
    TableOutcome,
    TableResult,
)
from tenantstore.migration.plan import CopyStep, build_copy_plan
from tenantstore.migration.repository import (
    InMemoryMigrationJobRepository,
    MigrationJobRepository,
)
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import (
    ATTR_MIGRATION_JOB_ID,
    ATTR_MIGRATION_STATUS,
    ATTR_ROW_COUNT,
    ATTR_SOURCE_LOCATOR,
    ATTR_TARGET_LOCATOR,
    ATTR_TENANT_ID,
)
from tenantstore.schema.provisioner import SchemaProvisioner

logger = logging.getLogger(__name__)


class TierMigrator:
    """
    Orchestrates shared -> isolated tier migrations.

    Args:
        directory: Tenant directory; performs the isolation flip
        registry: Connection registry for source and target handles
        provisioner: Provisions the target store
        jobs: Job repository (defaults to in-memory)
        config: Batch size and flip policy
        settings: Locator naming (defaults to env settings)
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        directory: TenantDirectory,
        registry: ConnectionRegistry,
        provisioner: SchemaProvisioner,
        *,
        jobs: MigrationJobRepository | None = None,
        config: MigrationConfig | None = None,
        settings: TenantStoreSettings | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._directory = directory
        self._registry = registry
        self._provisioner = provisioner
        self._jobs = jobs if jobs is not None else InMemoryMigrationJobRepository()
        self._config = config or MigrationConfig()
        self._settings = settings or get_settings()
        self._enable_tracing = enable_tracing
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

        self._running: dict[int, MigrationJob] = {}
        self._cancel_requested: set[int] = set()

    @property
    def jobs(self) -> MigrationJobRepository:
        return self._jobs

    @staticmethod
    def migration_key(tenant_id: int) -> str:
        """Registry key of the target handle while the tenant is still routed to shared."""
        return f"migration:{tenant_id}"

    # =========================================================================
    # Public API
    # =========================================================================

    async def migrate(
        self,
        tenant_id: int,
        tables: Iterable[str] | None = None,
    ) -> MigrationJob:
        """
        Copy a shared tenant's rows into its dedicated store.

        A tenant already flipped by an earlier job may still be migrated
        with an explicit ``tables`` list; rows are then read from that
        job's source store again (operator re-run of failed tables).

        Args:
            tenant_id: Tenant to migrate
            tables: Copy only these tables (operator re-run of failures)

        Returns:
            The finished job; inspect ``status`` and per-table outcomes

        Raises:
            TenantNotFoundError: If the tenant does not exist
            TenantStateError: If the tenant is already isolated or a
                migration for it is running
            SchemaProvisionError: If the target store cannot be provisioned
            KeyError: If ``tables`` names an unknown table
        """
        tenant = await self._directory.get_by_id(tenant_id)
        source_locator = tenant.storage_locator
        if not tenant.is_shared:
            flipped_by = await self._flipping_job(tenant_id) if tables is not None else None
            if flipped_by is None:
                raise TenantStateError(
                    f"Tenant {tenant_id} is already isolated",
                    tenant_id=tenant_id,
                    operation="migrate",
                )
            source_locator = flipped_by.source_locator
        if tenant_id in self._running:
            raise TenantStateError(
                f"A migration for tenant {tenant_id} is already running",
                tenant_id=tenant_id,
                operation="migrate",
            )

        plan = build_copy_plan(self._provisioner.templates, tables)
        job = MigrationJob(
            tenant_id=tenant_id,
            source_locator=source_locator,
            target_locator=self._settings.tenant_locator(tenant_id),
            tables={step.table: TableResult(step.table) for step in plan},
            config=self._config,
            created_at=datetime.now(UTC),
        )
        self._running[tenant_id] = job
        try:
            await self._jobs.create(job)
            return await self._run(tenant, job, plan)
        finally:
            self._running.pop(tenant_id, None)
            self._cancel_requested.discard(tenant_id)

    async def retry_failed(self, job: MigrationJob) -> MigrationJob:
        """
        Re-run only the tables that failed in a previous job.

        Tables already copied are skipped row by row, so retrying is safe.
        Works whether or not the earlier job flipped the tenant.

        Raises:
            TenantStateError: If the job has no failed tables
        """
        failed = job.failed_tables
        if not failed:
            raise TenantStateError(
                f"Migration job {job.id} has no failed tables",
                tenant_id=job.tenant_id,
                operation="retry_failed",
            )
        logger.info("Retrying %d failed tables of job %s", len(failed), job.id)
        return await self.migrate(job.tenant_id, tables=failed)

    def cancel(self, tenant_id: int) -> bool:
        """
        Request cancellation of a running migration.

        The job stops before its next table; tables not yet attempted are
        marked skipped.

        Returns:
            True if a migration for the tenant was running
        """
        if tenant_id not in self._running:
            return False
        self._cancel_requested.add(tenant_id)
        logger.info("Cancellation requested for migration of tenant %s", tenant_id)
        return True

    def is_running(self, tenant_id: int) -> bool:
        return tenant_id in self._running

    # =========================================================================
    # Job execution
    # =========================================================================

    async def _run(
        self,
        tenant: Tenant,
        job: MigrationJob,
        plan: tuple[CopyStep, ...],
    ) -> MigrationJob:
        with self._tracer.span(
            "tenantstore.migrator.migrate",
            {
                ATTR_TENANT_ID: tenant.id,
                ATTR_MIGRATION_JOB_ID: str(job.id),
                ATTR_SOURCE_LOCATOR: job.source_locator,
                ATTR_TARGET_LOCATOR: job.target_locator,
            },
        ) as span:
            self._transition(job, MigrationStatus.RUNNING)
            job.started_at = datetime.now(UTC)
            await self._jobs.update(job)
            logger.info(
                "Migrating tenant %s from %s to %s (%d tables)",
                tenant.id,
                job.source_locator,
                job.target_locator,
                len(plan),
            )

            try:
                await self._provisioner.ensure_schema(job.target_locator, IsolationMode.ISOLATED)
                for step in plan:
                    result = job.tables[step.table]
                    if tenant.id in self._cancel_requested:
                        result.outcome = TableOutcome.SKIPPED
                        continue
                    await self._copy_step(tenant, job, step, result)
                    await self._jobs.update(job)

                if tenant.id in self._cancel_requested:
                    status = MigrationStatus.CANCELLED
                elif job.failed_tables:
                    status = MigrationStatus.PARTIALLY_FAILED
                else:
                    status = MigrationStatus.SUCCEEDED

                if status == MigrationStatus.SUCCEEDED or (
                    status == MigrationStatus.PARTIALLY_FAILED
                    and not job.config.hold_on_partial_failure
                ):
                    await self._flip(tenant, job)
            except BaseException as e:
                logger.error("Migration %s for tenant %s aborted: %r", job.id, tenant.id, e)
                for result in job.tables.values():
                    if result.outcome == TableOutcome.PENDING:
                        result.outcome = TableOutcome.FAILED
                        result.error = str(e) or type(e).__name__
                await self._finish(job, MigrationStatus.PARTIALLY_FAILED)
                raise
            finally:
                await self._registry.release(self.migration_key(tenant.id))

            await self._finish(job, status)
            if span:
                span.set_attribute(ATTR_MIGRATION_STATUS, status.value)
                span.set_attribute(ATTR_ROW_COUNT, job.rows_copied)
            return job

    async def _copy_step(
        self,
        tenant: Tenant,
        job: MigrationJob,
        step: CopyStep,
        result: TableResult,
    ) -> None:
        # Handles are looked up per table; one healed by request traffic
        # mid-job is never copied through
        try:
            source = await self._registry.acquire_store(
                SHARED_POOL_KEY, job.source_locator, IsolationMode.SHARED
            )
            target = await self._registry.acquire_store(
                self.migration_key(tenant.id), job.target_locator, IsolationMode.ISOLATED
            )
            copier = TableCopier(
                source,
                target,
                batch_size=job.config.batch_size,
                enable_tracing=self._enable_tracing,
            )
            await copier.copy(step, tenant.id, result)
        except MigrationTableError as e:
            result.outcome = TableOutcome.FAILED
            result.error = e.original_error
        except ConnectionFailedError as e:
            logger.error(
                "Store unavailable while copying %s for tenant %s: %s", step.table, tenant.id, e
            )
            result.outcome = TableOutcome.FAILED
            result.error = str(e)
        else:
            result.outcome = TableOutcome.SUCCEEDED

    async def _flipping_job(self, tenant_id: int) -> MigrationJob | None:
        """The job that routed the tenant to its dedicated store, if any."""
        for job in reversed(await self._jobs.list_for_tenant(tenant_id)):
            if job.isolation_flipped:
                return job
        return None

    async def _flip(self, tenant: Tenant, job: MigrationJob) -> None:
        if tenant.is_isolated:
            return
        tier = (
            tenant.subscription_tier
            if tenant.subscription_tier != SubscriptionTier.FREE
            else SubscriptionTier.ENTERPRISE
        )
        await self._directory.mark_isolated(tenant.id, tier)
        job.isolation_flipped = True
        # Any handle cached under the tenant's own key predates the flip
        await self._registry.release(tenant.id)

    async def _finish(self, job: MigrationJob, status: MigrationStatus) -> None:
        self._transition(job, status)
        job.completed_at = datetime.now(UTC)
        await self._jobs.update(job)

        if status == MigrationStatus.SUCCEEDED:
            logger.info(
                "Migration %s for tenant %s succeeded: %d rows in %d tables",
                job.id,
                job.tenant_id,
                job.rows_copied,
                len(job.tables),
            )
        else:
            logger.warning(
                "Migration %s for tenant %s ended %s: failed=%s skipped=%s",
                job.id,
                job.tenant_id,
                status.value,
                job.failed_tables,
                job.tables_with(TableOutcome.SKIPPED),
            )

    def _transition(self, job: MigrationJob, status: MigrationStatus) -> None:
        if not job.can_transition_to(status):
            raise TenantStateError(
                f"Invalid migration status transition {job.status.value} -> {status.value}",
                tenant_id=job.tenant_id,
                operation="migrate",
            )
        job.status = status


__all__ = ["TierMigrator"]
