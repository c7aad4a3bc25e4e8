"""
Unit tests for SourceCleaner, the authorized purge of migrated shared rows.
"""

import pytest
from sqlalchemy.exc import OperationalError

from tenantstore.connections.handle import SHARED_POOL_KEY
from tenantstore.connections.session import TenantSession
from tenantstore.directory.models import IsolationMode
from tenantstore.exceptions import TenantStateError
from tenantstore.migration.cleanup import SourceCleaner
from tenantstore.migration.copier import TableCopier
from tenantstore.migration.migrator import TierMigrator
from tenantstore.migration.models import MigrationConfig, MigrationJob, MigrationStatus

pytestmark = pytest.mark.sqlite


@pytest.fixture
def cleaner(directory, registry, jobs) -> SourceCleaner:
    return SourceCleaner(directory, registry, jobs, enable_tracing=False)


async def shared_session(registry, settings, tenant_id: int) -> TenantSession:
    handle = await registry.acquire_store(
        SHARED_POOL_KEY, settings.shared_store_name, IsolationMode.SHARED
    )
    return TenantSession(handle, tenant_id)


class TestPurge:
    @pytest.mark.asyncio
    async def test_purges_only_the_migrated_tenant(
        self, migrator, cleaner, registry, jobs, add_tenant, seed_rows, settings
    ):
        add_tenant(1)
        add_tenant(2)
        seeded = await seed_rows(1)
        await seed_rows(2)
        job = await migrator.migrate(1)

        deleted = await cleaner.purge(job, authorized_by="ops@example.com")

        for name, count in seeded.items():
            assert deleted[name] == count
        one = await shared_session(registry, settings, 1)
        two = await shared_session(registry, settings, 2)
        assert await one.count("products") == 0
        assert await one.count("invoice_items") == 0
        assert await two.count("products") == 3
        assert await two.count("invoice_items") == 2

        stored = await jobs.get(job.id)
        assert stored.purged_by == "ops@example.com"
        assert stored.purged_at is not None

    @pytest.mark.asyncio
    async def test_isolated_copy_survives_purge(
        self, migrator, cleaner, registry, add_tenant, seed_rows
    ):
        add_tenant(1)
        await seed_rows(1)
        job = await migrator.migrate(1)

        await cleaner.purge(job, authorized_by="ops@example.com")

        async with registry.session(1) as session:
            assert await session.count("products") == 3
            assert await session.count("invoice_items") == 2

    @pytest.mark.asyncio
    async def test_requires_authorization(self, migrator, cleaner, add_tenant):
        add_tenant(1)
        job = await migrator.migrate(1)

        with pytest.raises(ValueError, match="authorized_by"):
            await cleaner.purge(job, authorized_by="  ")

    @pytest.mark.asyncio
    async def test_running_job_is_rejected(self, cleaner, add_tenant, settings):
        add_tenant(1)
        job = MigrationJob(
            tenant_id=1,
            source_locator=settings.shared_store_name,
            target_locator=settings.tenant_locator(1),
            status=MigrationStatus.RUNNING,
        )

        with pytest.raises(TenantStateError) as exc_info:
            await cleaner.purge(job, authorized_by="ops@example.com")
        assert exc_info.value.operation == "purge"

    @pytest.mark.asyncio
    async def test_unflipped_tenant_is_rejected(
        self,
        directory,
        registry,
        provisioner,
        jobs,
        cleaner,
        add_tenant,
        seed_rows,
        settings,
        monkeypatch,
    ):
        add_tenant(1)
        await seed_rows(1)
        original = TableCopier._write_batch

        async def failing(self, table, key, rows, strip_columns):
            if table.name == "invoice_items":
                raise OperationalError("INSERT", {}, Exception("disk full"))
            return await original(self, table, key, rows, strip_columns)

        monkeypatch.setattr(TableCopier, "_write_batch", failing)
        migrator = TierMigrator(
            directory,
            registry,
            provisioner,
            jobs=jobs,
            config=MigrationConfig(hold_on_partial_failure=True),
            settings=settings,
            enable_tracing=False,
        )
        job = await migrator.migrate(1)
        assert job.status == MigrationStatus.PARTIALLY_FAILED
        assert not job.isolation_flipped

        with pytest.raises(TenantStateError):
            await cleaner.purge(job, authorized_by="ops@example.com")

        one = await shared_session(registry, settings, 1)
        assert await one.count("products") == 3

    @pytest.mark.asyncio
    async def test_parents_of_unpurged_rows_are_kept(
        self, migrator, registry, cleaner, add_tenant, seed_rows, settings, monkeypatch
    ):
        add_tenant(1)
        await seed_rows(1)
        original = TableCopier._write_batch

        async def failing(self, table, key, rows, strip_columns):
            if table.name == "invoice_items":
                raise OperationalError("INSERT", {}, Exception("disk full"))
            return await original(self, table, key, rows, strip_columns)

        monkeypatch.setattr(TableCopier, "_write_batch", failing)
        job = await migrator.migrate(1)
        assert job.isolation_flipped

        deleted = await cleaner.purge(job, authorized_by="ops@example.com")

        assert "invoice_items" not in deleted
        assert "invoices" not in deleted
        assert "products" not in deleted
        one = await shared_session(registry, settings, 1)
        assert await one.count("invoice_items") == 2
        assert await one.count("invoices") == 1
        assert await one.count("products") == 3
