"""
Unit tests for SchemaProvisioner against file-backed SQLite stores.
"""

import asyncio

import pytest
from sqlalchemy import text

from tenantstore.directory.models import IsolationMode
from tenantstore.exceptions import ColumnEvolutionError, SchemaProvisionError
from tenantstore.schema.definitions import ColumnDef, ColumnType, IndexDef, TableDef
from tenantstore.schema.migrations import COLUMN_MIGRATIONS, ColumnMigration
from tenantstore.schema import provisioner as provisioner_module
from tenantstore.schema.provisioner import SchemaProvisioner
from tenantstore.schema.templates import TENANT_TABLES, table_names

pytestmark = pytest.mark.sqlite


class TestEnsureSchema:
    @pytest.mark.asyncio
    async def test_creates_every_table(self, provisioner):
        result = await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        assert result.tables_created == list(table_names())
        assert result.migrations_applied == [m.version for m in COLUMN_MIGRATIONS]
        assert result.ok
        assert result.state.missing_tables(provisioner.compile(IsolationMode.ISOLATED)) == []

    @pytest.mark.asyncio
    async def test_is_idempotent(self, provisioner):
        first = await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        second = await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        assert second.tables_created == []
        assert second.migrations_applied == []
        assert second.ok
        assert second.state.applied_migrations == tuple(m.version for m in COLUMN_MIGRATIONS)
        assert first.state.tables == second.state.tables

    @pytest.mark.asyncio
    async def test_shared_store_has_discriminator(self, provisioner):
        result = await provisioner.ensure_schema("shared", IsolationMode.SHARED)

        state = result.state
        assert all(state.has_column(name, "tenant_id") for name in table_names())
        assert state.discriminator_violations(provisioner.compile(IsolationMode.SHARED)) == []

    @pytest.mark.asyncio
    async def test_isolated_store_has_no_discriminator(self, provisioner):
        result = await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        state = result.state
        assert not any(state.has_column(name, "tenant_id") for name in table_names())
        assert state.has_column("invoices", "pdf_url")
        assert state.discriminator_violations(provisioner.compile(IsolationMode.ISOLATED)) == []

    @pytest.mark.asyncio
    async def test_shared_uniques_are_per_tenant(self, provisioner, engines):
        await provisioner.ensure_schema("shared", IsolationMode.SHARED)
        engine = engines.create_engine("shared")
        try:
            async with engine.begin() as conn:
                for tenant_id in (1, 2):
                    await conn.execute(
                        text(
                            "INSERT INTO products (tenant_id, name, sku) "
                            "VALUES (:tenant_id, 'Widget', 'SKU-1')"
                        ),
                        {"tenant_id": tenant_id},
                    )
            async with engine.connect() as conn:
                count = (
                    await conn.execute(text("SELECT COUNT(*) FROM products WHERE sku = 'SKU-1'"))
                ).scalar_one()
        finally:
            await engine.dispose()
        assert count == 2

    @pytest.mark.asyncio
    async def test_uses_supplied_engine(self, provisioner, engines):
        await engines.create_database("tenant_c")
        engine = engines.create_engine("tenant_c")
        try:
            result = await provisioner.ensure_schema(
                "tenant_c", IsolationMode.ISOLATED, engine=engine
            )
            state = await provisioner.get_schema_state(
                "tenant_c", IsolationMode.ISOLATED, engine=engine
            )
        finally:
            await engine.dispose()
        assert result.tables_created
        assert state.has_table("whatsapp_connections")


class TestTableFailures:
    @pytest.mark.asyncio
    async def test_table_failure_raises(self, engines):
        broken = TableDef(
            name="broken",
            columns=(ColumnDef("id", ColumnType.INTEGER, nullable=False, primary_key=True),),
            indexes=(IndexDef(("missing",)),),
        )
        provisioner = SchemaProvisioner(
            engines,
            templates=(*TENANT_TABLES[:1], broken),
            migrations=(),
            enable_tracing=False,
        )
        with pytest.raises(SchemaProvisionError) as exc_info:
            await provisioner.ensure_schema("tenant_x", IsolationMode.ISOLATED)
        assert exc_info.value.table == "broken"
        assert exc_info.value.locator == "tenant_x"


class TestColumnEvolution:
    @pytest.fixture
    def ghost_migration(self) -> ColumnMigration:
        return ColumnMigration(
            "9001_ghost_note",
            "ghost",
            ColumnDef("note", ColumnType.TEXT),
        )

    @pytest.mark.asyncio
    async def test_column_failure_is_reported_and_retried(self, engines, ghost_migration):
        provisioner = SchemaProvisioner(
            engines,
            migrations=(*COLUMN_MIGRATIONS, ghost_migration),
            enable_tracing=False,
        )

        first = await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        assert not first.ok
        assert [f.column for f in first.column_failures] == ["note"]
        assert isinstance(first.column_failures[0], ColumnEvolutionError)
        assert "9001_ghost_note" not in first.state.applied_migrations
        assert first.migrations_applied == [m.version for m in COLUMN_MIGRATIONS]

        engine = engines.create_engine("tenant_b")
        try:
            async with engine.begin() as conn:
                await conn.execute(text("CREATE TABLE ghost (id INTEGER PRIMARY KEY)"))
        finally:
            await engine.dispose()

        second = await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        assert second.ok
        assert second.migrations_applied == ["9001_ghost_note"]
        assert second.state.has_column("ghost", "note")

    @pytest.mark.asyncio
    async def test_existing_column_counts_as_applied(self, engines):
        await engines.create_database("tenant_b")
        engine = engines.create_engine("tenant_b")
        try:
            # Store created before the ledger existed, column already present
            async with engine.begin() as conn:
                await conn.execute(text("CREATE TABLE ghost (id INTEGER PRIMARY KEY, note TEXT)"))
            provisioner = SchemaProvisioner(
                engines,
                templates=(),
                migrations=(
                    ColumnMigration("9001_ghost_note", "ghost", ColumnDef("note", ColumnType.TEXT)),
                ),
                enable_tracing=False,
            )
            result = await provisioner.ensure_schema(
                "tenant_b", IsolationMode.ISOLATED, engine=engine
            )
        finally:
            await engine.dispose()
        assert result.migrations_applied == ["9001_ghost_note"]


class TestEnsureColumn:
    @pytest.mark.asyncio
    async def test_adds_missing_known_column(self, provisioner, engines):
        legacy = SchemaProvisioner(engines, migrations=(), enable_tracing=False)
        await legacy.ensure_schema("tenant_old", IsolationMode.ISOLATED)
        before = await provisioner.get_schema_state("tenant_old", IsolationMode.ISOLATED)
        assert not before.has_column("invoices", "pdf_url")

        assert await provisioner.ensure_column("tenant_old", "invoices", "pdf_url")

        after = await provisioner.get_schema_state("tenant_old", IsolationMode.ISOLATED)
        assert after.has_column("invoices", "pdf_url")

    @pytest.mark.asyncio
    async def test_present_column_is_noop(self, provisioner):
        await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        assert await provisioner.ensure_column("tenant_b", "invoices", "pdf_url")

    @pytest.mark.asyncio
    async def test_unknown_column_name(self, provisioner):
        with pytest.raises(KeyError):
            await provisioner.ensure_column("tenant_b", "invoices", "nonsense")

    @pytest.mark.asyncio
    async def test_missing_table_raises(self, provisioner):
        await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        with pytest.raises(ColumnEvolutionError):
            await provisioner.ensure_column(
                "tenant_b", "ghost", ColumnDef("note", ColumnType.TEXT)
            )

    @pytest.mark.asyncio
    async def test_column_added_between_check_and_alter(self, provisioner, engines, monkeypatch):
        legacy = SchemaProvisioner(engines, migrations=(), enable_tracing=False)
        await legacy.ensure_schema("tenant_old", IsolationMode.ISOLATED)
        assert await provisioner.ensure_column("tenant_old", "invoices", "pdf_url")

        # First check sees the column missing, as if another writer added it
        # right after; the ALTER then fails with a duplicate column
        original = SchemaProvisioner._has_column
        calls = []

        async def stale_first_check(self, store, table, column):
            calls.append(column)
            if len(calls) == 1:
                return False
            return await original(self, store, table, column)

        monkeypatch.setattr(SchemaProvisioner, "_has_column", stale_first_check)

        assert await provisioner.ensure_column("tenant_old", "invoices", "pdf_url")
        assert calls == ["pdf_url", "pdf_url"]

    @pytest.mark.asyncio
    async def test_concurrent_calls_for_same_column(self, provisioner, engines):
        legacy = SchemaProvisioner(engines, migrations=(), enable_tracing=False)
        await legacy.ensure_schema("tenant_old", IsolationMode.ISOLATED)

        results = await asyncio.gather(
            provisioner.ensure_column("tenant_old", "invoice_templates", "pdf_url"),
            provisioner.ensure_column("tenant_old", "invoice_templates", "pdf_url"),
        )

        assert results == [True, True]
        state = await provisioner.get_schema_state("tenant_old", IsolationMode.ISOLATED)
        assert state.has_column("invoice_templates", "pdf_url")


class TestConcurrentProvisioning:
    @pytest.mark.asyncio
    async def test_concurrent_ensure_schema_on_one_store(self, provisioner):
        first, second = await asyncio.gather(
            provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED),
            provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED),
        )

        assert first.ok and second.ok
        assert first.state.tables == second.state.tables
        assert first.state.missing_tables(provisioner.compile(IsolationMode.ISOLATED)) == []
        assert set(first.state.applied_migrations) == {m.version for m in COLUMN_MIGRATIONS}

    @pytest.mark.asyncio
    async def test_table_that_already_exists_is_success(self, provisioner, monkeypatch):
        await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        # Plain CREATE statements fail on existing tables the way a
        # concurrent creator's objects make them fail
        original = provisioner_module.generate_table_statements

        def without_guards(table, dialect="postgresql"):
            return [s.replace(" IF NOT EXISTS", "") for s in original(table, dialect)]

        monkeypatch.setattr(provisioner_module, "generate_table_statements", without_guards)

        result = await provisioner.ensure_schema("tenant_b", IsolationMode.ISOLATED)

        assert result.ok
        assert result.tables_created == []

    @pytest.mark.asyncio
    async def test_existing_table_missing_an_index_still_fails(self, engines, monkeypatch):
        table = TableDef(
            name="notes",
            columns=(
                ColumnDef("id", ColumnType.INTEGER, nullable=False, primary_key=True),
                ColumnDef("body", ColumnType.TEXT),
            ),
        )
        plain = SchemaProvisioner(engines, templates=(table,), migrations=(), enable_tracing=False)
        await plain.ensure_schema("tenant_n", IsolationMode.ISOLATED)

        original = provisioner_module.generate_table_statements

        def without_guards(table, dialect="postgresql"):
            return [s.replace(" IF NOT EXISTS", "") for s in original(table, dialect)]

        monkeypatch.setattr(provisioner_module, "generate_table_statements", without_guards)
        indexed = SchemaProvisioner(
            engines,
            templates=(
                TableDef(name="notes", columns=table.columns, indexes=(IndexDef(("body",)),)),
            ),
            migrations=(),
            enable_tracing=False,
        )

        with pytest.raises(SchemaProvisionError) as exc_info:
            await indexed.ensure_schema("tenant_n", IsolationMode.ISOLATED)
        assert exc_info.value.table == "notes"


class TestCommerceTables:
    @pytest.mark.asyncio
    async def test_variation_and_payment_tables_are_provisioned(self, provisioner):
        result = await provisioner.ensure_schema("shared", IsolationMode.SHARED)

        state = result.state
        for name in ("product_variation_options", "payment_transactions", "receipts", "staff"):
            assert state.has_column(name, "tenant_id")
        assert state.has_column("invoice_templates", "pdf_url")
        assert "0014_invoice_templates_pdf_url" in state.applied_migrations
