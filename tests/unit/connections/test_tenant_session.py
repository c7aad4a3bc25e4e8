"""
Unit tests for TenantSession scope enforcement.
"""

import pytest

from tenantstore.directory.models import IsolationMode
from tenantstore.exceptions import TenantScopeError

pytestmark = pytest.mark.sqlite


class TestSharedStoreScope:
    @pytest.mark.asyncio
    async def test_insert_stamps_tenant(self, registry, add_tenant):
        add_tenant(1)

        async with registry.session(1) as session:
            written = await session.insert(
                "customers", [{"name": "Ada"}, {"name": "Grace"}]
            )
            rows = await session.select("customers")

        assert written == 2
        assert [row["tenant_id"] for row in rows] == [1, 1]

    @pytest.mark.asyncio
    async def test_reads_never_cross_tenants(self, registry, add_tenant):
        add_tenant(1)
        add_tenant(2)
        async with registry.session(1) as one:
            await one.insert("customers", {"name": "Ada"})
        async with registry.session(2) as two:
            await two.insert("customers", {"name": "Grace"})

            rows = await two.select("customers")
            assert [row["name"] for row in rows] == ["Grace"]
            assert await two.count("customers") == 1

    @pytest.mark.asyncio
    async def test_update_and_delete_are_scoped(self, registry, add_tenant):
        add_tenant(1)
        add_tenant(2)
        async with registry.session(1) as one:
            await one.insert("customers", {"name": "Same"})
        async with registry.session(2) as two:
            await two.insert("customers", {"name": "Same"})

            assert await two.update("customers", {"city": "Lagos"}, {"name": "Same"}) == 1
            assert await two.delete("customers", {"name": "Same"}) == 1

        async with registry.session(1) as one:
            rows = await one.select("customers")
        assert len(rows) == 1
        assert rows[0]["city"] is None

    @pytest.mark.asyncio
    async def test_matching_discriminator_is_allowed(self, registry, add_tenant):
        add_tenant(1)

        async with registry.session(1) as session:
            await session.insert("customers", {"name": "Ada", "tenant_id": 1})
            rows = await session.select("customers", {"tenant_id": 1})

        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_foreign_tenant_in_where_raises(self, registry, add_tenant):
        add_tenant(1)

        async with registry.session(1) as session:
            with pytest.raises(TenantScopeError) as exc_info:
                await session.select("customers", {"tenant_id": 2})

        assert exc_info.value.table == "customers"
        assert exc_info.value.tenant_id == 1

    @pytest.mark.asyncio
    async def test_foreign_tenant_insert_raises(self, registry, add_tenant):
        add_tenant(1)

        async with registry.session(1) as session:
            with pytest.raises(TenantScopeError):
                await session.insert("customers", {"name": "Eve", "tenant_id": 2})
            assert await session.count("customers") == 0

    @pytest.mark.asyncio
    async def test_rewriting_discriminator_raises(self, registry, add_tenant):
        add_tenant(1)

        async with registry.session(1) as session:
            with pytest.raises(TenantScopeError):
                await session.update("customers", {"tenant_id": 2})


class TestIsolatedStoreScope:
    @pytest.mark.asyncio
    async def test_rows_have_no_discriminator(self, registry, add_tenant):
        add_tenant(7, IsolationMode.ISOLATED)

        async with registry.session(7) as session:
            await session.insert("customers", {"name": "Ada"})
            rows = await session.select("customers", limit=10)

        assert rows[0]["name"] == "Ada"
        assert "tenant_id" not in rows[0]

    @pytest.mark.asyncio
    async def test_naming_discriminator_raises(self, registry, add_tenant):
        add_tenant(7, IsolationMode.ISOLATED)

        async with registry.session(7) as session:
            with pytest.raises(TenantScopeError):
                await session.select("customers", {"tenant_id": 7})

    @pytest.mark.asyncio
    async def test_unknown_table(self, registry, add_tenant):
        add_tenant(7, IsolationMode.ISOLATED)

        async with registry.session(7) as session:
            with pytest.raises(KeyError):
                await session.select("nope")
