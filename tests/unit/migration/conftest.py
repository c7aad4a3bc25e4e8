"""
Fixtures for tier migration tests.

Provides a TierMigrator wired to the shared registry fixtures and a
helper that seeds a tenant's rows into the shared store through a
TenantSession.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import pytest

from tenantstore.connections.registry import ConnectionRegistry
from tenantstore.migration.migrator import TierMigrator
from tenantstore.migration.models import MigrationConfig
from tenantstore.migration.repository import InMemoryMigrationJobRepository


@pytest.fixture
def jobs() -> InMemoryMigrationJobRepository:
    return InMemoryMigrationJobRepository()


@pytest.fixture
def migrator(directory, registry, provisioner, settings, jobs) -> TierMigrator:
    return TierMigrator(
        directory,
        registry,
        provisioner,
        jobs=jobs,
        config=MigrationConfig(batch_size=2),
        settings=settings,
        enable_tracing=False,
    )


@pytest.fixture
def seed_rows(registry: ConnectionRegistry) -> Callable[[int], Awaitable[dict[str, int]]]:
    """
    Provide a helper writing a small dataset for a tenant into the shared store.

    Returns the number of rows written per table.
    """

    async def _seed(tenant_id: int) -> dict[str, int]:
        async with registry.session(tenant_id) as session:
            await session.insert("stores", {"name": f"Main {tenant_id}"})
            store = (await session.select("stores"))[0]
            await session.insert(
                "products",
                [
                    {"name": "Widget", "sku": "W-1", "price": 10},
                    {"name": "Gadget", "sku": "G-1", "price": 25},
                    {"name": "Doohickey", "sku": "D-1", "price": 5},
                ],
            )
            await session.insert(
                "customers", [{"name": "Ada"}, {"name": "Grace"}, {"name": "Edsger"}]
            )
            customer = (await session.select("customers"))[0]
            await session.insert(
                "invoices",
                {
                    "invoice_number": f"INV-{tenant_id}-1",
                    "store_id": store["id"],
                    "customer_id": customer["id"],
                    "issue_date": "2024-01-15",
                    "subtotal": 40,
                    "total": 40,
                },
            )
            invoice = (await session.select("invoices"))[0]
            await session.insert(
                "invoice_items",
                [
                    {
                        "invoice_id": invoice["id"],
                        "item_name": "Widget",
                        "quantity": 2,
                        "unit_price": 10,
                        "total": 20,
                    },
                    {
                        "invoice_id": invoice["id"],
                        "item_name": "Gadget",
                        "quantity": 1,
                        "unit_price": 20,
                        "total": 20,
                    },
                ],
            )
        return {"stores": 1, "products": 3, "customers": 3, "invoices": 1, "invoice_items": 2}

    return _seed
