"""
TenantSession - tenant-scoped data access over a ConnectionHandle.

On a shared store every statement issued through the session carries the
``tenant_id = T`` predicate and every inserted row is stamped with T.
Callers cannot widen or change that scope: a statement naming another
tenant, or trying to rewrite the discriminator, raises TenantScopeError.
On an isolated store the discriminator does not exist and naming it is
rejected the same way.

Example:
    >>> async with registry.session(tenant) as session:
    ...     await session.insert("customers", {"name": "Ada"})
    ...     rows = await session.select("customers", {"name": "Ada"})
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import ColumnElement, Table, and_, delete, func, insert, select, update

from tenantstore.connections.handle import ConnectionHandle
from tenantstore.exceptions import TenantScopeError
from tenantstore.schema.definitions import TENANT_COLUMN


class TenantSession:
    """
    Statement helpers bound to one tenant and one handle.

    Args:
        handle: Handle for the store holding the tenant's rows
        tenant_id: The tenant every statement is scoped to
    """

    def __init__(self, handle: ConnectionHandle, tenant_id: int) -> None:
        self._handle = handle
        self._tenant_id = tenant_id

    @property
    def handle(self) -> ConnectionHandle:
        return self._handle

    @property
    def tenant_id(self) -> int:
        return self._tenant_id

    async def select(
        self,
        table_name: str,
        where: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return matching rows as dictionaries (discriminator included on shared stores)."""
        table = self._handle.table(table_name)
        stmt = select(table).where(*self._predicates(table, where))
        if order_by is not None:
            stmt = stmt.order_by(table.c[order_by])
        elif "id" in table.c:
            stmt = stmt.order_by(table.c.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._handle.engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row._mapping) for row in result.fetchall()]

    async def count(self, table_name: str, where: Mapping[str, Any] | None = None) -> int:
        table = self._handle.table(table_name)
        stmt = select(func.count()).select_from(table).where(*self._predicates(table, where))
        async with self._handle.engine.connect() as conn:
            return int((await conn.execute(stmt)).scalar_one())

    async def insert(
        self,
        table_name: str,
        rows: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> int:
        """Insert one or many rows; returns the number of rows written."""
        table = self._handle.table(table_name)
        batch = [rows] if isinstance(rows, Mapping) else list(rows)
        if not batch:
            return 0
        values = [self._scoped_row(table, row) for row in batch]
        async with self._handle.engine.begin() as conn:
            await conn.execute(insert(table), values)
        return len(values)

    async def update(
        self,
        table_name: str,
        values: Mapping[str, Any],
        where: Mapping[str, Any] | None = None,
    ) -> int:
        """Update matching rows; the discriminator itself cannot be changed."""
        table = self._handle.table(table_name)
        if TENANT_COLUMN in values:
            raise TenantScopeError(
                f"Cannot change {TENANT_COLUMN} of rows in {table_name}",
                tenant_id=self._tenant_id,
                table=table_name,
            )
        stmt = update(table).where(*self._predicates(table, where)).values(**values)
        async with self._handle.engine.begin() as conn:
            result = await conn.execute(stmt)
            return result.rowcount

    async def delete(self, table_name: str, where: Mapping[str, Any] | None = None) -> int:
        table = self._handle.table(table_name)
        stmt = delete(table).where(*self._predicates(table, where))
        async with self._handle.engine.begin() as conn:
            result = await conn.execute(stmt)
            return result.rowcount

    # =========================================================================
    # Scope enforcement
    # =========================================================================

    def _predicates(
        self,
        table: Table,
        where: Mapping[str, Any] | None,
    ) -> list[ColumnElement[bool]]:
        where = dict(where or {})
        requested = where.pop(TENANT_COLUMN, None)
        if requested is not None:
            self._check_discriminator(table, requested)

        clauses: list[ColumnElement[bool]] = [
            table.c[name] == value for name, value in where.items()
        ]
        if self._handle.is_shared:
            clauses.insert(0, table.c[TENANT_COLUMN] == self._tenant_id)
        if not clauses:
            return []
        return [and_(*clauses)]

    def _scoped_row(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        values = dict(row)
        requested = values.pop(TENANT_COLUMN, None)
        if requested is not None:
            self._check_discriminator(table, requested)
        if self._handle.is_shared:
            values[TENANT_COLUMN] = self._tenant_id
        return values

    def _check_discriminator(self, table: Table, requested: Any) -> None:
        if not self._handle.is_shared:
            raise TenantScopeError(
                f"{table.name} in isolated store {self._handle.locator} has no {TENANT_COLUMN}",
                tenant_id=self._tenant_id,
                table=table.name,
            )
        if requested != self._tenant_id:
            raise TenantScopeError(
                f"Statement on {table.name} targets tenant {requested}",
                tenant_id=self._tenant_id,
                table=table.name,
            )


__all__ = ["TenantSession"]
