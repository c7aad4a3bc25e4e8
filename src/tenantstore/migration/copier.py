"""
TableCopier - copies one tenant's rows of one table between stores.

Rows are read from the shared store in keyset batches ordered by primary
key, always filtered by ``tenant_id = T``. The discriminator is stripped
and rows whose primary key already exists in the target are skipped, so
a copy can be re-run after a partial failure without duplicating data.

Performance Characteristics:
    - One short-lived read connection and one short-lived write
      transaction per batch; regular traffic on the shared pool proceeds.
    - Source reads only; nothing is deleted from the shared store.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Table, insert, select, text
from sqlalchemy.exc import SQLAlchemyError

from tenantstore.connections.handle import ConnectionHandle
from tenantstore.exceptions import MigrationTableError
from tenantstore.migration.models import TableResult
from tenantstore.migration.plan import CopyStep
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import (
    ATTR_ROW_COUNT,
    ATTR_SOURCE_LOCATOR,
    ATTR_TABLE_NAME,
    ATTR_TARGET_LOCATOR,
    ATTR_TENANT_ID,
)
from tenantstore.schema.definitions import TENANT_COLUMN

logger = logging.getLogger(__name__)


class TableCopier:
    """
    Copies a tenant's rows table by table.

    Args:
        source: Handle for the shared store
        target: Handle for the tenant's dedicated store
        batch_size: Rows per read batch
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        source: ConnectionHandle,
        target: ConnectionHandle,
        *,
        batch_size: int = 500,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._source = source
        self._target = target
        self._batch_size = batch_size
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def copy(self, step: CopyStep, tenant_id: int, result: TableResult) -> TableResult:
        """
        Copy every row of ``step.table`` owned by the tenant.

        Counts accumulate on ``result`` as batches complete, so a failure
        leaves the counts of the rows that did make it.

        Raises:
            MigrationTableError: If reading or writing fails
        """
        with self._tracer.span(
            "tenantstore.copier.copy_table",
            {
                ATTR_TENANT_ID: tenant_id,
                ATTR_TABLE_NAME: step.table,
                ATTR_SOURCE_LOCATOR: self._source.locator,
                ATTR_TARGET_LOCATOR: self._target.locator,
            },
        ):
            try:
                source = self._source.table(step.table)
                target = self._target.table(step.table)
                key = self._key_column(source)

                last_key: Any = None
                while True:
                    rows = await self._read_batch(source, key, tenant_id, last_key)
                    if not rows:
                        break
                    last_key = rows[-1][key]
                    result.rows_read += len(rows)
                    copied = await self._write_batch(target, key, rows, step.strip_columns)
                    result.rows_copied += copied
                    result.rows_skipped += len(rows) - copied
                    if len(rows) < self._batch_size:
                        break

                if result.rows_copied and self._target.engine.dialect.name == "postgresql":
                    await self._sync_sequence(step.table, key)
            # OSError covers driver-level connection failures SQLAlchemy does not wrap
            except (SQLAlchemyError, OSError, KeyError) as e:
                logger.error(
                    "Copy of %s for tenant %s failed after %d rows: %s",
                    step.table,
                    tenant_id,
                    result.rows_copied,
                    e,
                )
                raise MigrationTableError(
                    tenant_id, step.table, str(e), rows_copied=result.rows_copied
                ) from e

        logger.debug(
            "Copied %s for tenant %s: %d read, %d copied, %d already present",
            step.table,
            tenant_id,
            result.rows_read,
            result.rows_copied,
            result.rows_skipped,
        )
        return result

    # =========================================================================
    # Helper methods
    # =========================================================================

    @staticmethod
    def _key_column(table: Table) -> str:
        keys = [column.name for column in table.primary_key.columns]
        if len(keys) != 1:
            raise KeyError(f"{table.name} needs a single-column primary key to be copied")
        return keys[0]

    async def _read_batch(
        self,
        table: Table,
        key: str,
        tenant_id: int,
        after: Any,
    ) -> list[dict[str, Any]]:
        stmt = select(table).where(table.c[TENANT_COLUMN] == tenant_id)
        if after is not None:
            stmt = stmt.where(table.c[key] > after)
        stmt = stmt.order_by(table.c[key]).limit(self._batch_size)
        async with self._source.engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row._mapping) for row in result.fetchall()]

    async def _write_batch(
        self,
        table: Table,
        key: str,
        rows: list[dict[str, Any]],
        strip_columns: tuple[str, ...],
    ) -> int:
        columns = set(table.c.keys())
        ids = [row[key] for row in rows]
        async with self._target.engine.begin() as conn:
            existing = await conn.execute(select(table.c[key]).where(table.c[key].in_(ids)))
            present = {row[0] for row in existing.fetchall()}
            values = [
                {
                    name: value
                    for name, value in row.items()
                    if name not in strip_columns and name in columns
                }
                for row in rows
                if row[key] not in present
            ]
            if values:
                with self._tracer.span(
                    "tenantstore.copier.write_batch",
                    {ATTR_TABLE_NAME: table.name, ATTR_ROW_COUNT: len(values)},
                ):
                    await conn.execute(insert(table), values)
        return len(values)

    async def _sync_sequence(self, table: str, key: str) -> None:
        # Explicit ids bypass the serial sequence; move it past the copied rows
        async with self._target.engine.begin() as conn:
            await conn.execute(
                text(
                    f"SELECT setval(pg_get_serial_sequence('{table}', '{key}'), "
                    f"(SELECT COALESCE(MAX({key}), 0) + 1 FROM {table}), false)"
                )
            )


__all__ = ["TableCopier"]
