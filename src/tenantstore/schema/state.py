"""
Introspected schema state of a physical store.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from tenantstore._connection import execute_with_connection
from tenantstore.directory.models import IsolationMode
from tenantstore.schema.ddl import LEDGER_TABLE
from tenantstore.schema.definitions import TENANT_COLUMN, TableDef


@dataclass(frozen=True)
class SchemaState:
    """
    What a store actually contains.

    Attributes:
        locator: The store that was inspected.
        mode: The isolation mode the store was inspected for.
        tables: Table name -> set of column names present.
        applied_migrations: Ledger versions, in application order.
    """

    locator: str
    mode: IsolationMode
    tables: dict[str, frozenset[str]] = field(default_factory=dict)
    applied_migrations: tuple[str, ...] = ()

    def has_table(self, table: str) -> bool:
        return table in self.tables

    def has_column(self, table: str, column: str) -> bool:
        return column in self.tables.get(table, frozenset())

    def missing_tables(self, expected: tuple[TableDef, ...]) -> list[str]:
        return [table.name for table in expected if table.name not in self.tables]

    def discriminator_violations(self, expected: tuple[TableDef, ...]) -> list[str]:
        """
        Tables whose discriminator presence contradicts the store's mode.

        Shared stores need ``tenant_id`` everywhere; isolated stores must not
        have it anywhere.
        """
        want = self.mode == IsolationMode.SHARED
        return [
            table.name
            for table in expected
            if table.name in self.tables and (TENANT_COLUMN in self.tables[table.name]) != want
        ]


async def read_schema_state(
    conn: AsyncConnection | AsyncEngine,
    locator: str,
    mode: IsolationMode,
) -> SchemaState:
    """Inspect tables, columns and the migration ledger of a store."""

    def _inspect(sync_conn) -> dict[str, frozenset[str]]:
        inspector = inspect(sync_conn)
        return {
            name: frozenset(column["name"] for column in inspector.get_columns(name))
            for name in inspector.get_table_names()
            if name != LEDGER_TABLE and not name.startswith("sqlite_")
        }

    async with execute_with_connection(conn, transactional=False) as connection:
        tables = await connection.run_sync(_inspect)
        applied: tuple[str, ...] = ()
        has_ledger = await connection.run_sync(
            lambda sync_conn: inspect(sync_conn).has_table(LEDGER_TABLE)
        )
        if has_ledger:
            result = await connection.execute(
                text(f"SELECT version FROM {LEDGER_TABLE} ORDER BY version")
            )
            applied = tuple(row[0] for row in result.fetchall())

    return SchemaState(locator=locator, mode=mode, tables=tables, applied_migrations=applied)


__all__ = [
    "SchemaState",
    "read_schema_state",
]
