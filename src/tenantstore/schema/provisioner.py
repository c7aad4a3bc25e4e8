"""
SchemaProvisioner - idempotent schema creation and evolution for stores.

ensure_schema is safe to call on every cold and warm access to a store:
it creates what is missing, applies unapplied forward column migrations
and never drops or rewrites anything.

Failure semantics:
    - A table or index that cannot be created raises SchemaProvisionError.
      The store is unusable for its tenant and nothing is retried.
    - A column that cannot be added is logged and reported in
      ProvisionResult.column_failures. Its ledger entry is not written, so
      the next ensure_schema retries it.

Usage:
    >>> provisioner = SchemaProvisioner(StoreEngineFactory(settings))
    >>> result = await provisioner.ensure_schema("tenantstore_tenant_7", IsolationMode.ISOLATED)
    >>> result.tables_created[:2]
    ['stores', 'products']
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from tenantstore.directory.models import IsolationMode
from tenantstore.exceptions import ColumnEvolutionError, SchemaProvisionError
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import (
    ATTR_COLUMN_NAME,
    ATTR_DB_SYSTEM,
    ATTR_ISOLATION_MODE,
    ATTR_MIGRATION_VERSION,
    ATTR_STORE_LOCATOR,
    ATTR_TABLE_NAME,
)
from tenantstore.schema.ddl import (
    LEDGER_DDL,
    LEDGER_TABLE,
    Dialect,
    generate_add_column,
    generate_create_index,
    generate_table_statements,
    normalize_dialect,
)
from tenantstore.schema.definitions import ColumnDef, TableDef
from tenantstore.schema.migrations import COLUMN_MIGRATIONS, ColumnMigration, find_column
from tenantstore.schema.state import SchemaState, read_schema_state
from tenantstore.schema.templates import TENANT_TABLES

if TYPE_CHECKING:
    from tenantstore.connections.engines import StoreEngineFactory

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """
    Outcome of one ensure_schema call.

    Attributes:
        locator: The store that was provisioned.
        mode: Isolation mode the store was provisioned for.
        tables_created: Tables that did not exist before this call.
        migrations_applied: Ledger versions recorded by this call.
        column_failures: Column migrations that could not be applied.
        state: Schema state after provisioning.
    """

    locator: str
    mode: IsolationMode
    tables_created: list[str] = field(default_factory=list)
    migrations_applied: list[str] = field(default_factory=list)
    column_failures: list[ColumnEvolutionError] = field(default_factory=list)
    state: SchemaState | None = None

    @property
    def ok(self) -> bool:
        return not self.column_failures


class SchemaProvisioner:
    """
    Creates and evolves the schema of tenant stores.

    Args:
        engines: Factory used to create the database and, when no engine
            is passed in, a short-lived engine for the store
        templates: Mode-neutral table templates in foreign-key order
        migrations: Forward column migrations in ledger order
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        engines: StoreEngineFactory,
        *,
        templates: tuple[TableDef, ...] = TENANT_TABLES,
        migrations: tuple[ColumnMigration, ...] = COLUMN_MIGRATIONS,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._engines = engines
        self._templates = templates
        self._migrations = migrations
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def templates(self) -> tuple[TableDef, ...]:
        return self._templates

    def compile(self, mode: IsolationMode) -> tuple[TableDef, ...]:
        """Compiled table definitions for a store of the given mode."""
        return tuple(table.compile(mode) for table in self._templates)

    async def ensure_schema(
        self,
        locator: str,
        mode: IsolationMode,
        *,
        engine: AsyncEngine | None = None,
    ) -> ProvisionResult:
        """
        Bring a store up to the current schema.

        Args:
            locator: Store to provision
            mode: SHARED adds the tenant discriminator to every table
            engine: Engine for the store; when omitted the database is
                created if missing and a temporary engine is used

        Returns:
            ProvisionResult with the resulting SchemaState

        Raises:
            SchemaProvisionError: If a table or index cannot be created
        """
        with self._tracer.span(
            "tenantstore.provisioner.ensure_schema",
            {ATTR_STORE_LOCATOR: locator, ATTR_ISOLATION_MODE: mode.value},
        ):
            async with self._engine_for(locator, engine, create=True) as store:
                dialect = normalize_dialect(store.dialect.name)
                result = ProvisionResult(locator=locator, mode=mode)

                existing = await self._table_names(store)
                for table in self.compile(mode):
                    await self._create_table(store, locator, table, dialect)
                    if table.name not in existing:
                        result.tables_created.append(table.name)

                await self._ensure_ledger(store, locator, dialect)
                await self._apply_migrations(store, locator, mode, dialect, result)

                result.state = await read_schema_state(store, locator, mode)

            if result.tables_created:
                logger.info(
                    "Provisioned %d tables in %s store %s",
                    len(result.tables_created),
                    mode.value,
                    locator,
                )
            return result

    async def ensure_column(
        self,
        locator: str,
        table: str,
        column: ColumnDef | str,
        *,
        engine: AsyncEngine | None = None,
    ) -> bool:
        """
        Add a column to a table unless it is already present.

        A column added concurrently by another process counts as success.

        Args:
            locator: Store holding the table
            table: Table name
            column: Column definition, or the name of a column introduced by
                a known forward migration

        Returns:
            True if the column exists afterwards

        Raises:
            ColumnEvolutionError: If the column could not be added
            KeyError: If a column name does not match a known migration
        """
        if isinstance(column, str):
            migration = find_column(table, column, self._migrations)
            if migration is None:
                raise KeyError(f"No known migration adds {table}.{column}")
            column = migration.column

        async with self._engine_for(locator, engine, create=False) as store:
            dialect = normalize_dialect(store.dialect.name)
            await self._add_column(store, locator, table, column, dialect)
        return True

    async def get_schema_state(
        self,
        locator: str,
        mode: IsolationMode,
        *,
        engine: AsyncEngine | None = None,
    ) -> SchemaState:
        """Inspect a store without changing it."""
        async with self._engine_for(locator, engine, create=False) as store:
            return await read_schema_state(store, locator, mode)

    # =========================================================================
    # Steps
    # =========================================================================

    async def _create_table(
        self,
        store: AsyncEngine,
        locator: str,
        table: TableDef,
        dialect: Dialect,
    ) -> None:
        with self._tracer.span(
            "tenantstore.provisioner.create_table",
            {ATTR_STORE_LOCATOR: locator, ATTR_TABLE_NAME: table.name, ATTR_DB_SYSTEM: dialect},
        ):
            try:
                async with store.begin() as conn:
                    for statement in generate_table_statements(table, dialect):
                        await conn.execute(text(statement))
            except SQLAlchemyError as e:
                # A concurrent provisioner creating the same objects ("already
                # exists", pg_type unique violation) leaves a complete table
                if await self._table_complete(store, table):
                    logger.debug(
                        "Table %s in store %s was created concurrently", table.name, locator
                    )
                    return
                logger.error("Failed to provision table %s in store %s: %s", table.name, locator, e)
                raise SchemaProvisionError(locator, table.name, str(e)) from e

    async def _ensure_ledger(self, store: AsyncEngine, locator: str, dialect: Dialect) -> None:
        try:
            async with store.begin() as conn:
                await conn.execute(text(LEDGER_DDL[dialect]))
        except SQLAlchemyError as e:
            if await self._has_table(store, LEDGER_TABLE):
                return
            logger.error("Failed to create migration ledger in store %s: %s", locator, e)
            raise SchemaProvisionError(locator, LEDGER_TABLE, str(e)) from e

    async def _apply_migrations(
        self,
        store: AsyncEngine,
        locator: str,
        mode: IsolationMode,
        dialect: Dialect,
        result: ProvisionResult,
    ) -> None:
        async with store.connect() as conn:
            rows = await conn.execute(text(f"SELECT version FROM {LEDGER_TABLE}"))
            applied = {row[0] for row in rows.fetchall()}

        for migration in self._migrations:
            if migration.version in applied:
                continue
            with self._tracer.span(
                "tenantstore.provisioner.apply_migration",
                {
                    ATTR_STORE_LOCATOR: locator,
                    ATTR_MIGRATION_VERSION: migration.version,
                    ATTR_TABLE_NAME: migration.table,
                    ATTR_COLUMN_NAME: migration.column.name,
                },
            ):
                try:
                    await self._add_column(
                        store, locator, migration.table, migration.column, dialect
                    )
                    index = migration.index_for(mode)
                    async with store.begin() as conn:
                        if index is not None:
                            await conn.execute(text(generate_create_index(migration.table, index)))
                        await conn.execute(
                            text(
                                f"INSERT INTO {LEDGER_TABLE} (version) VALUES (:version) "
                                "ON CONFLICT (version) DO NOTHING"
                            ),
                            {"version": migration.version},
                        )
                except ColumnEvolutionError as e:
                    result.column_failures.append(e)
                    continue
                except SQLAlchemyError as e:
                    logger.warning(
                        "Migration %s failed in store %s: %s", migration.version, locator, e
                    )
                    result.column_failures.append(
                        ColumnEvolutionError(
                            locator, migration.table, migration.column.name, str(e)
                        )
                    )
                    continue
                result.migrations_applied.append(migration.version)

    async def _add_column(
        self,
        store: AsyncEngine,
        locator: str,
        table: str,
        column: ColumnDef,
        dialect: Dialect,
    ) -> None:
        if await self._has_column(store, table, column.name):
            return
        try:
            async with store.begin() as conn:
                await conn.execute(text(generate_add_column(table, column, dialect)))
        except SQLAlchemyError as e:
            # "duplicate column" / "already exists" from a concurrent writer is success
            if await self._has_column(store, table, column.name):
                return
            logger.warning(
                "Could not add column %s.%s in store %s: %s", table, column.name, locator, e
            )
            raise ColumnEvolutionError(locator, table, column.name, str(e)) from e
        logger.info("Added column %s.%s in store %s", table, column.name, locator)

    # =========================================================================
    # Helper methods
    # =========================================================================

    async def _table_names(self, store: AsyncEngine) -> set[str]:
        async with store.connect() as conn:
            names = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        return set(names)

    async def _has_table(self, store: AsyncEngine, table: str) -> bool:
        async with store.connect() as conn:
            return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(table))

    async def _table_complete(self, store: AsyncEngine, table: TableDef) -> bool:
        def _complete(sync_conn) -> bool:
            inspector = inspect(sync_conn)
            if not inspector.has_table(table.name):
                return False
            present = {index["name"] for index in inspector.get_indexes(table.name)}
            return all(index.name_for(table.name) in present for index in table.indexes)

        async with store.connect() as conn:
            return await conn.run_sync(_complete)

    async def _has_column(self, store: AsyncEngine, table: str, column: str) -> bool:
        def _columns(sync_conn) -> set[str]:
            inspector = inspect(sync_conn)
            if not inspector.has_table(table):
                return set()
            return {c["name"] for c in inspector.get_columns(table)}

        async with store.connect() as conn:
            return column in await conn.run_sync(_columns)

    @asynccontextmanager
    async def _engine_for(
        self,
        locator: str,
        engine: AsyncEngine | None,
        *,
        create: bool,
    ) -> AsyncIterator[AsyncEngine]:
        if engine is not None:
            yield engine
            return
        if create:
            await self._engines.create_database(locator)
        owned = self._engines.create_engine(locator)
        try:
            yield owned
        finally:
            await owned.dispose()


__all__ = [
    "ProvisionResult",
    "SchemaProvisioner",
]
