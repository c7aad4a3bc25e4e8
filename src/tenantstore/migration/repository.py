"""
MigrationJobRepository - persistence for tier migration jobs.

Jobs are written when created and after every table, so an operator can
follow a running migration and inspect per-table outcomes afterwards.

Database Table:
    ``tier_migrations`` in the control-plane database. Per-table results
    and the job configuration are stored as JSON text.

Usage:
    >>> repo = SQLMigrationJobRepository(engine)
    >>> await repo.initialize()
    >>> await repo.create(job)
    >>> latest = await repo.get_latest_for_tenant(42)
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from copy import deepcopy
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from tenantstore._connection import dialect_name, execute_with_connection
from tenantstore.exceptions import MigrationJobNotFoundError
from tenantstore.migration.models import (
    MigrationConfig,
    MigrationJob,
    MigrationStatus,
    TableResult,
)
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import (
    ATTR_DB_SYSTEM,
    ATTR_MIGRATION_JOB_ID,
    ATTR_MIGRATION_STATUS,
    ATTR_TENANT_ID,
)


@runtime_checkable
class MigrationJobRepository(Protocol):
    """Protocol for tier migration job persistence."""

    async def create(self, job: MigrationJob) -> UUID:
        """Persist a new job and return its id."""
        ...

    async def update(self, job: MigrationJob) -> None:
        """
        Persist the current state of a job.

        Raises:
            MigrationJobNotFoundError: If the job was never created
        """
        ...

    async def get(self, job_id: UUID) -> MigrationJob | None:
        ...

    async def list_for_tenant(self, tenant_id: int) -> list[MigrationJob]:
        """All jobs for a tenant, oldest first."""
        ...

    async def get_latest_for_tenant(self, tenant_id: int) -> MigrationJob | None:
        ...


_DDL = {
    "postgresql": """
        CREATE TABLE IF NOT EXISTS tier_migrations (
            id UUID PRIMARY KEY,
            tenant_id BIGINT NOT NULL,
            source_locator VARCHAR(255) NOT NULL,
            target_locator VARCHAR(255) NOT NULL,
            status VARCHAR(20) NOT NULL,
            tables JSONB NOT NULL,
            config JSONB NOT NULL,
            isolation_flipped BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP WITH TIME ZONE,
            started_at TIMESTAMP WITH TIME ZONE,
            completed_at TIMESTAMP WITH TIME ZONE,
            purged_at TIMESTAMP WITH TIME ZONE,
            purged_by VARCHAR(255)
        )
    """,
    "sqlite": """
        CREATE TABLE IF NOT EXISTS tier_migrations (
            id TEXT PRIMARY KEY,
            tenant_id INTEGER NOT NULL,
            source_locator TEXT NOT NULL,
            target_locator TEXT NOT NULL,
            status TEXT NOT NULL,
            tables TEXT NOT NULL,
            config TEXT NOT NULL,
            isolation_flipped INTEGER NOT NULL DEFAULT 0,
            created_at TEXT,
            started_at TEXT,
            completed_at TEXT,
            purged_at TEXT,
            purged_by TEXT
        )
    """,
}

_COLUMNS = (
    "id, tenant_id, source_locator, target_locator, status, tables, config, "
    "isolation_flipped, created_at, started_at, completed_at, purged_at, purged_by"
)


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_json(value: Any) -> Any:
    # JSONB comes back decoded from asyncpg; TEXT does not
    return json.loads(value) if isinstance(value, str) else value


def _row_to_job(row: Sequence[Any]) -> MigrationJob:
    tables = [TableResult.from_dict(item) for item in _parse_json(row[5])]
    return MigrationJob(
        id=row[0] if isinstance(row[0], UUID) else UUID(str(row[0])),
        tenant_id=int(row[1]),
        source_locator=row[2],
        target_locator=row[3],
        status=MigrationStatus(row[4]),
        tables={result.table: result for result in tables},
        config=MigrationConfig.from_dict(_parse_json(row[6])),
        isolation_flipped=bool(row[7]),
        created_at=_parse_timestamp(row[8]),
        started_at=_parse_timestamp(row[9]),
        completed_at=_parse_timestamp(row[10]),
        purged_at=_parse_timestamp(row[11]),
        purged_by=row[12],
    )


class SQLMigrationJobRepository:
    """
    SQLAlchemy implementation of MigrationJobRepository.

    Example:
        >>> repo = SQLMigrationJobRepository(engine)
        >>> await repo.initialize()
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._conn = conn
        self._dialect = dialect_name(conn)
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def initialize(self) -> None:
        """Create the tier_migrations table if it does not exist."""
        ddl = _DDL["postgresql" if self._dialect == "postgresql" else "sqlite"]
        async with execute_with_connection(self._conn, transactional=True) as conn:
            await conn.execute(text(ddl))

    async def create(self, job: MigrationJob) -> UUID:
        with self._tracer.span(
            "tenantstore.migration_repo.create",
            {
                ATTR_MIGRATION_JOB_ID: str(job.id),
                ATTR_TENANT_ID: job.tenant_id,
                ATTR_DB_SYSTEM: self._dialect,
            },
        ):
            async with execute_with_connection(self._conn, transactional=True) as conn:
                await conn.execute(
                    text(
                        f"INSERT INTO tier_migrations ({_COLUMNS}) VALUES ("
                        ":id, :tenant_id, :source_locator, :target_locator, :status, "
                        ":tables, :config, :isolation_flipped, :created_at, :started_at, "
                        ":completed_at, :purged_at, :purged_by)"
                    ),
                    self._params(job),
                )
        return job.id

    async def update(self, job: MigrationJob) -> None:
        with self._tracer.span(
            "tenantstore.migration_repo.update",
            {
                ATTR_MIGRATION_JOB_ID: str(job.id),
                ATTR_MIGRATION_STATUS: job.status.value,
                ATTR_DB_SYSTEM: self._dialect,
            },
        ):
            async with execute_with_connection(self._conn, transactional=True) as conn:
                result = await conn.execute(
                    text(
                        """
                        UPDATE tier_migrations
                        SET status = :status, tables = :tables, config = :config,
                            isolation_flipped = :isolation_flipped,
                            started_at = :started_at, completed_at = :completed_at,
                            purged_at = :purged_at, purged_by = :purged_by
                        WHERE id = :id
                        """
                    ),
                    self._params(job),
                )
                if result.rowcount == 0:
                    raise MigrationJobNotFoundError(job.id)

    async def get(self, job_id: UUID) -> MigrationJob | None:
        async with execute_with_connection(self._conn, transactional=False) as conn:
            result = await conn.execute(
                text(f"SELECT {_COLUMNS} FROM tier_migrations WHERE id = :id"),
                {"id": self._id(job_id)},
            )
            row = result.fetchone()
        return _row_to_job(row) if row else None

    async def list_for_tenant(self, tenant_id: int) -> list[MigrationJob]:
        async with execute_with_connection(self._conn, transactional=False) as conn:
            result = await conn.execute(
                text(
                    f"SELECT {_COLUMNS} FROM tier_migrations "
                    "WHERE tenant_id = :tenant_id ORDER BY created_at, id"
                ),
                {"tenant_id": tenant_id},
            )
            return [_row_to_job(row) for row in result.fetchall()]

    async def get_latest_for_tenant(self, tenant_id: int) -> MigrationJob | None:
        jobs = await self.list_for_tenant(tenant_id)
        return jobs[-1] if jobs else None

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _id(self, job_id: UUID) -> Any:
        return job_id if self._dialect == "postgresql" else str(job_id)

    def _ts(self, value: datetime | None) -> Any:
        if value is None or self._dialect == "postgresql":
            return value
        return value.isoformat()

    def _params(self, job: MigrationJob) -> dict[str, Any]:
        return {
            "id": self._id(job.id),
            "tenant_id": job.tenant_id,
            "source_locator": job.source_locator,
            "target_locator": job.target_locator,
            "status": job.status.value,
            "tables": json.dumps([result.to_dict() for result in job.tables.values()]),
            "config": json.dumps(job.config.to_dict()),
            "isolation_flipped": job.isolation_flipped,
            "created_at": self._ts(job.created_at),
            "started_at": self._ts(job.started_at),
            "completed_at": self._ts(job.completed_at),
            "purged_at": self._ts(job.purged_at),
            "purged_by": job.purged_by,
        }


class InMemoryMigrationJobRepository:
    """
    In-memory implementation of MigrationJobRepository.

    Stores copies so callers mutating a job do not change stored state
    until they call ``update``.
    """

    def __init__(self) -> None:
        self._jobs: dict[UUID, MigrationJob] = {}
        self._lock = asyncio.Lock()

    async def create(self, job: MigrationJob) -> UUID:
        async with self._lock:
            self._jobs[job.id] = deepcopy(job)
        return job.id

    async def update(self, job: MigrationJob) -> None:
        async with self._lock:
            if job.id not in self._jobs:
                raise MigrationJobNotFoundError(job.id)
            self._jobs[job.id] = deepcopy(job)

    async def get(self, job_id: UUID) -> MigrationJob | None:
        async with self._lock:
            job = self._jobs.get(job_id)
            return deepcopy(job) if job else None

    async def list_for_tenant(self, tenant_id: int) -> list[MigrationJob]:
        async with self._lock:
            return [deepcopy(job) for job in self._jobs.values() if job.tenant_id == tenant_id]

    async def get_latest_for_tenant(self, tenant_id: int) -> MigrationJob | None:
        jobs = await self.list_for_tenant(tenant_id)
        return jobs[-1] if jobs else None

    def clear(self) -> None:
        self._jobs.clear()


__all__ = [
    "MigrationJobRepository",
    "SQLMigrationJobRepository",
    "InMemoryMigrationJobRepository",
]
