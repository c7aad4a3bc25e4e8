"""
Shared -> isolated tier migration.

Components:
    - TierMigrator: Orchestrates a tenant's move to its dedicated store
    - TableCopier: Batched, idempotent row copy for one table
    - SourceCleaner: Explicitly authorized purge of migrated shared rows
    - MigrationJobRepository: Job persistence (SQL and in-memory)

Example:
    >>> from tenantstore.migration import TierMigrator, SourceCleaner
    >>>
    >>> migrator = TierMigrator(directory, registry, provisioner)
    >>> job = await migrator.migrate(42)
    >>> if job.status == MigrationStatus.SUCCEEDED:
    ...     await SourceCleaner(directory, registry, migrator.jobs).purge(
    ...         job, authorized_by="ops@example.com"
    ...     )
"""

from tenantstore.migration.cleanup import SourceCleaner
from tenantstore.migration.copier import TableCopier
from tenantstore.migration.migrator import TierMigrator
from tenantstore.migration.models import (
    MigrationConfig,
    MigrationJob,
    MigrationStatus,
    TableOutcome,
    TableResult,
)
from tenantstore.migration.plan import CopyStep, build_copy_plan, dependency_order
from tenantstore.migration.repository import (
    InMemoryMigrationJobRepository,
    MigrationJobRepository,
    SQLMigrationJobRepository,
)

__all__ = [
    # Models
    "MigrationStatus",
    "TableOutcome",
    "MigrationConfig",
    "TableResult",
    "MigrationJob",
    # Plan
    "CopyStep",
    "build_copy_plan",
    "dependency_order",
    # Components
    "TableCopier",
    "TierMigrator",
    "SourceCleaner",
    # Repositories
    "MigrationJobRepository",
    "SQLMigrationJobRepository",
    "InMemoryMigrationJobRepository",
]
