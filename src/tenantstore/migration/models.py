"""
Data models for shared -> isolated tier migrations.

Enums:
    - MigrationStatus: Job lifecycle states
    - TableOutcome: Per-table result of a job

Configuration:
    - MigrationConfig: Batch size and flip policy

Core Models:
    - TableResult: Outcome and row counts for one table
    - MigrationJob: One run of copying a tenant's rows to its dedicated store
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class MigrationStatus(Enum):
    """
    Tier migration job states.

    State machine transitions:
        PENDING -> RUNNING -> SUCCEEDED
                          \\-> PARTIALLY_FAILED
                          \\-> CANCELLED (operator-initiated)

    Attributes:
        PENDING: Job created but not started.
        RUNNING: Tables are being copied.
        SUCCEEDED: Every planned table was copied.
        PARTIALLY_FAILED: At least one table failed.
        CANCELLED: Stopped by an operator before every table was attempted.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            MigrationStatus.SUCCEEDED,
            MigrationStatus.PARTIALLY_FAILED,
            MigrationStatus.CANCELLED,
        )

    def can_transition_to(self, target: MigrationStatus) -> bool:
        """
        Check if transition to target status is valid.

        Args:
            target: The status to transition to.

        Returns:
            True if the transition is valid.
        """
        if self.is_terminal:
            return False
        valid_transitions: dict[MigrationStatus, list[MigrationStatus]] = {
            MigrationStatus.PENDING: [MigrationStatus.RUNNING, MigrationStatus.CANCELLED],
            MigrationStatus.RUNNING: [
                MigrationStatus.SUCCEEDED,
                MigrationStatus.PARTIALLY_FAILED,
                MigrationStatus.CANCELLED,
            ],
        }
        return target in valid_transitions.get(self, [])


class TableOutcome(Enum):
    """Per-table result within a migration job."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    """Not attempted because the job was cancelled."""


@dataclass(frozen=True)
class MigrationConfig:
    """
    Configuration for a tier migration.

    Attributes:
        batch_size: Rows read from the shared store per batch (default 500).
        hold_on_partial_failure: Keep the tenant on the shared store when
            some tables failed (default False: a finished job always flips).

    Example:
        >>> config = MigrationConfig(batch_size=200)
        >>> config.batch_size
        200
    """

    batch_size: int = 500
    hold_on_partial_failure: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_size": self.batch_size,
            "hold_on_partial_failure": self.hold_on_partial_failure,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigrationConfig:
        return cls(
            batch_size=data.get("batch_size", 500),
            hold_on_partial_failure=data.get("hold_on_partial_failure", False),
        )


@dataclass
class TableResult:
    """
    Outcome of copying one table.

    Attributes:
        table: Table name.
        outcome: Current outcome.
        rows_read: Rows read from the shared store.
        rows_copied: Rows inserted into the target.
        rows_skipped: Rows already present in the target.
        error: Failure message, when the outcome is FAILED.
    """

    table: str
    outcome: TableOutcome = TableOutcome.PENDING
    rows_read: int = 0
    rows_copied: int = 0
    rows_skipped: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "outcome": self.outcome.value,
            "rows_read": self.rows_read,
            "rows_copied": self.rows_copied,
            "rows_skipped": self.rows_skipped,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableResult:
        return cls(
            table=data["table"],
            outcome=TableOutcome(data.get("outcome", "pending")),
            rows_read=data.get("rows_read", 0),
            rows_copied=data.get("rows_copied", 0),
            rows_skipped=data.get("rows_skipped", 0),
            error=data.get("error"),
        )


@dataclass
class MigrationJob:
    """
    One tier migration run for a tenant.

    This is a mutable dataclass because job state changes as tables
    are copied.

    Attributes:
        id: Unique job identifier.
        tenant_id: Tenant being migrated.
        source_locator: Shared store the rows are read from.
        target_locator: Dedicated store the rows are written to.
        status: Current job status.
        tables: Per-table results in copy order.
        config: Migration configuration.
        isolation_flipped: Whether the tenant was routed to the target.
        created_at: When the job was created.
        started_at: When copying started.
        completed_at: When the job reached a terminal status.
        purged_at: When source rows were removed by the cleanup step.
        purged_by: Who authorized the cleanup.
    """

    tenant_id: int
    source_locator: str
    target_locator: str
    id: UUID = field(default_factory=uuid4)
    status: MigrationStatus = MigrationStatus.PENDING
    tables: dict[str, TableResult] = field(default_factory=dict)
    config: MigrationConfig = field(default_factory=MigrationConfig)
    isolation_flipped: bool = False
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    purged_at: datetime | None = None
    purged_by: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def rows_copied(self) -> int:
        return sum(result.rows_copied for result in self.tables.values())

    @property
    def duration(self) -> timedelta | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    def tables_with(self, outcome: TableOutcome) -> list[str]:
        """Table names with the given outcome, in copy order."""
        return [name for name, result in self.tables.items() if result.outcome == outcome]

    @property
    def succeeded_tables(self) -> list[str]:
        return self.tables_with(TableOutcome.SUCCEEDED)

    @property
    def failed_tables(self) -> list[str]:
        return self.tables_with(TableOutcome.FAILED)

    def can_transition_to(self, target: MigrationStatus) -> bool:
        return self.status.can_transition_to(target)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "source_locator": self.source_locator,
            "target_locator": self.target_locator,
            "status": self.status.value,
            "tables": [result.to_dict() for result in self.tables.values()],
            "config": self.config.to_dict(),
            "isolation_flipped": self.isolation_flipped,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "purged_at": self.purged_at.isoformat() if self.purged_at else None,
            "purged_by": self.purged_by,
        }


__all__ = [
    "MigrationStatus",
    "TableOutcome",
    "MigrationConfig",
    "TableResult",
    "MigrationJob",
]
