"""
Unit tests for tier migration models.
"""

from datetime import UTC, datetime, timedelta

import pytest

from tenantstore.migration.models import (
    MigrationConfig,
    MigrationJob,
    MigrationStatus,
    TableOutcome,
    TableResult,
)


class TestMigrationStatus:
    @pytest.mark.parametrize(
        "source,target,allowed",
        [
            (MigrationStatus.PENDING, MigrationStatus.RUNNING, True),
            (MigrationStatus.PENDING, MigrationStatus.CANCELLED, True),
            (MigrationStatus.PENDING, MigrationStatus.SUCCEEDED, False),
            (MigrationStatus.RUNNING, MigrationStatus.SUCCEEDED, True),
            (MigrationStatus.RUNNING, MigrationStatus.PARTIALLY_FAILED, True),
            (MigrationStatus.RUNNING, MigrationStatus.CANCELLED, True),
            (MigrationStatus.RUNNING, MigrationStatus.PENDING, False),
            (MigrationStatus.SUCCEEDED, MigrationStatus.RUNNING, False),
            (MigrationStatus.PARTIALLY_FAILED, MigrationStatus.RUNNING, False),
        ],
    )
    def test_transitions(self, source, target, allowed):
        assert source.can_transition_to(target) is allowed

    def test_terminal_states(self):
        assert MigrationStatus.SUCCEEDED.is_terminal
        assert MigrationStatus.PARTIALLY_FAILED.is_terminal
        assert MigrationStatus.CANCELLED.is_terminal
        assert not MigrationStatus.RUNNING.is_terminal


class TestMigrationConfig:
    def test_defaults(self):
        config = MigrationConfig()
        assert config.batch_size == 500
        assert config.hold_on_partial_failure is False

    def test_rejects_zero_batch(self):
        with pytest.raises(ValueError, match="batch_size"):
            MigrationConfig(batch_size=0)

    def test_from_dict_fills_defaults(self):
        assert MigrationConfig.from_dict({"batch_size": 50}) == MigrationConfig(batch_size=50)


class TestTableResult:
    def test_from_dict(self):
        result = TableResult.from_dict(
            {"table": "products", "outcome": "failed", "rows_copied": 3, "error": "boom"}
        )
        assert result.outcome == TableOutcome.FAILED
        assert result.rows_copied == 3
        assert result.rows_read == 0
        assert result.error == "boom"


class TestMigrationJob:
    @pytest.fixture
    def job(self) -> MigrationJob:
        return MigrationJob(
            tenant_id=42,
            source_locator="tenantstore_shared",
            target_locator="tenantstore_tenant_42",
            tables={
                "stores": TableResult("stores", TableOutcome.SUCCEEDED, rows_copied=1),
                "products": TableResult("products", TableOutcome.SUCCEEDED, rows_copied=5),
                "invoices": TableResult("invoices", TableOutcome.FAILED, error="x"),
                "bookings": TableResult("bookings", TableOutcome.SKIPPED),
            },
        )

    def test_outcome_helpers_keep_copy_order(self, job):
        assert job.succeeded_tables == ["stores", "products"]
        assert job.failed_tables == ["invoices"]
        assert job.tables_with(TableOutcome.SKIPPED) == ["bookings"]

    def test_rows_copied(self, job):
        assert job.rows_copied == 6

    def test_duration(self, job):
        assert job.duration is None
        job.started_at = datetime(2024, 1, 1, tzinfo=UTC)
        job.completed_at = job.started_at + timedelta(seconds=90)
        assert job.duration == timedelta(seconds=90)

    def test_new_job_is_pending(self, job):
        assert job.status == MigrationStatus.PENDING
        assert not job.is_terminal
        assert job.can_transition_to(MigrationStatus.RUNNING)

    def test_to_dict(self, job):
        data = job.to_dict()
        assert data["id"] == str(job.id)
        assert data["status"] == "pending"
        assert [t["table"] for t in data["tables"]] == ["stores", "products", "invoices", "bookings"]
        assert data["config"] == {"batch_size": 500, "hold_on_partial_failure": False}
        assert data["purged_at"] is None
