"""
Exceptions for tenantstore.

Every error raised by the directory, the schema provisioner, the connection
registry and the tier migrator derives from TenantStoreError and carries an
ErrorClassification describing how severe it is and whether it can be
recovered from.

Exception Hierarchy:
    TenantStoreError (base)
    +-- TenantNotFoundError
    +-- LicenseInvalidError
    +-- SubdomainTakenError
    +-- TenantStateError
    +-- ConnectionFailedError
    |   +-- AcquireTimeoutError
    +-- SchemaProvisionError
    +-- ColumnEvolutionError
    +-- MigrationTableError
    +-- MigrationJobNotFoundError
    +-- TenantScopeError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID


class ErrorSeverity(Enum):
    """
    Severity level of tenantstore errors.

    Used for alerting, logging, and operator notification decisions.
    """

    CRITICAL = "critical"
    """Isolation or integrity failure requiring immediate attention."""

    ERROR = "error"
    """Significant failure that may require operator intervention."""

    WARNING = "warning"
    """Issue that is usually caused by the caller or resolves by itself."""

    INFO = "info"
    """Informational condition, not a failure."""

    @property
    def should_alert(self) -> bool:
        """True for CRITICAL and ERROR levels."""
        return self in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR)

    @property
    def log_level(self) -> int:
        """
        Get the corresponding Python logging level.

        Returns:
            Python logging level constant.
        """
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
            ErrorSeverity.INFO: logging.INFO,
        }
        return level_map[self]


class ErrorRecoverability(Enum):
    """
    Recoverability classification for tenantstore errors.

    Attributes:
        RECOVERABLE: The caller or an operator can fix the input and retry.
        TRANSIENT: Temporary condition (network, pool exhaustion).
        FATAL: The operation cannot succeed without code or data changes.
    """

    RECOVERABLE = "recoverable"
    TRANSIENT = "transient"
    FATAL = "fatal"

    @property
    def should_retry(self) -> bool:
        """True only for TRANSIENT errors."""
        return self == ErrorRecoverability.TRANSIENT


@dataclass(frozen=True)
class ErrorClassification:
    """
    Rich metadata for error classification.

    Attributes:
        severity: The severity level of the error.
        recoverability: How the error can be recovered from.
        error_code: Unique error code for programmatic handling.
        category: Error category for grouping related errors.
        suggested_action: Human-readable guidance for operators.
        metrics_labels: Labels for metrics instrumentation.
    """

    severity: ErrorSeverity
    recoverability: ErrorRecoverability
    error_code: str
    category: str
    suggested_action: str
    metrics_labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert classification to dictionary for serialization.

        Returns:
            Dictionary representation of the classification.
        """
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "recoverability": self.recoverability.value,
            "error_code": self.error_code,
            "category": self.category,
            "suggested_action": self.suggested_action,
        }
        if self.metrics_labels:
            result["metrics_labels"] = self.metrics_labels
        return result


class TenantStoreError(Exception):
    """
    Base exception for all tenantstore errors.

    Attributes:
        message: Human-readable error description.
        tenant_id: The tenant involved, if applicable.
        locator: The physical store involved, if applicable.
        suggested_action: Suggested action for recovery.
        classification: Error classification metadata.
    """

    _default_classification: ErrorClassification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="TENANTSTORE_ERROR",
        category="general",
        suggested_action="Review tenantstore logs and contact support if issue persists",
    )

    def __init__(
        self,
        message: str,
        *,
        tenant_id: int | None = None,
        locator: str | None = None,
        suggested_action: str | None = None,
    ) -> None:
        self.message = message
        self.tenant_id = tenant_id
        self.locator = locator
        self.suggested_action = suggested_action
        super().__init__(message)

    def __str__(self) -> str:
        """Return formatted error string with context."""
        parts = [self.message]
        if self.tenant_id is not None:
            parts.append(f"tenant_id={self.tenant_id}")
        if self.locator:
            parts.append(f"locator={self.locator}")
        return " ".join(parts)

    @property
    def classification(self) -> ErrorClassification:
        """
        Get the error classification for this exception.

        Subclasses override _default_classification to provide
        specific classification metadata for their error type.
        """
        return self._default_classification

    @property
    def severity(self) -> ErrorSeverity:
        return self.classification.severity

    @property
    def recoverability(self) -> ErrorRecoverability:
        return self.classification.recoverability

    @property
    def error_code(self) -> str:
        """Unique error code (e.g., "TENANT_NOT_FOUND")."""
        return self.classification.error_code

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for serialization.

        Useful for API responses and logging.
        """
        return {
            "message": self.message,
            "tenant_id": self.tenant_id,
            "locator": self.locator,
            "error_code": self.error_code,
            "classification": self.classification.to_dict(),
        }


# =============================================================================
# Directory errors
# =============================================================================


class TenantNotFoundError(TenantStoreError):
    """
    Raised when a tenant id or subdomain does not resolve to a tenant.

    Attributes:
        lookup: The id or subdomain that was looked up.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="TENANT_NOT_FOUND",
        category="lookup",
        suggested_action="Verify the tenant id or subdomain is correct",
    )

    def __init__(self, lookup: int | str) -> None:
        self.lookup = lookup
        super().__init__(
            message=f"Tenant not found: {lookup!r}",
            tenant_id=lookup if isinstance(lookup, int) else None,
        )


class LicenseInvalidError(TenantStoreError):
    """
    Raised when a license key is unknown, already used, revoked or expired.

    Attributes:
        license_key: The key that was presented.
        reason: Short machine-readable reason ("unknown", "used", ...).
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="LICENSE_INVALID",
        category="licensing",
        suggested_action="Obtain a new license key or contact the reseller",
    )

    def __init__(self, license_key: str, reason: str) -> None:
        self.license_key = license_key
        self.reason = reason
        super().__init__(message=f"License key {license_key!r} is invalid: {reason}")


class SubdomainTakenError(TenantStoreError):
    """Raised when registering a tenant with a subdomain already in use."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="SUBDOMAIN_TAKEN",
        category="registration",
        suggested_action="Choose a different subdomain",
    )

    def __init__(self, subdomain: str) -> None:
        self.subdomain = subdomain
        super().__init__(message=f"Subdomain already taken: {subdomain!r}")


class TenantStateError(TenantStoreError):
    """
    Raised when an operation is invalid for the tenant's current state.

    The isolation mode of a tenant moves from shared to isolated exactly
    once, so flipping or migrating an already isolated tenant lands here.

    Attributes:
        operation: The operation that was attempted.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="TENANT_STATE_ERROR",
        category="state",
        suggested_action="Check the tenant's isolation mode and status before retrying",
    )

    def __init__(self, message: str, tenant_id: int, operation: str | None = None) -> None:
        self.operation = operation
        super().__init__(message=message, tenant_id=tenant_id)


# =============================================================================
# Connection errors
# =============================================================================


class ConnectionFailedError(TenantStoreError):
    """
    Raised when a physical store cannot be opened or fails its liveness probe.

    The registry surfaces this error to every caller waiting on the open
    and does not cache the failure.

    Attributes:
        original_error: String form of the driver error, if any.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="CONNECTION_FAILED",
        category="connectivity",
        suggested_action="Check that the database server is reachable and credentials are valid",
    )

    def __init__(
        self,
        locator: str,
        error: str,
        *,
        tenant_id: int | None = None,
    ) -> None:
        self.original_error = error
        super().__init__(
            message=f"Failed to connect to store {locator!r}: {error}",
            tenant_id=tenant_id,
            locator=locator,
        )


class AcquireTimeoutError(ConnectionFailedError):
    """Raised when acquiring a handle does not complete within the timeout."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="ACQUIRE_TIMEOUT",
        category="connectivity",
        suggested_action="Retry the request; raise acquire_timeout if this persists",
    )

    def __init__(self, key: int | str, timeout: float) -> None:
        self.key = key
        self.timeout = timeout
        super().__init__(
            locator=str(key),
            error=f"acquire did not complete within {timeout}s",
            tenant_id=key if isinstance(key, int) else None,
        )


# =============================================================================
# Schema errors
# =============================================================================


class SchemaProvisionError(TenantStoreError):
    """
    Raised when a table or index cannot be created in a store.

    Fatal for the tenant being provisioned; the provisioner does not retry.

    Attributes:
        table: The table whose creation failed.
        original_error: The underlying error message.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="SCHEMA_PROVISION_FAILED",
        category="schema",
        suggested_action="Inspect the DDL error and the database permissions for this store",
    )

    def __init__(self, locator: str, table: str, error: str) -> None:
        self.table = table
        self.original_error = error
        super().__init__(
            message=f"Failed to provision table {table!r}: {error}",
            locator=locator,
        )


class ColumnEvolutionError(TenantStoreError):
    """
    Describes a forward column migration that could not be applied.

    Reported in ProvisionResult.column_failures rather than raised; the
    migration stays unrecorded so the next ensure_schema retries it.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="COLUMN_EVOLUTION_FAILED",
        category="schema",
        suggested_action="The column will be retried on the next schema check",
    )

    def __init__(self, locator: str, table: str, column: str, error: str) -> None:
        self.table = table
        self.column = column
        self.original_error = error
        super().__init__(
            message=f"Failed to add column {table}.{column}: {error}",
            locator=locator,
        )


# =============================================================================
# Tier migration errors
# =============================================================================


class MigrationTableError(TenantStoreError):
    """
    Raised when copying one table during a tier migration fails.

    Caught by the migrator and recorded against that table only.

    Attributes:
        table: The table whose copy failed.
        rows_copied: Rows written to the target before the failure.
        original_error: The underlying error message.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="MIGRATION_TABLE_FAILED",
        category="tier_migration",
        suggested_action="Fix the cause and re-run the migration for the failed tables",
    )

    def __init__(
        self,
        tenant_id: int,
        table: str,
        error: str,
        rows_copied: int = 0,
    ) -> None:
        self.table = table
        self.rows_copied = rows_copied
        self.original_error = error
        super().__init__(
            message=f"Copy of table {table!r} failed after {rows_copied} rows: {error}",
            tenant_id=tenant_id,
        )


class MigrationJobNotFoundError(TenantStoreError):
    """Raised when a tier migration job id is unknown."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="MIGRATION_JOB_NOT_FOUND",
        category="lookup",
        suggested_action="Verify the migration job id",
    )

    def __init__(self, job_id: UUID) -> None:
        self.job_id = job_id
        super().__init__(message=f"Migration job not found: {job_id}")


# =============================================================================
# Isolation guard
# =============================================================================


class TenantScopeError(TenantStoreError):
    """
    Raised when a statement would read or write rows of another tenant.

    Attributes:
        table: The table the statement targeted.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="TENANT_SCOPE_VIOLATION",
        category="isolation",
        suggested_action="Fix the caller: tenant scope is supplied by the session",
    )

    def __init__(self, message: str, tenant_id: int, table: str) -> None:
        self.table = table
        super().__init__(message=message, tenant_id=tenant_id)


__all__ = [
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "TenantStoreError",
    "TenantNotFoundError",
    "LicenseInvalidError",
    "SubdomainTakenError",
    "TenantStateError",
    "ConnectionFailedError",
    "AcquireTimeoutError",
    "SchemaProvisionError",
    "ColumnEvolutionError",
    "MigrationTableError",
    "MigrationJobNotFoundError",
    "TenantScopeError",
]
