"""
Declarative table definitions.

Tables are described once, without any notion of tenancy, and compiled
per isolation mode. Compiling for the shared store prepends the
``tenant_id`` discriminator, indexes it and widens every unique
constraint with it; compiling for an isolated store leaves the
definition untouched.

Example:
    >>> products = TableDef(
    ...     name="products",
    ...     columns=(
    ...         ColumnDef("id", ColumnType.INTEGER, primary_key=True),
    ...         ColumnDef("sku", ColumnType.STRING, length=100),
    ...     ),
    ...     uniques=(UniqueDef(("sku",)),),
    ... )
    >>> shared = products.compile(IsolationMode.SHARED)
    >>> shared.column_names[:2]
    ('tenant_id', 'id')
    >>> shared.uniques[0].columns
    ('tenant_id', 'sku')
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from tenantstore.directory.models import IsolationMode

TENANT_COLUMN = "tenant_id"
"""Discriminator column carried by every table in the shared store."""


class ColumnType(Enum):
    """Portable column types, mapped to dialect types at DDL generation."""

    INTEGER = "integer"
    STRING = "string"
    TEXT = "text"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    JSON = "json"


@dataclass(frozen=True)
class ColumnDef:
    """
    A single column.

    Attributes:
        name: Column name.
        type: Portable column type.
        length: Length for STRING columns.
        nullable: Whether NULL is allowed.
        default: Python literal default (bool, int, float or str).
        default_now: Default to the current timestamp.
        primary_key: Auto-incrementing integer primary key.
    """

    name: str
    type: ColumnType
    length: int | None = None
    nullable: bool = True
    default: Any = None
    default_now: bool = False
    primary_key: bool = False

    def __post_init__(self) -> None:
        if self.type == ColumnType.STRING and not self.length:
            raise ValueError(f"STRING column {self.name!r} requires a length")
        if self.primary_key and self.type != ColumnType.INTEGER:
            raise ValueError(f"Primary key {self.name!r} must be INTEGER")


@dataclass(frozen=True)
class IndexDef:
    """Secondary index; the name is derived from the table and columns."""

    columns: tuple[str, ...]
    unique: bool = False

    def name_for(self, table: str) -> str:
        prefix = "uq" if self.unique else "idx"
        return f"{prefix}_{table}_{'_'.join(self.columns)}"


@dataclass(frozen=True)
class UniqueDef:
    """Table-level unique constraint."""

    columns: tuple[str, ...]

    def name_for(self, table: str) -> str:
        return f"uq_{table}_{'_'.join(self.columns)}"


@dataclass(frozen=True)
class ForeignKeyDef:
    """Foreign key from ``column`` to ``ref_table.ref_column``."""

    column: str
    ref_table: str
    ref_column: str = "id"
    on_delete: str = "CASCADE"


@dataclass(frozen=True)
class TableDef:
    """
    Mode-neutral table definition.

    Attributes:
        name: Table name.
        columns: Ordered columns.
        indexes: Secondary indexes.
        uniques: Unique constraints.
        foreign_keys: Foreign keys to other template tables.
        mode: None for a template; the isolation mode once compiled.
    """

    name: str
    columns: tuple[ColumnDef, ...]
    indexes: tuple[IndexDef, ...] = ()
    uniques: tuple[UniqueDef, ...] = ()
    foreign_keys: tuple[ForeignKeyDef, ...] = ()
    mode: IsolationMode | None = field(default=None, compare=False)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def primary_key(self) -> str | None:
        for column in self.columns:
            if column.primary_key:
                return column.name
        return None

    @property
    def depends_on(self) -> tuple[str, ...]:
        """Tables this one references, excluding self references."""
        seen: list[str] = []
        for fk in self.foreign_keys:
            if fk.ref_table != self.name and fk.ref_table not in seen:
                seen.append(fk.ref_table)
        return tuple(seen)

    @property
    def has_discriminator(self) -> bool:
        return TENANT_COLUMN in self.column_names

    def column(self, name: str) -> ColumnDef:
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(f"{self.name} has no column {name!r}")

    def compile(self, mode: IsolationMode) -> TableDef:
        """
        Produce the concrete definition for a store of the given mode.

        Raises:
            ValueError: If the template already declares the discriminator
        """
        if self.has_discriminator:
            raise ValueError(f"Template {self.name!r} must not declare {TENANT_COLUMN}")
        if mode == IsolationMode.ISOLATED:
            return replace(self, mode=mode)

        discriminator = ColumnDef(TENANT_COLUMN, ColumnType.INTEGER, nullable=False)
        return replace(
            self,
            columns=(discriminator, *self.columns),
            indexes=(IndexDef((TENANT_COLUMN,)), *(widen_index(i) for i in self.indexes)),
            uniques=tuple(UniqueDef((TENANT_COLUMN, *u.columns)) for u in self.uniques),
            mode=mode,
        )


def widen_index(index: IndexDef) -> IndexDef:
    """Unique indexes in the shared store are unique per tenant."""
    if not index.unique:
        return index
    return IndexDef((TENANT_COLUMN, *index.columns), unique=True)


__all__ = [
    "TENANT_COLUMN",
    "ColumnType",
    "ColumnDef",
    "IndexDef",
    "UniqueDef",
    "ForeignKeyDef",
    "TableDef",
    "widen_index",
]
