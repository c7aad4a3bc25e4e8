"""
Declarative copy plan for tier migrations.

The plan lists every tenant table in foreign-key order so parents are
copied before the rows that reference them. Order among independent
tables follows template order, which keeps plans reproducible.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from tenantstore.schema.definitions import TENANT_COLUMN, TableDef
from tenantstore.schema.templates import TENANT_TABLES


@dataclass(frozen=True)
class CopyStep:
    """
    One table to copy.

    Attributes:
        table: Table name.
        depends_on: Tables that must be copied first.
        strip_columns: Columns removed from rows before inserting into the target.
    """

    table: str
    depends_on: tuple[str, ...] = ()
    strip_columns: tuple[str, ...] = (TENANT_COLUMN,)


def dependency_order(templates: Iterable[TableDef]) -> list[TableDef]:
    """
    Sort tables so every table follows the tables it references.

    Raises:
        ValueError: If the foreign keys form a cycle
    """
    templates = list(templates)
    names = {table.name for table in templates}
    remaining = {
        table.name: {dep for dep in table.depends_on if dep in names} for table in templates
    }

    ordered: list[TableDef] = []
    while remaining:
        table = next(
            (t for t in templates if t.name in remaining and not remaining[t.name]),
            None,
        )
        if table is None:
            raise ValueError(f"Foreign key cycle between tables: {sorted(remaining)}")
        ordered.append(table)
        del remaining[table.name]
        for deps in remaining.values():
            deps.discard(table.name)
    return ordered


def build_copy_plan(
    templates: tuple[TableDef, ...] = TENANT_TABLES,
    tables: Iterable[str] | None = None,
) -> tuple[CopyStep, ...]:
    """
    Build the ordered copy plan.

    Args:
        templates: Table templates of the tenant schema
        tables: Restrict the plan to these tables (for re-running failures)

    Returns:
        Copy steps in dependency order

    Raises:
        KeyError: If a requested table is not part of the schema
    """
    ordered = dependency_order(templates)
    if tables is not None:
        wanted = set(tables)
        unknown = wanted - {t.name for t in ordered}
        if unknown:
            raise KeyError(f"Unknown tables: {sorted(unknown)}")
        ordered = [t for t in ordered if t.name in wanted]
    return tuple(CopyStep(table.name, depends_on=table.depends_on) for table in ordered)


__all__ = [
    "CopyStep",
    "dependency_order",
    "build_copy_plan",
]
