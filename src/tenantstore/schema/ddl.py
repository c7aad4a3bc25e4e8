"""
DDL generation for compiled table definitions.

Supports PostgreSQL and SQLite with the type mappings below. Every
statement is idempotent (IF NOT EXISTS) so it can be replayed on every
schema check.

Example:
    >>> from tenantstore.schema.templates import compile_tables
    >>> from tenantstore.directory.models import IsolationMode
    >>>
    >>> stores = compile_tables(IsolationMode.SHARED)[0]
    >>> print(generate_create_table(stores, dialect="sqlite").splitlines()[0])
    CREATE TABLE IF NOT EXISTS stores (
"""

from __future__ import annotations

from typing import Any, Literal

from tenantstore.schema.definitions import ColumnDef, ColumnType, IndexDef, TableDef

Dialect = Literal["postgresql", "sqlite"]

# Type mappings for PostgreSQL
POSTGRESQL_TYPE_MAP: dict[ColumnType, str] = {
    ColumnType.INTEGER: "INTEGER",
    ColumnType.STRING: "VARCHAR({length})",
    ColumnType.TEXT: "TEXT",
    ColumnType.DECIMAL: "DECIMAL(10, 2)",
    ColumnType.BOOLEAN: "BOOLEAN",
    ColumnType.DATE: "DATE",
    ColumnType.TIME: "TIME",
    ColumnType.TIMESTAMP: "TIMESTAMP WITH TIME ZONE",
    ColumnType.JSON: "JSONB",
}

# Type mappings for SQLite
SQLITE_TYPE_MAP: dict[ColumnType, str] = {
    ColumnType.INTEGER: "INTEGER",
    ColumnType.STRING: "VARCHAR({length})",
    ColumnType.TEXT: "TEXT",
    ColumnType.DECIMAL: "NUMERIC",
    ColumnType.BOOLEAN: "INTEGER",
    ColumnType.DATE: "TEXT",
    ColumnType.TIME: "TEXT",
    ColumnType.TIMESTAMP: "TEXT",
    ColumnType.JSON: "TEXT",
}


def normalize_dialect(name: str) -> Dialect:
    """Map a SQLAlchemy dialect name onto a supported DDL dialect."""
    if name == "postgresql":
        return "postgresql"
    if name == "sqlite":
        return "sqlite"
    raise ValueError(f"Unsupported dialect: {name!r}")


def _literal(value: Any, dialect: Dialect) -> str:
    if isinstance(value, bool):
        if dialect == "postgresql":
            return "TRUE" if value else "FALSE"
        return "1" if value else "0"
    if isinstance(value, int | float):
        return repr(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def generate_column(column: ColumnDef, dialect: Dialect) -> str:
    """
    Render a single column definition.

    The integer primary key becomes SERIAL on PostgreSQL and an
    AUTOINCREMENT rowid alias on SQLite.
    """
    if column.primary_key:
        if dialect == "postgresql":
            return f"{column.name} SERIAL PRIMARY KEY"
        return f"{column.name} INTEGER PRIMARY KEY AUTOINCREMENT"

    type_map = POSTGRESQL_TYPE_MAP if dialect == "postgresql" else SQLITE_TYPE_MAP
    parts = [column.name, type_map[column.type].format(length=column.length)]
    if not column.nullable:
        parts.append("NOT NULL")
    if column.default_now:
        parts.append("DEFAULT CURRENT_TIMESTAMP")
    elif column.default is not None:
        parts.append(f"DEFAULT {_literal(column.default, dialect)}")
    return " ".join(parts)


def generate_create_table(table: TableDef, dialect: Dialect = "postgresql") -> str:
    """Generate CREATE TABLE IF NOT EXISTS with unique and foreign key constraints."""
    lines = [generate_column(column, dialect) for column in table.columns]
    for unique in table.uniques:
        lines.append(
            f"CONSTRAINT {unique.name_for(table.name)} UNIQUE ({', '.join(unique.columns)})"
        )
    for fk in table.foreign_keys:
        lines.append(
            f"FOREIGN KEY ({fk.column}) REFERENCES {fk.ref_table}({fk.ref_column}) "
            f"ON DELETE {fk.on_delete}"
        )
    body = ",\n    ".join(lines)
    return f"CREATE TABLE IF NOT EXISTS {table.name} (\n    {body}\n)"


def generate_create_index(table_name: str, index: IndexDef) -> str:
    unique = "UNIQUE " if index.unique else ""
    return (
        f"CREATE {unique}INDEX IF NOT EXISTS {index.name_for(table_name)} "
        f"ON {table_name} ({', '.join(index.columns)})"
    )


def generate_table_statements(table: TableDef, dialect: Dialect = "postgresql") -> list[str]:
    """CREATE TABLE followed by its CREATE INDEX statements."""
    statements = [generate_create_table(table, dialect)]
    statements.extend(generate_create_index(table.name, index) for index in table.indexes)
    return statements


def generate_add_column(table_name: str, column: ColumnDef, dialect: Dialect = "postgresql") -> str:
    """
    Generate ALTER TABLE ... ADD COLUMN.

    Added columns must be nullable or carry a default so existing rows
    remain valid.
    """
    if not column.nullable and column.default is None and not column.default_now:
        raise ValueError(f"Added column {column.name!r} needs a default or must be nullable")
    return f"ALTER TABLE {table_name} ADD COLUMN {generate_column(column, dialect)}"


LEDGER_TABLE = "schema_migrations"

LEDGER_DDL: dict[Dialect, str] = {
    "postgresql": f"""
        CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
            version VARCHAR(100) PRIMARY KEY,
            applied_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "sqlite": f"""
        CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
}


__all__ = [
    "Dialect",
    "POSTGRESQL_TYPE_MAP",
    "SQLITE_TYPE_MAP",
    "LEDGER_TABLE",
    "LEDGER_DDL",
    "normalize_dialect",
    "generate_column",
    "generate_create_table",
    "generate_create_index",
    "generate_table_statements",
    "generate_add_column",
]
