"""DDL generation from the declarative models.

Both engines get their CREATE statements from the same metadata, compiled for
the matching dialect. Upgrades are additive: a column present on the model but
missing from an existing table is added, nothing is ever dropped or renamed.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import Column, Table
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import CreateIndex, CreateTable
from sqlalchemy.sql.functions import FunctionElement

import app.models  # noqa: F401  # register every table on Base.metadata
from app.db.base import Base


def tables() -> list[Table]:
    # dependency order: tenants before users before notes ...
    return list(Base.metadata.sorted_tables)


def create_statements(dialect: Dialect) -> list[str]:
    statements: list[str] = []
    for table in tables():
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda ix: ix.name or ""):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip())
    return statements


def _column_ddl(column: Column, dialect: Dialect) -> str:
    col_type = column.type.compile(dialect=dialect)
    ddl = f"{column.name} {col_type}"

    default = column.server_default
    # SQLite refuses ADD COLUMN with a non-constant default such as CURRENT_TIMESTAMP
    if (
        default is not None
        and dialect.name == "sqlite"
        and isinstance(getattr(default, "arg", None), FunctionElement)
    ):
        default = None
    if default is not None:
        default_sql = dialect.ddl_compiler(dialect, None).get_column_default_string(column)
        if default_sql is not None:
            ddl += f" DEFAULT {default_sql}"
            # existing rows get the default, so NOT NULL is safe
            if not column.nullable:
                ddl += " NOT NULL"
    return ddl


def add_column_statements(
    table: Table,
    existing_columns: Iterable[str],
    dialect: Dialect,
) -> list[str]:
    """ALTER TABLE statements for model columns the live table lacks."""
    present = {c.lower() for c in existing_columns}
    return [
        f"ALTER TABLE {table.name} ADD COLUMN {_column_ddl(column, dialect)}"
        for column in table.columns
        if column.name.lower() not in present and not column.primary_key
    ]
