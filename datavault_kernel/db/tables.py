"""
Module: datavault_kernel.db.tables
Responsibility: Build the SQLAlchemy Core ``Table`` for a dataset and make
    sure it exists in the store with every declared column.
Architecture position: Kernel > DB.  Depends on kernel domain types only.

Invariants enforced:
    - One table per dataset, named after the dataset.
    - ``_row_id`` is an internal autoincrement key; it orders records by
      insertion and is never part of a record handed to callers.
    - Declared and extra columns are nullable TEXT.  Flag and tracking
      columns (USED, TIMES_USED) are INTEGER defaulting to 0.
    - ensure_table() never drops or alters existing columns; it only
      creates the table or adds missing columns.
"""

from __future__ import annotations

import threading

from sqlalchemy import Column, Integer, MetaData, Table, Text, inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError

from datavault_kernel.domain.dataset import ROW_ID_COLUMN, DatasetSchema
from datavault_kernel.logging_config import get_logger

logger = get_logger("db.tables")

_metadata = MetaData()
_lock = threading.Lock()


def _integer_columns(schema: DatasetSchema) -> tuple[str, ...]:
    return schema.flag_columns + schema.tracking_columns


def _build_columns(schema: DatasetSchema) -> list[Column]:
    columns: list[Column] = [
        Column(ROW_ID_COLUMN, Integer, primary_key=True, autoincrement=True),
    ]
    for name in schema.column_names + schema.extra_columns:
        columns.append(Column(name, Text, nullable=True))
    for name in _integer_columns(schema):
        columns.append(Column(name, Integer, nullable=True, server_default=text("0")))
    return columns


def dataset_table(schema: DatasetSchema) -> Table:
    """Return the (cached) Core table for ``schema``."""
    with _lock:
        existing = _metadata.tables.get(schema.name)
        expected = (ROW_ID_COLUMN,) + schema.stored_columns
        if existing is not None:
            if tuple(existing.columns.keys()) == expected:
                return existing
            _metadata.remove(existing)
        return Table(schema.name, _metadata, *_build_columns(schema))


def ensure_table(connection: Connection, schema: DatasetSchema) -> Table:
    """
    Create the dataset table if absent and add any missing columns.

    Idempotent.  A concurrent writer adding the same column first is
    tolerated.
    """
    table = dataset_table(schema)
    table.create(connection, checkfirst=True)

    present = {c["name"] for c in inspect(connection).get_columns(schema.name)}
    missing = [c for c in table.columns if c.name not in present]
    for column in missing:
        _add_column(connection, schema.name, column)
    return table


def _add_column(connection: Connection, table_name: str, column: Column) -> None:
    preparer = connection.dialect.identifier_preparer
    col_type = column.type.compile(dialect=connection.dialect)
    default = " DEFAULT 0" if isinstance(column.type, Integer) else ""
    if_not_exists = " IF NOT EXISTS" if connection.dialect.name == "postgresql" else ""
    ddl = (
        f"ALTER TABLE {preparer.quote(table_name)} "
        f"ADD COLUMN{if_not_exists} {preparer.quote(column.name)} {col_type}{default}"
    )
    try:
        connection.execute(text(ddl))
    except DBAPIError as exc:
        message = str(exc.orig).lower()
        if "duplicate column" not in message and "already exists" not in message:
            raise
        logger.debug(
            "column_already_exists",
            extra={"table": table_name, "column_name": column.name},
        )
        return
    logger.info("column_added", extra={"table": table_name, "column_name": column.name})
