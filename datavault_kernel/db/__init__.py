"""Database layer - engine, transactional scope and dataset tables."""

from datavault_kernel.db.engine import (
    connection_scope,
    create_engine_from_url,
    get_engine,
    init_engine_from_url,
    reset_engine,
)
from datavault_kernel.db.tables import dataset_table, ensure_table

__all__ = [
    "connection_scope",
    "create_engine_from_url",
    "dataset_table",
    "ensure_table",
    "get_engine",
    "init_engine_from_url",
    "reset_engine",
]
