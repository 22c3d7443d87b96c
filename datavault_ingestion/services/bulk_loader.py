"""
Bulk loader: batch-size-safe multi-row inserts and dataset clearing.

Responsibility:
    Writes normalized records into a dataset table using multi-row
    ``INSERT ... VALUES`` statements whose bound-parameter count never
    exceeds the store's per-statement ceiling.

Invariants enforced:
    - batch size = floor(floor(ceiling / column_count) * 0.9); a larger
      preferred size is clamped down (logged, not an error).
    - All batches run on the caller's connection, inside the caller's
      transaction; the loader never commits.
    - clear() creates the table if needed, then deletes every row.  It is
      the only deletion path.

Failure modes:
    - BulkLoadError wraps any SQLAlchemyError; the driver error is chained
      and logged with dataset and batch context.
"""

from __future__ import annotations

import math
from typing import Sequence

from sqlalchemy import delete, insert
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from datavault_config.settings import DEFAULT_MAX_BIND_PARAMETERS
from datavault_kernel.db.tables import ensure_table
from datavault_kernel.domain.dataset import DatasetSchema
from datavault_kernel.exceptions import BulkLoadError
from datavault_kernel.logging_config import get_logger

logger = get_logger("ingestion.bulk_loader")

SAFETY_MARGIN = 0.9


def calculate_safe_batch_size(
    column_count: int,
    max_parameters: int = DEFAULT_MAX_BIND_PARAMETERS,
) -> int:
    """Rows per statement that keep bound parameters under the ceiling."""
    if column_count < 1:
        raise ValueError("column_count must be positive")
    return max(1, math.floor(math.floor(max_parameters / column_count) * SAFETY_MARGIN))


def resolve_batch_size(
    preferred: int | None,
    column_count: int,
    max_parameters: int = DEFAULT_MAX_BIND_PARAMETERS,
) -> int:
    """Use ``preferred`` unless it exceeds the safe size."""
    safe = calculate_safe_batch_size(column_count, max_parameters)
    if preferred is None:
        return safe
    if preferred > safe:
        logger.warning(
            "batch_size_clamped",
            extra={
                "preferred_batch_size": preferred,
                "safe_batch_size": safe,
                "column_count": column_count,
                "max_parameters": max_parameters,
            },
        )
        return safe
    return max(1, preferred)


class BulkLoader:
    """Insert and clear dataset rows on a caller-owned transaction."""

    def __init__(
        self,
        max_bind_parameters: int = DEFAULT_MAX_BIND_PARAMETERS,
        preferred_batch_size: int | None = 500,
    ):
        self._max_parameters = max_bind_parameters
        self._preferred = preferred_batch_size

    def batch_size_for(self, schema: DatasetSchema, preferred: int | None = None) -> int:
        return resolve_batch_size(
            preferred if preferred is not None else self._preferred,
            len(schema.columns),
            self._max_parameters,
        )

    def insert(
        self,
        connection: Connection,
        schema: DatasetSchema,
        records: Sequence[dict[str, str | None]],
        preferred_batch_size: int | None = None,
    ) -> int:
        """
        Insert ``records`` in batches. Returns the number of rows written.

        Raises:
            BulkLoadError: on any store failure; nothing is committed by
                this method, the caller's transaction must roll back.
        """
        if not records:
            return 0

        batch_size = self.batch_size_for(schema, preferred_batch_size)
        columns = schema.column_names
        batch_index = 0
        try:
            table = ensure_table(connection, schema)
            for start in range(0, len(records), batch_size):
                batch = [
                    {name: record.get(name) for name in columns}
                    for record in records[start : start + batch_size]
                ]
                connection.execute(insert(table).values(batch))
                batch_index += 1
        except SQLAlchemyError as exc:
            logger.error(
                "bulk_insert_failed",
                extra={
                    "dataset_name": schema.name,
                    "batch_index": batch_index,
                    "batch_size": batch_size,
                    "row_count": len(records),
                },
                exc_info=True,
            )
            raise BulkLoadError(schema.name, "insert") from exc

        logger.info(
            "bulk_insert_completed",
            extra={
                "dataset_name": schema.name,
                "row_count": len(records),
                "batch_count": batch_index,
                "batch_size": batch_size,
            },
        )
        return len(records)

    def clear(self, connection: Connection, schema: DatasetSchema) -> int:
        """Ensure the table exists, then delete every row. Returns rows deleted."""
        try:
            table = ensure_table(connection, schema)
            deleted = connection.execute(delete(table)).rowcount
        except SQLAlchemyError as exc:
            logger.error("dataset_clear_failed", extra={"dataset_name": schema.name}, exc_info=True)
            raise BulkLoadError(schema.name, "clear") from exc
        logger.info("dataset_cleared", extra={"dataset_name": schema.name, "deleted": deleted})
        return deleted
