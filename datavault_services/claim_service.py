"""
Module: datavault_services.claim_service
Responsibility: Claim-once dispensing.  Given business-key filters, return
    one matching record that has never been claimed and mark it claimed in
    the same step, or return it untouched in peek mode.
Architecture position: Services layer.  Depends on kernel db/domain and the
    shared filter helpers.

Invariants enforced:
    - At least one non-empty filter is required; zero filters never match
      everything (NoFiltersError, raised before touching the store).
    - A claim is a compare-and-set: the UPDATE targets the row id captured by
      the lookup AND re-checks "still unused" in the same statement.  Zero
      rows updated means another caller won the row; the lookup is retried.
    - TIMES_USED only ever increases; USED goes 0 -> 1 only.
    - The internal row id is never part of a returned record.

Failure modes:
    - DatasetNotClaimableError: claim on a dataset without tracking columns.
    - ClaimContentionError: every attempt lost its race (bounded retries).
    - SQLAlchemyError from the store propagates after rollback.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from sqlalchemy import func, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.schema import Table

from datavault_kernel.db.engine import connection_scope
from datavault_kernel.db.tables import dataset_table, ensure_table
from datavault_kernel.domain.dataset import (
    ROW_ID_COLUMN,
    TIMES_USED_COLUMN,
    USED_COLUMN,
    DatasetSchema,
)
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.exceptions import (
    ClaimContentionError,
    DatasetNotClaimableError,
    NoFiltersError,
)
from datavault_kernel.logging_config import LogContext, get_logger
from datavault_services.filters import (
    FilterValue,
    filter_conditions,
    normalize_filters,
    unused_condition,
)

logger = get_logger("services.claim")


class ClaimStatus(str, Enum):
    CLAIMED = "claimed"
    PEEKED = "peeked"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ClaimResult:
    dataset: str
    status: ClaimStatus
    record: dict[str, Any] | None = None

    @property
    def found(self) -> bool:
        return self.status != ClaimStatus.NOT_FOUND


def public_columns(table: Table) -> list:
    return [c for c in table.columns if c.name != ROW_ID_COLUMN]


class ClaimService:
    """Finds one matching record and atomically marks it used."""

    def __init__(
        self,
        engine: Engine,
        registry: DatasetRegistry,
        max_attempts: int = 5,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._engine = engine
        self._registry = registry
        self._max_attempts = max_attempts
        self._ensured: set[str] = set()
        self._ensured_lock = threading.Lock()

    def _table(self, conn: Connection, schema: DatasetSchema) -> Table:
        # Held across ensure_table so each dataset is checked once per service.
        with self._ensured_lock:
            if schema.name not in self._ensured:
                table = ensure_table(conn, schema)
                self._ensured.add(schema.name)
                return table
        return dataset_table(schema)

    def find_and_claim(
        self,
        dataset: str,
        filters: Mapping[str, FilterValue] | None,
        claim: bool = True,
    ) -> ClaimResult:
        """
        Return one record matching ``filters``.

        With ``claim=True`` only unused records are eligible and the returned
        record reflects its post-claim USED/TIMES_USED.  With ``claim=False``
        the first match is returned unmodified.

        Raises:
            DatasetNotFoundError, DatasetNotClaimableError, NoFiltersError,
            UnknownFilterError, InvalidFilterValueError, ClaimContentionError.
        """
        schema = self._registry.get(dataset)
        if claim and not schema.claimable:
            raise DatasetNotClaimableError(dataset)

        criteria = normalize_filters(schema, filters)
        if not criteria:
            raise NoFiltersError(dataset)

        with LogContext.bind(dataset=dataset):
            if not claim:
                return self._peek(schema, criteria)
            return self._claim(schema, criteria)

    def peek(self, dataset: str, filters: Mapping[str, FilterValue] | None) -> ClaimResult:
        return self.find_and_claim(dataset, filters, claim=False)

    def _peek(self, schema: DatasetSchema, criteria: dict[str, str | int]) -> ClaimResult:
        with connection_scope(self._engine) as conn:
            table = self._table(conn, schema)
            row = conn.execute(
                select(*public_columns(table))
                .where(*filter_conditions(table, criteria))
                .order_by(table.c[ROW_ID_COLUMN])
                .limit(1)
            ).mappings().first()

        if row is None:
            logger.info("record_not_found", extra={"filters": criteria, "claim": False})
            return ClaimResult(dataset=schema.name, status=ClaimStatus.NOT_FOUND)
        return ClaimResult(dataset=schema.name, status=ClaimStatus.PEEKED, record=dict(row))

    def _claim(self, schema: DatasetSchema, criteria: dict[str, str | int]) -> ClaimResult:
        for attempt in range(1, self._max_attempts + 1):
            with connection_scope(self._engine) as conn:
                table = self._table(conn, schema)
                row_id = conn.execute(
                    select(table.c[ROW_ID_COLUMN])
                    .where(*filter_conditions(table, criteria), unused_condition(table))
                    .order_by(table.c[ROW_ID_COLUMN])
                    .limit(1)
                ).scalar_one_or_none()

                if row_id is None:
                    logger.info("record_not_found", extra={"filters": criteria, "claim": True})
                    return ClaimResult(dataset=schema.name, status=ClaimStatus.NOT_FOUND)

                record = self._mark_used(conn, table, row_id)

            if record is not None:
                logger.info(
                    "record_claimed",
                    extra={"attempt": attempt, "times_used": record.get(TIMES_USED_COLUMN)},
                )
                return ClaimResult(dataset=schema.name, status=ClaimStatus.CLAIMED, record=record)

            logger.info("claim_race_retry", extra={"attempt": attempt, "row_id": row_id})

        logger.warning("claim_contention_exhausted", extra={"attempts": self._max_attempts})
        raise ClaimContentionError(schema.name, self._max_attempts)

    @staticmethod
    def _mark_used(conn: Connection, table: Table, row_id: int) -> dict[str, Any] | None:
        """Conditionally claim ``row_id``. Returns the updated record, or None if lost."""
        stmt = (
            update(table)
            .where(table.c[ROW_ID_COLUMN] == row_id, unused_condition(table))
            .values(
                {
                    USED_COLUMN: 1,
                    TIMES_USED_COLUMN: func.coalesce(table.c[TIMES_USED_COLUMN], 0) + 1,
                }
            )
        )
        if conn.dialect.update_returning:
            row = conn.execute(stmt.returning(*public_columns(table))).mappings().first()
            return dict(row) if row is not None else None

        if conn.execute(stmt).rowcount != 1:
            return None
        row = conn.execute(
            select(*public_columns(table)).where(table.c[ROW_ID_COLUMN] == row_id)
        ).mappings().one()
        return dict(row)
