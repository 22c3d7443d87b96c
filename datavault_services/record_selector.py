"""
Read-only listing of dataset records.

Pages through a dataset with optional equality filters and inclusive
ranges, ordered by the dataset's declared ordering columns (then by
insertion order), and reports the total match count for pagination.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from datavault_kernel.db.engine import connection_scope
from datavault_kernel.db.tables import ensure_table
from datavault_kernel.domain.dataset import ROW_ID_COLUMN
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.exceptions import UnknownFilterError
from datavault_services.claim_service import public_columns
from datavault_services.filters import (
    FilterValue,
    filter_conditions,
    normalize_filters,
    unused_condition,
)

MAX_PAGE_SIZE = 1000


@dataclass(frozen=True)
class RecordPage:
    records: tuple[dict[str, Any], ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.records) < self.total


class RecordSelector:
    """Paginated queries over a dataset table."""

    def __init__(self, engine: Engine, registry: DatasetRegistry):
        self._engine = engine
        self._registry = registry

    def list_records(
        self,
        dataset: str,
        filters: Mapping[str, FilterValue] | None = None,
        limit: int = 50,
        offset: int = 0,
        unused_only: bool = False,
        ranges: Mapping[str, tuple[str, str]] | None = None,
    ) -> RecordPage:
        """
        Return one page of records.

        ``ranges`` maps a stored column to an inclusive (low, high) pair,
        e.g. ``{"FECHA_REGISTRO": ("2024-01-01", "2024-01-31")}``.
        """
        schema = self._registry.get(dataset)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        criteria = normalize_filters(schema, filters)

        ranges = ranges or {}
        bad = tuple(sorted(c for c in ranges if c not in schema.stored_columns))
        if bad:
            raise UnknownFilterError(dataset, bad, schema.stored_columns)

        with connection_scope(self._engine) as conn:
            table = ensure_table(conn, schema)
            conditions = filter_conditions(table, criteria)
            for column, (low, high) in ranges.items():
                conditions.append(table.c[column].between(low, high))
            if unused_only and schema.claimable:
                conditions.append(unused_condition(table))

            total = conn.execute(
                select(func.count()).select_from(table).where(*conditions)
            ).scalar_one()

            ordering = [
                table.c[o.column].desc() if o.descending else table.c[o.column].asc()
                for o in schema.order_by
            ]
            ordering.append(table.c[ROW_ID_COLUMN].asc())
            rows = conn.execute(
                select(*public_columns(table))
                .where(*conditions)
                .order_by(*ordering)
                .limit(limit)
                .offset(offset)
            ).mappings().all()

        return RecordPage(
            records=tuple(dict(r) for r in rows),
            total=total,
            limit=limit,
            offset=offset,
        )

    def count(self, dataset: str, filters: Mapping[str, FilterValue] | None = None) -> int:
        return self.list_records(dataset, filters, limit=1).total

    def distinct_values(self, dataset: str, column: str) -> tuple[Any, ...]:
        """
        Sorted distinct non-empty values of ``column``, e.g. every customer id
        or certificate number present in a dataset.
        """
        schema = self._registry.get(dataset)
        if column not in schema.stored_columns:
            raise UnknownFilterError(dataset, (column,), schema.stored_columns)

        with connection_scope(self._engine) as conn:
            table = ensure_table(conn, schema)
            col = table.c[column]
            values = conn.execute(
                select(col).distinct().where(col.is_not(None), col != "").order_by(col.asc())
            ).scalars().all()
        return tuple(values)
