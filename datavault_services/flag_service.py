"""
Bulk updates of dataset flag and extra columns.

Flags (``EXISTS`` on deposit activity, ``EXONERATED`` on DP10) are 0/1
integers; extra columns (``INTEREST_TYPE``, ``LEGAL_ID``, ``LEGAL_DOC``) are
nullable text that no upload ever fills.  Both are written here and only
here, keyed on a declared column of the dataset.

Keys are sent in chunks so no statement exceeds the bound-parameter ceiling.
Every method runs in one transaction: all chunks or rows apply, or none do.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from sqlalchemy import and_, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.schema import Table

from datavault_config.settings import DEFAULT_MAX_BIND_PARAMETERS
from datavault_kernel.db.engine import connection_scope
from datavault_kernel.db.tables import ensure_table
from datavault_kernel.domain.dataset import DatasetSchema
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.exceptions import (
    UnknownExtraColumnError,
    UnknownFilterError,
    UnknownFlagError,
)
from datavault_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.flags")


@dataclass(frozen=True)
class BulkUpdateResult:
    updated: int
    not_found: tuple[str, ...] = ()


def _unique_keys(keys: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(k.strip() for k in keys if k and k.strip()))


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class FlagService:
    def __init__(
        self,
        engine: Engine,
        registry: DatasetRegistry,
        max_bind_parameters: int = DEFAULT_MAX_BIND_PARAMETERS,
    ):
        self._engine = engine
        self._registry = registry
        # One parameter is the value being written.
        self._chunk_size = max(1, max_bind_parameters - 1)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_key_column(schema: DatasetSchema, key_column: str) -> None:
        if key_column not in schema.column_names:
            raise UnknownFilterError(schema.name, (key_column,), schema.column_names)

    @staticmethod
    def _check_flag(schema: DatasetSchema, flag: str) -> None:
        if flag not in schema.flag_columns:
            raise UnknownFlagError(schema.name, flag, schema.flag_columns)

    @staticmethod
    def _check_extra(schema: DatasetSchema, column: str) -> None:
        if column not in schema.extra_columns:
            raise UnknownExtraColumnError(schema.name, column, schema.extra_columns)

    def _update_keyed(
        self,
        conn: Connection,
        table: Table,
        key_column: str,
        keys: list[str],
        values: dict[str, object],
    ) -> int:
        updated = 0
        for start in range(0, len(keys), self._chunk_size):
            chunk = keys[start : start + self._chunk_size]
            result = conn.execute(
                update(table).where(table.c[key_column].in_(chunk)).values(values)
            )
            updated += result.rowcount
        return updated

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def set_flag(
        self,
        dataset: str,
        flag: str,
        value: bool,
        key_column: str,
        keys: Iterable[str],
    ) -> int:
        """
        Set ``flag`` to 1/0 for rows whose ``key_column`` is in ``keys``.

        Returns:
            Number of rows updated.

        Raises:
            UnknownFlagError: ``flag`` is not a flag column of the dataset.
            UnknownFilterError: ``key_column`` is not a declared column.
        """
        schema = self._registry.get(dataset)
        self._check_flag(schema, flag)
        self._check_key_column(schema, key_column)

        unique_keys = _unique_keys(keys)
        if not unique_keys:
            return 0

        with connection_scope(self._engine) as conn:
            table = ensure_table(conn, schema)
            updated = self._update_keyed(conn, table, key_column, unique_keys, {flag: int(value)})

        logger.info(
            "flag_updated",
            extra={
                "dataset_name": dataset,
                "flag": flag,
                "flag_value": int(value),
                "key_count": len(unique_keys),
                "updated": updated,
            },
        )
        return updated

    def set_text(
        self,
        dataset: str,
        column: str,
        value: str | None,
        key_column: str,
        keys: Iterable[str],
    ) -> int:
        """
        Write ``value`` to the extra column ``column`` of every row whose
        ``key_column`` is in ``keys``.  A blank or None value clears it.

        Raises:
            UnknownExtraColumnError: ``column`` is not an extra column.
            UnknownFilterError: ``key_column`` is not a declared column.
        """
        schema = self._registry.get(dataset)
        self._check_extra(schema, column)
        self._check_key_column(schema, key_column)

        unique_keys = _unique_keys(keys)
        if not unique_keys:
            return 0

        with connection_scope(self._engine) as conn:
            table = ensure_table(conn, schema)
            updated = self._update_keyed(
                conn, table, key_column, unique_keys, {column: _clean_text(value)}
            )

        logger.info(
            "text_updated",
            extra={
                "dataset_name": dataset,
                "column_name": column,
                "key_count": len(unique_keys),
                "updated": updated,
            },
        )
        return updated

    def update_rows(
        self,
        dataset: str,
        key_column: str,
        updates: Iterable[Mapping[str, str | None]],
    ) -> BulkUpdateResult:
        """
        Apply per-key extra column values, e.g. legal info per customer::

            service.update_rows("deposits_dp10", "ID_CUSTOMER", [
                {"ID_CUSTOMER": "C-1", "LEGAL_ID": "001", "LEGAL_DOC": "CED"},
            ])

        Each mapping holds ``key_column`` plus the extra columns to set.
        Keys that match no row (or are blank) are reported in
        ``not_found``.  Every column is checked before anything is written.
        """
        schema = self._registry.get(dataset)
        self._check_key_column(schema, key_column)

        entries = [dict(u) for u in updates]
        for entry in entries:
            for column in entry:
                if column != key_column:
                    self._check_extra(schema, column)

        updated = 0
        not_found: list[str] = []
        with LogContext.bind(dataset=dataset), connection_scope(self._engine) as conn:
            table = ensure_table(conn, schema)
            for entry in entries:
                key = (entry.pop(key_column, None) or "").strip()
                if not key or not entry:
                    not_found.append(key)
                    continue
                result = conn.execute(
                    update(table)
                    .where(table.c[key_column] == key)
                    .values({c: _clean_text(v) for c, v in entry.items()})
                )
                if result.rowcount:
                    updated += result.rowcount
                else:
                    not_found.append(key)

            logger.info(
                "rows_updated",
                extra={
                    "key_column": key_column,
                    "entries": len(entries),
                    "updated": updated,
                    "not_found_count": len(not_found),
                },
            )
        return BulkUpdateResult(updated=updated, not_found=tuple(not_found))

    def set_flag_from_dataset(
        self,
        dataset: str,
        flag: str,
        column: str,
        source_dataset: str,
        source_column: str,
    ) -> int:
        """
        Set ``flag`` to 1 on rows whose ``column`` value appears in
        ``source_column`` of ``source_dataset``.

        DP10 contracts are marked exonerated this way, matching ``LEGAL_ID``
        against the personal ids listed in ``client_exonerated``.  Rows that
        no longer match are left as they are.
        """
        schema = self._registry.get(dataset)
        source = self._registry.get(source_dataset)
        self._check_flag(schema, flag)
        if column not in schema.stored_columns:
            raise UnknownFilterError(dataset, (column,), schema.stored_columns)
        if source_column not in source.stored_columns:
            raise UnknownFilterError(source_dataset, (source_column,), source.stored_columns)

        with connection_scope(self._engine) as conn:
            table = ensure_table(conn, schema)
            source_table = ensure_table(conn, source)
            matches = select(source_table.c[source_column]).where(
                and_(
                    source_table.c[source_column].is_not(None),
                    source_table.c[source_column] != "",
                )
            )
            updated = conn.execute(
                update(table).where(table.c[column].in_(matches)).values({flag: 1})
            ).rowcount

        logger.info(
            "flag_matched",
            extra={
                "dataset_name": dataset,
                "flag": flag,
                "source_dataset": source_dataset,
                "updated": updated,
            },
        )
        return updated
