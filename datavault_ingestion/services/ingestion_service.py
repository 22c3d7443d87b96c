"""
Ingestion service: parse -> validate -> (clear) -> insert.

Orchestrates source adapters, the row parser, the normalizer and the bulk
loader for one uploaded payload.  Uses structured logging
(LogContext, get_logger("ingestion.*")).

Invariants enforced:
    - Validation is a pure gate: any structural or data error means zero
      rows are written and the store is not touched.
    - REPLACE clears the dataset and inserts the new rows in ONE
      transaction, so a failed insert leaves the previous rows intact.
    - Store failures roll back and surface as BulkLoadError.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy.engine import Engine

from datavault_ingestion.adapters import SourceAdapter, default_adapters
from datavault_ingestion.domain.normalization import validate_rows
from datavault_ingestion.domain.parsing import parse
from datavault_ingestion.domain.types import (
    NO_DATA_ROWS,
    IngestMode,
    IngestResult,
    IngestStatus,
    PreviewResult,
    ValidationError,
)
from datavault_ingestion.services.bulk_loader import BulkLoader
from datavault_kernel.db.engine import connection_scope
from datavault_kernel.domain.dataset import DatasetSchema, SourceFormat
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.ingestion_service")


class IngestionService:
    """Validates uploads against their dataset schema and loads them."""

    def __init__(
        self,
        engine: Engine,
        registry: DatasetRegistry,
        loader: BulkLoader | None = None,
        adapters: dict[SourceFormat, SourceAdapter] | None = None,
    ):
        self._engine = engine
        self._registry = registry
        self._loader = loader or BulkLoader()
        self._adapters = adapters if adapters is not None else default_adapters()

    def _validate(
        self,
        schema: DatasetSchema,
        raw: bytes,
    ) -> tuple[list[dict[str, str | None]], tuple[ValidationError, ...]]:
        parsed = parse(raw, schema, self._adapters[schema.source_format])
        if parsed.header_error is not None:
            return [], (parsed.header_error,)

        if not parsed.rows and not parsed.errors:
            return [], (
                ValidationError(
                    code=NO_DATA_ROWS,
                    message=f"Upload for {schema.name} contains no data rows",
                    row=schema.first_data_row,
                    column="ROW",
                ),
            )

        records, errors = validate_rows(parsed.rows, schema)
        all_errors = sorted([*parsed.errors, *errors], key=lambda e: e.row)
        return records, tuple(all_errors)

    def preview(self, dataset: str, raw: bytes) -> PreviewResult:
        """Parse and validate without writing anything."""
        schema = self._registry.get(dataset)
        records, errors = self._validate(schema, raw)
        return PreviewResult(
            dataset=dataset,
            rows=tuple(records) if not errors else (),
            validation_errors=errors,
        )

    def ingest(
        self,
        dataset: str,
        raw: bytes,
        mode: IngestMode = IngestMode.APPEND,
        source_name: str | None = None,
        preferred_batch_size: int | None = None,
    ) -> IngestResult:
        """
        Ingest one payload into ``dataset``.

        Returns:
            IngestResult with status INSERTED (and the inserted count) or
            REJECTED (and every validation error).

        Raises:
            DatasetNotFoundError: unknown dataset.
            BulkLoadError: the store failed; nothing was committed.
        """
        schema = self._registry.get(dataset)
        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())

        with LogContext.bind(
            correlation_id=correlation_id,
            dataset=dataset,
            source_name=source_name,
        ):
            logger.info(
                "ingest_started",
                extra={"mode": mode.value, "byte_count": len(raw)},
            )

            records, errors = self._validate(schema, raw)
            if errors:
                logger.warning(
                    "ingest_rejected",
                    extra={
                        "error_count": len(errors),
                        "first_error": errors[0],
                    },
                )
                return IngestResult(
                    dataset=dataset,
                    status=IngestStatus.REJECTED,
                    mode=mode,
                    validation_errors=errors,
                    source_rows=len(records),
                )

            with connection_scope(self._engine) as conn:
                if mode == IngestMode.REPLACE:
                    self._loader.clear(conn, schema)
                inserted = self._loader.insert(
                    conn, schema, records, preferred_batch_size=preferred_batch_size
                )

            logger.info(
                "ingest_completed",
                extra={"mode": mode.value, "inserted_count": inserted},
            )
            return IngestResult(
                dataset=dataset,
                status=IngestStatus.INSERTED,
                mode=mode,
                inserted_count=inserted,
                source_rows=len(records),
            )
