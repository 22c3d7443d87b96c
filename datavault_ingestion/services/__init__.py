"""Ingestion services (touch the store)."""

from datavault_ingestion.services.bulk_loader import (
    BulkLoader,
    calculate_safe_batch_size,
    resolve_batch_size,
)
from datavault_ingestion.services.ingestion_service import IngestionService

__all__ = [
    "BulkLoader",
    "IngestionService",
    "calculate_safe_batch_size",
    "resolve_batch_size",
]
