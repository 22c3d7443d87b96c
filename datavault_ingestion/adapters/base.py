"""
Source adapter protocol.

Contract:
    SourceAdapter.read_table() turns a raw upload buffer into a SourceTable:
    the header cells found at the dataset's header row and every later
    physical row, each tagged with its 1-based source row number.
    Unreadable input is reported as a structural ValidationError on the
    SourceTable, never raised.

Architecture: datavault_ingestion/adapters. Byte decoding only, no DB.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from datavault_ingestion.domain.types import SourceTable
from datavault_kernel.domain.dataset import DatasetSchema


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for decoding an uploaded buffer into header and rows."""

    def read_table(self, raw: bytes, schema: DatasetSchema) -> SourceTable:
        ...
