"""Pure domain types for DataVault: clock and dataset schemas."""

from datavault_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from datavault_kernel.domain.dataset import (
    ROW_ID_COLUMN,
    TIMES_USED_COLUMN,
    USED_COLUMN,
    ColumnKind,
    ColumnSpec,
    DatasetSchema,
    OrderSpec,
    SourceFormat,
)
from datavault_kernel.domain.registry import DatasetRegistry

__all__ = [
    "Clock",
    "ColumnKind",
    "ColumnSpec",
    "DatasetRegistry",
    "DatasetSchema",
    "DeterministicClock",
    "OrderSpec",
    "ROW_ID_COLUMN",
    "SourceFormat",
    "SystemClock",
    "TIMES_USED_COLUMN",
    "USED_COLUMN",
]
