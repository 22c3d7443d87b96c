"""
datavault_ingestion.domain.types -- Pure frozen dataclasses for ingestion.

ZERO I/O. Imports only from datavault_kernel/domain/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# Error codes carried by ValidationError.code
HEADER_COLUMN_COUNT = "HEADER_COLUMN_COUNT"
HEADER_MISMATCH = "HEADER_MISMATCH"
UNREADABLE_SOURCE = "UNREADABLE_SOURCE"
MISSING_SHEET = "MISSING_SHEET"
NO_DATA_ROWS = "NO_DATA_ROWS"
TOO_MANY_FIELDS = "TOO_MANY_FIELDS"
MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
INVALID_DECIMAL = "INVALID_DECIMAL"
INVALID_INTEGER = "INVALID_INTEGER"
INVALID_DATE = "INVALID_DATE"
INVALID_ENUM = "INVALID_ENUM"

STRUCTURAL_CODES = frozenset({
    HEADER_COLUMN_COUNT,
    HEADER_MISMATCH,
    UNREADABLE_SOURCE,
    MISSING_SHEET,
    NO_DATA_ROWS,
})


@dataclass(frozen=True)
class ValidationError:
    """
    One data-quality problem in an upload. Never persisted.

    ``row`` is the 1-based physical row in the source (the header row counts),
    ``column`` the dataset column (or ``HEADER`` / ``SHEET`` / ``ROW``),
    ``value`` the offending raw value.
    """

    code: str
    message: str
    row: int
    column: str
    value: str = ""

    @property
    def is_structural(self) -> bool:
        return self.code in STRUCTURAL_CODES

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "row": self.row,
            "column": self.column,
            "value": self.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class PhysicalRow:
    """Raw field values of one source line or sheet row."""

    row_number: int
    values: tuple[str, ...]


@dataclass(frozen=True)
class SourceTable:
    """What an adapter hands to the parser: header plus data rows in order."""

    header_row: int
    header: tuple[str, ...]
    rows: tuple[PhysicalRow, ...]
    error: ValidationError | None = None  # Structural read failure


@dataclass(frozen=True)
class LogicalRow:
    """One record after ragged expansion, keyed by column name."""

    row_number: int
    values: dict[str, str]


@dataclass(frozen=True)
class ParseResult:
    rows: tuple[LogicalRow, ...] = ()
    errors: tuple[ValidationError, ...] = ()  # Row-shape problems (TOO_MANY_FIELDS)
    header_error: ValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.header_error is None and not self.errors


class IngestMode(str, Enum):
    APPEND = "append"
    REPLACE = "replace"


class IngestStatus(str, Enum):
    INSERTED = "inserted"  # All rows committed
    REJECTED = "rejected"  # Validation failed; nothing written


@dataclass(frozen=True)
class IngestResult:
    dataset: str
    status: IngestStatus
    mode: IngestMode
    inserted_count: int = 0
    validation_errors: tuple[ValidationError, ...] = ()
    source_rows: int = 0  # Logical rows after expansion

    @property
    def ok(self) -> bool:
        return self.status == IngestStatus.INSERTED


@dataclass(frozen=True)
class PreviewResult:
    """Parse + validate outcome without touching the store."""

    dataset: str
    rows: tuple[dict[str, str | None], ...]
    validation_errors: tuple[ValidationError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.validation_errors
