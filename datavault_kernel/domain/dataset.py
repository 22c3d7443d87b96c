"""
Dataset schema types -- the declarative shape of one ingestible table.

Responsibility:
    Describes, per dataset, the ordered columns expected in a source file,
    how each column is normalized and type-checked, where the header sits in
    the source, which columns callers may search by, and whether records are
    claim-tracked.  Parser, normalizer, loader and claim engine all derive
    their behavior from one ``DatasetSchema``.

Architecture position:
    Kernel > Domain -- pure frozen dataclasses, zero I/O.

Invariants enforced:
    - Column names are unique within a dataset.
    - Filter and ordering columns refer to stored columns.
    - Data rows start strictly after the header row.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ROW_ID_COLUMN = "_row_id"
USED_COLUMN = "USED"
TIMES_USED_COLUMN = "TIMES_USED"


class ColumnKind(str, Enum):
    """Semantic type of a source column. Every column is stored as text."""

    TEXT = "text"
    DECIMAL = "decimal"
    INTEGER = "integer"
    DATE8 = "date8"  # YYYYMMDD
    DATE10 = "date10"  # YYMMDDHHMM
    ENUM = "enum"


class SourceFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"


@dataclass(frozen=True)
class ColumnSpec:
    """One declared column: type, required flag and normalization rules."""

    name: str
    kind: ColumnKind = ColumnKind.TEXT
    required: bool = False
    collapse_whitespace: bool = False
    strip_all_whitespace: bool = False
    uppercase: bool = False
    allowed_values: tuple[str, ...] = ()
    source_label: str | None = None  # Header text when it differs from name

    @property
    def label(self) -> str:
        return self.source_label or self.name


@dataclass(frozen=True)
class OrderSpec:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class DatasetSchema:
    """Immutable description of a dataset and its source layout."""

    name: str
    columns: tuple[ColumnSpec, ...]
    source_format: SourceFormat = SourceFormat.CSV
    delimiter: str = "|"
    multi_value_separator: str | None = None
    header_row: int = 1
    data_start_row: int | None = None
    sheet_index: int = 0
    claimable: bool = False
    flag_columns: tuple[str, ...] = ()
    extra_columns: tuple[str, ...] = ()
    filter_columns: tuple[str, ...] = ()
    order_by: tuple[OrderSpec, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.columns:
            raise ValueError(f"Dataset {self.name} declares no columns")
        names = [c.name for c in self.columns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Dataset {self.name} has duplicate columns: {duplicates}")
        if self.header_row < 1:
            raise ValueError(f"Dataset {self.name}: header_row must be >= 1")
        if self.first_data_row <= self.header_row:
            raise ValueError(f"Dataset {self.name}: data must start after the header row")
        stored = set(self.stored_columns)
        unknown = [c for c in self.filter_columns if c not in stored]
        unknown += [o.column for o in self.order_by if o.column not in stored]
        if unknown:
            raise ValueError(f"Dataset {self.name} references unknown columns: {unknown}")

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def header_labels(self) -> tuple[str, ...]:
        return tuple(c.label for c in self.columns)

    @property
    def required_columns(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns if c.required)

    @property
    def first_data_row(self) -> int:
        if self.data_start_row is not None:
            return self.data_start_row
        return self.header_row + 1

    @property
    def tracking_columns(self) -> tuple[str, ...]:
        if self.claimable:
            return (USED_COLUMN, TIMES_USED_COLUMN)
        return ()

    @property
    def stored_columns(self) -> tuple[str, ...]:
        """Every persisted column except the internal row id, in table order."""
        return (
            self.column_names
            + self.extra_columns
            + self.flag_columns
            + self.tracking_columns
        )

    def column(self, name: str) -> ColumnSpec:
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(name)
