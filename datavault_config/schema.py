"""
Configuration schema (``datavault_config.schema``).

Frozen dataclasses mirroring the YAML dataset definitions one-to-one.  They
carry raw configuration values (strings, tuples); ``bridges`` turns them into
kernel ``DatasetSchema`` objects.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ColumnDef:
    """Single declared column as written in YAML."""

    name: str
    kind: str = "text"  # text, decimal, integer, date8, date10, enum
    required: bool = False
    normalize: tuple[str, ...] = ()  # "collapse", "strip_all", "upper"
    allowed_values: tuple[str, ...] = ()
    label: str | None = None


@dataclass(frozen=True)
class OrderDef:
    column: str
    direction: str = "asc"


@dataclass(frozen=True)
class DatasetDef:
    """Declarative dataset: source layout, columns, search and claim options."""

    name: str
    columns: tuple[ColumnDef, ...]
    description: str = ""
    source_format: str = "csv"
    delimiter: str = "|"
    multi_value_separator: str | None = None
    header_row: int = 1
    data_start_row: int | None = None
    sheet_index: int = 0
    claimable: bool = False
    flag_columns: tuple[str, ...] = ()
    extra_columns: tuple[str, ...] = ()
    filter_columns: tuple[str, ...] = ()
    order_by: tuple[OrderDef, ...] = ()
