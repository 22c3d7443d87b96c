"""
Config -> Kernel bridges.

Convert parsed ``DatasetDef`` objects into kernel ``DatasetSchema`` objects.
These live in datavault_config (the producer) because the kernel must never
import datavault_config.

Usage:
    from datavault_config.bridges import build_dataset_registry

    registry = build_dataset_registry(load_dataset_defs(path))
"""

from __future__ import annotations

from typing import Iterable

from datavault_config.schema import ColumnDef, DatasetDef
from datavault_kernel.domain.dataset import (
    ColumnKind,
    ColumnSpec,
    DatasetSchema,
    OrderSpec,
    SourceFormat,
)
from datavault_kernel.domain.registry import DatasetRegistry


def compile_column_from_def(def_: ColumnDef) -> ColumnSpec:
    return ColumnSpec(
        name=def_.name,
        kind=ColumnKind(def_.kind),
        required=def_.required,
        collapse_whitespace="collapse" in def_.normalize,
        strip_all_whitespace="strip_all" in def_.normalize,
        uppercase="upper" in def_.normalize,
        allowed_values=def_.allowed_values,
        source_label=def_.label,
    )


def compile_dataset_from_def(def_: DatasetDef) -> DatasetSchema:
    """Build a kernel DatasetSchema from a config DatasetDef."""
    if not isinstance(def_, DatasetDef):
        raise TypeError("Expected DatasetDef")
    return DatasetSchema(
        name=def_.name,
        columns=tuple(compile_column_from_def(c) for c in def_.columns),
        source_format=SourceFormat(def_.source_format),
        delimiter=def_.delimiter,
        multi_value_separator=def_.multi_value_separator,
        header_row=def_.header_row,
        data_start_row=def_.data_start_row,
        sheet_index=def_.sheet_index,
        claimable=def_.claimable,
        flag_columns=def_.flag_columns,
        extra_columns=def_.extra_columns,
        filter_columns=def_.filter_columns,
        order_by=tuple(
            OrderSpec(column=o.column, descending=o.direction == "desc")
            for o in def_.order_by
        ),
        description=def_.description,
    )


def build_dataset_registry(defs: Iterable[DatasetDef]) -> DatasetRegistry:
    """Compile every definition and register it. Duplicate names raise."""
    return DatasetRegistry(compile_dataset_from_def(d) for d in defs)
