"""
Configuration Loader (``datavault_config.loader``).

Responsibility
--------------
Loads dataset definition YAML files and parses them into typed
``datavault_config.schema`` dataclass instances.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required keys (``name``, ``columns``).
* Every parsed object is a frozen dataclass from ``schema.py``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from datavault_config.schema import ColumnDef, DatasetDef, OrderDef

_VALID_KINDS = frozenset({"text", "decimal", "integer", "date8", "date10", "enum"})
_VALID_NORMALIZERS = frozenset({"collapse", "strip_all", "upper"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_column(data: Any) -> ColumnDef:
    """Parse a column entry: either a bare name or a mapping."""
    if isinstance(data, str):
        return ColumnDef(name=data)

    kind = data.get("kind", "text")
    if kind not in _VALID_KINDS:
        raise ValueError(f"Column {data.get('name')!r}: unknown kind {kind!r}")
    normalize = _as_tuple(data.get("normalize"))
    bad = [n for n in normalize if n not in _VALID_NORMALIZERS]
    if bad:
        raise ValueError(f"Column {data.get('name')!r}: unknown normalizers {bad}")
    allowed = _as_tuple(data.get("allowed_values"))
    if kind == "enum" and not allowed:
        raise ValueError(f"Column {data.get('name')!r}: enum requires allowed_values")

    return ColumnDef(
        name=data["name"],
        kind=kind,
        required=bool(data.get("required", False)),
        normalize=normalize,
        allowed_values=allowed,
        label=data.get("label"),
    )


def _parse_order(data: Any) -> OrderDef:
    if isinstance(data, str):
        return OrderDef(column=data)
    direction = str(data.get("direction", "asc")).lower()
    if direction not in ("asc", "desc"):
        raise ValueError(f"Invalid order direction {direction!r} for {data.get('column')!r}")
    return OrderDef(column=data["column"], direction=direction)


def _apply_column_groups(
    columns: list[dict[str, Any] | str],
    groups: dict[str, Any],
) -> list[Any]:
    """Overlay ``column_kinds`` groups (kind -> [names]) on bare column names."""
    kind_by_name: dict[str, str] = {}
    for kind, names in groups.items():
        for name in names or ():
            kind_by_name[name] = kind

    unknown = set(kind_by_name) - {c if isinstance(c, str) else c["name"] for c in columns}
    if unknown:
        raise ValueError(f"column_kinds references undeclared columns: {sorted(unknown)}")

    merged: list[Any] = []
    for col in columns:
        if isinstance(col, str) and col in kind_by_name:
            merged.append({"name": col, "kind": kind_by_name[col]})
        else:
            merged.append(col)
    return merged


def parse_dataset(data: dict[str, Any]) -> DatasetDef:
    """
    Parse a ``DatasetDef`` from a dict.

    Raises:
        KeyError: if ``name`` or ``columns`` is missing.
        ValueError: if a column kind, normalizer or order direction is invalid.
    """
    raw_columns = list(data["columns"])
    if data.get("column_kinds"):
        raw_columns = _apply_column_groups(raw_columns, data["column_kinds"])

    data_start_row = data.get("data_start_row")
    return DatasetDef(
        name=data["name"],
        columns=tuple(parse_column(c) for c in raw_columns),
        description=data.get("description", ""),
        source_format=data.get("source_format", "csv"),
        delimiter=data.get("delimiter", "|"),
        multi_value_separator=data.get("multi_value_separator"),
        header_row=int(data.get("header_row", 1)),
        data_start_row=int(data_start_row) if data_start_row is not None else None,
        sheet_index=int(data.get("sheet_index", 0)),
        claimable=bool(data.get("claimable", False)),
        flag_columns=_as_tuple(data.get("flag_columns")),
        extra_columns=_as_tuple(data.get("extra_columns")),
        filter_columns=_as_tuple(data.get("filter_columns")),
        order_by=tuple(_parse_order(o) for o in data.get("order_by", ()) or ()),
    )


def load_dataset_defs(directory: Path) -> tuple[DatasetDef, ...]:
    """Load every ``*.yaml`` dataset definition in ``directory`` (sorted by filename)."""
    return tuple(
        parse_dataset(load_yaml_file(path))
        for path in sorted(directory.glob("*.yaml"))
    )
