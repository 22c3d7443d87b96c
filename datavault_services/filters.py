"""
Search filter normalization shared by claim, listing and flag updates.

Filters are equality predicates on a dataset's declared filter columns,
always combined with AND.  Empty values are dropped (an empty query string
parameter means "not supplied"); flag columns accept booleans and the
strings true/false/1/0, stored as 1/0.
"""

from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import ColumnElement, Table, or_

from datavault_kernel.domain.dataset import USED_COLUMN, DatasetSchema
from datavault_kernel.exceptions import InvalidFilterValueError, UnknownFilterError

FilterValue = str | int | bool | None

_TRUE_STRINGS = frozenset({"true", "1"})
_FALSE_STRINGS = frozenset({"false", "0"})


def _flag_value(schema: DatasetSchema, column: str, value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int) and value in (0, 1):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return 1
    if text in _FALSE_STRINGS:
        return 0
    raise InvalidFilterValueError(schema.name, column, value)


def normalize_filters(
    schema: DatasetSchema,
    filters: Mapping[str, FilterValue] | None,
) -> dict[str, str | int]:
    """
    Validate filter keys and drop empty values.

    Raises:
        UnknownFilterError: a key is not a filter column of the dataset.
        InvalidFilterValueError: a flag filter value is not boolean-like.
    """
    filters = filters or {}
    unknown = tuple(sorted(k for k in filters if k not in schema.filter_columns))
    if unknown:
        raise UnknownFilterError(schema.name, unknown, schema.filter_columns)

    normalized: dict[str, str | int] = {}
    for column, value in filters.items():
        if value is None:
            continue
        if column in schema.flag_columns:
            if isinstance(value, str) and not value.strip():
                continue
            normalized[column] = _flag_value(schema, column, value)
            continue
        text = str(value).strip()
        if text:
            normalized[column] = text
    return normalized


def filter_conditions(table: Table, filters: Mapping[str, str | int]) -> list[ColumnElement[bool]]:
    return [table.c[column] == value for column, value in filters.items()]


def unused_condition(table: Table) -> ColumnElement[bool]:
    """Rows never claimed: USED is NULL or 0."""
    used = table.c[USED_COLUMN]
    return or_(used.is_(None), used == 0)
