"""
Row normalization and validation, driven by each column's ColumnSpec.

Pipeline per value: trim; strip all whitespace or collapse whitespace runs;
optional uppercase; empty -> None; then required and type checks.  Valid
typed values are stored as text: dates are rewritten to ISO ``YYYY-MM-DD``.

Every problem in a row is reported, not just the first, and errors are
aggregated over the whole upload so a caller can fix everything in one pass.

Architecture: datavault_ingestion/domain. ZERO I/O.
"""

from __future__ import annotations

import re
from typing import Iterable

from datavault_ingestion.domain.types import (
    INVALID_DATE,
    INVALID_DECIMAL,
    INVALID_ENUM,
    INVALID_INTEGER,
    MISSING_REQUIRED_FIELD,
    LogicalRow,
    ValidationError,
)
from datavault_kernel.domain.dataset import ColumnKind, ColumnSpec, DatasetSchema

_WHITESPACE_RUN = re.compile(r"\s+")
DECIMAL_PATTERN = re.compile(r"^-?(?:\d+|\d*\.\d+)(?:[eE][+-]?\d+)?$")
INTEGER_PATTERN = re.compile(r"^-?\d+$")
DATE8_PATTERN = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
DATE10_PATTERN = re.compile(r"^(\d{2})(\d{2})(\d{2})\d{4}$")


def clean_value(raw: str | None, column: ColumnSpec) -> str | None:
    """Apply the textual transforms for ``column``; empty becomes None."""
    if raw is None:
        return None
    value = raw.strip()
    if column.strip_all_whitespace:
        value = _WHITESPACE_RUN.sub("", value)
    elif column.collapse_whitespace:
        value = _WHITESPACE_RUN.sub(" ", value)
    if column.uppercase:
        value = value.upper()
    return value or None


def _check_kind(value: str, column: ColumnSpec) -> tuple[str | None, str | None, str]:
    """Return (normalized, error_code, message)."""
    kind = column.kind
    if kind == ColumnKind.DECIMAL:
        if DECIMAL_PATTERN.match(value):
            return value, None, ""
        return None, INVALID_DECIMAL, "Must be a decimal number"
    if kind == ColumnKind.INTEGER:
        if INTEGER_PATTERN.match(value):
            return value, None, ""
        return None, INVALID_INTEGER, "Must be a whole number"
    if kind == ColumnKind.DATE8:
        match = DATE8_PATTERN.match(value)
        if match:
            return "-".join(match.groups()), None, ""
        return None, INVALID_DATE, "Must be a date formatted YYYYMMDD"
    if kind == ColumnKind.DATE10:
        match = DATE10_PATTERN.match(value)
        if match:
            yy, mm, dd = match.groups()
            return f"20{yy}-{mm}-{dd}", None, ""
        return None, INVALID_DATE, "Must be a date formatted YYMMDDHHMM"
    if kind == ColumnKind.ENUM:
        if value in column.allowed_values:
            return value, None, ""
        return None, INVALID_ENUM, f"Must be one of: {', '.join(column.allowed_values)}"
    return value, None, ""


def normalize(
    row: LogicalRow,
    schema: DatasetSchema,
) -> tuple[dict[str, str | None], list[ValidationError]]:
    """Normalize one logical row. Returns the record and all of its errors."""
    normalized: dict[str, str | None] = {}
    errors: list[ValidationError] = []

    for column in schema.columns:
        raw = row.values.get(column.name, "")
        value = clean_value(raw, column)

        if value is None:
            if column.required:
                errors.append(
                    ValidationError(
                        code=MISSING_REQUIRED_FIELD,
                        message=f"{column.name} is required",
                        row=row.row_number,
                        column=column.name,
                        value=raw,
                    )
                )
            normalized[column.name] = None
            continue

        typed, code, message = _check_kind(value, column)
        if code is not None:
            errors.append(
                ValidationError(
                    code=code,
                    message=message,
                    row=row.row_number,
                    column=column.name,
                    value=value,
                )
            )
        normalized[column.name] = typed

    return normalized, errors


def validate_rows(
    rows: Iterable[LogicalRow],
    schema: DatasetSchema,
) -> tuple[list[dict[str, str | None]], list[ValidationError]]:
    """Normalize every row, aggregating errors across the whole upload."""
    records: list[dict[str, str | None]] = []
    errors: list[ValidationError] = []
    for row in rows:
        record, row_errors = normalize(row, schema)
        records.append(record)
        errors.extend(row_errors)
    return records, errors
