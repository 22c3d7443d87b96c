"""
XLSX source adapter for spreadsheet exports.

Reads the sheet at ``schema.sheet_index`` with openpyxl in read-only,
values-only mode.  The header is taken from ``schema.header_row`` and data
from ``schema.first_data_row``, so a title row above the header is skipped.

Cell values are stringified: blank -> "", whole floats -> integers,
dates/datetimes -> ISO ``YYYY-MM-DD``.
"""

from __future__ import annotations

import io
import re
import zipfile
from datetime import date, datetime, time
from typing import Any

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from datavault_ingestion.domain.types import (
    MISSING_SHEET,
    UNREADABLE_SOURCE,
    PhysicalRow,
    SourceTable,
    ValidationError,
)
from datavault_kernel.domain.dataset import DatasetSchema


def _normalize_header_cell(value: Any) -> str:
    """Header text with whitespace runs collapsed."""
    return re.sub(r"\s+", " ", cell_to_text(value)).strip()


def cell_to_text(value: Any) -> str:
    """Render an openpyxl cell value as the text a CSV export would hold."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _trim_trailing_blanks(values: list[str]) -> list[str]:
    while values and values[-1] == "":
        values.pop()
    return values


class XlsxSourceAdapter:
    """Read an .xlsx buffer into a SourceTable."""

    def read_table(self, raw: bytes, schema: DatasetSchema) -> SourceTable:
        try:
            wb = openpyxl.load_workbook(io.BytesIO(raw), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
            return self._failed(schema, UNREADABLE_SOURCE, "FILE", f"Not a readable workbook: {exc}")

        try:
            if schema.sheet_index >= len(wb.worksheets):
                return self._failed(
                    schema,
                    MISSING_SHEET,
                    "SHEET",
                    f"Workbook has no sheet at position {schema.sheet_index + 1}",
                )
            sheet = wb.worksheets[schema.sheet_index]

            header: tuple[str, ...] = ()
            rows: list[PhysicalRow] = []
            for row_number, cells in enumerate(
                sheet.iter_rows(min_row=schema.header_row, values_only=True),
                start=schema.header_row,
            ):
                if row_number == schema.header_row:
                    header = tuple(_trim_trailing_blanks([_normalize_header_cell(c) for c in cells]))
                elif row_number >= schema.first_data_row:
                    values = _trim_trailing_blanks([cell_to_text(c) for c in cells])
                    rows.append(PhysicalRow(row_number=row_number, values=tuple(values)))
        finally:
            wb.close()

        return SourceTable(header_row=schema.header_row, header=header, rows=tuple(rows))

    @staticmethod
    def _failed(schema: DatasetSchema, code: str, column: str, message: str) -> SourceTable:
        return SourceTable(
            header_row=schema.header_row,
            header=(),
            rows=(),
            error=ValidationError(code=code, message=message, row=1, column=column),
        )
