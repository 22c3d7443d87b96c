"""Shared builders for DataVault tests."""

import io

import openpyxl

from datavault_kernel.domain.dataset import (
    ColumnKind,
    ColumnSpec,
    DatasetSchema,
    OrderSpec,
)


def make_claimable_schema(name: str = "claim_test") -> DatasetSchema:
    return DatasetSchema(
        name=name,
        columns=(
            ColumnSpec("CONTRACT", required=True),
            ColumnSpec("CURRENCY", uppercase=True),
            ColumnSpec("AMOUNT", kind=ColumnKind.DECIMAL),
            ColumnSpec("OPENED", kind=ColumnKind.DATE8),
        ),
        claimable=True,
        flag_columns=("EXISTS",),
        filter_columns=("CONTRACT", "CURRENCY", "EXISTS"),
        order_by=(OrderSpec("OPENED", descending=True),),
    )


CLAIM_HEADER = ["CONTRACT", "CURRENCY", "AMOUNT", "OPENED"]


def pipe_file(header: list[str], rows: list[list[str]]) -> bytes:
    """Build a pipe-delimited upload."""
    lines = ["|".join(header)] + ["|".join(r) for r in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


def xlsx_file(rows: list[list[object]], sheet_title: str = "Sheet1") -> bytes:
    """Build an in-memory workbook whose first sheet holds ``rows`` from A1."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_title
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


_SAMPLE_BY_KIND = {
    ColumnKind.TEXT: "X",
    ColumnKind.DECIMAL: "10.00",
    ColumnKind.INTEGER: "1",
    ColumnKind.DATE8: "20240115",
    ColumnKind.DATE10: "2401151230",
}


def sample_row(schema: DatasetSchema, **overrides: str) -> list[str]:
    """One valid source row for ``schema``, in column order."""
    row = []
    for column in schema.columns:
        if column.name in overrides:
            row.append(overrides[column.name])
        elif column.kind == ColumnKind.ENUM:
            row.append(column.allowed_values[0])
        else:
            row.append(_SAMPLE_BY_KIND[column.kind])
    return row
