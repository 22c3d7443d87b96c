"""
Row parsing: header validation, blank-row skipping and ragged expansion.

Architecture: datavault_ingestion/domain. ZERO I/O beyond calling the
adapter on an in-memory buffer.

Invariants enforced:
    - The header must equal the dataset's column labels exactly: same count,
      same names, same order.  Any mismatch yields one structural error and
      zero rows.
    - Blank physical rows are skipped, never emitted as empty records.
      The same holds for all-blank rows produced by ragged expansion.
    - Ragged expansion emits max-split-count logical rows per physical row;
      short columns repeat their last split.  Emitted rows stay contiguous
      and in source order.
"""

from __future__ import annotations

from datavault_ingestion.adapters import SourceAdapter, default_adapters
from datavault_ingestion.domain.types import (
    HEADER_COLUMN_COUNT,
    HEADER_MISMATCH,
    TOO_MANY_FIELDS,
    LogicalRow,
    ParseResult,
    PhysicalRow,
    SourceTable,
    ValidationError,
)
from datavault_kernel.domain.dataset import DatasetSchema


def validate_header(
    header: tuple[str, ...],
    schema: DatasetSchema,
) -> ValidationError | None:
    """Return a structural error if ``header`` does not match the schema."""
    received = tuple(cell.strip() for cell in header)
    expected = schema.header_labels
    joined = "|".join(received)

    if len(received) != len(expected):
        return ValidationError(
            code=HEADER_COLUMN_COUNT,
            message=(
                f"Invalid column count for {schema.name}: "
                f"expected {len(expected)}, got {len(received)}"
            ),
            row=schema.header_row,
            column="HEADER",
            value=joined,
        )

    for position, (got, want) in enumerate(zip(received, expected), start=1):
        if got != want:
            return ValidationError(
                code=HEADER_MISMATCH,
                message=(
                    f"Column names or order do not match {schema.name}: "
                    f"position {position} is {got!r}, expected {want!r}"
                ),
                row=schema.header_row,
                column="HEADER",
                value=joined,
            )
    return None


def expand_ragged(record: dict[str, str], separator: str) -> list[dict[str, str]]:
    """
    Split every value on ``separator`` and emit one record per split index.

    For index i and a column with fewer splits, the column's last split is
    repeated.  A record without the separator is returned unchanged.
    """
    splits = {column: value.split(separator) for column, value in record.items()}
    count = max((len(parts) for parts in splits.values()), default=1)
    if count == 1:
        return [record]
    return [
        {column: parts[i] if i < len(parts) else parts[-1] for column, parts in splits.items()}
        for i in range(count)
    ]


def _is_blank(row: PhysicalRow) -> bool:
    return all(not value.strip() for value in row.values)


def parse_table(table: SourceTable, schema: DatasetSchema) -> ParseResult:
    """Validate the header of an adapter result and build logical rows."""
    if table.error is not None:
        return ParseResult(header_error=table.error)

    header_error = validate_header(table.header, schema)
    if header_error is not None:
        return ParseResult(header_error=header_error)

    names = schema.column_names
    width = len(names)
    rows: list[LogicalRow] = []
    errors: list[ValidationError] = []

    for physical in table.rows:
        if _is_blank(physical):
            continue

        values = physical.values
        extras = values[width:]
        if any(extra.strip() for extra in extras):
            errors.append(
                ValidationError(
                    code=TOO_MANY_FIELDS,
                    message=f"Row has {len(values)} fields, expected {width}",
                    row=physical.row_number,
                    column="ROW",
                    value=schema.delimiter.join(extras),
                )
            )
        padded = tuple(values[:width]) + ("",) * max(0, width - len(values))
        record = dict(zip(names, padded))

        if schema.multi_value_separator:
            expanded = [
                r
                for r in expand_ragged(record, schema.multi_value_separator)
                if any(v.strip() for v in r.values())
            ]
        else:
            expanded = [record]
        rows.extend(LogicalRow(row_number=physical.row_number, values=r) for r in expanded)

    return ParseResult(rows=tuple(rows), errors=tuple(errors))


def parse(
    raw: bytes,
    schema: DatasetSchema,
    adapter: SourceAdapter | None = None,
) -> ParseResult:
    """Decode ``raw`` with the adapter for the dataset's format and parse it."""
    if adapter is None:
        adapter = default_adapters()[schema.source_format]
    return parse_table(adapter.read_table(raw, schema), schema)
