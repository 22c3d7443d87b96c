"""
Delimited-text source adapter.

Decodes UTF-8 (a leading BOM is dropped via utf-8-sig) and reads with
csv.reader using the dataset delimiter and no quote handling: exports
contain literal quote characters that must survive untouched. Lines before
the declared header row are skipped.
"""

from __future__ import annotations

import csv
import io

from datavault_ingestion.domain.types import (
    UNREADABLE_SOURCE,
    PhysicalRow,
    SourceTable,
    ValidationError,
)
from datavault_kernel.domain.dataset import DatasetSchema


class CsvSourceAdapter:
    """Read delimited bytes into a SourceTable."""

    encoding = "utf-8-sig"

    def read_table(self, raw: bytes, schema: DatasetSchema) -> SourceTable:
        try:
            content = raw.decode(self.encoding)
        except UnicodeDecodeError as exc:
            return SourceTable(
                header_row=schema.header_row,
                header=(),
                rows=(),
                error=ValidationError(
                    code=UNREADABLE_SOURCE,
                    message=f"File is not valid UTF-8 text (byte offset {exc.start})",
                    row=1,
                    column="FILE",
                ),
            )

        reader = csv.reader(
            io.StringIO(content, newline=""),
            delimiter=schema.delimiter,
            quoting=csv.QUOTE_NONE,
        )
        header: tuple[str, ...] = ()
        rows: list[PhysicalRow] = []
        for record in reader:
            line = reader.line_num
            if line < schema.header_row:
                continue
            if line == schema.header_row:
                header = tuple(record)
            elif line >= schema.first_data_row:
                rows.append(PhysicalRow(row_number=line, values=tuple(record)))

        return SourceTable(header_row=schema.header_row, header=header, rows=tuple(rows))
