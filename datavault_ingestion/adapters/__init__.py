"""Source adapters (byte decoding only, no DB)."""

from datavault_ingestion.adapters.base import SourceAdapter
from datavault_ingestion.adapters.csv_adapter import CsvSourceAdapter
from datavault_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter
from datavault_kernel.domain.dataset import SourceFormat


def default_adapters() -> dict[SourceFormat, SourceAdapter]:
    return {
        SourceFormat.CSV: CsvSourceAdapter(),
        SourceFormat.XLSX: XlsxSourceAdapter(),
    }


__all__ = [
    "CsvSourceAdapter",
    "SourceAdapter",
    "XlsxSourceAdapter",
    "default_adapters",
]
