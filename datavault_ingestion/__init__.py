"""
datavault_ingestion -- Schema-validated ingestion of tabular exports.

Decodes pipe-delimited text and spreadsheet uploads, validates headers and
rows against the dataset schema, and loads valid uploads all-or-nothing.

Architecture:
    adapters/  bytes -> header + physical rows (no DB)
    domain/    parsing, ragged expansion, normalization (no I/O)
    services/  bulk loader and ingestion orchestration (DB)
"""
