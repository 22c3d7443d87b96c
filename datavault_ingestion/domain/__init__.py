"""Pure ingestion domain: result types, parsing and normalization."""
