#!/usr/bin/env python3
"""
DataVault command line: ingest exports, claim or peek records, list datasets.

Usage:
    python3 scripts/datavault_cli.py [--db-url URL] <command> [options]

Examples:
    # Validate a file without writing
    python3 scripts/datavault_cli.py preview deposits_trxlog trxlog.txt

    # Replace the contents of a dataset with a new export
    python3 scripts/datavault_cli.py ingest deposits_dp10 dp10.txt --replace

    # Claim one unused record (filters are COLUMN=VALUE)
    python3 scripts/datavault_cli.py claim deposits_dp10 MONEDA=USD PLAZO=360

    # Look without claiming
    python3 scripts/datavault_cli.py peek deposit_activity NUM_CERTIFICADO=100045 EXISTS=true

    # Page through records
    python3 scripts/datavault_cli.py list deposits_locked --limit 20

    # Every customer id present in DP10
    python3 scripts/datavault_cli.py distinct deposits_dp10 ID_CUSTOMER

Exit codes: 0 success, 1 rejected upload / not found / usage error,
2 infrastructure failure.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_filters(pairs: list[str]) -> dict[str, str]:
    filters: dict[str, str] = {}
    for pair in pairs:
        column, sep, value = pair.partition("=")
        if not sep or not column:
            raise argparse.ArgumentTypeError(f"Filter must be COLUMN=VALUE, got {pair!r}")
        filters[column.strip()] = value
    return filters


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ingest tabular exports and dispense records claim-once.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--db-url", default=None, help="Database URL (default: DATAVAULT_DATABASE_URL or settings).")
    parser.add_argument("--config", type=Path, default=None, help="Optional settings YAML file.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Emit JSON logs to stderr.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("datasets", help="List configured datasets.")

    for name, help_text in (("ingest", "Validate and load a file."), ("preview", "Validate a file only.")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("dataset")
        p.add_argument("file", type=Path)
        if name == "ingest":
            p.add_argument("--replace", action="store_true", help="Clear the dataset before loading.")
            p.add_argument("--batch-size", type=int, default=None, help="Preferred rows per INSERT.")

    for name, help_text in (("claim", "Claim one unused record."), ("peek", "Find one record without claiming.")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("dataset")
        p.add_argument("filters", nargs="*", help="COLUMN=VALUE pairs.")

    p = sub.add_parser("list", help="Page through records.")
    p.add_argument("dataset")
    p.add_argument("filters", nargs="*", help="COLUMN=VALUE pairs.")
    p.add_argument("--limit", type=int, default=50)
    p.add_argument("--offset", type=int, default=0)
    p.add_argument("--unused-only", action="store_true")

    p = sub.add_parser("distinct", help="List distinct values of one column.")
    p.add_argument("dataset")
    p.add_argument("column")
    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Lazy imports so we fail fast on args first
    from datavault_config import get_dataset_registry, load_settings
    from datavault_ingestion.domain.types import IngestMode
    from datavault_ingestion.services import BulkLoader, IngestionService
    from datavault_kernel.db.engine import init_engine_from_url
    from datavault_kernel.exceptions import DataVaultError, IngestionError
    from datavault_kernel.logging_config import configure_logging
    from datavault_services import ClaimService, RecordSelector

    settings = load_settings(args.config)
    if args.verbose:
        configure_logging(level=settings.log_level)
    registry = get_dataset_registry()

    if args.command == "datasets":
        for schema in registry:
            kind = "claimable" if schema.claimable else "read-only"
            print(f"{schema.name:28} {schema.source_format.value:5} {len(schema.columns):3} columns  {kind}")
        return 0

    try:
        filters = _parse_filters(getattr(args, "filters", []) or [])
    except argparse.ArgumentTypeError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    engine = init_engine_from_url(args.db_url or settings.database_url)

    try:
        if args.command in ("ingest", "preview"):
            if not args.file.is_file():
                print(f"ERROR: File not found: {args.file}", file=sys.stderr)
                return 1
            service = IngestionService(
                engine,
                registry,
                loader=BulkLoader(settings.max_bind_parameters, settings.preferred_batch_size),
            )
            raw = args.file.read_bytes()
            if args.command == "preview":
                preview = service.preview(args.dataset, raw)
                errors = preview.validation_errors
                print(f"Rows: {len(preview.rows)}  Errors: {len(errors)}")
            else:
                mode = IngestMode.REPLACE if args.replace else IngestMode.APPEND
                result = service.ingest(
                    args.dataset,
                    raw,
                    mode=mode,
                    source_name=args.file.name,
                    preferred_batch_size=args.batch_size,
                )
                errors = result.validation_errors
                if result.ok:
                    print(f"Inserted {result.inserted_count} rows into {args.dataset} ({mode.value}).")
            for error in errors[:20]:
                print(f"  Row {error.row} [{error.column}] {error.message}: {error.value!r}")
            if len(errors) > 20:
                print(f"  ... and {len(errors) - 20} more errors.")
            return 1 if errors else 0

        if args.command == "distinct":
            for value in RecordSelector(engine, registry).distinct_values(args.dataset, args.column):
                print(value)
            return 0

        if args.command in ("claim", "peek"):
            claims = ClaimService(engine, registry, max_attempts=settings.claim_max_attempts)
            outcome = claims.find_and_claim(args.dataset, filters, claim=args.command == "claim")
            if not outcome.found:
                print("No matching record.", file=sys.stderr)
                return 1
            _print_json(outcome.record)
            return 0

        page = RecordSelector(engine, registry).list_records(
            args.dataset,
            filters,
            limit=args.limit,
            offset=args.offset,
            unused_only=args.unused_only,
        )
        _print_json({"total": page.total, "offset": page.offset, "records": list(page.records)})
        return 0
    except IngestionError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 2
    except DataVaultError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
