"""Tests for scripts/datavault_cli.py."""

import importlib.util
import json
from pathlib import Path

import pytest

from datavault_kernel.db.engine import reset_engine
from tests.helpers import pipe_file, sample_row

CLI_PATH = Path(__file__).resolve().parent.parent / "scripts" / "datavault_cli.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("datavault_cli", CLI_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def db_args(tmp_path):
    yield ["--db-url", f"sqlite:///{tmp_path / 'cli.db'}"]
    reset_engine()


@pytest.fixture
def locked_file(tmp_path, packaged_registry) -> Path:
    schema = packaged_registry.get("deposits_locked")
    rows = [sample_row(schema, ID_BLOQUEO=f"B{i}") for i in range(3)]
    path = tmp_path / "locked.txt"
    path.write_bytes(pipe_file(list(schema.header_labels), rows))
    return path


class TestCli:
    def test_datasets(self, cli, capsys):
        assert cli.main(["datasets"]) == 0
        out = capsys.readouterr().out
        assert "deposits_dp10" in out
        assert "client_exonerated" in out

    def test_ingest_then_claim(self, cli, db_args, locked_file, capsys):
        assert cli.main(db_args + ["ingest", "deposits_locked", str(locked_file), "--replace"]) == 0
        assert "Inserted 3 rows" in capsys.readouterr().out

        assert cli.main(db_args + ["claim", "deposits_locked", "ID_BLOQUEO=B1"]) == 0
        record = json.loads(capsys.readouterr().out)
        assert record["ID_BLOQUEO"] == "B1"
        assert record["USED"] == 1

        assert cli.main(db_args + ["claim", "deposits_locked", "ID_BLOQUEO=B1"]) == 1
        assert cli.main(db_args + ["peek", "deposits_locked", "ID_BLOQUEO=B1"]) == 0

    def test_list(self, cli, db_args, locked_file, capsys):
        cli.main(db_args + ["ingest", "deposits_locked", str(locked_file)])
        capsys.readouterr()
        assert cli.main(db_args + ["list", "deposits_locked", "--limit", "2"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["total"] == 3
        assert len(payload["records"]) == 2

    def test_distinct(self, cli, db_args, locked_file, capsys):
        cli.main(db_args + ["ingest", "deposits_locked", str(locked_file)])
        capsys.readouterr()
        assert cli.main(db_args + ["distinct", "deposits_locked", "ID_BLOQUEO"]) == 0
        assert capsys.readouterr().out.split() == ["B0", "B1", "B2"]

        assert cli.main(db_args + ["distinct", "deposits_locked", "NOPE"]) == 1
        assert "UNKNOWN_FILTER" in capsys.readouterr().err

    def test_preview_reports_errors(self, cli, db_args, tmp_path, capsys):
        bad = tmp_path / "bad.txt"
        bad.write_bytes(b"WRONG|HEADER\n1|2\n")
        assert cli.main(db_args + ["preview", "deposits_locked", str(bad)]) == 1
        assert "Row 1 [HEADER]" in capsys.readouterr().out

    def test_claim_without_filters(self, cli, db_args, capsys):
        assert cli.main(db_args + ["claim", "deposits_locked"]) == 1
        assert "NO_FILTERS" in capsys.readouterr().err

    def test_malformed_filter(self, cli, db_args, capsys):
        assert cli.main(db_args + ["claim", "deposits_locked", "ID_BLOQUEO"]) == 1
        assert "COLUMN=VALUE" in capsys.readouterr().err

    def test_missing_file(self, cli, db_args, tmp_path, capsys):
        assert cli.main(db_args + ["ingest", "deposits_locked", str(tmp_path / "nope.txt")]) == 1
