"""Tests for claim-once dispensing and peek."""

import threading

import pytest

from datavault_ingestion.services import IngestionService
from datavault_kernel.db.engine import connection_scope
from datavault_kernel.db.tables import dataset_table
from datavault_kernel.domain.dataset import ColumnSpec, DatasetSchema
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.exceptions import (
    ClaimContentionError,
    DatasetNotClaimableError,
    InvalidFilterValueError,
    NoFiltersError,
    UnknownFilterError,
)
from datavault_services import ClaimService, ClaimStatus, FlagService
from tests.helpers import CLAIM_HEADER, pipe_file


@pytest.fixture
def loaded(engine, registry):
    rows = [
        ["C1", "usd", "10", "20240101"],
        ["C2", "usd", "20", "20240102"],
        ["C3", "eur", "30", "20240103"],
    ]
    IngestionService(engine, registry).ingest("claim_test", pipe_file(CLAIM_HEADER, rows))
    return engine


@pytest.fixture
def claims(loaded, registry) -> ClaimService:
    return ClaimService(loaded, registry)


class TestClaim:
    def test_claim_marks_record_used(self, claims):
        result = claims.find_and_claim("claim_test", {"CONTRACT": "C1"})
        assert result.status == ClaimStatus.CLAIMED
        assert result.record["CONTRACT"] == "C1"
        assert result.record["USED"] == 1
        assert result.record["TIMES_USED"] == 1
        assert "_row_id" not in result.record

    def test_record_claimed_at_most_once(self, claims):
        assert claims.find_and_claim("claim_test", {"CONTRACT": "C1"}).found
        second = claims.find_and_claim("claim_test", {"CONTRACT": "C1"})
        assert second.status == ClaimStatus.NOT_FOUND
        assert second.record is None

    def test_claims_in_insertion_order(self, claims):
        first = claims.find_and_claim("claim_test", {"CURRENCY": "USD"})
        second = claims.find_and_claim("claim_test", {"CURRENCY": "USD"})
        third = claims.find_and_claim("claim_test", {"CURRENCY": "USD"})
        assert [first.record["CONTRACT"], second.record["CONTRACT"]] == ["C1", "C2"]
        assert not third.found

    def test_filters_are_combined(self, claims):
        assert not claims.find_and_claim("claim_test", {"CONTRACT": "C3", "CURRENCY": "USD"}).found
        assert claims.find_and_claim("claim_test", {"CONTRACT": "C3", "CURRENCY": "EUR"}).found

    def test_filter_values_trimmed(self, claims):
        assert claims.find_and_claim("claim_test", {"CONTRACT": " C2 "}).record["CONTRACT"] == "C2"

    def test_claim_logged(self, claims, captured_logs):
        claims.find_and_claim("claim_test", {"CONTRACT": "C1"})
        claimed = [r for r in captured_logs() if r["message"] == "record_claimed"]
        assert claimed[0]["dataset"] == "claim_test"
        assert claimed[0]["times_used"] == 1


class TestPeek:
    def test_peek_does_not_modify(self, claims):
        first = claims.peek("claim_test", {"CONTRACT": "C1"})
        second = claims.peek("claim_test", {"CONTRACT": "C1"})
        assert first.status == ClaimStatus.PEEKED
        assert first.record == second.record
        assert first.record["USED"] == 0
        assert claims.find_and_claim("claim_test", {"CONTRACT": "C1"}).found

    def test_peek_sees_claimed_records(self, claims):
        claims.find_and_claim("claim_test", {"CONTRACT": "C1"})
        peeked = claims.peek("claim_test", {"CONTRACT": "C1"})
        assert peeked.record["USED"] == 1
        assert peeked.record["TIMES_USED"] == 1

    def test_peek_no_match(self, claims):
        assert claims.peek("claim_test", {"CONTRACT": "nope"}).status == ClaimStatus.NOT_FOUND

    def test_peek_allowed_on_read_only_dataset(self, engine):
        schema = DatasetSchema(name="plain", columns=(ColumnSpec("K"),), filter_columns=("K",))
        registry = DatasetRegistry([schema])
        IngestionService(engine, registry).ingest("plain", pipe_file(["K"], [["a"]]))
        claims = ClaimService(engine, registry)

        assert claims.peek("plain", {"K": "a"}).record == {"K": "a"}
        with pytest.raises(DatasetNotClaimableError):
            claims.find_and_claim("plain", {"K": "a"})


class TestFilterValidation:
    @pytest.mark.parametrize("filters", [None, {}, {"CONTRACT": ""}, {"CONTRACT": "  ", "CURRENCY": None}])
    def test_no_filters_rejected(self, claims, filters):
        with pytest.raises(NoFiltersError):
            claims.find_and_claim("claim_test", filters)

    def test_no_filters_rejected_for_peek(self, claims):
        with pytest.raises(NoFiltersError):
            claims.peek("claim_test", {})

    def test_unknown_filter_rejected(self, claims):
        with pytest.raises(UnknownFilterError) as exc_info:
            claims.find_and_claim("claim_test", {"AMOUNT": "10", "CONTRACT": "C1"})
        assert exc_info.value.columns == ("AMOUNT",)
        assert exc_info.value.code == "UNKNOWN_FILTER"

    def test_invalid_flag_value_rejected(self, claims):
        with pytest.raises(InvalidFilterValueError):
            claims.find_and_claim("claim_test", {"EXISTS": "maybe"})

    def test_max_attempts_validated(self, engine, registry):
        with pytest.raises(ValueError):
            ClaimService(engine, registry, max_attempts=0)


class TestFlagFilters:
    def test_claim_by_flag(self, claims, loaded, registry):
        FlagService(loaded, registry).set_flag("claim_test", "EXISTS", True, "CONTRACT", ["C2"])

        flagged = claims.find_and_claim("claim_test", {"EXISTS": "true"})
        assert flagged.record["CONTRACT"] == "C2"
        assert flagged.record["EXISTS"] == 1
        unflagged = claims.find_and_claim("claim_test", {"EXISTS": False, "CURRENCY": "USD"})
        assert unflagged.record["CONTRACT"] == "C1"


class TestRaces:
    def test_lost_update_returns_none(self, claims, loaded, claimable_schema):
        claims.find_and_claim("claim_test", {"CONTRACT": "C1"})
        with connection_scope(loaded) as conn:
            table = dataset_table(claimable_schema)
            assert ClaimService._mark_used(conn, table, 1) is None

    def test_contention_exhausted(self, loaded, registry, monkeypatch, captured_logs):
        monkeypatch.setattr(ClaimService, "_mark_used", staticmethod(lambda conn, table, row_id: None))
        claims = ClaimService(loaded, registry, max_attempts=3)

        with pytest.raises(ClaimContentionError) as exc_info:
            claims.find_and_claim("claim_test", {"CONTRACT": "C1"})

        assert exc_info.value.attempts == 3
        retries = [r for r in captured_logs() if r["message"] == "claim_race_retry"]
        assert [r["attempt"] for r in retries] == [1, 2, 3]

    def test_concurrent_claimers_never_share_a_record(self, engine, registry):
        rows = [[f"T{i}", "usd", "1", "20240101"] for i in range(20)]
        IngestionService(engine, registry).ingest("claim_test", pipe_file(CLAIM_HEADER, rows))
        claims = ClaimService(engine, registry, max_attempts=100)

        claimed: list[str] = []
        lock = threading.Lock()
        errors: list[BaseException] = []

        def worker():
            try:
                while True:
                    result = claims.find_and_claim("claim_test", {"CURRENCY": "USD"})
                    if not result.found:
                        return
                    with lock:
                        claimed.append(result.record["CONTRACT"])
            except BaseException as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(claimed) == sorted(f"T{i}" for i in range(20))

    def test_table_checked_once_across_threads(self, loaded, registry, monkeypatch):
        import datavault_services.claim_service as claim_module

        calls: list[str] = []
        real_ensure = claim_module.ensure_table

        def counting_ensure(conn, schema):
            calls.append(schema.name)
            return real_ensure(conn, schema)

        monkeypatch.setattr(claim_module, "ensure_table", counting_ensure)
        claims = ClaimService(loaded, registry)
        barrier = threading.Barrier(6)
        found: list[bool] = []

        def worker():
            barrier.wait()
            found.append(claims.peek("claim_test", {"CONTRACT": "C1"}).found)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert found == [True] * 6
        assert calls == ["claim_test"]
