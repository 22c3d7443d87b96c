"""Tests for paginated record listing."""

import pytest

from datavault_ingestion.services import IngestionService
from datavault_kernel.exceptions import DatasetNotFoundError, UnknownFilterError
from datavault_services import ClaimService, RecordSelector
from datavault_services.record_selector import MAX_PAGE_SIZE
from tests.helpers import CLAIM_HEADER, pipe_file, sample_row


@pytest.fixture
def selector(engine, registry) -> RecordSelector:
    rows = [
        ["C1", "usd", "10", "20240103"],
        ["C2", "usd", "20", "20240101"],
        ["C3", "eur", "30", "20240105"],
        ["C4", "usd", "40", "20240103"],
        ["C5", "usd", "50", "20240102"],
    ]
    IngestionService(engine, registry).ingest("claim_test", pipe_file(CLAIM_HEADER, rows))
    return RecordSelector(engine, registry)


class TestListRecords:
    def test_ordered_by_declared_columns_then_insertion(self, selector):
        page = selector.list_records("claim_test")
        assert [r["CONTRACT"] for r in page.records] == ["C3", "C1", "C4", "C5", "C2"]
        assert page.total == 5
        assert not page.has_more

    def test_pagination(self, selector):
        first = selector.list_records("claim_test", limit=2)
        second = selector.list_records("claim_test", limit=2, offset=2)
        assert [r["CONTRACT"] for r in first.records] == ["C3", "C1"]
        assert [r["CONTRACT"] for r in second.records] == ["C4", "C5"]
        assert first.has_more and second.has_more
        assert second.total == 5

    def test_filters(self, selector):
        page = selector.list_records("claim_test", {"CURRENCY": "USD"})
        assert page.total == 4

    def test_ranges_inclusive(self, selector):
        page = selector.list_records("claim_test", ranges={"OPENED": ("2024-01-02", "2024-01-03")})
        assert sorted(r["CONTRACT"] for r in page.records) == ["C1", "C4", "C5"]

    def test_unknown_range_column(self, selector):
        with pytest.raises(UnknownFilterError):
            selector.list_records("claim_test", ranges={"NOPE": ("a", "b")})

    def test_unknown_filter(self, selector):
        with pytest.raises(UnknownFilterError):
            selector.list_records("claim_test", {"AMOUNT": "10"})

    def test_unused_only(self, selector, engine, registry):
        ClaimService(engine, registry).find_and_claim("claim_test", {"CONTRACT": "C3"})
        page = selector.list_records("claim_test", unused_only=True)
        assert page.total == 4
        assert "C3" not in {r["CONTRACT"] for r in page.records}

    def test_limit_clamped(self, selector):
        assert selector.list_records("claim_test", limit=10**6).limit == MAX_PAGE_SIZE
        assert selector.list_records("claim_test", limit=0).limit == 1

    def test_row_id_hidden(self, selector):
        record = selector.list_records("claim_test", limit=1).records[0]
        assert "_row_id" not in record
        assert set(record) == {"CONTRACT", "CURRENCY", "AMOUNT", "OPENED", "EXISTS", "USED", "TIMES_USED"}

    def test_count(self, selector):
        assert selector.count("claim_test", {"CONTRACT": "C2"}) == 1

    def test_unknown_dataset(self, selector):
        with pytest.raises(DatasetNotFoundError):
            selector.list_records("nope")

    def test_empty_dataset(self, engine, registry):
        page = RecordSelector(engine, registry).list_records("claim_test")
        assert page.records == ()
        assert page.total == 0


class TestDistinctValues:
    def test_sorted_unique(self, selector):
        assert selector.distinct_values("claim_test", "CURRENCY") == ("EUR", "USD")
        assert selector.distinct_values("claim_test", "OPENED") == (
            "2024-01-01",
            "2024-01-02",
            "2024-01-03",
            "2024-01-05",
        )

    def test_blank_values_skipped(self, selector, engine, registry):
        IngestionService(engine, registry).ingest(
            "claim_test", pipe_file(CLAIM_HEADER, [["C6", "", "1", "20240101"]])
        )
        assert selector.distinct_values("claim_test", "CURRENCY") == ("EUR", "USD")

    def test_unknown_column(self, selector):
        with pytest.raises(UnknownFilterError):
            selector.distinct_values("claim_test", "NOPE")

    def test_empty_dataset(self, engine, registry):
        assert RecordSelector(engine, registry).distinct_values("claim_test", "CONTRACT") == ()

    def test_dp10_customers(self, engine, packaged_registry):
        schema = packaged_registry.get("deposits_dp10")
        rows = [
            sample_row(schema, NUMERO_CONTRATO=f"DP{i}", ID_CUSTOMER=customer)
            for i, customer in enumerate(["CU2", "CU1", "CU2", ""])
        ]
        IngestionService(engine, packaged_registry).ingest(
            "deposits_dp10", pipe_file(list(schema.header_labels), rows)
        )
        selector = RecordSelector(engine, packaged_registry)
        assert selector.distinct_values("deposits_dp10", "ID_CUSTOMER") == ("CU1", "CU2")
