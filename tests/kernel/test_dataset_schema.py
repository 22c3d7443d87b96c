"""Tests for dataset schema types and the dataset registry."""

import pytest

from datavault_kernel.domain.dataset import (
    ColumnSpec,
    DatasetSchema,
    OrderSpec,
)
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.exceptions import (
    DatasetAlreadyRegisteredError,
    DatasetNotFoundError,
)
from tests.helpers import make_claimable_schema


class TestDatasetSchema:
    def test_stored_columns_include_extra_flag_and_tracking(self):
        schema = DatasetSchema(
            name="d",
            columns=(ColumnSpec("A"), ColumnSpec("B")),
            extra_columns=("NOTE",),
            flag_columns=("EXISTS",),
            claimable=True,
        )
        assert schema.stored_columns == ("A", "B", "NOTE", "EXISTS", "USED", "TIMES_USED")

    def test_non_claimable_has_no_tracking_columns(self):
        schema = DatasetSchema(name="d", columns=(ColumnSpec("A"),))
        assert schema.tracking_columns == ()
        assert schema.stored_columns == ("A",)

    def test_header_labels_prefer_source_label(self):
        schema = DatasetSchema(
            name="d",
            columns=(ColumnSpec("TRANSACTION_REF", source_label="Transaction Ref"), ColumnSpec("B")),
        )
        assert schema.header_labels == ("Transaction Ref", "B")
        assert schema.column_names == ("TRANSACTION_REF", "B")

    def test_first_data_row_defaults_to_row_after_header(self):
        schema = DatasetSchema(name="d", columns=(ColumnSpec("A"),), header_row=2)
        assert schema.first_data_row == 3

    def test_duplicate_columns_rejected(self):
        with pytest.raises(ValueError, match="duplicate"):
            DatasetSchema(name="d", columns=(ColumnSpec("A"), ColumnSpec("A")))

    def test_unknown_filter_column_rejected(self):
        with pytest.raises(ValueError, match="unknown columns"):
            DatasetSchema(name="d", columns=(ColumnSpec("A"),), filter_columns=("B",))

    def test_unknown_order_column_rejected(self):
        with pytest.raises(ValueError, match="unknown columns"):
            DatasetSchema(name="d", columns=(ColumnSpec("A"),), order_by=(OrderSpec("Z"),))

    def test_data_must_start_after_header(self):
        with pytest.raises(ValueError, match="after the header"):
            DatasetSchema(name="d", columns=(ColumnSpec("A"),), header_row=2, data_start_row=2)

    def test_empty_columns_rejected(self):
        with pytest.raises(ValueError):
            DatasetSchema(name="d", columns=())


class TestDatasetRegistry:
    def test_register_and_get(self):
        schema = make_claimable_schema()
        registry = DatasetRegistry()
        registry.register(schema)
        assert registry.get("claim_test") is schema
        assert registry.has("claim_test")
        assert registry.names() == ("claim_test",)
        assert len(registry) == 1

    def test_missing_dataset_raises(self):
        with pytest.raises(DatasetNotFoundError) as exc_info:
            DatasetRegistry().get("nope")
        assert exc_info.value.code == "DATASET_NOT_FOUND"
        assert exc_info.value.dataset == "nope"

    def test_duplicate_registration_raises(self):
        registry = DatasetRegistry([make_claimable_schema()])
        with pytest.raises(DatasetAlreadyRegisteredError):
            registry.register(make_claimable_schema())

    def test_iterates_in_name_order(self):
        registry = DatasetRegistry([make_claimable_schema("b"), make_claimable_schema("a")])
        assert [s.name for s in registry] == ["a", "b"]
