"""
Pytest fixtures for the DataVault test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- ``captured_logs`` for asserting on JSON log records
- A file-backed SQLite engine per test (``engine``)
- The packaged dataset registry and small hand-built schemas

Environment Variables:
- DATAVAULT_TEST_DATABASE_URL: when set, tests marked ``postgres`` run
  against this PostgreSQL URL instead of being skipped.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.engine import Engine

from datavault_config import get_dataset_registry
from datavault_kernel.db.engine import create_engine_from_url
from datavault_kernel.domain.dataset import DatasetSchema
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.helpers import make_claimable_schema


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture datavault logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ingestion_service):
            ingestion_service.ingest(...)
            logs = captured_logs()
            assert any(r["message"] == "ingest_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("datavault")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    """Fresh SQLite database file per test."""
    eng = create_engine_from_url(f"sqlite:///{tmp_path / 'datavault.db'}")
    yield eng
    eng.dispose()


@pytest.fixture
def postgres_engine() -> Generator[Engine, None, None]:
    url = os.environ.get("DATAVAULT_TEST_DATABASE_URL")
    if not url:
        pytest.skip("DATAVAULT_TEST_DATABASE_URL not set")
    eng = create_engine_from_url(url)
    yield eng
    eng.dispose()


# =============================================================================
# Schemas
# =============================================================================


@pytest.fixture(scope="session")
def packaged_registry() -> DatasetRegistry:
    return get_dataset_registry()


@pytest.fixture
def claimable_schema() -> DatasetSchema:
    return make_claimable_schema()


@pytest.fixture
def registry(claimable_schema) -> DatasetRegistry:
    return DatasetRegistry([claimable_schema])
