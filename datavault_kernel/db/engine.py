"""
Module: datavault_kernel.db.engine
Responsibility: SQLAlchemy engine initialization and transactional scope
    utilities.  This is the single point of database connection
    configuration for the whole system.
Architecture position: Kernel > DB.  MUST NOT import from datavault_config,
    datavault_ingestion or datavault_services.

Invariants enforced:
    - PostgreSQL connections run at READ COMMITTED; claim correctness relies
      on conditional single-row updates, not on serializable isolation.
    - SQLite (local use and tests) gets a busy timeout so concurrent writers
      wait for the lock instead of failing immediately.
    - connection_scope() commits on success and rolls back on any exception.

Failure modes:
    - RuntimeError if get_engine/connection_scope called before
      init_engine_from_url().
    - OperationalError / DBAPIError from the driver propagate unchanged.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine, make_url

from datavault_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def create_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
) -> Engine:
    """
    Build an engine with dialect-appropriate settings, without installing it
    as the module-level engine.

    Args:
        database_url: SQLAlchemy URL (postgresql+psycopg2://..., sqlite:///...)
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (PostgreSQL only).
        max_overflow: Connections beyond pool_size (PostgreSQL only).
        pool_pre_ping: Test connections before use.
    """
    url = make_url(database_url)
    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": pool_pre_ping}
    if url.get_backend_name() == "sqlite":
        # Pooled connections move between threads.
        kwargs["connect_args"] = {
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
            "check_same_thread": False,
        }
    else:
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            isolation_level="READ COMMITTED",
        )
    return create_engine(url, **kwargs)


def init_engine_from_url(database_url: str, echo: bool = False, **kwargs: Any) -> Engine:
    """
    Initialize the module-level engine.

    Postconditions: get_engine() returns the new engine.  A second call
        replaces (and disposes) the previous engine.
    """
    global _engine

    if _engine is not None:
        _engine.dispose()
    _engine = create_engine_from_url(database_url, echo=echo, **kwargs)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


@contextmanager
def connection_scope(engine: Engine | None = None) -> Generator[Connection, None, None]:
    """
    Provide a transactional scope around a series of statements.

    Postconditions: On normal exit the transaction is committed.  On
        exception it is rolled back and the exception is re-raised.

    Usage:
        with connection_scope() as conn:
            conn.execute(stmt)
    """
    engine = engine or get_engine()
    conn = engine.connect()
    trans = conn.begin()
    logger.debug("transaction_started")
    try:
        yield conn
        trans.commit()
        logger.debug("transaction_committed")
    except Exception:
        trans.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        conn.close()


def reset_engine() -> None:
    """
    Dispose and forget the module-level engine.

    Useful for test cleanup.
    """
    global _engine

    if _engine is not None:
        _engine.dispose()
        _engine = None


def _atexit_dispose() -> None:
    """Dispose the engine on process exit to release pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)
