"""
Typed exception hierarchy for DataVault.

Every error raised by the core is a subclass of ``DataVaultError`` carrying a
machine-readable ``code`` class attribute and its context as attributes, so
callers catch by type and report by code instead of parsing messages.

Data-quality problems found while parsing or normalizing an upload are NOT
exceptions: they are collected as ``ValidationError`` values and returned in
the ingestion result. Only caller mistakes and infrastructure failures raise.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DataVaultError (base)
    |
    +-- DatasetError
    |   +-- DatasetNotFoundError
    |   +-- DatasetAlreadyRegisteredError
    |   +-- DatasetNotClaimableError
    |
    +-- IngestionError
    |   +-- BulkLoadError
    |
    +-- ClaimError
    |   +-- NoFiltersError
    |   +-- UnknownFilterError
    |   +-- InvalidFilterValueError
    |   +-- UnknownFlagError
    |   +-- UnknownExtraColumnError
    |
    +-- ConcurrencyError
    |   +-- ClaimContentionError
    |
    +-- RateLimitError
        +-- RateLimitExceededError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|-----------------------------------
Dataset      | DATASET_NOT_FOUND          | Unknown dataset name
             | DATASET_ALREADY_REGISTERED | Same dataset registered twice
             | DATASET_NOT_CLAIMABLE      | Claim on a dataset without USED
-------------|----------------------------|-----------------------------------
Ingestion    | BULK_LOAD_FAILED           | Store failure during insert/clear
-------------|----------------------------|-----------------------------------
Claim        | NO_FILTERS                 | Claim/peek with zero filters
             | UNKNOWN_FILTER             | Filter on a non-filter column
             | INVALID_FILTER_VALUE       | Flag filter not true/false/1/0
             | UNKNOWN_FLAG               | Flag update on a non-flag column
             | UNKNOWN_EXTRA_COLUMN       | Text update on a non-extra column
-------------|----------------------------|-----------------------------------
Concurrency  | CLAIM_CONTENTION           | Claim lost every retry to racers
-------------|----------------------------|-----------------------------------
Rate limit   | RATE_LIMIT_EXCEEDED        | Identity over its window quota
"""


class DataVaultError(Exception):
    """Base exception for all DataVault errors."""

    code: str = "DATAVAULT_ERROR"


# Dataset-related exceptions


class DatasetError(DataVaultError):
    """Base exception for dataset registry errors."""

    code: str = "DATASET_ERROR"


class DatasetNotFoundError(DatasetError):
    """No dataset registered under the given name."""

    code: str = "DATASET_NOT_FOUND"

    def __init__(self, dataset: str):
        self.dataset = dataset
        super().__init__(f"Dataset not found: {dataset}")


class DatasetAlreadyRegisteredError(DatasetError):
    """A dataset with the same name is already registered."""

    code: str = "DATASET_ALREADY_REGISTERED"

    def __init__(self, dataset: str):
        self.dataset = dataset
        super().__init__(f"Dataset already registered: {dataset}")


class DatasetNotClaimableError(DatasetError):
    """Claim requested on a dataset that does not track usage."""

    code: str = "DATASET_NOT_CLAIMABLE"

    def __init__(self, dataset: str):
        self.dataset = dataset
        super().__init__(f"Dataset {dataset} does not support claiming")


# Ingestion-related exceptions


class IngestionError(DataVaultError):
    """Base exception for ingestion infrastructure failures."""

    code: str = "INGESTION_ERROR"


class BulkLoadError(IngestionError):
    """
    The store rejected an insert or clear; the transaction was rolled back.

    The message is deliberately generic. The underlying driver error is
    chained as ``__cause__`` and logged, never surfaced to callers.
    """

    code: str = "BULK_LOAD_FAILED"

    def __init__(self, dataset: str, operation: str):
        self.dataset = dataset
        self.operation = operation
        super().__init__(f"Failed to {operation} dataset {dataset}; no rows were committed")


# Claim-related exceptions


class ClaimError(DataVaultError):
    """Base exception for claim request errors."""

    code: str = "CLAIM_ERROR"


class NoFiltersError(ClaimError):
    """A claim or peek was requested without any search parameter."""

    code: str = "NO_FILTERS"

    def __init__(self, dataset: str):
        self.dataset = dataset
        super().__init__(f"At least one search parameter is required for {dataset}")


class UnknownFilterError(ClaimError):
    """One or more filters name columns that are not searchable."""

    code: str = "UNKNOWN_FILTER"

    def __init__(self, dataset: str, columns: tuple[str, ...], allowed: tuple[str, ...]):
        self.dataset = dataset
        self.columns = columns
        self.allowed = allowed
        super().__init__(
            f"Unsupported filter(s) for {dataset}: {', '.join(columns)}. "
            f"Allowed: {', '.join(allowed)}"
        )


class InvalidFilterValueError(ClaimError):
    """A flag filter value is not a boolean or one of true/false/1/0."""

    code: str = "INVALID_FILTER_VALUE"

    def __init__(self, dataset: str, column: str, value: object):
        self.dataset = dataset
        self.column = column
        self.value = value
        super().__init__(f"Invalid value for {column} in {dataset}: {value!r}")


class UnknownFlagError(ClaimError):
    """A flag update names a column that is not a flag of the dataset."""

    code: str = "UNKNOWN_FLAG"

    def __init__(self, dataset: str, flag: str, allowed: tuple[str, ...]):
        self.dataset = dataset
        self.flag = flag
        self.allowed = allowed
        super().__init__(
            f"{flag} is not a flag column of {dataset}. Allowed: {', '.join(allowed) or 'none'}"
        )


class UnknownExtraColumnError(ClaimError):
    """A text update names a column that is not an extra column of the dataset."""

    code: str = "UNKNOWN_EXTRA_COLUMN"

    def __init__(self, dataset: str, column: str, allowed: tuple[str, ...]):
        self.dataset = dataset
        self.column = column
        self.allowed = allowed
        super().__init__(
            f"{column} is not an updatable column of {dataset}. "
            f"Allowed: {', '.join(allowed) or 'none'}"
        )


# Concurrency-related exceptions


class ConcurrencyError(DataVaultError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ClaimContentionError(ConcurrencyError):
    """Every claim attempt lost the conditional update to a concurrent claimer."""

    code: str = "CLAIM_CONTENTION"

    def __init__(self, dataset: str, attempts: int):
        self.dataset = dataset
        self.attempts = attempts
        super().__init__(
            f"Could not claim a record from {dataset} after {attempts} attempts"
        )


# Rate-limit exceptions


class RateLimitError(DataVaultError):
    """Base exception for rate limiting."""

    code: str = "RATE_LIMIT_ERROR"


class RateLimitExceededError(RateLimitError):
    """The identity exhausted its quota for the current window."""

    code: str = "RATE_LIMIT_EXCEEDED"

    def __init__(self, identity: str, retry_after_seconds: int):
        self.identity = identity
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Too many requests. Retry in {retry_after_seconds} seconds"
        )
