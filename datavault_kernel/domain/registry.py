"""
Dataset schema registry.

Provides registration and lookup of dataset schemas by name.
This is part of the functional core - no I/O, no database.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from datavault_kernel.domain.dataset import DatasetSchema
from datavault_kernel.exceptions import DatasetAlreadyRegisteredError, DatasetNotFoundError
from datavault_kernel.logging_config import get_logger

logger = get_logger("domain.dataset_registry")


class DatasetRegistry:
    """
    Registry for dataset schemas.

    Usage:
        registry = DatasetRegistry()
        registry.register(schema)
        schema = registry.get("deposits_dp10")
    """

    def __init__(self, schemas: Iterable[DatasetSchema] = ()):
        self._schemas: dict[str, DatasetSchema] = {}
        for schema in schemas:
            self.register(schema)

    def register(self, schema: DatasetSchema) -> None:
        """
        Register a dataset schema.

        Raises:
            DatasetAlreadyRegisteredError: If the name is already taken.
        """
        if schema.name in self._schemas:
            logger.warning("dataset_already_registered", extra={"dataset_name": schema.name})
            raise DatasetAlreadyRegisteredError(schema.name)
        self._schemas[schema.name] = schema
        logger.debug(
            "dataset_registered",
            extra={
                "dataset_name": schema.name,
                "column_count": len(schema.columns),
                "claimable": schema.claimable,
            },
        )

    def get(self, name: str) -> DatasetSchema:
        """
        Get the schema registered under ``name``.

        Raises:
            DatasetNotFoundError: If no such dataset exists.
        """
        try:
            return self._schemas[name]
        except KeyError:
            raise DatasetNotFoundError(name) from None

    def has(self, name: str) -> bool:
        return name in self._schemas

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._schemas))

    def clear(self) -> None:
        """Remove all schemas. FOR TESTING ONLY."""
        self._schemas.clear()

    def __iter__(self) -> Iterator[DatasetSchema]:
        return iter(self._schemas[name] for name in self.names())

    def __len__(self) -> int:
        return len(self._schemas)
