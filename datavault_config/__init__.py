"""
datavault_config -- dataset definitions and runtime settings.

Responsibility:
    The single place that reads configuration: packaged dataset YAML under
    ``datasets/`` and ``DATAVAULT_*`` environment settings.  Callers obtain
    a compiled ``DatasetRegistry`` through ``get_dataset_registry()``.

Architecture position:
    Sits above ``datavault_kernel`` and below ``datavault_ingestion`` /
    ``datavault_services``.  The kernel MUST NEVER import datavault_config.

Failure modes:
    - ``FileNotFoundError`` -- a custom dataset directory does not exist.
    - ``ValueError`` / ``KeyError`` -- malformed dataset definitions.
    - ``DatasetAlreadyRegisteredError`` -- two files declare the same name.
"""

from __future__ import annotations

from pathlib import Path

from datavault_config.bridges import build_dataset_registry
from datavault_config.loader import load_dataset_defs
from datavault_config.settings import Settings, load_settings
from datavault_kernel.domain.registry import DatasetRegistry
from datavault_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_DATASET_DIR = Path(__file__).parent / "datasets"


def get_dataset_registry(dataset_dir: Path | None = None) -> DatasetRegistry:
    """Load and compile every dataset definition into a registry."""
    directory = dataset_dir or DEFAULT_DATASET_DIR
    if not directory.is_dir():
        raise FileNotFoundError(f"Dataset directory not found: {directory}")
    registry = build_dataset_registry(load_dataset_defs(directory))
    logger.info(
        "dataset_registry_loaded",
        extra={"dataset_dir": str(directory), "datasets": list(registry.names())},
    )
    return registry


__all__ = [
    "DEFAULT_DATASET_DIR",
    "Settings",
    "get_dataset_registry",
    "load_settings",
]
