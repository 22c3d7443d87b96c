"""
Runtime settings (``datavault_config.settings``).

Settings come from, in increasing precedence: dataclass defaults, an
optional YAML file, and ``DATAVAULT_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from datavault_config.loader import load_yaml_file

ENV_PREFIX = "DATAVAULT_"

# SQLite's default SQLITE_MAX_VARIABLE_NUMBER since 3.32.
DEFAULT_MAX_BIND_PARAMETERS = 32766


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///datavault.db"
    max_bind_parameters: int = DEFAULT_MAX_BIND_PARAMETERS
    preferred_batch_size: int = 500
    rate_limit: int = 60
    rate_window_seconds: float = 60.0
    rate_limiter_max_entries: int = 10_000
    claim_max_attempts: int = 5
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.max_bind_parameters < 1:
            raise ValueError("max_bind_parameters must be positive")
        if self.preferred_batch_size < 1:
            raise ValueError("preferred_batch_size must be positive")
        if self.rate_limit < 1 or self.rate_window_seconds <= 0:
            raise ValueError("rate_limit and rate_window_seconds must be positive")
        if self.claim_max_attempts < 1:
            raise ValueError("claim_max_attempts must be at least 1")


def _coerce(name: str, raw: Any) -> Any:
    field_type = {f.name: f.type for f in fields(Settings)}[name]
    if field_type == "int":
        return int(raw)
    if field_type == "float":
        return float(raw)
    return str(raw)


def load_settings(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Build Settings from defaults, an optional YAML file and the environment.

    Raises:
        KeyError: if the YAML file names an unknown setting.
        ValueError: if a value cannot be coerced or fails validation.
    """
    environ = os.environ if environ is None else environ
    known = {f.name for f in fields(Settings)}
    overrides: dict[str, Any] = {}

    if config_file is not None:
        for key, value in load_yaml_file(config_file).items():
            if key not in known:
                raise KeyError(f"Unknown setting in {config_file}: {key}")
            overrides[key] = _coerce(key, value)

    for name in known:
        env_key = f"{ENV_PREFIX}{name.upper()}"
        if env_key in environ:
            overrides[name] = _coerce(name, environ[env_key])

    return replace(Settings(), **overrides)
