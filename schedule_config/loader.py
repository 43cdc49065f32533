"""
Configuration Loader (``schedule_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into a frozen ``EngineConfig``.  Runtime
callers use ``schedule_config.get_active_config()``; this module is the
tooling underneath it.

Invariants enforced
-------------------
* Unknown sections or keys are rejected, so a typo never silently falls
  back to a default.
* Every numeric limit is a positive integer (retries may be zero).
* ``compute_checksum`` is a deterministic SHA-256 of the parsed document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML or invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from schedule_config.schema import NEGATIVE_FLOAT_POLICIES, EngineConfig
from schedule_kernel.exceptions import ConfigurationError

_SECTIONS: dict[str, tuple[str, ...]] = {
    "graph": ("max_lag_minutes", "max_tasks", "max_edges"),
    "baseline": ("negative_float_policy",),
    "earned_value": ("money_quantum",),
    "recompute": ("storage_read_retries", "worker_count", "cancel_check_interval"),
}
_TOP_LEVEL = ("config_id", "version", *_SECTIONS)
_NON_NEGATIVE = ("storage_read_retries",)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigurationError: if the file is not valid YAML or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid YAML: {exc}", source=str(path)) from exc
    if not isinstance(data, dict):
        raise ConfigurationError("top level must be a mapping", source=str(path))
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _positive_int(name: str, value: Any, source: str | None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", source)
    floor = 0 if name in _NON_NEGATIVE else 1
    if value < floor:
        raise ConfigurationError(f"{name} must be >= {floor}, got {value}", source)
    return value


def _quantum(value: Any, source: str | None) -> Decimal:
    try:
        quantum = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(f"money_quantum {value!r} is not a decimal", source) from exc
    if quantum <= 0:
        raise ConfigurationError(f"money_quantum must be positive, got {value!r}", source)
    return quantum


def parse_engine_config(data: dict[str, Any], source: str | None = None) -> EngineConfig:
    """
    Build an ``EngineConfig`` from a parsed YAML document.

    Absent sections and keys keep their defaults.

    Raises:
        ConfigurationError: unknown keys or invalid values.
    """
    unknown = sorted(set(data) - set(_TOP_LEVEL))
    if unknown:
        raise ConfigurationError(f"unknown top-level keys: {unknown}", source)

    values: dict[str, Any] = {}
    for section, keys in _SECTIONS.items():
        body = data.get(section) or {}
        if not isinstance(body, dict):
            raise ConfigurationError(f"section {section!r} must be a mapping", source)
        extra = sorted(set(body) - set(keys))
        if extra:
            raise ConfigurationError(f"unknown keys in {section!r}: {extra}", source)
        values.update(body)

    for name in ("max_lag_minutes", "max_tasks", "max_edges",
                 "storage_read_retries", "worker_count", "cancel_check_interval"):
        if name in values:
            values[name] = _positive_int(name, values[name], source)

    if "negative_float_policy" in values:
        policy = values["negative_float_policy"]
        if policy not in NEGATIVE_FLOAT_POLICIES:
            raise ConfigurationError(
                f"negative_float_policy must be one of {NEGATIVE_FLOAT_POLICIES}, "
                f"got {policy!r}",
                source,
            )

    if "money_quantum" in values:
        values["money_quantum"] = _quantum(values["money_quantum"], source)

    if "config_id" in data:
        values["config_id"] = str(data["config_id"])
    if "version" in data:
        values["version"] = _positive_int("version", data["version"], source)

    return EngineConfig(**values, checksum=compute_checksum(data))


def load_engine_config(path: Path) -> EngineConfig:
    """Load and parse ``path``."""
    return parse_engine_config(load_yaml_file(path), source=str(path))
