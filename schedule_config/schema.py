"""
Engine configuration schema.

The frozen runtime artifact produced by the loader.  Every field has the
production default so ``EngineConfig()`` is a valid configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

NEGATIVE_FLOAT_POLICIES = ("reject", "warn")


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for graph limits, baselining, EVM rounding and recompute workers."""

    config_id: str = "default"
    version: int = 1
    max_lag_minutes: int = 43_200
    max_tasks: int = 50_000
    max_edges: int = 50_000
    negative_float_policy: str = "reject"
    money_quantum: Decimal = Decimal("0.01")
    storage_read_retries: int = 1
    worker_count: int = 4
    cancel_check_interval: int = 1024
    checksum: str = ""
