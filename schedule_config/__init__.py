"""
schedule_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits beside ``schedule_kernel`` and below
    ``schedule_services``.  The kernel and engines never import from it;
    services receive an ``EngineConfig`` and pass plain values down.

Resolution order:
    1. explicit ``path`` argument
    2. the ``SCHEDULE_ENGINE_CONFIG`` environment variable
    3. ``schedule_config/defaults.yaml``

Audit relevance:
    Every successful call emits a ``SCHEDULE_CONFIG_TRACE`` log entry with
    the config_id, version, checksum and source path.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from schedule_config.loader import load_engine_config
from schedule_config.schema import EngineConfig

_logger = logging.getLogger("schedule_kernel.config")

CONFIG_ENV_VAR = "SCHEDULE_ENGINE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Returns:
        Frozen ``EngineConfig``.

    Raises:
        FileNotFoundError: the resolved file does not exist.
        ConfigurationError: the file is malformed or holds invalid values.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    source = Path(path)

    config = load_engine_config(source)

    _logger.info(
        "SCHEDULE_CONFIG_TRACE",
        extra={
            "trace_type": "SCHEDULE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(source),
        },
    )
    return config


__all__ = ["EngineConfig", "get_active_config", "CONFIG_ENV_VAR", "DEFAULT_CONFIG_PATH"]
