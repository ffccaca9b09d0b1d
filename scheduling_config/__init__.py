"""
scheduling_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain engine configuration at runtime through
    ``get_active_config()``.  Engines receive the parsed settings as plain
    constructor arguments and never read files themselves.

Architecture position:
    Configuration -- sits above ``scheduling_kernel`` and below
    ``scheduling_services``.  The kernel and engines MUST NEVER import
    from ``scheduling_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` -- unknown keys or out-of-range values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SCHEDULING_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every analysis to the thresholds that shaped it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from scheduling_config.loader import load_yaml_file, parse_config
from scheduling_config.schema import (
    CompressionSettings,
    ConflictSettings,
    CriticalPathSettings,
    EarnedValueSettings,
    LevelingSettings,
    SchedulingConfig,
)

_logger = logging.getLogger("scheduling_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> SchedulingConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to the shipped ``defaults.yaml``.

    Returns:
        A frozen, validated ``SchedulingConfig``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "SCHEDULING_CONFIG_TRACE",
        extra={
            "trace_type": "SCHEDULING_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "DEFAULT_CONFIG_PATH",
    "SchedulingConfig",
    "CriticalPathSettings",
    "ConflictSettings",
    "LevelingSettings",
    "CompressionSettings",
    "EarnedValueSettings",
]
