"""
Configuration Loader (``scheduling_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``scheduling_config.schema`` dataclasses.  The single public entry point
for runtime config is ``scheduling_config.get_active_config()``.

Invariants enforced
-------------------
* Numeric settings are parsed through ``str`` into ``Decimal``; YAML floats
  never reach the engines as ``float``.
* Every parsed object is a frozen dataclass from ``schema.py``.
* Out-of-range values raise ``ValueError`` naming the offending key.
* ``compute_checksum`` produces a deterministic SHA-256 hash.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from scheduling_config.schema import (
    CompressionSettings,
    ConflictSettings,
    CriticalPathSettings,
    EarnedValueSettings,
    LevelingSettings,
    SchedulingConfig,
)

_LEVELING_PRIORITIES = frozenset({
    "minimum_total_float",
    "minimum_late_start",
    "shortest_duration",
    "longest_duration",
    "input_order",
})

_RISK_LEVELS = ("low", "moderate", "high", "extreme")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a YAML scalar into a Decimal via its string form."""
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{key}: expected a number, got {value!r}") from e


def _check_keys(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"{section}: unknown keys {sorted(unknown)}")


def _non_negative(value: Decimal, key: str) -> Decimal:
    if value < 0:
        raise ValueError(f"{key} must be >= 0, got {value}")
    return value


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    return value


def parse_critical_path(data: dict[str, Any]) -> CriticalPathSettings:
    defaults = CriticalPathSettings()
    _check_keys("critical_path", data, {
        "critical_float_tolerance_days",
        "near_critical_threshold_days",
        "flexibility_horizon_days",
        "hours_per_day",
    })
    horizon = parse_decimal(
        data.get("flexibility_horizon_days", defaults.flexibility_horizon_days),
        "critical_path.flexibility_horizon_days",
    )
    if horizon <= 0:
        raise ValueError("critical_path.flexibility_horizon_days must be > 0")
    hours = parse_decimal(data.get("hours_per_day", defaults.hours_per_day), "critical_path.hours_per_day")
    if hours <= 0:
        raise ValueError("critical_path.hours_per_day must be > 0")
    return CriticalPathSettings(
        critical_float_tolerance_days=_non_negative(
            parse_decimal(
                data.get("critical_float_tolerance_days", defaults.critical_float_tolerance_days),
                "critical_path.critical_float_tolerance_days",
            ),
            "critical_path.critical_float_tolerance_days",
        ),
        near_critical_threshold_days=_non_negative(
            parse_decimal(
                data.get("near_critical_threshold_days", defaults.near_critical_threshold_days),
                "critical_path.near_critical_threshold_days",
            ),
            "critical_path.near_critical_threshold_days",
        ),
        flexibility_horizon_days=horizon,
        hours_per_day=hours,
    )


def parse_conflicts(data: dict[str, Any]) -> ConflictSettings:
    _check_keys("conflicts", data, {"default_capacity_percent"})
    capacity = parse_decimal(
        data.get("default_capacity_percent", ConflictSettings().default_capacity_percent),
        "conflicts.default_capacity_percent",
    )
    if capacity <= 0:
        raise ValueError("conflicts.default_capacity_percent must be > 0")
    return ConflictSettings(default_capacity_percent=capacity)


def parse_leveling(data: dict[str, Any]) -> LevelingSettings:
    defaults = LevelingSettings()
    _check_keys("leveling", data, {
        "max_periods",
        "max_tasks_per_period",
        "delay_days_per_unit",
        "acceptable_extension_percent",
        "default_priority",
    })
    priority = data.get("default_priority", defaults.default_priority)
    if priority not in _LEVELING_PRIORITIES:
        raise ValueError(
            f"leveling.default_priority must be one of {sorted(_LEVELING_PRIORITIES)}, "
            f"got {priority!r}"
        )
    delay = parse_decimal(
        data.get("delay_days_per_unit", defaults.delay_days_per_unit),
        "leveling.delay_days_per_unit",
    )
    if delay <= 0:
        raise ValueError("leveling.delay_days_per_unit must be > 0")
    return LevelingSettings(
        max_periods=_positive_int(data.get("max_periods", defaults.max_periods), "leveling.max_periods"),
        max_tasks_per_period=_positive_int(
            data.get("max_tasks_per_period", defaults.max_tasks_per_period),
            "leveling.max_tasks_per_period",
        ),
        delay_days_per_unit=delay,
        acceptable_extension_percent=_non_negative(
            parse_decimal(
                data.get("acceptable_extension_percent", defaults.acceptable_extension_percent),
                "leveling.acceptable_extension_percent",
            ),
            "leveling.acceptable_extension_percent",
        ),
        default_priority=priority,
    )


def parse_compression(data: dict[str, Any]) -> CompressionSettings:
    defaults = CompressionSettings()
    _check_keys("compression", data, {
        "default_max_risk_score",
        "benefit_points_per_day",
        "rework_risk_weight",
        "risk_level_weights",
        "top_opportunities",
    })
    weights = dict(defaults.risk_level_weights)
    raw_weights = data.get("risk_level_weights", {}) or {}
    for level, value in raw_weights.items():
        if level not in _RISK_LEVELS:
            raise ValueError(f"compression.risk_level_weights: unknown risk level {level!r}")
        weights[level] = _non_negative(
            parse_decimal(value, f"compression.risk_level_weights.{level}"),
            f"compression.risk_level_weights.{level}",
        )
    max_risk = parse_decimal(
        data.get("default_max_risk_score", defaults.default_max_risk_score),
        "compression.default_max_risk_score",
    )
    if not Decimal("0") <= max_risk <= Decimal("100"):
        raise ValueError("compression.default_max_risk_score must be within [0, 100]")
    return CompressionSettings(
        default_max_risk_score=max_risk,
        benefit_points_per_day=_non_negative(
            parse_decimal(
                data.get("benefit_points_per_day", defaults.benefit_points_per_day),
                "compression.benefit_points_per_day",
            ),
            "compression.benefit_points_per_day",
        ),
        rework_risk_weight=_non_negative(
            parse_decimal(
                data.get("rework_risk_weight", defaults.rework_risk_weight),
                "compression.rework_risk_weight",
            ),
            "compression.rework_risk_weight",
        ),
        risk_level_weights=weights,
        top_opportunities=_positive_int(
            data.get("top_opportunities", defaults.top_opportunities),
            "compression.top_opportunities",
        ),
    )


def parse_earned_value(data: dict[str, Any]) -> EarnedValueSettings:
    defaults = EarnedValueSettings()
    _check_keys("earned_value", data, {
        "schedule_variance_tolerance",
        "cost_variance_tolerance",
        "tcpi_achievable_threshold",
        "index_decimal_places",
    })
    threshold = parse_decimal(
        data.get("tcpi_achievable_threshold", defaults.tcpi_achievable_threshold),
        "earned_value.tcpi_achievable_threshold",
    )
    if threshold <= 0:
        raise ValueError("earned_value.tcpi_achievable_threshold must be > 0")
    return EarnedValueSettings(
        schedule_variance_tolerance=_non_negative(
            parse_decimal(
                data.get("schedule_variance_tolerance", defaults.schedule_variance_tolerance),
                "earned_value.schedule_variance_tolerance",
            ),
            "earned_value.schedule_variance_tolerance",
        ),
        cost_variance_tolerance=_non_negative(
            parse_decimal(
                data.get("cost_variance_tolerance", defaults.cost_variance_tolerance),
                "earned_value.cost_variance_tolerance",
            ),
            "earned_value.cost_variance_tolerance",
        ),
        tcpi_achievable_threshold=threshold,
        index_decimal_places=_positive_int(
            data.get("index_decimal_places", defaults.index_decimal_places),
            "earned_value.index_decimal_places",
        ),
    )


_SECTION_PARSERS = {
    "critical_path": parse_critical_path,
    "conflicts": parse_conflicts,
    "leveling": parse_leveling,
    "compression": parse_compression,
    "earned_value": parse_earned_value,
}


def parse_config(data: dict[str, Any]) -> SchedulingConfig:
    """
    Parse a full configuration document.

    Missing sections fall back to the schema defaults.

    Raises:
        ValueError: on unknown sections/keys or out-of-range values.
    """
    _check_keys("root", data, {"config_id", "version", *_SECTION_PARSERS})
    sections = {
        name: parser(data.get(name) or {})
        for name, parser in _SECTION_PARSERS.items()
    }
    version = data.get("version", 1)
    return SchedulingConfig(
        config_id=str(data.get("config_id", "defaults")),
        version=_positive_int(version, "version"),
        checksum=compute_checksum(data),
        **sections,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
