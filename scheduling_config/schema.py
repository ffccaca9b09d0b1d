"""
SchedulingConfig schema.

Tunable thresholds and heuristic parameters for the scheduling engines,
parsed from YAML by ``scheduling_config.loader``.  Defaults below are the
shipped values; ``defaults.yaml`` restates them so operators can see and
override every knob in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Engine settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CriticalPathSettings:
    """Float classification thresholds, in working days."""

    critical_float_tolerance_days: Decimal = Decimal("0")
    near_critical_threshold_days: Decimal = Decimal("1")
    flexibility_horizon_days: Decimal = Decimal("5")
    hours_per_day: Decimal = Decimal("8")


@dataclass(frozen=True)
class ConflictSettings:
    default_capacity_percent: Decimal = Decimal("100")


@dataclass(frozen=True)
class LevelingSettings:
    """Greedy leveling parameters."""

    max_periods: int = 3
    max_tasks_per_period: int = 2
    delay_days_per_unit: Decimal = Decimal("1")
    acceptable_extension_percent: Decimal = Decimal("10")
    default_priority: str = "minimum_total_float"


@dataclass(frozen=True)
class CompressionSettings:
    """Crashing / fast-tracking heuristic parameters."""

    default_max_risk_score: Decimal = Decimal("100")
    benefit_points_per_day: Decimal = Decimal("80")
    rework_risk_weight: Decimal = Decimal("20")
    risk_level_weights: dict[str, Decimal] = field(
        default_factory=lambda: {
            "low": Decimal("20"),
            "moderate": Decimal("50"),
            "high": Decimal("80"),
            "extreme": Decimal("100"),
        }
    )
    top_opportunities: int = 5


@dataclass(frozen=True)
class EarnedValueSettings:
    """EVM status classification thresholds."""

    schedule_variance_tolerance: Decimal = Decimal("100")
    cost_variance_tolerance: Decimal = Decimal("100")
    tcpi_achievable_threshold: Decimal = Decimal("1.20")
    index_decimal_places: int = 4


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchedulingConfig:
    """The complete, validated engine configuration."""

    config_id: str = "defaults"
    version: int = 1
    critical_path: CriticalPathSettings = field(default_factory=CriticalPathSettings)
    conflicts: ConflictSettings = field(default_factory=ConflictSettings)
    leveling: LevelingSettings = field(default_factory=LevelingSettings)
    compression: CompressionSettings = field(default_factory=CompressionSettings)
    earned_value: EarnedValueSettings = field(default_factory=EarnedValueSettings)
    checksum: str = ""
