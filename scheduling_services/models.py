"""
Report models returned by SchedulingService.

Engine results are wrapped rather than copied: each report keeps the
engine result it was built from and adds the project-level view the
caller needs (calendar dates, status labels, risk description).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from scheduling_engines.compression import (
    CompressionOpportunity,
    CompressionRecommendation,
    CompressionResult,
)
from scheduling_engines.critical_path import CriticalPath, Float, FloatStatus
from scheduling_engines.earned_value import (
    BudgetStatus,
    ScheduleStatus,
    TCPIMethod,
)
from scheduling_engines.leveling import (
    DelayedTask,
    LevelingRecommendation,
    LevelingResult,
    ResourceLevelingSummary,
)
from scheduling_kernel.domain.schedule import RiskLevel
from scheduling_kernel.domain.values import Money


# ---------------------------------------------------------------------------
# Critical path
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskScheduleDetail:
    """CPM timing of one task, in project days and calendar dates."""

    task_id: str
    task_name: str
    duration: Decimal
    duration_hours: Decimal
    early_start: Decimal
    early_finish: Decimal
    late_start: Decimal
    late_finish: Decimal
    early_start_date: datetime
    early_finish_date: datetime
    late_start_date: datetime
    late_finish_date: datetime
    total_float: Decimal
    free_float: Decimal
    flexibility: Decimal
    is_critical: bool
    float_status: FloatStatus


@dataclass(frozen=True)
class CriticalPathReport:
    project_id: UUID
    project_start: datetime
    project_finish: datetime
    project_duration: Decimal
    critical_path: CriticalPath
    tasks: tuple[TaskScheduleDetail, ...]
    float_map: dict[str, Float]

    @property
    def critical_tasks(self) -> list[TaskScheduleDetail]:
        by_id = {t.task_id: t for t in self.tasks}
        return [by_id[task_id] for task_id in self.critical_path.task_ids]

    @property
    def near_critical_tasks(self) -> list[TaskScheduleDetail]:
        return [t for t in self.tasks if t.float_status == FloatStatus.NEAR_CRITICAL]


# ---------------------------------------------------------------------------
# Earned value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VarianceAnalysis:
    as_of: datetime
    schedule_variance: Money
    cost_variance: Money
    spi: Decimal | None
    cpi: Decimal | None
    schedule_status: ScheduleStatus
    budget_status: BudgetStatus
    performance_description: str


@dataclass(frozen=True)
class TCPIReport:
    as_of: datetime
    tcpi: Decimal | None
    method: TCPIMethod
    is_achievable: bool | None
    recommendation: str
    budget_at_completion: Money
    earned_value: Money
    actual_cost: Money
    estimate_at_completion: Money | None

    @property
    def is_defined(self) -> bool:
        return self.tcpi is not None


# ---------------------------------------------------------------------------
# Leveling
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LevelingReport:
    project_id: UUID
    result: LevelingResult
    resource_summaries: tuple[ResourceLevelingSummary, ...]
    most_impacted_tasks: tuple[DelayedTask, ...]

    @property
    def delayed_tasks(self) -> tuple[DelayedTask, ...]:
        return self.result.delayed_tasks

    @property
    def schedule_extension_days(self) -> Decimal:
        return self.result.metrics.schedule_extension_days

    @property
    def schedule_impact_percent(self) -> Decimal:
        return self.result.metrics.schedule_impact_percent

    @property
    def recommendation(self) -> LevelingRecommendation:
        return self.result.recommendation


# ---------------------------------------------------------------------------
# Compression
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RiskAssessment:
    score: Decimal
    level: RiskLevel
    description: str


@dataclass(frozen=True)
class CompressionReport:
    project_id: UUID
    result: CompressionResult
    time_saved_days: Decimal
    cost_impact: Money
    cost_per_day_saved: Money
    risk_assessment: RiskAssessment
    target_met: bool

    @property
    def recommendation(self) -> CompressionRecommendation:
        return self.result.recommendation

    @property
    def top_opportunities(self) -> tuple[CompressionOpportunity, ...]:
        return self.result.top_opportunities
