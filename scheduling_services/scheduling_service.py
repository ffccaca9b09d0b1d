"""
SchedulingService -- orchestrator for scheduling and earned-value analytics.

Responsibility:
    Validate identifiers and parameters, load the project snapshot from
    the collaborator ports once per call, delegate to the pure engines and
    wrap every outcome in a SchedulingResult.

Architecture position:
    Services -- imperative shell around scheduling_engines.
    Reads through ProjectLookup / ScheduleLookup / ResourceLookup; never
    writes.  Holds only injected collaborators, clock, config and engines,
    so concurrent calls share no mutable state.

Operations:
    calculate_earned_value       -> EVMSnapshot
    detect_resource_conflicts    -> list[ResourceConflict]
    calculate_variance_analysis  -> VarianceAnalysis
    calculate_tcpi               -> TCPIReport
    calculate_critical_path      -> CriticalPathReport
    level_resources              -> LevelingReport
    compress_schedule            -> CompressionReport

Failure modes:
    Every SchedulingKernelError is caught at the operation boundary,
    logged as ``<operation>_failed`` with its error_code, and returned as
    a failed SchedulingResult.  Any other exception propagates.

Audit relevance:
    Each call binds project_id, operation and a fresh correlation_id into
    LogContext, so engine traces emitted during the call are attributable.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from scheduling_config import SchedulingConfig, get_active_config
from scheduling_engines.compression import ScheduleCompressionEngine, risk_band
from scheduling_engines.critical_path import CriticalPathCalculator
from scheduling_engines.earned_value import EarnedValueCalculator, EVMSnapshot
from scheduling_engines.leveling import LevelingPriority, ResourceLevelingEngine
from scheduling_engines.resource_conflicts import ResourceConflict, ResourceConflictDetector
from scheduling_kernel.domain.clock import Clock, SystemClock
from scheduling_kernel.domain.schedule import ProjectRecord, RiskLevel, Task
from scheduling_kernel.domain.values import Money
from scheduling_kernel.exceptions import (
    EmptyScheduleError,
    InvalidIdentifierError,
    InvalidParameterError,
    NoResourcesError,
    ProjectNotFoundError,
    SchedulingKernelError,
)
from scheduling_kernel.logging_config import LogContext, get_logger
from scheduling_services.collaborators import ProjectLookup, ResourceLookup, ScheduleLookup
from scheduling_services.models import (
    CompressionReport,
    CriticalPathReport,
    LevelingReport,
    RiskAssessment,
    TaskScheduleDetail,
    TCPIReport,
    VarianceAnalysis,
)
from scheduling_services.result import SchedulingResult

logger = get_logger("services.scheduling")

T = TypeVar("T")

_MICROSECONDS_PER_DAY = Decimal("86400000000")

_RISK_DESCRIPTIONS = {
    RiskLevel.LOW: "Low risk: compression relies mainly on predictable crashing",
    RiskLevel.MODERATE: "Moderate risk: some overlapped work may need rework",
    RiskLevel.HIGH: "High risk: significant rework expected from overlapped work",
    RiskLevel.EXTREME: "Extreme risk: overlapped work is likely to need substantial rework",
}


def _offset(start: datetime, days: Decimal) -> datetime:
    return start + timedelta(microseconds=int(days * _MICROSECONDS_PER_DAY))


def _require_decimal(name: str, value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    raise InvalidParameterError(name, value, "must be a Decimal or int")


def _require_aware(name: str, value: datetime | None) -> None:
    if value is not None and value.tzinfo is None:
        raise InvalidParameterError(name, value, "must be timezone-aware")


class SchedulingService:
    """
    Read-only analytics over one project's schedule.

    Contract:
        Every public method returns a SchedulingResult; kernel errors never
        escape.  Collaborators are called once per operation, before any
        engine runs.
    Guarantees:
        - Malformed project ids fail with INVALID_IDENTIFIER before any load.
        - ``as_of`` defaults to the injected clock's ``now()``.
        - Engines are configured from the injected (or active) SchedulingConfig.
    Non-goals:
        - Persisting results or mutating tasks/resources.
        - Retrying failed collaborator calls.
    """

    def __init__(
        self,
        project_lookup: ProjectLookup,
        schedule_lookup: ScheduleLookup,
        resource_lookup: ResourceLookup,
        clock: Clock | None = None,
        config: SchedulingConfig | None = None,
    ):
        self._projects = project_lookup
        self._schedule = schedule_lookup
        self._resources = resource_lookup
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()

        cp = self._config.critical_path
        self._cpm = CriticalPathCalculator(
            critical_float_tolerance=cp.critical_float_tolerance_days,
            near_critical_threshold=cp.near_critical_threshold_days,
        )
        self._conflicts = ResourceConflictDetector(
            default_capacity_percent=self._config.conflicts.default_capacity_percent,
        )
        lv = self._config.leveling
        self._leveling = ResourceLevelingEngine(
            max_periods=lv.max_periods,
            max_tasks_per_period=lv.max_tasks_per_period,
            delay_days_per_unit=lv.delay_days_per_unit,
            acceptable_extension_percent=lv.acceptable_extension_percent,
        )
        cs = self._config.compression
        self._compression = ScheduleCompressionEngine(
            risk_level_weights=cs.risk_level_weights,
            rework_risk_weight=cs.rework_risk_weight,
            benefit_points_per_day=cs.benefit_points_per_day,
            top_opportunities=cs.top_opportunities,
            critical_path_calculator=self._cpm,
        )
        ev = self._config.earned_value
        self._evm = EarnedValueCalculator(
            schedule_variance_tolerance=ev.schedule_variance_tolerance,
            cost_variance_tolerance=ev.cost_variance_tolerance,
            tcpi_achievable_threshold=ev.tcpi_achievable_threshold,
            index_decimal_places=ev.index_decimal_places,
        )

    # ------------------------------------------------------------------
    # Operation boundary
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        project_id: UUID | str,
        body: Callable[[UUID], T],
    ) -> SchedulingResult[T]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            project_id=str(project_id),
            operation=operation,
        ):
            logger.info(f"{operation}_started")
            t0 = time.monotonic()
            try:
                value = body(self._parse_project_id(project_id))
            except SchedulingKernelError as exc:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.warning(
                    f"{operation}_failed",
                    extra={
                        "error_code": exc.code,
                        "error_message": str(exc),
                        "duration_ms": duration_ms,
                    },
                )
                return SchedulingResult.from_error(exc)

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(f"{operation}_completed", extra={"duration_ms": duration_ms})
            return SchedulingResult.ok(value)

    @staticmethod
    def _parse_project_id(project_id: UUID | str) -> UUID:
        if isinstance(project_id, UUID):
            return project_id
        try:
            return UUID(str(project_id))
        except ValueError:
            raise InvalidIdentifierError("project_id", project_id) from None

    def _load_project(self, project_id: UUID) -> ProjectRecord:
        project = self._projects.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def _load_tasks(self, project_id: UUID, required: bool = True) -> list[Task]:
        self._load_project(project_id)
        tasks = list(self._schedule.list_tasks(project_id))
        logger.debug("schedule_loaded", extra={"task_count": len(tasks)})
        if required and not tasks:
            raise EmptyScheduleError(str(project_id))
        return tasks

    def _snapshot(self, project_id: UUID, as_of: datetime | None) -> EVMSnapshot:
        _require_aware("as_of", as_of)
        tasks = self._load_tasks(project_id)
        return self._evm.calculate(tasks, as_of or self._clock.now())

    # ------------------------------------------------------------------
    # Earned value
    # ------------------------------------------------------------------

    def calculate_earned_value(
        self,
        project_id: UUID | str,
        as_of: datetime | None = None,
    ) -> SchedulingResult[EVMSnapshot]:
        """EVM snapshot as of ``as_of`` (default: now)."""
        return self._run(
            "calculate_earned_value", project_id,
            lambda pid: self._snapshot(pid, as_of),
        )

    def calculate_variance_analysis(
        self,
        project_id: UUID | str,
        as_of: datetime | None = None,
    ) -> SchedulingResult[VarianceAnalysis]:
        """SV/CV/SPI/CPI with schedule and budget status labels."""

        def body(pid: UUID) -> VarianceAnalysis:
            snapshot = self._snapshot(pid, as_of)
            return VarianceAnalysis(
                as_of=snapshot.as_of,
                schedule_variance=snapshot.schedule_variance,
                cost_variance=snapshot.cost_variance,
                spi=snapshot.spi,
                cpi=snapshot.cpi,
                schedule_status=self._evm.schedule_status(snapshot.schedule_variance),
                budget_status=self._evm.budget_status(snapshot.cost_variance),
                performance_description=self._evm.performance_narrative(
                    snapshot.spi, snapshot.cpi
                ),
            )

        return self._run("calculate_variance_analysis", project_id, body)

    def calculate_tcpi(
        self,
        project_id: UUID | str,
        as_of: datetime | None = None,
        use_eac: bool = False,
    ) -> SchedulingResult[TCPIReport]:
        """
        To-complete performance index with achievability judgment.

        With ``use_eac`` the EAC-based variant is used when EAC is defined;
        otherwise the BAC-based variant is computed and reported as such.
        """

        def body(pid: UUID) -> TCPIReport:
            snapshot = self._snapshot(pid, as_of)
            eac = snapshot.estimate_at_completion if use_eac else None
            if use_eac and eac is None:
                logger.info("tcpi_eac_unavailable", extra={"fallback_method": "bac"})
            tcpi = self._evm.tcpi(
                snapshot.budget_at_completion,
                snapshot.earned_value,
                snapshot.actual_cost,
                eac,
            )
            return TCPIReport(
                as_of=snapshot.as_of,
                tcpi=tcpi.value,
                method=tcpi.method,
                is_achievable=tcpi.is_achievable,
                recommendation=tcpi.recommendation,
                budget_at_completion=snapshot.budget_at_completion,
                earned_value=snapshot.earned_value,
                actual_cost=snapshot.actual_cost,
                estimate_at_completion=snapshot.estimate_at_completion,
            )

        return self._run("calculate_tcpi", project_id, body)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def detect_resource_conflicts(
        self,
        project_id: UUID | str,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> SchedulingResult[list[ResourceConflict]]:
        """Over-allocation intervals; an empty schedule yields an empty list."""

        def body(pid: UUID) -> list[ResourceConflict]:
            _require_aware("window_start", window_start)
            _require_aware("window_end", window_end)
            tasks = self._load_tasks(pid, required=False)
            if not tasks:
                return []
            capacities = capacities_for(tasks, self._resources)
            return self._conflicts.detect(tasks, window_start, window_end, capacities)

        return self._run("detect_resource_conflicts", project_id, body)

    def level_resources(
        self,
        project_id: UUID | str,
        priority: LevelingPriority | str | None = None,
        max_schedule_extension_days: Decimal | None = None,
    ) -> SchedulingResult[LevelingReport]:
        """Greedy leveling of daily resource demand with a recommendation."""

        def body(pid: UUID) -> LevelingReport:
            chosen = self._leveling_priority(priority)
            max_ext = None
            if max_schedule_extension_days is not None:
                max_ext = _require_decimal("max_schedule_extension_days", max_schedule_extension_days)
                if max_ext < 0:
                    raise InvalidParameterError(
                        "max_schedule_extension_days", max_ext, "must not be negative"
                    )
            tasks = self._load_tasks(pid)
            resources = list(self._resources.list_resources(pid))
            if not resources:
                raise NoResourcesError(str(pid))
            timing = self._cpm.calculate(tasks)
            result = self._leveling.level(
                tasks, resources,
                priority=chosen,
                timing=timing,
                max_schedule_extension_days=max_ext,
            )
            return LevelingReport(
                project_id=pid,
                result=result,
                resource_summaries=tuple(result.resource_summaries()),
                most_impacted_tasks=tuple(result.most_impacted_tasks()),
            )

        return self._run("level_resources", project_id, body)

    def _leveling_priority(self, priority: LevelingPriority | str | None) -> LevelingPriority:
        if isinstance(priority, LevelingPriority):
            return priority
        value = priority if priority is not None else self._config.leveling.default_priority
        try:
            return LevelingPriority(value)
        except ValueError:
            raise InvalidParameterError(
                "priority", value,
                f"must be one of {', '.join(p.value for p in LevelingPriority)}",
            ) from None

    # ------------------------------------------------------------------
    # Critical path and compression
    # ------------------------------------------------------------------

    def calculate_critical_path(
        self,
        project_id: UUID | str,
    ) -> SchedulingResult[CriticalPathReport]:
        """CPM timing and float per task, anchored at the earliest planned start."""

        def body(pid: UUID) -> CriticalPathReport:
            tasks = self._load_tasks(pid)
            timing = self._cpm.calculate(tasks)
            start = min(t.planned_start for t in tasks)
            horizon = self._config.critical_path.flexibility_horizon_days
            hours_per_day = self._config.critical_path.hours_per_day
            names = {t.id: t.name for t in tasks}
            details = tuple(
                TaskScheduleDetail(
                    task_id=tt.task_id,
                    task_name=names[tt.task_id],
                    duration=tt.duration,
                    duration_hours=tt.duration * hours_per_day,
                    early_start=tt.early_start,
                    early_finish=tt.early_finish,
                    late_start=tt.late_start,
                    late_finish=tt.late_finish,
                    early_start_date=_offset(start, tt.early_start),
                    early_finish_date=_offset(start, tt.early_finish),
                    late_start_date=_offset(start, tt.late_start),
                    late_finish_date=_offset(start, tt.late_finish),
                    total_float=tt.total_float,
                    free_float=tt.free_float,
                    flexibility=tt.slack.flexibility(horizon),
                    is_critical=tt.is_critical,
                    float_status=tt.status,
                )
                for tt in timing.timings.values()
            )
            return CriticalPathReport(
                project_id=pid,
                project_start=start,
                project_finish=_offset(start, timing.project_duration),
                project_duration=timing.project_duration,
                critical_path=timing.critical_path,
                tasks=details,
                float_map=timing.float_map(),
            )

        return self._run("calculate_critical_path", project_id, body)

    def compress_schedule(
        self,
        project_id: UUID | str,
        target_reduction_days: Decimal,
        max_cost_increase: Decimal | None = None,
        max_risk_score: Decimal | None = None,
    ) -> SchedulingResult[CompressionReport]:
        """
        Crash, then fast-track, critical tasks toward ``target_reduction_days``.

        ``max_cost_increase`` is in the schedule's currency.  When
        ``max_risk_score`` is omitted the configured default applies.
        """

        def body(pid: UUID) -> CompressionReport:
            target = _require_decimal("target_reduction_days", target_reduction_days)
            if target <= 0:
                raise InvalidParameterError("target_reduction_days", target, "must be positive")
            risk_cap = (
                _require_decimal("max_risk_score", max_risk_score)
                if max_risk_score is not None
                else self._config.compression.default_max_risk_score
            )
            tasks = self._load_tasks(pid)
            currency = self._evm.ensure_single_currency(tasks)
            cost_cap = None
            if max_cost_increase is not None:
                cost_cap = Money(
                    _require_decimal("max_cost_increase", max_cost_increase), currency
                )

            timing = self._cpm.calculate(tasks)
            result = self._compression.compress(
                tasks,
                target,
                max_cost_increase=cost_cap,
                max_risk_score=risk_cap,
                timing=timing,
            )
            level = risk_band(result.total_risk_score)
            return CompressionReport(
                project_id=pid,
                result=result,
                time_saved_days=result.time_saved,
                cost_impact=result.total_cost_increase,
                cost_per_day_saved=result.cost_per_day_saved,
                risk_assessment=RiskAssessment(
                    score=result.total_risk_score,
                    level=level,
                    description=_RISK_DESCRIPTIONS[level],
                ),
                target_met=result.target_met,
            )

        return self._run("compress_schedule", project_id, body)


def capacities_for(
    tasks: Sequence[Task],
    resource_lookup: ResourceLookup,
) -> dict[str, Decimal]:
    """Capacity percent for every resource referenced by ``tasks`` that the lookup knows."""
    capacities: dict[str, Decimal] = {}
    looked_up: set[str] = set()
    for task in tasks:
        for assignment in task.resource_assignments:
            if assignment.resource_id in looked_up:
                continue
            looked_up.add(assignment.resource_id)
            capacity = resource_lookup.get_capacity(assignment.resource_id)
            if capacity is not None:
                capacities[assignment.resource_id] = capacity.max_allocation_percent
    return capacities
