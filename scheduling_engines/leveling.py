"""
scheduling_engines.leveling -- Greedy day-granularity resource leveling.

Responsibility:
    Build a daily allocation profile per resource across the project span,
    find the periods in which demand exceeds a resource's capacity, and
    propose task delays that relieve the worst of them.  Reports the
    schedule-extension tradeoff and an accept/reject recommendation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Optionally consumes a CriticalPathResult for float-based priorities.

Invariants enforced:
    - Leveled duration = original duration + sum of proposed delays.
    - A task is delayed at most once per leveling run.
    - Candidate order is fully determined by the priority rule, then by
      the order in which tasks contribute to the period.
    - Only the ``max_periods`` worst periods are considered, and at most
      ``max_tasks_per_period`` tasks are delayed for each, which keeps
      the cost linear in the profile size.

Failure modes:
    - None beyond malformed inputs; an empty task or resource list
      yields an empty, level result.

Audit relevance:
    This is a local-optimum heuristic.  It does not search for the
    minimal-delay schedule, and a leveled profile may still exceed
    capacity (``is_level`` reports whether it does).
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_CEILING, Decimal
from enum import Enum

from scheduling_engines.critical_path import CriticalPathResult
from scheduling_engines.tracer import traced_engine
from scheduling_kernel.domain.schedule import ResourceRecord, Task
from scheduling_kernel.logging_config import get_logger

logger = get_logger("engines.leveling")

_DAY = timedelta(days=1)
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_SECONDS_PER_DAY = Decimal("86400")


class LevelingPriority(str, Enum):
    """Order in which contributing tasks are chosen for delay."""

    MINIMUM_TOTAL_FLOAT = "minimum_total_float"  # most float delayed first
    MINIMUM_LATE_START = "minimum_late_start"  # latest start delayed first
    SHORTEST_DURATION = "shortest_duration"
    LONGEST_DURATION = "longest_duration"
    INPUT_ORDER = "input_order"


@dataclass(frozen=True)
class DailyAllocation:
    day_start: datetime
    units: Decimal
    task_ids: tuple[str, ...]


@dataclass(frozen=True)
class OverallocationPeriod:
    """A maximal run of days on which a resource is over capacity."""

    resource_id: str
    start: datetime
    end: datetime  # exclusive
    peak_overallocation: Decimal  # units above capacity at the worst day
    contributing_task_ids: tuple[str, ...]

    @property
    def days(self) -> int:
        return (self.end - self.start) // _DAY


@dataclass(frozen=True)
class ResourceProfile:
    """Daily allocation of one resource, zero days included."""

    resource_id: str
    resource_name: str
    max_units: Decimal
    days: tuple[DailyAllocation, ...]

    def _allocated(self) -> list[Decimal]:
        return [d.units for d in self.days if d.units > 0]

    @property
    def peak_allocation(self) -> Decimal:
        return max((d.units for d in self.days), default=_ZERO)

    @property
    def average_allocation(self) -> Decimal:
        allocated = self._allocated()
        if not allocated:
            return _ZERO
        return sum(allocated, _ZERO) / len(allocated)

    @property
    def utilization_percent(self) -> Decimal:
        return self.peak_allocation / self.max_units * _HUNDRED

    @property
    def smoothness(self) -> Decimal:
        """Population standard deviation of allocation over allocated days."""
        allocated = self._allocated()
        if not allocated:
            return _ZERO
        mean = sum(allocated, _ZERO) / len(allocated)
        variance = sum(((u - mean) ** 2 for u in allocated), _ZERO) / len(allocated)
        return variance.sqrt()

    @property
    def is_level(self) -> bool:
        return all(d.units <= self.max_units for d in self.days)

    def overallocation_periods(self) -> list[OverallocationPeriod]:
        periods: list[OverallocationPeriod] = []
        run: list[DailyAllocation] = []
        for day in (*self.days, None):
            if day is not None and day.units > self.max_units:
                run.append(day)
                continue
            if run:
                contributing: dict[str, None] = {}
                for d in run:
                    contributing.update(dict.fromkeys(d.task_ids))
                periods.append(OverallocationPeriod(
                    resource_id=self.resource_id,
                    start=run[0].day_start,
                    end=run[-1].day_start + _DAY,
                    peak_overallocation=max(d.units for d in run) - self.max_units,
                    contributing_task_ids=tuple(contributing),
                ))
                run = []
        return periods


@dataclass(frozen=True)
class DelayedTask:
    task_id: str
    task_name: str
    original_start: datetime
    new_start: datetime
    delay_days: Decimal
    reason: str


@dataclass(frozen=True)
class LevelingMetrics:
    schedule_extension_days: Decimal
    schedule_impact_percent: Decimal
    tasks_delayed: int
    total_delay_days: Decimal
    overallocations_found: int
    overallocations_resolved: int
    resource_smoothness: Decimal
    peak_utilization: Decimal
    average_utilization: Decimal


@dataclass(frozen=True)
class LevelingRecommendation:
    accept: bool
    reason: str
    confidence: str  # high, medium, low


@dataclass(frozen=True)
class ResourceLevelingSummary:
    resource_id: str
    resource_name: str
    original_peak_allocation: Decimal
    leveled_peak_allocation: Decimal
    smoothness: Decimal
    is_level: bool


@dataclass(frozen=True)
class LevelingResult:
    """Outcome of a leveling run; the input schedule is left untouched."""

    original_duration: Decimal
    leveled_duration: Decimal
    delayed_tasks: tuple[DelayedTask, ...]
    original_profiles: tuple[ResourceProfile, ...]
    leveled_profiles: tuple[ResourceProfile, ...]
    priority: LevelingPriority
    metrics: LevelingMetrics
    effectiveness_score: Decimal
    recommendation: LevelingRecommendation

    @property
    def is_level(self) -> bool:
        return all(p.is_level for p in self.leveled_profiles)

    def most_impacted_tasks(self, limit: int = 5) -> list[DelayedTask]:
        return sorted(self.delayed_tasks, key=lambda d: d.delay_days, reverse=True)[:limit]

    def resource_summaries(self) -> list[ResourceLevelingSummary]:
        leveled = {p.resource_id: p for p in self.leveled_profiles}
        return [
            ResourceLevelingSummary(
                resource_id=p.resource_id,
                resource_name=p.resource_name,
                original_peak_allocation=p.peak_allocation,
                leveled_peak_allocation=leveled[p.resource_id].peak_allocation,
                smoothness=leveled[p.resource_id].smoothness,
                is_level=leveled[p.resource_id].is_level,
            )
            for p in self.original_profiles
        ]


def _span_days(start: datetime, end: datetime) -> Decimal:
    return Decimal(str((end - start).total_seconds())) / _SECONDS_PER_DAY


class ResourceLevelingEngine:
    """
    Pure greedy leveling engine.

    Contract:
        No I/O, fully deterministic.  Proposed delays are reported as
        ``DelayedTask`` records; tasks themselves are not modified.
    Guarantees:
        - Delay per task = peak overallocation (units) x delay_days_per_unit.
        - Recommendation accepts iff the extension stays within
          ``acceptable_extension_percent`` and, when given, within
          ``max_schedule_extension_days``.
    Non-goals:
        - Minimal-delay or resource-optimal schedules.
        - Re-running the critical path over the leveled schedule.
    """

    def __init__(
        self,
        max_periods: int = 3,
        max_tasks_per_period: int = 2,
        delay_days_per_unit: Decimal = Decimal("1"),
        acceptable_extension_percent: Decimal = Decimal("10"),
    ):
        self._max_periods = max_periods
        self._max_tasks_per_period = max_tasks_per_period
        self._delay_days_per_unit = delay_days_per_unit
        self._acceptable_extension_percent = acceptable_extension_percent

    def build_profiles(
        self,
        tasks: Sequence[Task],
        resources: Sequence[ResourceRecord],
        project_start: datetime,
        project_end: datetime,
        shifts: dict[str, timedelta] | None = None,
    ) -> list[ResourceProfile]:
        """
        Daily profile per resource over [project_start, project_end).

        An assignment counts on every day whose [start, start + 1 day)
        interval it intersects; a zero-length assignment counts on the day
        containing it.  ``shifts`` moves a task's assignments later.
        """
        shifts = shifts or {}
        day_count = max(1, -((project_start - project_end) // _DAY))
        known = {r.id for r in resources}
        units: dict[str, list[Decimal]] = {r.id: [_ZERO] * day_count for r in resources}
        task_ids: dict[str, list[list[str]]] = {
            r.id: [[] for _ in range(day_count)] for r in resources
        }

        for task in tasks:
            shift = shifts.get(task.id, timedelta())
            for a in task.resource_assignments:
                if a.resource_id not in known:
                    continue
                start = a.start + shift
                finish = a.finish + shift
                first = (start - project_start) // _DAY
                last = first if finish == start else -((project_start - finish) // _DAY) - 1
                for i in range(max(first, 0), min(last, day_count - 1) + 1):
                    units[a.resource_id][i] += a.effective_units
                    if task.id not in task_ids[a.resource_id][i]:
                        task_ids[a.resource_id][i].append(task.id)

        return [
            ResourceProfile(
                resource_id=r.id,
                resource_name=r.name,
                max_units=r.max_units,
                days=tuple(
                    DailyAllocation(
                        day_start=project_start + i * _DAY,
                        units=units[r.id][i],
                        task_ids=tuple(task_ids[r.id][i]),
                    )
                    for i in range(day_count)
                ),
            )
            for r in resources
        ]

    @traced_engine(
        "leveling", "1.0",
        fingerprint_fields=("tasks", "resources", "priority", "max_schedule_extension_days"),
    )
    def level(
        self,
        tasks: Sequence[Task],
        resources: Sequence[ResourceRecord],
        priority: LevelingPriority = LevelingPriority.MINIMUM_TOTAL_FLOAT,
        timing: CriticalPathResult | None = None,
        max_schedule_extension_days: Decimal | None = None,
    ) -> LevelingResult:
        t0 = time.monotonic()
        logger.info("leveling_started", extra={
            "task_count": len(tasks),
            "resource_count": len(resources),
            "priority": priority.value,
        })

        if not tasks:
            project_start = project_end = datetime(1970, 1, 1, tzinfo=timezone.utc)
        else:
            project_start = min(t.planned_start for t in tasks)
            project_end = max(t.planned_finish for t in tasks)
        original_duration = _span_days(project_start, project_end)

        original_profiles = self.build_profiles(tasks, resources, project_start, project_end)
        resource_rank = {r.id: i for i, r in enumerate(resources)}
        periods = [p for profile in original_profiles for p in profile.overallocation_periods()]
        worst = sorted(
            periods,
            key=lambda p: (-p.peak_overallocation, p.start, resource_rank[p.resource_id]),
        )[: self._max_periods]

        by_id = {t.id: t for t in tasks}
        input_rank = {t.id: i for i, t in enumerate(tasks)}
        delayed: dict[str, DelayedTask] = {}
        for period in worst:
            candidates = [
                tid for tid in period.contributing_task_ids
                if tid not in delayed and tid in by_id
            ]
            candidates.sort(key=lambda tid: self._priority_key(priority, by_id[tid], timing, project_start))
            delay_days = period.peak_overallocation * self._delay_days_per_unit
            for task_id in candidates[: self._max_tasks_per_period]:
                task = by_id[task_id]
                delayed[task_id] = DelayedTask(
                    task_id=task_id,
                    task_name=task.name,
                    original_start=task.planned_start,
                    new_start=task.planned_start + timedelta(days=float(delay_days)),
                    delay_days=delay_days,
                    reason=(
                        f"Resolve overallocation of {period.peak_overallocation} units "
                        f"on {period.resource_id}"
                    ),
                )

        delayed_tasks = tuple(sorted(delayed.values(), key=lambda d: input_rank[d.task_id]))
        total_delay = sum((d.delay_days for d in delayed_tasks), _ZERO)
        leveled_duration = original_duration + total_delay

        shifts = {
            d.task_id: _DAY * int(d.delay_days.to_integral_value(rounding=ROUND_CEILING))
            for d in delayed_tasks
        }
        max_shift = max(shifts.values(), default=timedelta())
        leveled_profiles = self.build_profiles(
            tasks, resources, project_start, project_end + max_shift, shifts
        )

        metrics = self._metrics(
            original_duration, leveled_duration, delayed_tasks, total_delay,
            len(periods), original_profiles, leveled_profiles,
        )
        score = self._effectiveness_score(metrics)
        recommendation = self._recommend(metrics, score, max_schedule_extension_days)

        result = LevelingResult(
            original_duration=original_duration,
            leveled_duration=leveled_duration,
            delayed_tasks=delayed_tasks,
            original_profiles=tuple(original_profiles),
            leveled_profiles=tuple(leveled_profiles),
            priority=priority,
            metrics=metrics,
            effectiveness_score=score,
            recommendation=recommendation,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("leveling_completed", extra={
            "overallocations_found": len(periods),
            "tasks_delayed": len(delayed_tasks),
            "extension_days": str(metrics.schedule_extension_days),
            "is_level": result.is_level,
            "accept": recommendation.accept,
            "duration_ms": duration_ms,
        })
        return result

    @staticmethod
    def _priority_key(
        priority: LevelingPriority,
        task: Task,
        timing: CriticalPathResult | None,
        project_start: datetime,
    ) -> Decimal:
        task_timing = timing.timings.get(task.id) if timing is not None else None
        if priority is LevelingPriority.MINIMUM_TOTAL_FLOAT:
            return -(task_timing.total_float if task_timing else _ZERO)
        if priority is LevelingPriority.MINIMUM_LATE_START:
            if task_timing is not None:
                return -task_timing.late_start
            return -_span_days(project_start, task.planned_start)
        if priority is LevelingPriority.SHORTEST_DURATION:
            return task.duration
        if priority is LevelingPriority.LONGEST_DURATION:
            return -task.duration
        return _ZERO

    @staticmethod
    def _metrics(
        original_duration: Decimal,
        leveled_duration: Decimal,
        delayed_tasks: tuple[DelayedTask, ...],
        total_delay: Decimal,
        overallocations_found: int,
        original_profiles: list[ResourceProfile],
        leveled_profiles: list[ResourceProfile],
    ) -> LevelingMetrics:
        extension = leveled_duration - original_duration
        if original_duration > 0:
            impact_percent = extension / original_duration * _HUNDRED
        else:
            impact_percent = _ZERO if extension == 0 else _HUNDRED

        remaining = sum(len(p.overallocation_periods()) for p in leveled_profiles)
        utilizations = [p.utilization_percent for p in leveled_profiles]
        count = len(leveled_profiles)
        return LevelingMetrics(
            schedule_extension_days=extension,
            schedule_impact_percent=impact_percent,
            tasks_delayed=len(delayed_tasks),
            total_delay_days=total_delay,
            overallocations_found=overallocations_found,
            overallocations_resolved=max(0, overallocations_found - remaining),
            resource_smoothness=(
                sum((p.smoothness for p in leveled_profiles), _ZERO) / count if count else _ZERO
            ),
            peak_utilization=max(utilizations, default=_ZERO),
            average_utilization=sum(utilizations, _ZERO) / count if count else _ZERO,
        )

    @staticmethod
    def _effectiveness_score(metrics: LevelingMetrics) -> Decimal:
        """0-100; rewards resolved over-allocation, penalizes extension and jaggedness."""
        score = _HUNDRED
        score -= min(Decimal("30"), metrics.schedule_impact_percent)
        if metrics.overallocations_resolved > 0:
            score += Decimal("40")
        score -= min(Decimal("20"), metrics.resource_smoothness / 2)
        balance = _HUNDRED - abs(metrics.peak_utilization - metrics.average_utilization)
        score += balance / _HUNDRED * Decimal("10")
        return max(_ZERO, min(_HUNDRED, score)).quantize(Decimal("0.01"))

    def _recommend(
        self,
        metrics: LevelingMetrics,
        score: Decimal,
        max_schedule_extension_days: Decimal | None,
    ) -> LevelingRecommendation:
        if score >= 80:
            confidence = "high"
        elif score >= 60:
            confidence = "medium"
        else:
            confidence = "low"

        if metrics.overallocations_found == 0:
            return LevelingRecommendation(
                accept=True,
                reason="No resource over-allocation found; schedule unchanged",
                confidence="high",
            )

        impact = metrics.schedule_impact_percent.quantize(Decimal("0.1"))
        if (
            max_schedule_extension_days is not None
            and metrics.schedule_extension_days > max_schedule_extension_days
        ):
            return LevelingRecommendation(
                accept=False,
                reason=(
                    f"Leveling extends the schedule by {metrics.schedule_extension_days} days, "
                    f"beyond the permitted {max_schedule_extension_days} days"
                ),
                confidence=confidence,
            )
        if metrics.schedule_impact_percent > self._acceptable_extension_percent:
            return LevelingRecommendation(
                accept=False,
                reason=(
                    f"Leveling causes significant schedule impact ({impact}% extension). "
                    f"Consider adding resources or re-sequencing work"
                ),
                confidence=confidence,
            )
        return LevelingRecommendation(
            accept=True,
            reason=(
                f"Leveling delays {metrics.tasks_delayed} task(s) to relieve "
                f"{metrics.overallocations_found} over-allocation period(s) "
                f"with a {impact}% schedule extension"
            ),
            confidence=confidence,
        )
