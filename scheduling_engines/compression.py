"""
scheduling_engines.compression -- Schedule compression by crashing and fast-tracking.

Responsibility:
    Shorten the critical path toward a target reduction using two tactics:
    crashing (buying time on critical tasks at a known extra cost) and
    fast-tracking (overlapping a critical task with its successor at a
    rework risk).  Reports the time saved, cost increase, aggregate risk,
    strategy mix, recommendation and the best opportunities left unused.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes a CriticalPathResult to select critical tasks and successors.

Invariants enforced:
    - Only critical tasks are considered, and a fast-track only overlaps a
      critical task with a critical successor.
    - Aggregate crash cost never exceeds the optional cost cap: crashing
      stops at the first option that would breach it.
    - Fast-tracks whose risk score exceeds the optional risk cap are skipped.
    - Compressed duration = max(0, original duration - time saved).
    - Greedy order is deterministic: crashes by ascending cost slope,
      fast-tracks by descending benefit, ties by input order.

Failure modes:
    - InvalidParameterError for a non-positive target or negative caps.
    - CurrencyMismatchError if a crash cost is recorded in a different
      currency than the task baseline.

Audit relevance:
    Both passes are local-optimum heuristics.  A cheaper combination of
    crashes and fast-tracks may exist; the result does not claim
    optimality.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from scheduling_engines.critical_path import CriticalPathCalculator, CriticalPathResult
from scheduling_engines.tracer import traced_engine
from scheduling_kernel.domain.schedule import RiskLevel, Task
from scheduling_kernel.domain.values import Currency, Money
from scheduling_kernel.exceptions import CurrencyMismatchError, InvalidParameterError
from scheduling_kernel.logging_config import get_logger

logger = get_logger("engines.compression")

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")

DEFAULT_RISK_WEIGHTS: dict[str, Decimal] = {
    "low": Decimal("20"),
    "moderate": Decimal("50"),
    "high": Decimal("80"),
    "extreme": Decimal("100"),
}


class CompressionStrategy(str, Enum):
    NONE = "none"
    CRASHING_ONLY = "crashing_only"
    FAST_TRACKING_ONLY = "fast_tracking_only"
    CRASHING_DOMINANT = "crashing_dominant"
    FAST_TRACKING_DOMINANT = "fast_tracking_dominant"
    BALANCED = "balanced"


class OpportunityType(str, Enum):
    CRASHING = "crashing"
    FAST_TRACKING = "fast_tracking"


def risk_band(score: Decimal) -> RiskLevel:
    """Map a 0-100 risk score onto a qualitative band."""
    if score > 80:
        return RiskLevel.EXTREME
    if score > 60:
        return RiskLevel.HIGH
    if score > 40:
        return RiskLevel.MODERATE
    return RiskLevel.LOW


@dataclass(frozen=True)
class CrashOption:
    """A critical task that can be shortened at extra cost."""

    task_id: str
    task_name: str
    normal_duration: Decimal
    crashed_duration: Decimal
    normal_cost: Money
    crashed_cost: Money

    @property
    def time_savings(self) -> Decimal:
        return self.normal_duration - self.crashed_duration

    @property
    def cost_increase(self) -> Money:
        return self.crashed_cost - self.normal_cost

    @property
    def cost_slope(self) -> Decimal:
        """Extra cost per day saved."""
        return self.cost_increase.amount / self.time_savings

    @property
    def efficiency(self) -> Decimal | None:
        """Days saved per unit of cost; None when the crash is free."""
        if self.cost_increase.is_zero:
            return None
        return self.time_savings / self.cost_increase.amount


@dataclass(frozen=True)
class FastTrackOption:
    """A critical task whose lag to one successor can be reduced."""

    task_id: str
    task_name: str
    successor_id: str
    successor_name: str
    original_lag: Decimal
    proposed_lag: Decimal
    risk_level: RiskLevel
    rework_probability: Decimal
    risk_description: str
    risk_score: Decimal
    benefit_score: Decimal

    @property
    def time_savings(self) -> Decimal:
        return self.original_lag - self.proposed_lag

    @property
    def expected_savings(self) -> Decimal:
        """Savings discounted by the chance of rework."""
        return self.time_savings * (_ONE - self.rework_probability)


@dataclass(frozen=True)
class AppliedCrash:
    task_id: str
    task_name: str
    time_saved: Decimal
    cost_increase: Money


@dataclass(frozen=True)
class AppliedFastTrack:
    task_id: str
    successor_id: str
    task_names: str
    time_saved: Decimal
    risk_score: Decimal


@dataclass(frozen=True)
class CompressionOpportunity:
    """An option that was not applied, ranked for follow-up."""

    opportunity_type: OpportunityType
    task_id: str
    task_name: str
    time_savings: Decimal
    cost_increase: Money
    risk_score: Decimal
    efficiency: Decimal | None


@dataclass(frozen=True)
class CompressionRecommendation:
    status: str  # accept, review, reject
    message: str
    confidence: str  # high, medium, low

    @property
    def accept(self) -> bool:
        return self.status == "accept"


@dataclass(frozen=True)
class CompressionResult:
    original_duration: Decimal
    compressed_duration: Decimal
    target_reduction: Decimal
    crashing_options: tuple[CrashOption, ...]
    fast_tracking_options: tuple[FastTrackOption, ...]
    applied_crashes: tuple[AppliedCrash, ...]
    applied_fast_tracks: tuple[AppliedFastTrack, ...]
    total_cost_increase: Money
    total_risk_score: Decimal
    strategy: CompressionStrategy
    effectiveness_score: Decimal
    recommendation: CompressionRecommendation
    top_opportunities: tuple[CompressionOpportunity, ...]

    @property
    def time_saved(self) -> Decimal:
        return self.original_duration - self.compressed_duration

    @property
    def target_met(self) -> bool:
        return self.time_saved >= self.target_reduction

    @property
    def risk_level(self) -> RiskLevel:
        return risk_band(self.total_risk_score)

    @property
    def compression_percent(self) -> Decimal:
        if self.original_duration == 0:
            return _ZERO
        return self.time_saved / self.original_duration * _HUNDRED

    @property
    def cost_per_day_saved(self) -> Money:
        if self.time_saved == 0:
            return Money.zero(self.total_cost_increase.currency)
        return (self.total_cost_increase / self.time_saved).round()


class ScheduleCompressionEngine:
    """
    Pure greedy compression engine.

    Contract:
        No I/O, fully deterministic.  Tasks are never mutated.
    Guarantees:
        - Crash slope = (crashed cost - normal cost) / (normal - crashed duration).
        - Risk score = min(100, weight(risk level) + rework probability x
          rework_risk_weight).
        - Benefit = max(0, expected savings x benefit_points_per_day - risk score).
    Non-goals:
        - Optimal (e.g. integer-programming) selection.
        - Partial crashes; a crash is applied in full or not at all.
    """

    # Cost-per-day thresholds used by the effectiveness score, in currency units.
    _COST_PENALTIES = (
        (Decimal("10000"), Decimal("30")),
        (Decimal("5000"), Decimal("20")),
        (Decimal("2000"), Decimal("10")),
    )

    def __init__(
        self,
        risk_level_weights: dict[str, Decimal] | None = None,
        rework_risk_weight: Decimal = Decimal("20"),
        benefit_points_per_day: Decimal = Decimal("80"),
        top_opportunities: int = 5,
        critical_path_calculator: CriticalPathCalculator | None = None,
    ):
        self._weights = dict(risk_level_weights or DEFAULT_RISK_WEIGHTS)
        self._rework_weight = rework_risk_weight
        self._points_per_day = benefit_points_per_day
        self._top_n = top_opportunities
        self._cpm = critical_path_calculator or CriticalPathCalculator()

    def risk_score(self, risk_level: RiskLevel, rework_probability: Decimal) -> Decimal:
        weight = self._weights[risk_level.value]
        return min(_HUNDRED, weight + rework_probability * self._rework_weight)

    def crashing_options(
        self, tasks: Sequence[Task], timing: CriticalPathResult
    ) -> list[CrashOption]:
        """Valid crash options for critical tasks, cheapest slope first."""
        options: list[tuple[int, CrashOption]] = []
        for index, task in enumerate(tasks):
            if task.crash_data is None or not timing.contains_task(task.id):
                continue
            crash = task.crash_data
            if crash.crashed_cost.currency != task.baseline_cost.currency:
                raise CurrencyMismatchError(
                    task.id,
                    task.baseline_cost.currency.code,
                    crash.crashed_cost.currency.code,
                )
            if not (_ZERO <= crash.crashed_duration < task.duration) or crash.crashed_cost < task.baseline_cost:
                logger.debug("crash_option_rejected", extra={
                    "task_id": task.id,
                    "crashed_duration": str(crash.crashed_duration),
                    "crashed_cost": str(crash.crashed_cost.amount),
                })
                continue
            options.append((index, CrashOption(
                task_id=task.id,
                task_name=task.name,
                normal_duration=task.duration,
                crashed_duration=crash.crashed_duration,
                normal_cost=task.baseline_cost,
                crashed_cost=crash.crashed_cost,
            )))
        options.sort(key=lambda item: (item[1].cost_slope, item[0]))
        return [option for _, option in options]

    def fast_tracking_options(
        self, tasks: Sequence[Task], timing: CriticalPathResult
    ) -> list[FastTrackOption]:
        """Valid fast-track options on critical-path edges, highest benefit first."""
        names = {t.id: t.name for t in tasks}
        options: list[tuple[int, FastTrackOption]] = []
        sequence = 0
        for task in tasks:
            ft = task.fast_track_data
            if ft is None or not timing.contains_task(task.id):
                continue
            if not ft.proposed_lag < ft.original_lag or not _ZERO <= ft.rework_probability <= _ONE:
                logger.debug("fast_track_option_rejected", extra={
                    "task_id": task.id,
                    "original_lag": str(ft.original_lag),
                    "proposed_lag": str(ft.proposed_lag),
                    "rework_probability": str(ft.rework_probability),
                })
                continue
            risk = self.risk_score(ft.risk_level, ft.rework_probability)
            expected = (ft.original_lag - ft.proposed_lag) * (_ONE - ft.rework_probability)
            benefit = max(_ZERO, expected * self._points_per_day - risk)
            for successor_id in timing.successors.get(task.id, ()):
                if not timing.contains_task(successor_id):
                    continue
                options.append((sequence, FastTrackOption(
                    task_id=task.id,
                    task_name=task.name,
                    successor_id=successor_id,
                    successor_name=names[successor_id],
                    original_lag=ft.original_lag,
                    proposed_lag=ft.proposed_lag,
                    risk_level=ft.risk_level,
                    rework_probability=ft.rework_probability,
                    risk_description=ft.risk_description,
                    risk_score=risk,
                    benefit_score=benefit,
                )))
                sequence += 1
        options.sort(key=lambda item: (-item[1].benefit_score, item[0]))
        return [option for _, option in options]

    @traced_engine(
        "compression", "1.0",
        fingerprint_fields=("tasks", "target_reduction_days", "max_cost_increase", "max_risk_score"),
    )
    def compress(
        self,
        tasks: Sequence[Task],
        target_reduction_days: Decimal,
        max_cost_increase: Money | None = None,
        max_risk_score: Decimal | None = None,
        timing: CriticalPathResult | None = None,
    ) -> CompressionResult:
        """
        Apply crashes, then fast-tracks, until the target is met.

        Raises:
            InvalidParameterError: non-positive target or negative caps.
            CurrencyMismatchError: crash cost currency differs from baseline.
        """
        if target_reduction_days <= 0:
            raise InvalidParameterError(
                "target_reduction_days", target_reduction_days, "must be positive"
            )
        if max_cost_increase is not None and max_cost_increase.is_negative:
            raise InvalidParameterError(
                "max_cost_increase", max_cost_increase.amount, "must not be negative"
            )
        if max_risk_score is not None and not _ZERO <= max_risk_score <= _HUNDRED:
            raise InvalidParameterError(
                "max_risk_score", max_risk_score, "must be within [0, 100]"
            )

        t0 = time.monotonic()
        logger.info("compression_started", extra={
            "task_count": len(tasks),
            "target_reduction_days": str(target_reduction_days),
            "max_cost_increase": str(max_cost_increase.amount) if max_cost_increase else None,
            "max_risk_score": str(max_risk_score) if max_risk_score is not None else None,
        })

        if timing is None:
            timing = self._cpm.calculate(tasks)
        currency = self._currency(tasks, max_cost_increase)

        crashes = self.crashing_options(tasks, timing)
        fast_tracks = self.fast_tracking_options(tasks, timing)

        saved = _ZERO
        cost = Money.zero(currency)
        applied_crashes: list[AppliedCrash] = []
        for option in crashes:
            if saved >= target_reduction_days:
                break
            if max_cost_increase is not None and cost + option.cost_increase > max_cost_increase:
                logger.info("crashing_stopped_at_cost_cap", extra={
                    "task_id": option.task_id,
                    "cost_so_far": str(cost.amount),
                    "option_cost": str(option.cost_increase.amount),
                })
                break
            applied_crashes.append(AppliedCrash(
                task_id=option.task_id,
                task_name=option.task_name,
                time_saved=option.time_savings,
                cost_increase=option.cost_increase,
            ))
            saved += option.time_savings
            cost = cost + option.cost_increase

        applied_fast_tracks: list[AppliedFastTrack] = []
        for option in fast_tracks:
            if saved >= target_reduction_days:
                break
            if max_risk_score is not None and option.risk_score > max_risk_score:
                continue
            applied_fast_tracks.append(AppliedFastTrack(
                task_id=option.task_id,
                successor_id=option.successor_id,
                task_names=f"{option.task_name} -> {option.successor_name}",
                time_saved=option.time_savings,
                risk_score=option.risk_score,
            ))
            saved += option.time_savings

        original = timing.project_duration
        compressed = max(_ZERO, original - saved)
        if applied_fast_tracks:
            total_risk = sum((f.risk_score for f in applied_fast_tracks), _ZERO) / len(applied_fast_tracks)
        else:
            total_risk = _ZERO

        strategy = self._strategy(len(applied_crashes), len(applied_fast_tracks))
        time_saved = original - compressed
        score = self._effectiveness_score(original, time_saved, cost, total_risk)
        recommendation = self._recommend(
            score, time_saved, cost, total_risk,
            crash_saved=sum((c.time_saved for c in applied_crashes), _ZERO),
            total_saved=saved,
        )

        result = CompressionResult(
            original_duration=original,
            compressed_duration=compressed,
            target_reduction=target_reduction_days,
            crashing_options=tuple(crashes),
            fast_tracking_options=tuple(fast_tracks),
            applied_crashes=tuple(applied_crashes),
            applied_fast_tracks=tuple(applied_fast_tracks),
            total_cost_increase=cost,
            total_risk_score=total_risk,
            strategy=strategy,
            effectiveness_score=score,
            recommendation=recommendation,
            top_opportunities=tuple(self._top_opportunities(
                crashes, fast_tracks, applied_crashes, applied_fast_tracks, currency,
            )),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("compression_completed", extra={
            "time_saved_days": str(result.time_saved),
            "cost_increase": str(cost.amount),
            "risk_score": str(total_risk),
            "strategy": strategy.value,
            "target_met": result.target_met,
            "duration_ms": duration_ms,
        })
        return result

    @staticmethod
    def _currency(tasks: Sequence[Task], cap: Money | None) -> Currency:
        if tasks:
            return tasks[0].baseline_cost.currency
        if cap is not None:
            return cap.currency
        return Currency("USD")

    @staticmethod
    def _strategy(crash_count: int, fast_track_count: int) -> CompressionStrategy:
        if crash_count == 0 and fast_track_count == 0:
            return CompressionStrategy.NONE
        if fast_track_count == 0:
            return CompressionStrategy.CRASHING_ONLY
        if crash_count == 0:
            return CompressionStrategy.FAST_TRACKING_ONLY
        crash_share = Decimal(crash_count) / Decimal(crash_count + fast_track_count) * _HUNDRED
        if crash_share > 70:
            return CompressionStrategy.CRASHING_DOMINANT
        if crash_share < 30:
            return CompressionStrategy.FAST_TRACKING_DOMINANT
        return CompressionStrategy.BALANCED

    def _effectiveness_score(
        self,
        original: Decimal,
        time_saved: Decimal,
        cost: Money,
        risk: Decimal,
    ) -> Decimal:
        """0-100; rewards compression, penalizes expensive days and high risk."""
        percent = time_saved / original * _HUNDRED if original else _ZERO
        score = min(Decimal("50"), percent * 2)
        per_day = cost.amount / time_saved if time_saved else _ZERO
        for threshold, penalty in self._COST_PENALTIES:
            if per_day > threshold:
                score -= penalty
                break
        if risk > 80:
            score -= Decimal("20")
        elif risk > 60:
            score -= Decimal("15")
        elif risk > 40:
            score -= Decimal("10")
        return max(_ZERO, min(_HUNDRED, score)).quantize(Decimal("0.01"))

    @staticmethod
    def _recommend(
        score: Decimal,
        time_saved: Decimal,
        cost: Money,
        risk: Decimal,
        crash_saved: Decimal,
        total_saved: Decimal,
    ) -> CompressionRecommendation:
        if total_saved == 0:
            return CompressionRecommendation(
                status="reject",
                message="No compression opportunity could be applied within the given limits",
                confidence="high",
            )

        # Confidence tracks how much of the saving is low-risk crashing.
        crash_share = crash_saved / total_saved
        band = risk_band(risk)
        if crash_share >= Decimal("0.7") and band in (RiskLevel.LOW, RiskLevel.MODERATE):
            confidence = "high"
        elif crash_share < Decimal("0.5") and band in (RiskLevel.HIGH, RiskLevel.EXTREME):
            confidence = "low"
        else:
            confidence = "medium"

        days = time_saved.quantize(Decimal("0.1"))
        per_day = (cost.amount / time_saved).quantize(Decimal("1")) if time_saved else _ZERO
        if score >= 70 and time_saved >= 5:
            return CompressionRecommendation(
                status="accept",
                message=f"Excellent compression: {days} days saved with good cost/risk balance",
                confidence=confidence,
            )
        if score >= 50 and time_saved >= 3 and per_day < 5000:
            return CompressionRecommendation(
                status="accept",
                message=(
                    f"Good compression: {days} days saved at acceptable cost "
                    f"({per_day} {cost.currency.code}/day)"
                ),
                confidence=confidence,
            )
        if score >= 40 and time_saved >= 2:
            return CompressionRecommendation(
                status="review",
                message=(
                    f"Moderate compression with trade-offs. Review cost "
                    f"({per_day} {cost.currency.code}/day) and risk ({risk.quantize(Decimal('1'))}/100)"
                ),
                confidence=confidence,
            )
        if time_saved < 2:
            return CompressionRecommendation(
                status="reject",
                message="Limited time savings do not justify cost and risk",
                confidence=confidence,
            )
        return CompressionRecommendation(
            status="reject",
            message="Cost/risk too high for time savings achieved",
            confidence=confidence,
        )

    def _top_opportunities(
        self,
        crashes: list[CrashOption],
        fast_tracks: list[FastTrackOption],
        applied_crashes: list[AppliedCrash],
        applied_fast_tracks: list[AppliedFastTrack],
        currency: Currency,
    ) -> list[CompressionOpportunity]:
        crashed = {c.task_id for c in applied_crashes}
        tracked = {(f.task_id, f.successor_id) for f in applied_fast_tracks}
        opportunities = [
            CompressionOpportunity(
                opportunity_type=OpportunityType.CRASHING,
                task_id=c.task_id,
                task_name=c.task_name,
                time_savings=c.time_savings,
                cost_increase=c.cost_increase,
                risk_score=_ZERO,
                efficiency=c.efficiency,
            )
            for c in crashes
            if c.task_id not in crashed
        ]
        opportunities.extend(
            CompressionOpportunity(
                opportunity_type=OpportunityType.FAST_TRACKING,
                task_id=f.task_id,
                task_name=f"{f.task_name} -> {f.successor_name}",
                time_savings=f.time_savings,
                cost_increase=Money.zero(currency),
                risk_score=f.risk_score,
                efficiency=f.benefit_score,
            )
            for f in fast_tracks
            if (f.task_id, f.successor_id) not in tracked
        )
        # Free crashes first, then by efficiency; sort is stable.
        opportunities.sort(
            key=lambda o: (o.efficiency is not None, -(o.efficiency or _ZERO))
        )
        return opportunities[: self._top_n]
