"""
Tests for the Schedule Compression Engine.

Covers:
- Crash option validity and cost-slope ordering
- Fast-track risk and benefit scoring
- Greedy application against target, cost cap and risk cap
- Strategy summary, effectiveness score and recommendation
- Ranking of unused opportunities
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from scheduling_engines.compression import (
    CompressionStrategy,
    OpportunityType,
    ScheduleCompressionEngine,
    risk_band,
)
from scheduling_engines.critical_path import CriticalPathCalculator
from scheduling_kernel.domain.schedule import CrashData, RiskLevel
from scheduling_kernel.domain.values import Money
from scheduling_kernel.exceptions import CurrencyMismatchError, InvalidParameterError
from tests.builders import make_task


def usd(amount):
    return Money.of(amount, "USD")


def crash_chain(a_fast_track=None, b_crash=("4", "9000")):
    """a(10d, 10k, crash 7d/15k) -> b(5d, 5k, crash 4d/9k)."""
    return [
        make_task("a", duration="10", baseline="10000", crash=("7", "15000"), fast_track=a_fast_track),
        make_task("b", duration="5", start_day=10, baseline="5000", preds=("a",), crash=b_crash),
    ]


class TestCrashOptions:
    def setup_method(self):
        self.engine = ScheduleCompressionEngine()

    def _options(self, tasks):
        return self.engine.crashing_options(tasks, CriticalPathCalculator().calculate(tasks))

    def test_cost_slope(self):
        option = self._options(crash_chain())[0]

        assert option.task_id == "a"
        assert option.time_savings == Decimal("3")
        assert option.cost_increase == usd("5000")
        assert option.cost_slope.quantize(Decimal("0.01")) == Decimal("1666.67")

    def test_sorted_by_ascending_slope(self):
        options = self._options(crash_chain())

        assert [o.task_id for o in options] == ["a", "b"]
        assert options[0].cost_slope < options[1].cost_slope

    def test_non_critical_task_excluded(self):
        tasks = crash_chain() + [make_task("side", duration="2", crash=("1", "1500"))]

        assert "side" not in [o.task_id for o in self._options(tasks)]

    def test_crash_not_shorter_is_invalid(self):
        tasks = [make_task("a", duration="5", crash=("5", "2000"))]

        assert self._options(tasks) == []

    def test_crash_cheaper_than_baseline_is_invalid(self):
        tasks = [make_task("a", duration="5", baseline="1000", crash=("3", "500"))]

        assert self._options(tasks) == []

    def test_crash_currency_mismatch(self):
        task = replace(
            make_task("a", duration="5"),
            crash_data=CrashData(crashed_duration=Decimal("3"), crashed_cost=Money.of("2000", "EUR")),
        )

        with pytest.raises(CurrencyMismatchError):
            self._options([task])

    def test_free_crash_has_no_efficiency(self):
        tasks = [make_task("a", duration="5", baseline="1000", crash=("3", "1000"))]

        (option,) = self._options(tasks)
        assert option.efficiency is None
        assert option.cost_slope == Decimal("0")


class TestFastTrackOptions:
    def setup_method(self):
        self.engine = ScheduleCompressionEngine()

    def _options(self, tasks):
        return self.engine.fast_tracking_options(tasks, CriticalPathCalculator().calculate(tasks))

    def test_risk_and_benefit(self):
        (option,) = self._options(crash_chain(a_fast_track=("3", "1", "low", "0.1")))

        assert option.successor_id == "b"
        assert option.time_savings == Decimal("2")
        assert option.risk_score == Decimal("22.0")
        assert option.expected_savings == Decimal("1.8")
        assert option.benefit_score == Decimal("122.0")

    def test_risk_capped_at_100(self):
        assert self.engine.risk_score(RiskLevel.EXTREME, Decimal("1")) == Decimal("100")

    def test_benefit_never_negative(self):
        (option,) = self._options(crash_chain(a_fast_track=("1", "0.5", "extreme", "0.9")))

        assert option.benefit_score == Decimal("0")

    def test_lag_not_reduced_is_invalid(self):
        assert self._options(crash_chain(a_fast_track=("1", "1", "low", "0.1"))) == []

    def test_probability_out_of_range_is_invalid(self):
        assert self._options(crash_chain(a_fast_track=("3", "1", "low", "1.5"))) == []

    def test_task_without_successor_has_no_option(self):
        tasks = [make_task("a", duration="5", fast_track=("3", "1", "low", "0.1"))]

        assert self._options(tasks) == []

    def test_non_critical_successor_excluded(self):
        """Overlapping a with an off-path successor does not shorten the project."""
        tasks = [
            make_task("a", duration="10", fast_track=("3", "1", "low", "0.1")),
            make_task("b", duration="5", start_day=10, preds=("a",)),
            make_task("c", duration="1", start_day=10, preds=("a",)),
        ]

        (option,) = self._options(tasks)

        assert option.successor_id == "b"

    def test_non_critical_successor_not_counted_as_saving(self):
        tasks = [
            make_task("a", duration="10", fast_track=("3", "1", "low", "0.1")),
            make_task("b", duration="5", start_day=10, preds=("a",)),
            make_task("c", duration="1", start_day=10, preds=("a",)),
        ]

        result = self.engine.compress(tasks, Decimal("4"))

        assert [f.successor_id for f in result.applied_fast_tracks] == ["b"]
        assert result.time_saved == Decimal("2")
        assert result.compressed_duration == Decimal("13")


class TestCompress:
    def setup_method(self):
        self.engine = ScheduleCompressionEngine()

    def test_cheapest_crash_meets_target(self):
        result = self.engine.compress(crash_chain(), Decimal("3"))

        assert [c.task_id for c in result.applied_crashes] == ["a"]
        assert result.original_duration == Decimal("15")
        assert result.compressed_duration == Decimal("12")
        assert result.time_saved == Decimal("3")
        assert result.total_cost_increase == usd("5000")
        assert result.target_met is True
        assert result.strategy == CompressionStrategy.CRASHING_ONLY

    def test_target_not_reachable(self):
        result = self.engine.compress(crash_chain(), Decimal("100"))

        assert [c.task_id for c in result.applied_crashes] == ["a", "b"]
        assert result.time_saved == Decimal("4")
        assert result.target_met is False

    def test_cost_cap_stops_crashing(self):
        result = self.engine.compress(crash_chain(), Decimal("4"), max_cost_increase=usd("4500"))

        assert result.applied_crashes == ()
        assert result.total_cost_increase == usd("0")
        assert result.strategy == CompressionStrategy.NONE

    def test_cost_cap_never_exceeded(self):
        cap = usd("10000")
        result = self.engine.compress(crash_chain(), Decimal("100"), max_cost_increase=cap)

        assert result.total_cost_increase <= cap

    def test_fast_track_after_crashes(self):
        tasks = crash_chain(a_fast_track=("3", "1", "low", "0.1"))

        result = self.engine.compress(tasks, Decimal("6"))

        assert len(result.applied_crashes) == 2
        (ft,) = result.applied_fast_tracks
        assert ft.task_names == "Task a -> Task b"
        assert result.time_saved == Decimal("6")
        assert result.total_risk_score == Decimal("22.0")
        assert result.strategy == CompressionStrategy.BALANCED

    def test_risk_cap_skips_fast_track(self):
        tasks = crash_chain(a_fast_track=("3", "1", "low", "0.1"))

        result = self.engine.compress(tasks, Decimal("6"), max_risk_score=Decimal("10"))

        assert result.applied_fast_tracks == ()
        assert result.target_met is False

    def test_fast_tracking_only(self):
        tasks = crash_chain(a_fast_track=("3", "1", "low", "0.1"), b_crash=None)
        tasks[0] = replace(tasks[0], crash_data=None)

        result = self.engine.compress(tasks, Decimal("2"))

        assert result.strategy == CompressionStrategy.FAST_TRACKING_ONLY
        assert result.total_cost_increase == usd("0")

    def test_compressed_duration_never_negative(self):
        tasks = [make_task("a", duration="2", fast_track=("10", "0", "low", "0")),
                 make_task("b", duration="1", start_day=2, preds=("a",))]

        result = self.engine.compress(tasks, Decimal("1"))

        assert result.compressed_duration == Decimal("0")

    def test_uses_supplied_timing(self):
        tasks = crash_chain()
        timing = CriticalPathCalculator().calculate(tasks)

        result = self.engine.compress(tasks, Decimal("3"), timing=timing)

        assert result.original_duration == timing.project_duration

    def test_invalid_target(self):
        with pytest.raises(InvalidParameterError):
            self.engine.compress(crash_chain(), Decimal("0"))

    def test_invalid_risk_cap(self):
        with pytest.raises(InvalidParameterError):
            self.engine.compress(crash_chain(), Decimal("3"), max_risk_score=Decimal("150"))

    def test_negative_cost_cap(self):
        with pytest.raises(InvalidParameterError):
            self.engine.compress(crash_chain(), Decimal("3"), max_cost_increase=usd("-1"))


class TestScoring:
    def setup_method(self):
        self.engine = ScheduleCompressionEngine()

    def test_effectiveness_and_review(self):
        result = self.engine.compress(crash_chain(), Decimal("3"))

        # 20% compression -> 40 points; 1666.67/day and no risk carry no penalty.
        assert result.effectiveness_score == Decimal("40.00")
        assert result.compression_percent == Decimal("20")
        assert result.cost_per_day_saved == usd("1666.67")
        assert result.recommendation.status == "review"
        assert result.recommendation.accept is False
        assert result.recommendation.confidence == "high"

    def test_nothing_applied_is_rejected(self):
        result = self.engine.compress(crash_chain(), Decimal("3"), max_cost_increase=usd("1"))

        assert result.recommendation.status == "reject"
        assert result.effectiveness_score == Decimal("0.00")

    def test_small_saving_rejected(self):
        tasks = [make_task("a", duration="10", baseline="1000", crash=("9", "1100"))]

        result = self.engine.compress(tasks, Decimal("1"))

        assert result.recommendation.status == "reject"
        assert result.recommendation.message == "Limited time savings do not justify cost and risk"

    def test_large_cheap_compression_accepted(self):
        tasks = [make_task("a", duration="10", baseline="1000", crash=("4", "1600"))]

        result = self.engine.compress(tasks, Decimal("6"))

        assert result.effectiveness_score == Decimal("50.00")
        assert result.recommendation.status == "accept"

    def test_risk_bands(self):
        assert risk_band(Decimal("10")) == RiskLevel.LOW
        assert risk_band(Decimal("45")) == RiskLevel.MODERATE
        assert risk_band(Decimal("70")) == RiskLevel.HIGH
        assert risk_band(Decimal("90")) == RiskLevel.EXTREME


class TestOpportunities:
    def test_unapplied_options_ranked(self):
        engine = ScheduleCompressionEngine()

        result = engine.compress(crash_chain(), Decimal("3"))

        (opportunity,) = result.top_opportunities
        assert opportunity.opportunity_type == OpportunityType.CRASHING
        assert opportunity.task_id == "b"
        assert opportunity.efficiency == Decimal("1") / Decimal("4000")

    def test_free_crash_applied_under_zero_cap(self):
        tasks = [
            make_task("a", duration="10", baseline="10000", crash=("9", "10000")),
            make_task("b", duration="5", start_day=10, baseline="5000", preds=("a",), crash=("4", "9000")),
        ]
        engine = ScheduleCompressionEngine()

        result = engine.compress(tasks, Decimal("3"), max_cost_increase=usd("0"))

        assert [o.task_id for o in result.top_opportunities] == ["b"]
        assert result.applied_crashes[0].task_id == "a"

    def test_limit(self):
        engine = ScheduleCompressionEngine(top_opportunities=1)
        tasks = crash_chain(a_fast_track=("3", "1", "low", "0.1"))

        result = engine.compress(tasks, Decimal("0.5"), max_cost_increase=usd("0"))

        assert len(result.top_opportunities) == 1
