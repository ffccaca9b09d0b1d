"""
Tests for the Earned Value Calculator.

Covers:
- PV / EV / AC derivation and actual-cost priority
- Variances, indices and forecasts
- Undefined indices on zero denominators
- TCPI variants, achievability and bands
- Currency validation
- Status classification and narrative
"""

from decimal import Decimal

import pytest

from scheduling_engines.earned_value import (
    BudgetStatus,
    EarnedValueCalculator,
    ScheduleStatus,
    TCPIMethod,
)
from scheduling_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidParameterError,
    MixedCurrencyError,
)
from scheduling_kernel.domain.values import Money
from tests.builders import day, make_task


def usd(amount):
    return Money.of(amount, "USD")


def midpoint_task(percent_complete="40", actual_cost="45000"):
    """100k over 30 days, evaluated at day 15 in the examples below."""
    return make_task(
        "build",
        duration="30",
        baseline="100000",
        percent_complete=percent_complete,
        actual_cost=actual_cost,
    )


class TestSnapshot:
    def setup_method(self):
        self.calculator = EarnedValueCalculator()

    def test_planned_and_earned_value(self):
        snapshot = self.calculator.calculate([midpoint_task()], day(15))

        assert snapshot.budget_at_completion == usd("100000")
        assert snapshot.planned_value == usd("50000")
        assert snapshot.earned_value == usd("40000")
        assert snapshot.schedule_variance == usd("-10000")
        assert snapshot.spi == Decimal("0.8000")
        assert snapshot.percent_complete == Decimal("40.00")

    def test_cost_indices_and_forecast(self):
        snapshot = self.calculator.calculate([midpoint_task()], day(15))

        assert snapshot.actual_cost == usd("45000")
        assert snapshot.cost_variance == usd("-5000")
        assert snapshot.cpi == Decimal("0.8889")
        assert snapshot.estimate_at_completion == usd("112500")
        assert snapshot.estimate_to_complete == usd("67500")
        assert snapshot.variance_at_completion == usd("-12500")
        assert snapshot.tcpi == Decimal("1.0909")

    def test_variance_identities(self):
        snapshot = self.calculator.calculate([midpoint_task()], day(15))

        assert snapshot.schedule_variance == snapshot.earned_value - snapshot.planned_value
        assert snapshot.cost_variance == snapshot.earned_value - snapshot.actual_cost

    def test_planned_value_before_start_and_after_finish(self):
        before = self.calculator.calculate([midpoint_task()], day(-1))
        after = self.calculator.calculate([midpoint_task()], day(45))

        assert before.planned_value == usd("0")
        assert after.planned_value == usd("100000")

    def test_planned_value_spans_all_tasks(self):
        tasks = [
            make_task("a", duration="10", baseline="1000"),
            make_task("b", duration="10", start_day=10, baseline="3000"),
        ]

        snapshot = self.calculator.calculate(tasks, day(5))

        assert snapshot.planned_value == usd("1000")

    def test_earned_value_sums_tasks(self):
        tasks = [
            make_task("a", baseline="1000", percent_complete="100"),
            make_task("b", baseline="3000", percent_complete="50"),
        ]

        snapshot = self.calculator.calculate(tasks, day(0))

        assert snapshot.earned_value == usd("2500")

    def test_indices_undefined_without_progress(self):
        task = make_task("a", duration="10", baseline="1000")

        snapshot = self.calculator.calculate([task], day(-5))

        assert snapshot.spi is None
        assert snapshot.cpi is None
        assert snapshot.estimate_at_completion is None
        assert snapshot.estimate_to_complete is None
        assert snapshot.variance_at_completion is None

    def test_engine_trace_and_completion_logged(self, captured_logs):
        self.calculator.calculate([midpoint_task()], day(15))

        messages = [r["message"] for r in captured_logs()]
        assert "SCHEDULING_ENGINE_TRACE" in messages
        done = [r for r in captured_logs() if r["message"] == "earned_value_completed"]
        assert done[0]["spi"] == "0.8000"


class TestActualCost:
    def test_recorded_cost_takes_priority(self):
        task = make_task(
            "a", baseline="1000", percent_complete="10", actual_cost="700",
            baseline_hours="100", actual_hours="20",
        )

        assert EarnedValueCalculator.actual_cost_for(task) == usd("700")

    def test_labor_hours_ratio(self):
        task = make_task("a", baseline="1000", baseline_hours="100", actual_hours="50")

        assert EarnedValueCalculator.actual_cost_for(task) == usd("500")

    def test_labor_hours_ratio_capped_at_one(self):
        task = make_task("a", baseline="1000", baseline_hours="100", actual_hours="150")

        assert EarnedValueCalculator.actual_cost_for(task) == usd("1000")

    def test_zero_baseline_hours_falls_back_to_progress(self):
        task = make_task(
            "a", baseline="1000", percent_complete="30", baseline_hours="0", actual_hours="5",
        )

        assert EarnedValueCalculator.actual_cost_for(task) == usd("300")

    def test_progress_fallback(self):
        task = make_task("a", baseline="1000", percent_complete="30")

        assert EarnedValueCalculator.actual_cost_for(task) == usd("300")

    def test_actual_cost_currency_mismatch(self):
        task = make_task("a", actual_cost="500", actual_currency="EUR")

        with pytest.raises(CurrencyMismatchError) as exc_info:
            EarnedValueCalculator().calculate([task], day(0))
        assert exc_info.value.task_id == "a"
        assert exc_info.value.actual_currency == "EUR"


class TestCurrency:
    def test_mixed_currencies_rejected(self):
        tasks = [make_task("a", currency="USD"), make_task("b", currency="EUR")]

        with pytest.raises(MixedCurrencyError) as exc_info:
            EarnedValueCalculator().calculate(tasks, day(0))
        assert list(exc_info.value.currencies) == ["EUR", "USD"]

    def test_no_tasks_rejected(self):
        with pytest.raises(InvalidParameterError):
            EarnedValueCalculator().calculate([], day(0))

    def test_snapshot_currency(self):
        snapshot = EarnedValueCalculator().calculate([make_task("a", currency="EUR")], day(0))

        assert snapshot.currency.code == "EUR"


class TestTCPI:
    def setup_method(self):
        self.calculator = EarnedValueCalculator()

    def test_bac_variant(self):
        result = self.calculator.tcpi(usd("100000"), usd("40000"), usd("45000"))

        assert result.method == TCPIMethod.BAC
        assert result.value == Decimal("1.0909")
        assert result.is_achievable is True
        assert "improved efficiency" in result.recommendation

    def test_eac_variant(self):
        result = self.calculator.tcpi(
            usd("100000"), usd("40000"), usd("45000"), eac=usd("112500")
        )

        assert result.method == TCPIMethod.EAC
        assert result.value == Decimal("0.8889")
        assert "comfortable target" in result.recommendation

    def test_unachievable_above_threshold(self):
        result = self.calculator.tcpi(usd("100000"), usd("10000"), usd("80000"))

        assert result.value == Decimal("4.5000")
        assert result.is_achievable is False
        assert "very difficult" in result.recommendation

    def test_threshold_configurable(self):
        calculator = EarnedValueCalculator(tcpi_achievable_threshold=Decimal("1.05"))

        result = calculator.tcpi(usd("100000"), usd("40000"), usd("45000"))

        assert result.is_achievable is False

    def test_undefined_when_budget_exhausted(self):
        result = self.calculator.tcpi(usd("1000"), usd("500"), usd("1000"))

        assert result.value is None
        assert result.is_defined is False
        assert result.is_achievable is None

    def test_overspent_budget_is_unachievable(self):
        """Actual cost past BAC with work remaining gives a negative index."""
        result = self.calculator.tcpi(usd("1000"), usd("500"), usd("1200"))

        assert result.value == Decimal("-2.5000")
        assert result.is_achievable is False
        assert "Budget already exceeded" in result.recommendation
        assert "comfortable" not in result.recommendation

    def test_overspent_eac_is_unachievable(self):
        result = self.calculator.tcpi(
            usd("100000"), usd("40000"), usd("90000"), eac=usd("85000")
        )

        assert result.method == TCPIMethod.EAC
        assert result.value < 0
        assert result.is_achievable is False

    @pytest.mark.parametrize(
        "value, fragment",
        [
            (Decimal("1.25"), "very difficult"),
            (Decimal("1.15"), "challenging"),
            (Decimal("1.05"), "improved efficiency"),
            (Decimal("0.95"), "achievable target"),
            (Decimal("0.80"), "comfortable"),
        ],
    )
    def test_recommendation_bands(self, value, fragment):
        assert fragment in EarnedValueCalculator.tcpi_recommendation(value)


class TestClassification:
    def setup_method(self):
        self.calculator = EarnedValueCalculator()

    def test_schedule_status(self):
        assert self.calculator.schedule_status(usd("-10000")) == ScheduleStatus.BEHIND
        assert self.calculator.schedule_status(usd("500")) == ScheduleStatus.AHEAD
        assert self.calculator.schedule_status(usd("50")) == ScheduleStatus.ON_TRACK
        assert self.calculator.schedule_status(usd("-99.99")) == ScheduleStatus.ON_TRACK

    def test_budget_status(self):
        assert self.calculator.budget_status(usd("-5000")) == BudgetStatus.OVER_BUDGET
        assert self.calculator.budget_status(usd("250")) == BudgetStatus.UNDER_BUDGET
        assert self.calculator.budget_status(usd("0")) == BudgetStatus.ON_BUDGET

    def test_tolerance_boundary_is_outside(self):
        assert self.calculator.schedule_status(usd("100")) == ScheduleStatus.AHEAD

    def test_narrative(self):
        narrative = EarnedValueCalculator.performance_narrative

        assert "excellent performance" in narrative(Decimal("1.1"), Decimal("1.0"))
        assert "cost management needed" in narrative(Decimal("1.0"), Decimal("0.9"))
        assert "schedule recovery needed" in narrative(Decimal("0.9"), Decimal("1.2"))
        assert "immediate corrective action" in narrative(Decimal("0.8"), Decimal("0.8"))
        assert narrative(None, Decimal("1")).startswith("Insufficient progress data")
