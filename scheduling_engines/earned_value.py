"""
scheduling_engines.earned_value -- Earned-value management (EVM) calculator.

Responsibility:
    Derive budget at completion, planned value, earned value and actual
    cost from a task snapshot, then the variances, performance indices and
    completion forecasts built on them.  Classify schedule and budget
    status and judge how achievable the to-complete performance index is.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ``as_of`` is supplied by the caller; the engine never reads a clock.

Invariants enforced:
    - All tasks share one currency (MixedCurrencyError otherwise).
    - An explicit actual cost must be in the task's baseline currency
      (CurrencyMismatchError otherwise); one bad task aborts the analysis.
    - Division by zero never yields NaN or infinity: an index whose
      denominator is zero is None ("not computable").
    - Money amounts are rounded to the currency's precision; indices are
      quantized to ``index_decimal_places``.
    - BAC is computed once per analysis and threaded through the snapshot
      and the TCPI calculation.

Failure modes:
    - InvalidParameterError when called with no tasks.
    - MixedCurrencyError, CurrencyMismatchError as above.

Audit relevance:
    PV uses a linear time-proportion model across the planned span, not a
    task-weighted S-curve.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from scheduling_engines.tracer import traced_engine
from scheduling_kernel.domain.schedule import Task
from scheduling_kernel.domain.values import Currency, Money
from scheduling_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidParameterError,
    MixedCurrencyError,
)
from scheduling_kernel.logging_config import get_logger

logger = get_logger("engines.earned_value")

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")
_MICROSECOND = timedelta(microseconds=1)


class ScheduleStatus(str, Enum):
    AHEAD = "ahead"
    ON_TRACK = "on_track"
    BEHIND = "behind"


class BudgetStatus(str, Enum):
    UNDER_BUDGET = "under_budget"
    ON_BUDGET = "on_budget"
    OVER_BUDGET = "over_budget"


class TCPIMethod(str, Enum):
    BAC = "bac"
    EAC = "eac"


@dataclass(frozen=True)
class EVMSnapshot:
    """Earned-value position of a project at one point in time."""

    as_of: datetime
    currency: Currency
    budget_at_completion: Money
    planned_value: Money
    earned_value: Money
    actual_cost: Money
    schedule_variance: Money
    cost_variance: Money
    percent_complete: Decimal
    spi: Decimal | None
    cpi: Decimal | None
    estimate_at_completion: Money | None
    estimate_to_complete: Money | None
    variance_at_completion: Money | None
    tcpi: Decimal | None


@dataclass(frozen=True)
class TCPIResult:
    value: Decimal | None
    method: TCPIMethod
    is_achievable: bool | None
    recommendation: str

    @property
    def is_defined(self) -> bool:
        return self.value is not None


class EarnedValueCalculator:
    """
    Pure EVM calculator.

    Contract:
        No I/O, fully deterministic for a given ``as_of``.
    Guarantees:
        - SV = EV - PV, CV = EV - AC.
        - SPI = EV / PV (PV > 0), CPI = EV / AC (AC > 0).
        - EAC = BAC / CPI, ETC = EAC - AC, VAC = BAC - EAC (CPI defined, non-zero).
        - TCPI = (BAC - EV) / (BAC - AC), or (BAC - EV) / (EAC - AC).
    Non-goals:
        - S-curve or resource-loaded planned value.
        - Currency conversion.
    """

    def __init__(
        self,
        schedule_variance_tolerance: Decimal = Decimal("100"),
        cost_variance_tolerance: Decimal = Decimal("100"),
        tcpi_achievable_threshold: Decimal = Decimal("1.20"),
        index_decimal_places: int = 4,
    ):
        self._sv_tolerance = schedule_variance_tolerance
        self._cv_tolerance = cost_variance_tolerance
        self._tcpi_threshold = tcpi_achievable_threshold
        self._index_quantum = Decimal(1).scaleb(-index_decimal_places)

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    @staticmethod
    def ensure_single_currency(tasks: Sequence[Task]) -> Currency:
        if not tasks:
            raise InvalidParameterError("tasks", 0, "at least one task is required")
        codes = sorted({t.baseline_cost.currency.code for t in tasks})
        if len(codes) > 1:
            raise MixedCurrencyError(codes)
        return tasks[0].baseline_cost.currency

    def budget_at_completion(self, tasks: Sequence[Task]) -> Money:
        currency = self.ensure_single_currency(tasks)
        return sum((t.baseline_cost for t in tasks), Money.zero(currency))

    @staticmethod
    def planned_value(
        bac: Money,
        project_start: datetime,
        project_finish: datetime,
        as_of: datetime,
    ) -> Money:
        if as_of < project_start:
            return Money.zero(bac.currency)
        if as_of >= project_finish:
            return bac
        elapsed = Decimal((as_of - project_start) // _MICROSECOND)
        total = Decimal((project_finish - project_start) // _MICROSECOND)
        return bac * (elapsed / total)

    @staticmethod
    def earned_value(tasks: Sequence[Task], currency: Currency) -> Money:
        return sum(
            (t.baseline_cost * (t.percent_complete / _HUNDRED) for t in tasks),
            Money.zero(currency),
        )

    @staticmethod
    def actual_cost_for(task: Task) -> Money:
        """Actual cost of one task: recorded, labour-derived, or progress-derived."""
        if task.actual_cost is not None:
            if task.actual_cost.currency != task.baseline_cost.currency:
                raise CurrencyMismatchError(
                    task.id,
                    task.baseline_cost.currency.code,
                    task.actual_cost.currency.code,
                )
            return task.actual_cost
        if (
            task.actual_labor_hours is not None
            and task.baseline_labor_hours is not None
            and task.baseline_labor_hours > 0
        ):
            ratio = min(_ONE, task.actual_labor_hours / task.baseline_labor_hours)
            return task.baseline_cost * ratio
        return task.baseline_cost * (task.percent_complete / _HUNDRED)

    def _ratio(self, numerator: Decimal, denominator: Decimal) -> Decimal | None:
        if denominator == 0:
            return None
        return (numerator / denominator).quantize(self._index_quantum)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @traced_engine("earned_value", "1.0", fingerprint_fields=("tasks", "as_of"))
    def calculate(self, tasks: Sequence[Task], as_of: datetime) -> EVMSnapshot:
        """
        Compute the EVM snapshot for ``tasks`` as of ``as_of``.

        Raises:
            InvalidParameterError: no tasks.
            MixedCurrencyError: tasks in more than one currency.
            CurrencyMismatchError: a task's actual cost currency differs.
        """
        t0 = time.monotonic()
        bac = self.budget_at_completion(tasks)
        currency = bac.currency

        logger.info("earned_value_started", extra={
            "task_count": len(tasks),
            "currency": currency.code,
            "as_of": as_of,
        })

        project_start = min(t.planned_start for t in tasks)
        project_finish = max(t.planned_finish for t in tasks)

        pv = self.planned_value(bac, project_start, project_finish, as_of).round()
        ev = self.earned_value(tasks, currency).round()
        ac = sum((self.actual_cost_for(t) for t in tasks), Money.zero(currency)).round()
        bac = bac.round()

        percent_complete = (
            (ev.amount / bac.amount * _HUNDRED).quantize(Decimal("0.01"))
            if bac.amount else _ZERO
        )

        spi = self._ratio(ev.amount, pv.amount) if pv.is_positive else None
        cpi = self._ratio(ev.amount, ac.amount) if ac.is_positive else None

        eac = etc = vac = None
        if ac.is_positive and ev.is_positive:
            # BAC / CPI with CPI unrounded.
            eac = (bac * (ac.amount / ev.amount)).round()
            etc = eac - ac
            vac = bac - eac

        snapshot = EVMSnapshot(
            as_of=as_of,
            currency=currency,
            budget_at_completion=bac,
            planned_value=pv,
            earned_value=ev,
            actual_cost=ac,
            schedule_variance=ev - pv,
            cost_variance=ev - ac,
            percent_complete=percent_complete,
            spi=spi,
            cpi=cpi,
            estimate_at_completion=eac,
            estimate_to_complete=etc,
            variance_at_completion=vac,
            tcpi=self.tcpi(bac, ev, ac).value,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("earned_value_completed", extra={
            "planned_value": str(pv.amount),
            "earned_value": str(ev.amount),
            "actual_cost": str(ac.amount),
            "spi": str(spi) if spi is not None else None,
            "cpi": str(cpi) if cpi is not None else None,
            "duration_ms": duration_ms,
        })
        return snapshot

    # ------------------------------------------------------------------
    # TCPI
    # ------------------------------------------------------------------

    def tcpi(
        self,
        bac: Money,
        ev: Money,
        ac: Money,
        eac: Money | None = None,
    ) -> TCPIResult:
        """
        To-complete performance index.

        Uses (BAC - EV) / (EAC - AC) when ``eac`` is given, otherwise
        (BAC - EV) / (BAC - AC).  A zero denominator gives an undefined
        result with no achievability judgment.  Actual cost already past the
        target (negative denominator) means the budget is exhausted: the
        value is kept but the target is reported as unachievable.
        """
        method = TCPIMethod.EAC if eac is not None else TCPIMethod.BAC
        target = eac if eac is not None else bac
        value = self._ratio((bac - ev).amount, (target - ac).amount)
        if value is None:
            return TCPIResult(
                value=None,
                method=method,
                is_achievable=None,
                recommendation="TCPI is not computable: no remaining budget",
            )
        if ac > target:
            return TCPIResult(
                value=value,
                method=method,
                is_achievable=False,
                recommendation=(
                    "Budget already exceeded - target cannot be met; "
                    "re-baseline or revise EAC"
                ),
            )
        return TCPIResult(
            value=value,
            method=method,
            is_achievable=value <= self._tcpi_threshold,
            recommendation=self.tcpi_recommendation(value),
        )

    @staticmethod
    def tcpi_recommendation(value: Decimal) -> str:
        if value > Decimal("1.20"):
            return "TCPI indicates very difficult target - consider revising budget or reducing scope"
        if value > Decimal("1.10"):
            return (
                "TCPI indicates challenging target - implement strict cost controls "
                "and efficiency improvements"
            )
        if value > _ONE:
            return "TCPI indicates need for improved efficiency - maintain cost discipline"
        if value >= Decimal("0.90"):
            return "TCPI indicates achievable target - maintain current performance"
        return "TCPI indicates comfortable target - project has cost buffer available"

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def schedule_status(self, schedule_variance: Money) -> ScheduleStatus:
        if abs(schedule_variance.amount) < self._sv_tolerance:
            return ScheduleStatus.ON_TRACK
        if schedule_variance.is_positive:
            return ScheduleStatus.AHEAD
        return ScheduleStatus.BEHIND

    def budget_status(self, cost_variance: Money) -> BudgetStatus:
        if abs(cost_variance.amount) < self._cv_tolerance:
            return BudgetStatus.ON_BUDGET
        if cost_variance.is_positive:
            return BudgetStatus.UNDER_BUDGET
        return BudgetStatus.OVER_BUDGET

    @staticmethod
    def performance_narrative(spi: Decimal | None, cpi: Decimal | None) -> str:
        if spi is None or cpi is None:
            return "Insufficient progress data to assess schedule and cost performance"
        if spi >= 1 and cpi >= 1:
            return "Project is on schedule and under budget - excellent performance"
        if spi >= 1:
            return "Project is on schedule but over budget - cost management needed"
        if cpi >= 1:
            return "Project is behind schedule but under budget - schedule recovery needed"
        return "Project is behind schedule and over budget - immediate corrective action required"
