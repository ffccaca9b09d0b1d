"""
Schedule Domain Model (``scheduling_kernel.domain.schedule``).

Responsibility
--------------
Frozen dataclass value objects describing the nouns of a project schedule:
projects, tasks, precedence dependencies, resource assignments, resource
capacities, and the optional crashing / fast-tracking data a task may carry.

Architecture position
---------------------
**Kernel > Domain** -- pure data definitions with ZERO I/O.  Produced by
the selectors (or any other ``ScheduleLookup``), consumed read-only by
``scheduling_engines``.  Engines never mutate these objects; derived
schedules (e.g. leveled or compressed) are reported as separate results.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All costs use ``Money``; durations, lags, and units use ``Decimal``.
* Instants are timezone-aware ``datetime`` values.
* ``ResourceAssignment.start <= ResourceAssignment.finish``.
* ``Task.percent_complete`` lies in [0, 100]; ``Task.duration >= 0``.

Failure modes
-------------
* Construction with an out-of-range value raises ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from scheduling_kernel.domain.values import Money


class DependencyType(str, Enum):
    """Precedence relationship between two tasks."""

    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"


class RiskLevel(str, Enum):
    """Qualitative risk of overlapping two tasks."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"


class ResourceType(str, Enum):
    LABOR = "labor"
    EQUIPMENT = "equipment"
    MATERIAL = "material"
    SUBCONTRACTOR = "subcontractor"
    FACILITY = "facility"


def _require_aware(value: datetime, name: str) -> None:
    if value.tzinfo is None:
        raise ValueError(f"{name} must be timezone-aware: {value!r}")


@dataclass(frozen=True)
class Dependency:
    """A precedence edge from ``predecessor_id`` into the owning task."""

    predecessor_id: str
    dependency_type: DependencyType = DependencyType.FINISH_TO_START
    lag: Decimal = Decimal("0")  # working days, may be negative


@dataclass(frozen=True)
class ResourceAssignment:
    """A resource committed to a task over an interval."""

    resource_id: str
    task_id: str
    allocation_percent: Decimal
    start: datetime
    finish: datetime
    units: Decimal | None = None

    def __post_init__(self) -> None:
        if self.allocation_percent <= 0:
            raise ValueError(
                f"allocation_percent must be positive: {self.allocation_percent}"
            )
        _require_aware(self.start, "start")
        _require_aware(self.finish, "finish")
        if self.start > self.finish:
            raise ValueError(
                f"Assignment of {self.resource_id} to {self.task_id} "
                f"starts after it finishes"
            )

    @property
    def effective_units(self) -> Decimal:
        """Units of the resource consumed per day (1 = one full unit)."""
        if self.units is not None:
            return self.units
        return self.allocation_percent / Decimal("100")

    def overlaps(self, window_start: datetime | None, window_end: datetime | None) -> bool:
        if window_end is not None and self.start > window_end:
            return False
        if window_start is not None and self.finish < window_start:
            return False
        return True


@dataclass(frozen=True)
class CrashData:
    """Duration and cost of a task when performed at its crash point."""

    crashed_duration: Decimal
    crashed_cost: Money


@dataclass(frozen=True)
class FastTrackData:
    """Lag reduction available between a task and its successors."""

    original_lag: Decimal
    proposed_lag: Decimal
    risk_level: RiskLevel
    rework_probability: Decimal
    risk_description: str = ""


@dataclass(frozen=True)
class Task:
    """A schedulable unit of work."""

    id: str
    name: str
    duration: Decimal
    planned_start: datetime
    planned_finish: datetime
    baseline_cost: Money
    percent_complete: Decimal = Decimal("0")
    actual_cost: Money | None = None
    baseline_labor_hours: Decimal | None = None
    actual_labor_hours: Decimal | None = None
    dependencies: tuple[Dependency, ...] = ()
    successor_ids: tuple[str, ...] = ()
    resource_assignments: tuple[ResourceAssignment, ...] = ()
    crash_data: CrashData | None = None
    fast_track_data: FastTrackData | None = None
    wbs_code: str | None = None

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError(f"Task {self.id} has negative duration {self.duration}")
        if not Decimal("0") <= self.percent_complete <= Decimal("100"):
            raise ValueError(
                f"Task {self.id} percent_complete out of range: {self.percent_complete}"
            )
        _require_aware(self.planned_start, "planned_start")
        _require_aware(self.planned_finish, "planned_finish")
        if self.planned_start > self.planned_finish:
            raise ValueError(f"Task {self.id} starts after it finishes")

    @property
    def predecessor_ids(self) -> tuple[str, ...]:
        return tuple(d.predecessor_id for d in self.dependencies)


@dataclass(frozen=True)
class ResourceCapacity:
    """Maximum simultaneous allocation of a resource, in percent."""

    resource_id: str
    max_allocation_percent: Decimal = Decimal("100")


@dataclass(frozen=True)
class ResourceRecord:
    """A resource available to the project."""

    id: str
    name: str
    resource_type: ResourceType
    max_units: Decimal
    cost_per_unit: Money | None = None

    def __post_init__(self) -> None:
        if self.max_units <= 0:
            raise ValueError(f"Resource {self.id} max_units must be positive")

    @property
    def capacity(self) -> ResourceCapacity:
        return ResourceCapacity(
            resource_id=self.id,
            max_allocation_percent=self.max_units * Decimal("100"),
        )


@dataclass(frozen=True)
class ProjectRecord:
    """A project header as seen by the analytics engine."""

    id: UUID
    name: str
    currency: str = "USD"
    status: str = "active"
