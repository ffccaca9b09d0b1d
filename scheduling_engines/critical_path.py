"""
scheduling_engines.critical_path -- Critical Path Method (CPM) timing.

Responsibility:
    Validate a task dependency graph and compute, for every task, its
    early/late start and finish offsets, total and free float, and
    criticality.  The critical path is the set of zero-float tasks ordered
    by early start.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import scheduling_kernel domain values and exceptions.
    Consumed by the scheduling service, the leveling engine (float-based
    priorities) and the compression engine (critical task selection).

Invariants enforced:
    - ES + duration = EF and LS + duration = LF for every task.
    - Total float = LS - ES >= 0; a task is critical iff its total float
      is within the configured tolerance (zero by default).
    - The graph is acyclic; cycles are detected by an explicit iterative
      depth-first traversal with three-state marks, so deep chains cannot
      exhaust the interpreter stack.
    - Deterministic: topological ties are broken by input order, so the
      same input always yields the same output.

Failure modes:
    - TaskNotFoundError if a dependency or declared successor references
      a task that is not in the input.
    - CyclicDependencyError carrying the offending cycle.
    - InvalidParameterError for duplicate task ids.

Audit relevance:
    Offsets are expressed in working days from the project start; callers
    project them onto calendar dates.  Only finish-to-start precedence is
    evaluated exactly; other dependency types are approximated as
    finish-to-start and logged, and lags are not applied.
"""

from __future__ import annotations

import heapq
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from scheduling_engines.tracer import traced_engine
from scheduling_kernel.domain.schedule import DependencyType, Task
from scheduling_kernel.exceptions import (
    CyclicDependencyError,
    InvalidParameterError,
    TaskNotFoundError,
)
from scheduling_kernel.logging_config import get_logger

logger = get_logger("engines.critical_path")

_ZERO = Decimal("0")


class FloatStatus(str, Enum):
    """Scheduling flexibility classification of a task."""

    CRITICAL = "critical"
    NEAR_CRITICAL = "near_critical"
    NORMAL = "normal"


@dataclass(frozen=True)
class Float:
    """Total and free float of a task, in working days."""

    total: Decimal
    free: Decimal

    def can_delay_by(self, days: Decimal) -> bool:
        """True if a delay of ``days`` leaves the project finish unchanged."""
        return days <= self.total

    def flexibility(self, horizon_days: Decimal) -> Decimal:
        """Float normalized to [0, 1] against ``horizon_days``."""
        if horizon_days <= 0:
            return Decimal("1")
        return min(Decimal("1"), self.total / horizon_days)


@dataclass(frozen=True)
class TaskTiming:
    """CPM timing of one task, as day offsets from the project start."""

    task_id: str
    duration: Decimal
    early_start: Decimal
    early_finish: Decimal
    late_start: Decimal
    late_finish: Decimal
    slack: Float
    is_critical: bool
    status: FloatStatus

    @property
    def total_float(self) -> Decimal:
        return self.slack.total

    @property
    def free_float(self) -> Decimal:
        return self.slack.free


@dataclass(frozen=True)
class CriticalPath:
    """Zero-float tasks ordered by early start."""

    task_ids: tuple[str, ...]
    total_duration: Decimal

    def contains(self, task_id: str) -> bool:
        return task_id in self.task_ids

    def __len__(self) -> int:
        return len(self.task_ids)


@dataclass(frozen=True)
class CriticalPathResult:
    """
    Full output of a CPM calculation.

    ``timings`` preserves input order.  ``successors`` is the resolved
    edge set (declared predecessors plus declared successors), which
    downstream engines reuse instead of re-deriving it.
    """

    timings: dict[str, TaskTiming]
    critical_path: CriticalPath
    topological_order: tuple[str, ...]
    successors: dict[str, tuple[str, ...]]

    @property
    def project_duration(self) -> Decimal:
        return self.critical_path.total_duration

    @property
    def critical_task_ids(self) -> tuple[str, ...]:
        return self.critical_path.task_ids

    def contains_task(self, task_id: str) -> bool:
        """True when ``task_id`` lies on the critical path."""
        return self.critical_path.contains(task_id)

    def timing_for(self, task_id: str) -> TaskTiming:
        try:
            return self.timings[task_id]
        except KeyError:
            raise TaskNotFoundError(task_id) from None

    def float_map(self) -> dict[str, Float]:
        return {task_id: timing.slack for task_id, timing in self.timings.items()}


# ---------------------------------------------------------------------------
# Dependency rules
# ---------------------------------------------------------------------------

# A rule maps the predecessor's (early_start, early_finish) to the earliest
# permissible start of the successor.
DependencyRule = Callable[[Decimal, Decimal], Decimal]


def _finish_to_start(pred_es: Decimal, pred_ef: Decimal) -> Decimal:
    return pred_ef


_DEPENDENCY_RULES: dict[DependencyType, DependencyRule] = {
    DependencyType.FINISH_TO_START: _finish_to_start,
}


def rule_for(dependency_type: DependencyType) -> tuple[DependencyRule, bool]:
    """Return the rule for a dependency type and whether it is exact."""
    rule = _DEPENDENCY_RULES.get(dependency_type)
    if rule is None:
        return _finish_to_start, False
    return rule, True


# ---------------------------------------------------------------------------
# Graph helpers
# ---------------------------------------------------------------------------

_UNVISITED, _IN_PROGRESS, _DONE = 0, 1, 2
_EXHAUSTED = object()


def find_cycle(
    order: Sequence[str],
    successors: dict[str, Sequence[str]],
) -> list[str] | None:
    """
    Return a dependency cycle as a closed path, or None if the graph is acyclic.

    Iterative DFS with three-state marks: meeting a node that is still in
    progress means the current path loops back on itself.
    """
    state = dict.fromkeys(order, _UNVISITED)
    for root in order:
        if state[root] != _UNVISITED:
            continue
        state[root] = _IN_PROGRESS
        path = [root]
        stack = [iter(successors.get(root, ()))]
        while stack:
            nxt = next(stack[-1], _EXHAUSTED)
            if nxt is _EXHAUSTED:
                state[path.pop()] = _DONE
                stack.pop()
                continue
            if state[nxt] == _IN_PROGRESS:
                return path[path.index(nxt):] + [nxt]
            if state[nxt] == _UNVISITED:
                state[nxt] = _IN_PROGRESS
                path.append(nxt)
                stack.append(iter(successors.get(nxt, ())))
    return None


class CriticalPathCalculator:
    """
    Pure CPM calculator.

    Contract:
        No I/O, no clock access, fully deterministic.  Tasks are never
        mutated.
    Guarantees:
        - Forward pass: ES = max(rule(predecessor)) or 0; EF = ES + duration.
        - Backward pass: LF = min(LS of successors) or project duration;
          LS = LF - duration.
        - Free float = min(ES of successors) - EF (sinks: duration - EF).
    Non-goals:
        - Lags and non finish-to-start dependency semantics.
        - Calendars; offsets are working days.
    """

    def __init__(
        self,
        critical_float_tolerance: Decimal = _ZERO,
        near_critical_threshold: Decimal = Decimal("1"),
    ):
        self._tolerance = critical_float_tolerance
        self._near_critical_threshold = near_critical_threshold

    def build_graph(
        self, tasks: Sequence[Task]
    ) -> tuple[dict[str, list[str]], dict[str, list[str]], dict[tuple[str, str], DependencyType]]:
        """
        Resolve predecessor and successor adjacency from the task list.

        Edges come from both declared dependencies and declared successor
        ids; duplicates collapse into one edge.

        Raises:
            InvalidParameterError: duplicate task id.
            TaskNotFoundError: an edge references an unknown task.
        """
        predecessors: dict[str, list[str]] = {}
        successors: dict[str, list[str]] = {}
        for task in tasks:
            if task.id in predecessors:
                raise InvalidParameterError("tasks", task.id, "duplicate task id")
            predecessors[task.id] = []
            successors[task.id] = []

        edge_types: dict[tuple[str, str], DependencyType] = {}

        def add_edge(pred: str, succ: str, dep_type: DependencyType) -> None:
            if (pred, succ) in edge_types:
                return
            edge_types[(pred, succ)] = dep_type
            predecessors[succ].append(pred)
            successors[pred].append(succ)

        for task in tasks:
            for dep in task.dependencies:
                if dep.predecessor_id not in predecessors:
                    raise TaskNotFoundError(dep.predecessor_id, referenced_by=task.id)
                add_edge(dep.predecessor_id, task.id, dep.dependency_type)
            for succ_id in task.successor_ids:
                if succ_id not in predecessors:
                    raise TaskNotFoundError(succ_id, referenced_by=task.id)
                add_edge(task.id, succ_id, DependencyType.FINISH_TO_START)

        return predecessors, successors, edge_types

    def validate(self, tasks: Sequence[Task]) -> None:
        """Raise if the dependency graph is malformed or cyclic."""
        _, successors, _ = self.build_graph(tasks)
        cycle = find_cycle([t.id for t in tasks], successors)
        if cycle is not None:
            raise CyclicDependencyError(cycle)

    @staticmethod
    def topological_order(
        order: Sequence[str],
        predecessors: dict[str, list[str]],
        successors: dict[str, list[str]],
    ) -> list[str]:
        """Kahn's algorithm; among ready tasks the earliest in input wins."""
        position = {task_id: i for i, task_id in enumerate(order)}
        in_degree = {task_id: len(predecessors[task_id]) for task_id in order}
        ready = [(position[t], t) for t in order if in_degree[t] == 0]
        heapq.heapify(ready)
        result: list[str] = []
        while ready:
            _, task_id = heapq.heappop(ready)
            result.append(task_id)
            for succ in successors[task_id]:
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    heapq.heappush(ready, (position[succ], succ))
        return result

    @traced_engine("critical_path", "1.0", fingerprint_fields=("tasks",))
    def calculate(self, tasks: Sequence[Task]) -> CriticalPathResult:
        """
        Run the forward and backward passes.

        Raises:
            TaskNotFoundError, CyclicDependencyError, InvalidParameterError
        """
        t0 = time.monotonic()
        logger.info("critical_path_started", extra={"task_count": len(tasks)})

        order = [t.id for t in tasks]
        by_id = {t.id: t for t in tasks}
        predecessors, successors, edge_types = self.build_graph(tasks)

        cycle = find_cycle(order, successors)
        if cycle is not None:
            logger.warning("critical_path_cycle_detected", extra={"cycle": cycle})
            raise CyclicDependencyError(cycle)

        topo = self.topological_order(order, predecessors, successors)

        approximated = sorted({
            dep_type.value
            for dep_type in edge_types.values()
            if not rule_for(dep_type)[1]
        })
        if approximated:
            logger.warning(
                "dependency_type_approximated",
                extra={"dependency_types": approximated, "evaluated_as": "finish_to_start"},
            )

        # Forward pass
        early_start: dict[str, Decimal] = {}
        early_finish: dict[str, Decimal] = {}
        for task_id in topo:
            es = _ZERO
            for pred in predecessors[task_id]:
                rule, _ = rule_for(edge_types[(pred, task_id)])
                es = max(es, rule(early_start[pred], early_finish[pred]))
            early_start[task_id] = es
            early_finish[task_id] = es + by_id[task_id].duration

        project_duration = max(
            (early_finish[t] for t in order if not successors[t]),
            default=_ZERO,
        )

        # Backward pass
        late_start: dict[str, Decimal] = {}
        late_finish: dict[str, Decimal] = {}
        for task_id in reversed(topo):
            lf = min(
                (late_start[s] for s in successors[task_id]),
                default=project_duration,
            )
            late_finish[task_id] = lf
            late_start[task_id] = lf - by_id[task_id].duration

        topo_index = {task_id: i for i, task_id in enumerate(topo)}
        timings: dict[str, TaskTiming] = {}
        for task_id in order:
            total = late_start[task_id] - early_start[task_id]
            next_es = min(
                (early_start[s] for s in successors[task_id]),
                default=project_duration,
            )
            free = max(_ZERO, next_es - early_finish[task_id])
            is_critical = total <= self._tolerance
            timings[task_id] = TaskTiming(
                task_id=task_id,
                duration=by_id[task_id].duration,
                early_start=early_start[task_id],
                early_finish=early_finish[task_id],
                late_start=late_start[task_id],
                late_finish=late_finish[task_id],
                slack=Float(total=total, free=free),
                is_critical=is_critical,
                status=self._classify(total, is_critical),
            )

        critical_ids = sorted(
            (t for t in order if timings[t].is_critical),
            key=lambda t: (early_start[t], topo_index[t]),
        )
        result = CriticalPathResult(
            timings=timings,
            critical_path=CriticalPath(
                task_ids=tuple(critical_ids),
                total_duration=project_duration,
            ),
            topological_order=tuple(topo),
            successors={t: tuple(successors[t]) for t in order},
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("critical_path_completed", extra={
            "task_count": len(tasks),
            "project_duration_days": str(project_duration),
            "critical_task_count": len(critical_ids),
            "duration_ms": duration_ms,
        })
        return result

    def _classify(self, total_float: Decimal, is_critical: bool) -> FloatStatus:
        if is_critical:
            return FloatStatus.CRITICAL
        if total_float <= self._near_critical_threshold:
            return FloatStatus.NEAR_CRITICAL
        return FloatStatus.NORMAL
