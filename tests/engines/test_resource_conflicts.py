"""
Tests for the sweep-line Resource Conflict Detector.

Covers:
- Overlapping, touching and nested assignments
- Capacity overrides and default capacity
- Analysis window filtering and clipping
- Coalescing of adjacent identical intervals
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from scheduling_engines.resource_conflicts import ResourceConflictDetector
from scheduling_kernel.exceptions import InvalidParameterError
from tests.builders import day, make_assignment, make_task


def task_with(task_id, *assignments):
    return replace(make_task(task_id), resource_assignments=tuple(assignments))


class TestOverlap:
    def setup_method(self):
        self.detector = ResourceConflictDetector()

    def test_two_full_overlaps_over_capacity(self):
        tasks = [
            make_task("a", duration="5", assignments=[("dev", "70")]),
            make_task("b", duration="5", assignments=[("dev", "70")]),
        ]

        conflicts = self.detector.detect(tasks)

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.resource_id == "dev"
        assert conflict.total_allocation_percent == Decimal("140")
        assert conflict.capacity_percent == Decimal("100")
        assert conflict.overallocation_percent == Decimal("40")
        assert (conflict.conflict_start, conflict.conflict_end) == (day(0), day(5))
        assert {a.task_id for a in conflict.assignments} == {"a", "b"}

    def test_within_capacity_is_not_a_conflict(self):
        tasks = [
            make_task("a", duration="5", assignments=[("dev", "50")]),
            make_task("b", duration="5", assignments=[("dev", "50")]),
        ]

        assert self.detector.detect(tasks) == []

    def test_touching_assignments_do_not_conflict(self):
        tasks = [
            task_with("a", make_assignment("dev", "a", "70", 0, 2)),
            task_with("b", make_assignment("dev", "b", "70", 2, 4)),
        ]

        assert self.detector.detect(tasks) == []

    def test_partial_overlap_reports_shared_interval(self):
        tasks = [
            task_with("a", make_assignment("dev", "a", "60", 0, 3)),
            task_with("b", make_assignment("dev", "b", "60", 2, 5)),
        ]

        conflicts = self.detector.detect(tasks)

        assert len(conflicts) == 1
        assert (conflicts[0].conflict_start, conflicts[0].conflict_end) == (day(2), day(3))
        assert conflicts[0].duration.days == 1

    def test_changing_active_set_splits_intervals(self):
        tasks = [
            task_with("a", make_assignment("dev", "a", "60", 0, 4)),
            task_with("b", make_assignment("dev", "b", "60", 1, 4)),
            task_with("c", make_assignment("dev", "c", "60", 2, 3)),
        ]

        conflicts = self.detector.detect(tasks)

        assert [(c.conflict_start, c.conflict_end) for c in conflicts] == [
            (day(1), day(2)),
            (day(2), day(3)),
            (day(3), day(4)),
        ]
        assert [c.total_allocation_percent for c in conflicts] == [
            Decimal("120"), Decimal("180"), Decimal("120"),
        ]

    def test_single_assignment_over_capacity(self):
        tasks = [task_with("a", make_assignment("dev", "a", "150", 0, 2))]

        conflicts = self.detector.detect(tasks)

        assert len(conflicts) == 1
        assert conflicts[0].total_allocation_percent == Decimal("150")

    def test_resources_are_independent(self):
        tasks = [
            make_task("a", duration="2", assignments=[("dev", "70"), ("qa", "70")]),
            make_task("b", duration="2", assignments=[("dev", "70")]),
        ]

        conflicts = self.detector.detect(tasks)

        assert [c.resource_id for c in conflicts] == ["dev"]

    def test_resources_reported_in_first_appearance_order(self):
        tasks = [
            make_task("a", duration="2", assignments=[("zeta", "80"), ("alpha", "80")]),
            make_task("b", duration="2", assignments=[("zeta", "80"), ("alpha", "80")]),
        ]

        conflicts = self.detector.detect(tasks)

        assert [c.resource_id for c in conflicts] == ["zeta", "alpha"]


class TestCoalescing:
    def test_zero_length_assignment_does_not_split_conflict(self):
        tasks = [
            task_with("a", make_assignment("dev", "a", "70", 0, 3)),
            task_with("b", make_assignment("dev", "b", "70", 0, 3)),
            task_with("c", make_assignment("dev", "c", "10", 1, 1)),
        ]

        conflicts = ResourceConflictDetector().detect(tasks)

        assert len(conflicts) == 1
        assert (conflicts[0].conflict_start, conflicts[0].conflict_end) == (day(0), day(3))


class TestCapacity:
    def test_capacity_override(self):
        tasks = [
            make_task("a", duration="2", assignments=[("crane", "70")]),
            make_task("b", duration="2", assignments=[("crane", "70")]),
        ]

        conflicts = ResourceConflictDetector().detect(
            tasks, capacities={"crane": Decimal("200")}
        )

        assert conflicts == []

    def test_default_capacity(self):
        tasks = [
            make_task("a", duration="2", assignments=[("crane", "70")]),
            make_task("b", duration="2", assignments=[("crane", "70")]),
        ]

        conflicts = ResourceConflictDetector(default_capacity_percent=Decimal("120")).detect(tasks)

        assert conflicts[0].capacity_percent == Decimal("120")


class TestWindow:
    def setup_method(self):
        self.detector = ResourceConflictDetector()
        self.tasks = [
            make_task("a", duration="10", assignments=[("dev", "70")]),
            make_task("b", duration="10", assignments=[("dev", "70")]),
        ]

    def test_window_clips_conflict(self):
        conflicts = self.detector.detect(self.tasks, window_start=day(2), window_end=day(5))

        assert (conflicts[0].conflict_start, conflicts[0].conflict_end) == (day(2), day(5))

    def test_window_outside_assignments(self):
        assert self.detector.detect(self.tasks, window_start=day(20), window_end=day(30)) == []

    def test_open_ended_window(self):
        conflicts = self.detector.detect(self.tasks, window_start=day(8))

        assert (conflicts[0].conflict_start, conflicts[0].conflict_end) == (day(8), day(10))

    def test_inverted_window_rejected(self):
        with pytest.raises(InvalidParameterError):
            self.detector.detect(self.tasks, window_start=day(5), window_end=day(2))

    def test_no_tasks(self):
        assert self.detector.detect([]) == []


class TestLogging:
    def test_completion_logged(self, captured_logs):
        tasks = [
            make_task("a", duration="2", assignments=[("dev", "70")]),
            make_task("b", duration="2", assignments=[("dev", "70")]),
        ]
        ResourceConflictDetector().detect(tasks)

        done = [r for r in captured_logs() if r["message"] == "conflict_detection_completed"]
        assert done[0]["conflict_count"] == 1
        assert done[0]["resources_in_conflict"] == 1
