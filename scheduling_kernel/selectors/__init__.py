"""Selectors for the scheduling kernel (read side)."""

from scheduling_kernel.selectors.schedule_selector import (
    ProjectSelector,
    ResourceSelector,
    ScheduleSelector,
)

__all__ = [
    "ProjectSelector",
    "ScheduleSelector",
    "ResourceSelector",
]
