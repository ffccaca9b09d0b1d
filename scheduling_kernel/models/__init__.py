"""ORM models for the schedule read model."""

from scheduling_kernel.models.schedule import (
    ProjectModel,
    ResourceAssignmentModel,
    ResourceModel,
    TaskDependencyModel,
    TaskModel,
)

__all__ = [
    "ProjectModel",
    "TaskModel",
    "TaskDependencyModel",
    "ResourceModel",
    "ResourceAssignmentModel",
]
