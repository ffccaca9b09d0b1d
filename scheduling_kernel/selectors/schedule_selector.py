"""
Schedule selectors -- read-only loaders for projects, tasks and resources.

These three selectors are the SQLAlchemy implementations of the
``ProjectLookup``, ``ScheduleLookup`` and ``ResourceLookup`` collaborator
protocols consumed by ``SchedulingService``.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from scheduling_kernel.domain.schedule import (
    ProjectRecord,
    ResourceCapacity,
    ResourceRecord,
    Task,
)
from scheduling_kernel.logging_config import get_logger
from scheduling_kernel.models.schedule import ProjectModel, ResourceModel, TaskModel
from scheduling_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.schedule")


class ProjectSelector(BaseSelector[ProjectModel]):
    """Loads project headers."""

    def get_project(self, project_id: UUID) -> ProjectRecord | None:
        model = self.session.get(ProjectModel, project_id)
        if model is None:
            logger.debug("project_not_found", extra={"project_id": str(project_id)})
            return None
        return model.to_dto()


class ScheduleSelector(BaseSelector[TaskModel]):
    """Loads the full task graph of a project in input order."""

    def list_tasks(self, project_id: UUID) -> Sequence[Task]:
        stmt = (
            select(TaskModel)
            .where(TaskModel.project_id == project_id)
            .order_by(TaskModel.position, TaskModel.key)
        )
        models = self.session.scalars(stmt).all()
        tasks = [m.to_dto() for m in models]
        logger.debug(
            "tasks_loaded",
            extra={"project_id": str(project_id), "task_count": len(tasks)},
        )
        return tasks


class ResourceSelector(BaseSelector[ResourceModel]):
    """Loads resources and their capacities."""

    def get_capacity(self, resource_id: str) -> ResourceCapacity | None:
        stmt = select(ResourceModel).where(ResourceModel.key == resource_id)
        model = self.session.scalars(stmt).one_or_none()
        if model is None:
            return None
        return model.to_dto().capacity

    def list_resources(self, project_id: UUID) -> Sequence[ResourceRecord]:
        stmt = (
            select(ResourceModel)
            .where(ResourceModel.project_id == project_id)
            .order_by(ResourceModel.key)
        )
        return [m.to_dto() for m in self.session.scalars(stmt).all()]
