"""
Collaborator protocols consumed by SchedulingService.

The service reads projects, tasks and resources through these narrow,
read-only ports.  ``scheduling_kernel.selectors`` provides SQLAlchemy
implementations; tests use in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable
from uuid import UUID

from scheduling_kernel.domain.schedule import (
    ProjectRecord,
    ResourceCapacity,
    ResourceRecord,
    Task,
)


@runtime_checkable
class ProjectLookup(Protocol):
    """Finds a project by id; returns None when it does not exist."""

    def get_project(self, project_id: UUID) -> ProjectRecord | None: ...


@runtime_checkable
class ScheduleLookup(Protocol):
    """Lists the tasks of a project in schedule order."""

    def list_tasks(self, project_id: UUID) -> Sequence[Task]: ...


@runtime_checkable
class ResourceLookup(Protocol):
    """
    Resolves resource capacity and lists a project's resources.

    ``get_capacity`` returns None for an unknown resource; the service then
    falls back to the configured default capacity.
    """

    def get_capacity(self, resource_id: str) -> ResourceCapacity | None: ...

    def list_resources(self, project_id: UUID) -> Sequence[ResourceRecord]: ...
