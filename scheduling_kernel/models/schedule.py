"""
SQLAlchemy ORM read model for project schedules.

Responsibility
--------------
Map the stored schedule (projects, tasks, dependencies, resources and
resource assignments) onto the immutable records in
``scheduling_kernel.domain.schedule``.  The analytics engine only ever
reads these tables; population is the job of the owning application.

Architecture position
---------------------
**Kernel > Models** -- ORM models consumed by ``scheduling_kernel.selectors``.
Inherits from ``Base`` (kernel db layer).

Invariants enforced
-------------------
* Costs, durations, lags and units use ``Decimal`` (Numeric(38,9)).
* Enum fields stored as String(50) for readability and portability.
* ``TaskModel.key`` is unique per project and is the task id the engines see.
* ``ResourceModel.key`` is globally unique and is the resource id the
  engines see.
* ``TaskModel.position`` fixes input order, which drives every
  deterministic tie-break in the engines.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scheduling_kernel.db.base import Base

# ---------------------------------------------------------------------------
# ProjectModel
# ---------------------------------------------------------------------------


class ProjectModel(Base):
    """
    A project header.

    Maps to ``ProjectRecord``.
    """

    __tablename__ = "sched_projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    tasks: Mapped[list["TaskModel"]] = relationship(
        "TaskModel",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="TaskModel.position",
    )

    resources: Mapped[list["ResourceModel"]] = relationship(
        "ResourceModel",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def to_dto(self):
        from scheduling_kernel.domain.schedule import ProjectRecord

        return ProjectRecord(
            id=self.id,
            name=self.name,
            currency=self.currency,
            status=self.status,
        )

    def __repr__(self) -> str:
        return f"<ProjectModel {self.name} [{self.status}]>"


# ---------------------------------------------------------------------------
# TaskModel
# ---------------------------------------------------------------------------


class TaskModel(Base):
    """
    A scheduled task with its cost baseline and optional compression data.

    Maps to ``Task``.  Crash and fast-track columns are nullable; a task
    carries crash data only when both crash columns are set, and fast-track
    data only when the lag, risk and probability columns are all set.
    """

    __tablename__ = "sched_tasks"

    __table_args__ = (
        UniqueConstraint("project_id", "key", name="uq_sched_task_key"),
        Index("idx_sched_task_project", "project_id", "position"),
    )

    project_id: Mapped[UUID] = mapped_column(ForeignKey("sched_projects.id"), nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wbs_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    duration_days: Mapped[Decimal] = mapped_column(nullable=False)
    planned_start: Mapped[datetime] = mapped_column(nullable=False)
    planned_finish: Mapped[datetime] = mapped_column(nullable=False)
    percent_complete: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    baseline_cost: Mapped[Decimal] = mapped_column(nullable=False)
    actual_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_cost_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    baseline_labor_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_labor_hours: Mapped[Decimal | None] = mapped_column(nullable=True)

    crashed_duration_days: Mapped[Decimal | None] = mapped_column(nullable=True)
    crashed_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    ft_original_lag_days: Mapped[Decimal | None] = mapped_column(nullable=True)
    ft_proposed_lag_days: Mapped[Decimal | None] = mapped_column(nullable=True)
    ft_risk_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ft_rework_probability: Mapped[Decimal | None] = mapped_column(nullable=True)
    ft_risk_description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    project: Mapped["ProjectModel"] = relationship("ProjectModel", back_populates="tasks")

    dependencies: Mapped[list["TaskDependencyModel"]] = relationship(
        "TaskDependencyModel",
        back_populates="task",
        cascade="all, delete-orphan",
        foreign_keys="TaskDependencyModel.task_id",
        lazy="selectin",
    )

    assignments: Mapped[list["ResourceAssignmentModel"]] = relationship(
        "ResourceAssignmentModel",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self):
        from scheduling_kernel.domain.schedule import (
            CrashData,
            FastTrackData,
            RiskLevel,
            Task,
        )
        from scheduling_kernel.domain.values import Money

        crash_data = None
        if self.crashed_duration_days is not None and self.crashed_cost is not None:
            crash_data = CrashData(
                crashed_duration=self.crashed_duration_days,
                crashed_cost=Money.of(self.crashed_cost, self.currency),
            )

        fast_track_data = None
        if (
            self.ft_original_lag_days is not None
            and self.ft_proposed_lag_days is not None
            and self.ft_risk_level is not None
            and self.ft_rework_probability is not None
        ):
            fast_track_data = FastTrackData(
                original_lag=self.ft_original_lag_days,
                proposed_lag=self.ft_proposed_lag_days,
                risk_level=RiskLevel(self.ft_risk_level),
                rework_probability=self.ft_rework_probability,
                risk_description=self.ft_risk_description or "",
            )

        actual_cost = None
        if self.actual_cost is not None:
            actual_cost = Money.of(self.actual_cost, self.actual_cost_currency or self.currency)

        return Task(
            id=self.key,
            name=self.name,
            duration=self.duration_days,
            planned_start=self.planned_start,
            planned_finish=self.planned_finish,
            baseline_cost=Money.of(self.baseline_cost, self.currency),
            percent_complete=self.percent_complete,
            actual_cost=actual_cost,
            baseline_labor_hours=self.baseline_labor_hours,
            actual_labor_hours=self.actual_labor_hours,
            dependencies=tuple(d.to_dto() for d in self.dependencies),
            resource_assignments=tuple(a.to_dto() for a in self.assignments),
            crash_data=crash_data,
            fast_track_data=fast_track_data,
            wbs_code=self.wbs_code,
        )

    def __repr__(self) -> str:
        return f"<TaskModel {self.key}: {self.name}>"


# ---------------------------------------------------------------------------
# TaskDependencyModel
# ---------------------------------------------------------------------------


class TaskDependencyModel(Base):
    """A precedence edge: ``predecessor`` must precede ``task``."""

    __tablename__ = "sched_task_dependencies"

    __table_args__ = (
        UniqueConstraint("task_id", "predecessor_id", name="uq_sched_dependency"),
        Index("idx_sched_dependency_predecessor", "predecessor_id"),
    )

    task_id: Mapped[UUID] = mapped_column(ForeignKey("sched_tasks.id"), nullable=False)
    predecessor_id: Mapped[UUID] = mapped_column(ForeignKey("sched_tasks.id"), nullable=False)
    dependency_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default="finish_to_start"
    )
    lag_days: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    task: Mapped["TaskModel"] = relationship(
        "TaskModel", back_populates="dependencies", foreign_keys=[task_id]
    )
    predecessor: Mapped["TaskModel"] = relationship(
        "TaskModel", foreign_keys=[predecessor_id], lazy="joined"
    )

    def to_dto(self):
        from scheduling_kernel.domain.schedule import Dependency, DependencyType

        return Dependency(
            predecessor_id=self.predecessor.key,
            dependency_type=DependencyType(self.dependency_type),
            lag=self.lag_days,
        )


# ---------------------------------------------------------------------------
# ResourceModel
# ---------------------------------------------------------------------------


class ResourceModel(Base):
    """
    A resource available to a project.

    Maps to ``ResourceRecord``.
    """

    __tablename__ = "sched_resources"

    __table_args__ = (
        UniqueConstraint("key", name="uq_sched_resource_key"),
        Index("idx_sched_resource_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(ForeignKey("sched_projects.id"), nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, default="labor")
    max_units: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    cost_per_unit: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    project: Mapped["ProjectModel"] = relationship("ProjectModel", back_populates="resources")

    def to_dto(self):
        from scheduling_kernel.domain.schedule import ResourceRecord, ResourceType
        from scheduling_kernel.domain.values import Money

        return ResourceRecord(
            id=self.key,
            name=self.name,
            resource_type=ResourceType(self.resource_type),
            max_units=self.max_units,
            cost_per_unit=(
                Money.of(self.cost_per_unit, self.currency)
                if self.cost_per_unit is not None
                else None
            ),
        )

    def __repr__(self) -> str:
        return f"<ResourceModel {self.key}: {self.name}>"


# ---------------------------------------------------------------------------
# ResourceAssignmentModel
# ---------------------------------------------------------------------------


class ResourceAssignmentModel(Base):
    """A resource committed to a task for an interval."""

    __tablename__ = "sched_resource_assignments"

    __table_args__ = (
        Index("idx_sched_assignment_task", "task_id"),
        Index("idx_sched_assignment_resource", "resource_id"),
    )

    task_id: Mapped[UUID] = mapped_column(ForeignKey("sched_tasks.id"), nullable=False)
    resource_id: Mapped[UUID] = mapped_column(ForeignKey("sched_resources.id"), nullable=False)
    allocation_percent: Mapped[Decimal] = mapped_column(nullable=False)
    units: Mapped[Decimal | None] = mapped_column(nullable=True)
    start: Mapped[datetime] = mapped_column(nullable=False)
    finish: Mapped[datetime] = mapped_column(nullable=False)

    task: Mapped["TaskModel"] = relationship("TaskModel", back_populates="assignments")
    resource: Mapped["ResourceModel"] = relationship("ResourceModel", lazy="joined")

    def to_dto(self):
        from scheduling_kernel.domain.schedule import ResourceAssignment

        return ResourceAssignment(
            resource_id=self.resource.key,
            task_id=self.task.key,
            allocation_percent=self.allocation_percent,
            units=self.units,
            start=self.start,
            finish=self.finish,
        )
