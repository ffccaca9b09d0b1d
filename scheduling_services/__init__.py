"""
scheduling_services -- Package init and public API.

Responsibility:
    Orchestration over the pure scheduling engines.  This is the only
    layer that talks to the project/schedule/resource collaborators, reads
    the clock, or loads configuration.

Architecture position:
    Services -- orchestration over engines + kernel.

    Dependency direction:
        scheduling_services/ -> scheduling_engines/  (allowed)
        scheduling_services/ -> scheduling_kernel/   (allowed)
        scheduling_services/ -> scheduling_config/   (allowed)
        scheduling_engines/  -> scheduling_services/ (FORBIDDEN)
        scheduling_kernel/   -> scheduling_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a service's dependency graph is broken.
"""

from scheduling_kernel.logging_config import get_logger

logger = get_logger("services")

from scheduling_services.collaborators import ProjectLookup, ResourceLookup, ScheduleLookup
from scheduling_services.models import (
    CompressionReport,
    CriticalPathReport,
    LevelingReport,
    RiskAssessment,
    TaskScheduleDetail,
    TCPIReport,
    VarianceAnalysis,
)
from scheduling_services.result import (
    SchedulingResult,
    SchedulingResultError,
    SchedulingStatus,
)
from scheduling_services.scheduling_service import SchedulingService, capacities_for

__all__ = [
    "CompressionReport",
    "CriticalPathReport",
    "LevelingReport",
    "ProjectLookup",
    "ResourceLookup",
    "RiskAssessment",
    "ScheduleLookup",
    "SchedulingResult",
    "SchedulingResultError",
    "SchedulingService",
    "SchedulingStatus",
    "TaskScheduleDetail",
    "TCPIReport",
    "VarianceAnalysis",
    "capacities_for",
]
