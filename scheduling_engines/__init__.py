"""
Module: scheduling_engines
Responsibility:
    Package entrypoint that re-exports all public symbols from the pure
    scheduling and earned-value engines.  This is the canonical import
    surface for scheduling_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import scheduling_kernel domain values, exceptions and
    logging (and sibling engine modules).
    MUST NOT import scheduling_services or scheduling_config.

Invariants enforced:
    - Purity: engines never read a clock.  ``as_of`` and window bounds are
      passed in as explicit parameters by the service layer.
    - Decimal-only arithmetic for durations, allocations and money.
    - Determinism: identical inputs in identical order always produce
      identical outputs, including greedy tie-breaks.

Failure modes:
    - SchedulingKernelError subclasses propagated from individual engines
      on invalid input (cycles, unknown references, mixed currencies).

Audit relevance:
    Every engine invocation is traced via the ``@traced_engine`` decorator
    (see ``scheduling_engines.tracer``), emitting SCHEDULING_ENGINE_TRACE
    log records that include engine name, version, input fingerprint, and
    duration.

Usage:
    from scheduling_engines.critical_path import CriticalPathCalculator
    from scheduling_engines.resource_conflicts import ResourceConflictDetector
    from scheduling_engines.leveling import ResourceLevelingEngine
    from scheduling_engines.compression import ScheduleCompressionEngine
    from scheduling_engines.earned_value import EarnedValueCalculator
"""

from scheduling_kernel.logging_config import get_logger

logger = get_logger("engines")

from scheduling_engines.compression import (
    AppliedCrash,
    AppliedFastTrack,
    CompressionOpportunity,
    CompressionRecommendation,
    CompressionResult,
    CompressionStrategy,
    CrashOption,
    FastTrackOption,
    OpportunityType,
    ScheduleCompressionEngine,
    risk_band,
)
from scheduling_engines.critical_path import (
    CriticalPath,
    CriticalPathCalculator,
    CriticalPathResult,
    Float,
    FloatStatus,
    TaskTiming,
    find_cycle,
)
from scheduling_engines.earned_value import (
    BudgetStatus,
    EarnedValueCalculator,
    EVMSnapshot,
    ScheduleStatus,
    TCPIMethod,
    TCPIResult,
)
from scheduling_engines.leveling import (
    DailyAllocation,
    DelayedTask,
    LevelingMetrics,
    LevelingPriority,
    LevelingRecommendation,
    LevelingResult,
    OverallocationPeriod,
    ResourceLevelingEngine,
    ResourceLevelingSummary,
    ResourceProfile,
)
from scheduling_engines.resource_conflicts import (
    ConflictingAssignment,
    ResourceConflict,
    ResourceConflictDetector,
)
from scheduling_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Critical path
    "CriticalPath",
    "CriticalPathCalculator",
    "CriticalPathResult",
    "Float",
    "FloatStatus",
    "TaskTiming",
    "find_cycle",
    # Resource conflicts
    "ConflictingAssignment",
    "ResourceConflict",
    "ResourceConflictDetector",
    # Leveling
    "DailyAllocation",
    "DelayedTask",
    "LevelingMetrics",
    "LevelingPriority",
    "LevelingRecommendation",
    "LevelingResult",
    "OverallocationPeriod",
    "ResourceLevelingEngine",
    "ResourceLevelingSummary",
    "ResourceProfile",
    # Compression
    "AppliedCrash",
    "AppliedFastTrack",
    "CompressionOpportunity",
    "CompressionRecommendation",
    "CompressionResult",
    "CompressionStrategy",
    "CrashOption",
    "FastTrackOption",
    "OpportunityType",
    "ScheduleCompressionEngine",
    "risk_band",
    # Earned value
    "BudgetStatus",
    "EarnedValueCalculator",
    "EVMSnapshot",
    "ScheduleStatus",
    "TCPIMethod",
    "TCPIResult",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
