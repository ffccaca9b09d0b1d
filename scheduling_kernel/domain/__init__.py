"""
Pure domain layer.

Value objects and schedule records with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from scheduling_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from scheduling_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from scheduling_kernel.domain.schedule import (
    CrashData,
    Dependency,
    DependencyType,
    FastTrackData,
    ProjectRecord,
    ResourceAssignment,
    ResourceCapacity,
    ResourceRecord,
    ResourceType,
    RiskLevel,
    Task,
)
from scheduling_kernel.domain.values import Currency, Money

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Currency",
    "Money",
    "CrashData",
    "Dependency",
    "DependencyType",
    "FastTrackData",
    "ProjectRecord",
    "ResourceAssignment",
    "ResourceCapacity",
    "ResourceRecord",
    "ResourceType",
    "RiskLevel",
    "Task",
]
