"""
Scheduling Kernel

Shared foundation for the scheduling and earned-value analytics engine:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with context propagation
- Decimal-only Money values and an injectable Clock
- Immutable schedule data model (tasks, dependencies, assignments)
- Read-only SQLAlchemy selectors over the schedule store
"""

__version__ = "0.1.0"
