"""
Pytest fixtures for the scheduling analytics test suite.

Provides:
- Structured logging configured once per session, plus ``captured_logs``
- A deterministic clock
- In-memory project/schedule/resource collaborators
- An in-memory SQLite session for selector tests
"""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.pool import StaticPool

from scheduling_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from scheduling_kernel.domain.clock import DeterministicClock
from scheduling_kernel.domain.schedule import ProjectRecord
from scheduling_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from scheduling_services.scheduling_service import SchedulingService

from tests.builders import BASE_TIME


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture scheduling_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.calculate_critical_path(project_id)
            logs = captured_logs()
            assert any(r["message"] == "critical_path_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("scheduling_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(BASE_TIME)


# =============================================================================
# In-memory collaborators
# =============================================================================


class InMemoryProjects:
    def __init__(self):
        self.projects = {}

    def get_project(self, project_id):
        return self.projects.get(project_id)


class InMemorySchedule:
    def __init__(self):
        self.tasks = {}
        self.calls = 0

    def list_tasks(self, project_id):
        self.calls += 1
        return list(self.tasks.get(project_id, []))


class InMemoryResources:
    def __init__(self):
        self.resources = {}
        self.capacity_lookups = []

    def get_capacity(self, resource_id):
        self.capacity_lookups.append(resource_id)
        for records in self.resources.values():
            for record in records:
                if record.id == resource_id:
                    return record.capacity
        return None

    def list_resources(self, project_id):
        return list(self.resources.get(project_id, []))


class InMemoryStore:
    """Bundles the three fakes and seeds one project per call."""

    def __init__(self):
        self.projects = InMemoryProjects()
        self.schedule = InMemorySchedule()
        self.resources = InMemoryResources()

    def add_project(self, tasks=(), resources=(), currency="USD", name="Test Project"):
        project_id = uuid4()
        self.projects.projects[project_id] = ProjectRecord(
            id=project_id, name=name, currency=currency,
        )
        self.schedule.tasks[project_id] = list(tasks)
        self.resources.resources[project_id] = list(resources)
        return project_id


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def service(store, deterministic_clock):
    """SchedulingService over the in-memory store with shipped defaults."""
    return SchedulingService(
        project_lookup=store.projects,
        schedule_lookup=store.schedule,
        resource_lookup=store.resources,
        clock=deterministic_clock,
    )


# =============================================================================
# SQLite session (selectors)
# =============================================================================


@pytest.fixture
def db_session():
    """Fresh in-memory SQLite schema per test; the session is rolled back."""
    init_engine_from_url(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_tables()
    session = get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        drop_tables()
        reset_engine()
