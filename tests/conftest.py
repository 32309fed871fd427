"""
Pytest fixtures for the approval kernel test suite.

Provides:
- A file-backed SQLite database per test (real commits, real locking)
- A deterministic clock and an in-memory org chart
- A fully wired WorkflowEngine and a request factory
- Structured-log capture

Org chart used throughout::

    ceo (CEO)
    +-- fin_director (FINANCE)
    +-- hr_director (HR)
    |   +-- hr_partner (HR)
    +-- eng_manager (MANAGER)
        +-- alice (REQUESTER)
        +-- bob (REQUESTER)
    orphan (REQUESTER, no manager)
    admin (ADMIN)
"""

import json
import logging
from io import StringIO

import pytest

from approval_config import get_route_table
from approval_kernel.db.engine import (
    create_engine_from_url,
    create_session_factory,
    create_tables,
)
from approval_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from approval_kernel.domain.clock import DeterministicClock
from approval_kernel.domain.hierarchy import ActorInfo, InMemoryDirectory
from approval_kernel.domain.workflow import RequestKind, Role
from approval_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from approval_kernel.services.workflow_engine import WorkflowEngine

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
    Capture approval_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_engine):
            workflow_engine.transition(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("approval_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: tests that race real threads against the database"
    )


# =============================================================================
# Append-only enforcement
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    engine = create_engine_from_url(f"sqlite:///{tmp_path / 'workflow.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def session(session_factory):
    """A plain session for service-level tests; rolled back at teardown."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Domain fixtures
# =============================================================================


ORG_CHART = (
    ActorInfo(id="ceo", role=Role.CEO, name="Chief Executive"),
    ActorInfo(id="fin_director", role=Role.FINANCE, name="Finance Director", reports_to_id="ceo"),
    ActorInfo(id="hr_director", role=Role.HR, name="HR Director", reports_to_id="ceo"),
    ActorInfo(id="hr_partner", role=Role.HR, name="HR Partner", reports_to_id="hr_director"),
    ActorInfo(id="eng_manager", role=Role.MANAGER, name="Engineering Manager", reports_to_id="ceo"),
    ActorInfo(id="alice", role=Role.REQUESTER, name="Alice", reports_to_id="eng_manager"),
    ActorInfo(id="bob", role=Role.REQUESTER, name="Bob", reports_to_id="eng_manager"),
    ActorInfo(id="orphan", role=Role.REQUESTER, name="Orphan"),
    ActorInfo(id="admin", role=Role.ADMIN, name="Administrator"),
)


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def directory():
    return InMemoryDirectory(ORG_CHART)


@pytest.fixture
def route_table():
    return get_route_table()


@pytest.fixture
def workflow_engine(session_factory, directory, deterministic_clock, route_table):
    return WorkflowEngine(
        session_factory=session_factory,
        directory=directory,
        clock=deterministic_clock,
        route_table=route_table,
    )


@pytest.fixture
def make_request(workflow_engine):
    """Factory: create a request through the engine."""

    def _make(
        requester_id: str = "alice",
        kind: RequestKind = RequestKind.MANPOWER,
        payload: dict | None = None,
        submit: bool = True,
    ):
        if payload is None:
            payload = (
                {"position_title": "Backend Engineer", "headcount": 1}
                if kind == RequestKind.MANPOWER
                else {"destination": "Singapore", "start_date": "2024-03-01", "end_date": "2024-03-05"}
            )
        return workflow_engine.create(kind, payload, requester_id, submit=submit)

    return _make
