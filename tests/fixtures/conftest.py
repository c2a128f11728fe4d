"""Pytest fixtures for traceability engine tests.

Common fixtures for stores, engines and MCP contexts.
"""

import itertools
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from tracelink_mcp_server.config import ServerSettings
from tracelink_mcp_server.engine import TraceabilityEngine
from tracelink_mcp_server.store import LinkStore
from . import trace_data


class FakeClock:
    """Deterministic clock advancing one minute per reading."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))


@pytest.fixture
def id_factory():
    """Sequential link IDs: rl-1, rl-2, ..."""
    counter = itertools.count(1)
    return lambda: f"rl-{next(counter)}"


@pytest.fixture
def link_store(id_factory, clock):
    """Empty link store with deterministic IDs and timestamps."""
    return LinkStore(id_factory=id_factory, clock=clock)


@pytest.fixture
def engine(link_store):
    """Traceability engine over the deterministic link store."""
    return TraceabilityEngine(store=link_store)


@pytest.fixture
def scenario_items():
    """System S1, requirement R1 v1.0, test case T1 (fresh copies)."""
    return [dict(item) for item in trace_data.SCENARIO_ITEMS]


@pytest.fixture
def scenario_edges():
    return [dict(edge) for edge in trace_data.SCENARIO_EDGES]


@pytest.fixture
def chain_items():
    return [dict(item) for item in trace_data.CHAIN_ITEMS]


@pytest.fixture
def model_items():
    return [dict(item) for item in trace_data.MODEL_ITEMS]


@pytest.fixture
def model_edges():
    return [dict(edge) for edge in trace_data.MODEL_EDGES]


@pytest.fixture
def saved_links():
    return [
        {**record, "source": dict(record["source"]), "target": dict(record["target"])}
        for record in trace_data.SAVED_LINKS
    ]


@pytest.fixture
def server_settings():
    return ServerSettings(default_author="panel-user")


@pytest.fixture(autouse=True)
def reset_environment_for_tests(monkeypatch):
    """Reset environment variables for each test.

    This fixture automatically runs before each test to ensure
    a clean environment state.
    """
    for name in (
        "TRACELINK_LOG_LEVEL",
        "TRACELINK_SERVER_NAME",
        "TRACELINK_LINKS_FILE",
        "TRACELINK_DEFAULT_AUTHOR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mcp_context(engine, server_settings):
    """Mock MCP context with traceability engine."""
    context = MagicMock()
    context.request_context.lifespan_context = {"engine": engine, "settings": server_settings}
    return context
