import pytest

from fieldflow.config import FieldflowConfig
from fieldflow.dispatch import ExecutionCoordinator
from fieldflow.persistence import InMemoryRecordStore, WorkflowRepository


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def repository(store):
    return WorkflowRepository(store)


@pytest.fixture
def coordinator(store):
    return ExecutionCoordinator(store=store, config=FieldflowConfig())


@pytest.fixture
def waits(monkeypatch):
    """Record delay-action waits instead of sleeping."""
    calls = []

    async def fake_wait(minutes):
        calls.append(minutes)

    monkeypatch.setattr("fieldflow.utils.timing.wait_minutes", fake_wait)
    return calls
