"""Execution coordinator tests."""

import asyncio

import pytest

from fieldflow.config import EngineConfig, FieldflowConfig
from fieldflow.dispatch import ExecutionCoordinator
from fieldflow.errors import NoTriggerNodeError, NotFoundError, PersistenceError
from fieldflow.persistence import InMemoryRecordStore
from tests.fixtures.workflows import TENANT, action, chain, edges, make_workflow, trigger


async def _seed(repository, definition):
    await repository.save_workflow(definition)
    return definition.id


@pytest.mark.asyncio
async def test_linear_workflow_completes(coordinator, repository):
    workflow_id = await _seed(
        repository,
        make_workflow(
            [trigger(), action("a1", "create_project"), action("a2", "create_service_order")],
            chain("trigger", "a1", "a2"),
        ),
    )
    execution_id = await coordinator.start_execution(workflow_id, {"customerId": "c1"}, TENANT)
    await coordinator.wait_for(execution_id)

    execution = await repository.get_execution(execution_id)
    assert execution.status.value == "completed"
    assert execution.completed_at is not None
    assert execution.error_message is None
    logs = await repository.get_logs(execution_id)
    assert [(l.node_id, l.status.value) for l in logs] == [
        ("trigger", "success"),
        ("a1", "success"),
        ("a2", "success"),
    ]


@pytest.mark.asyncio
async def test_returns_before_walk_finishes(coordinator, repository, monkeypatch):
    release = asyncio.Event()

    async def blocked_wait(minutes):
        await release.wait()

    monkeypatch.setattr("fieldflow.utils.timing.wait_minutes", blocked_wait)
    workflow_id = await _seed(
        repository, make_workflow([trigger(), action("wait", "delay")], chain("trigger", "wait"))
    )

    execution_id = await coordinator.start_execution(workflow_id, {}, TENANT)
    execution = await repository.get_execution(execution_id)
    assert execution.status.value == "running"

    release.set()
    await coordinator.wait_for(execution_id)
    execution = await repository.get_execution(execution_id)
    assert execution.status.value == "completed"


@pytest.mark.asyncio
async def test_failing_node_marks_execution_failed(coordinator, repository, store):
    workflow_id = await _seed(
        repository,
        make_workflow(
            [
                trigger(),
                action("a1", "create_project"),
                action("a2", "update_status", documentType="invoice", newStatus="paid"),
                action("a3", "create_task"),
            ],
            chain("trigger", "a1", "a2", "a3"),
        ),
    )
    execution_id = await coordinator.start_execution(workflow_id, {}, TENANT)
    await coordinator.wait_for(execution_id)

    execution = await repository.get_execution(execution_id)
    assert execution.status.value == "failed"
    assert execution.error_message == "No document ID found for invoice"
    logs = await repository.get_logs(execution_id)
    assert [(l.node_id, l.status.value) for l in logs] == [
        ("trigger", "success"),
        ("a1", "success"),
        ("a2", "failed"),
    ]
    # no rollback of documents created before the failure
    assert len(store.table("projects")) == 1
    assert store.table("tasks") == []


@pytest.mark.asyncio
async def test_missing_trigger_fails_before_execution_row(coordinator, repository, store):
    workflow_id = await _seed(repository, make_workflow([action("a1", "create_project")]))
    with pytest.raises(NoTriggerNodeError):
        await coordinator.start_execution(workflow_id, {}, TENANT)
    assert store.table("workflow_executions") == []


@pytest.mark.asyncio
async def test_inactive_workflow_is_not_found(coordinator, repository, store):
    workflow_id = await _seed(repository, make_workflow([trigger()], is_active=False))
    with pytest.raises(NotFoundError):
        await coordinator.start_execution(workflow_id, {}, TENANT)
    with pytest.raises(NotFoundError):
        await coordinator.start_execution("does-not-exist", {}, TENANT)
    assert store.table("workflow_executions") == []


@pytest.mark.asyncio
async def test_execution_insert_failure_is_persistence_error(repository):
    class NoExecutionsStore(InMemoryRecordStore):
        async def insert(self, table, values):
            if table == "workflow_executions":
                raise PersistenceError("permission denied")
            return await super().insert(table, values)

    store = NoExecutionsStore()
    coordinator = ExecutionCoordinator(store=store, config=FieldflowConfig())
    await coordinator.repository.save_workflow(make_workflow([trigger()]))
    with pytest.raises(PersistenceError, match="Failed to create execution"):
        await coordinator.start_execution("wf-1", {}, TENANT)


@pytest.mark.asyncio
async def test_service_order_links_to_project_created_in_same_run(coordinator, repository, store):
    workflow_id = await _seed(
        repository,
        make_workflow(
            [trigger(), action("p", "create_project"), action("so", "create_service_order")],
            chain("trigger", "p", "so"),
        ),
    )
    execution_id = await coordinator.start_execution(workflow_id, {}, TENANT)
    await coordinator.wait_for(execution_id)

    project = store.table("projects")[0]
    service_order = store.table("service_orders")[0]
    assert service_order["project_id"] == project["id"]


@pytest.mark.asyncio
async def test_invoice_numbers_increase_across_executions(coordinator, repository, store):
    store.table("invoice_settings").append(
        {"id": "s1", "tenant_id": TENANT, "next_invoice_number": 7, "invoice_prefix": "INV"}
    )
    workflow_id = await _seed(
        repository,
        make_workflow([trigger(), action("inv", "create_invoice")], chain("trigger", "inv")),
    )
    first = await coordinator.start_execution(workflow_id, {}, TENANT)
    second = await coordinator.start_execution(workflow_id, {}, TENANT)
    await coordinator.drain()

    numbers = sorted(i["invoice_number"] for i in store.table("invoices"))
    assert numbers == ["INV-00007", "INV-00008"]
    assert store.table("invoice_settings")[0]["next_invoice_number"] == 9
    for execution_id in (first, second):
        assert (await repository.get_execution(execution_id)).status.value == "completed"


@pytest.mark.asyncio
async def test_cycle_fails_execution_instead_of_crashing(repository, store):
    coordinator = ExecutionCoordinator(
        store=store, config=FieldflowConfig(engine=EngineConfig(max_depth=10))
    )
    workflow_id = await _seed(
        repository,
        make_workflow(
            [trigger(), action("a", "send_email"), action("b", "send_email")],
            edges(("trigger", "a"), ("a", "b"), ("b", "a")),
        ),
    )
    execution_id = await coordinator.start_execution(workflow_id, {}, TENANT)
    await coordinator.wait_for(execution_id)
    execution = await repository.get_execution(execution_id)
    assert execution.status.value == "failed"
    assert "Cycle detected" in execution.error_message


@pytest.mark.asyncio
async def test_dispatch_trigger_starts_matching_workflows(coordinator, repository):
    await _seed(repository, make_workflow([trigger()], workflow_id="wf-a"))
    await _seed(repository, make_workflow([trigger()], workflow_id="wf-b"))
    await _seed(repository, make_workflow([trigger()], workflow_id="wf-other", trigger_type="ticket_created"))
    await _seed(repository, make_workflow([trigger()], workflow_id="wf-off", is_active=False))
    await _seed(repository, make_workflow([action("x", "send_email")], workflow_id="wf-broken"))

    execution_ids = await coordinator.dispatch_trigger("quote_approved", {"quoteId": "q1"}, TENANT)
    await coordinator.drain()

    assert len(execution_ids) == 2
    started = {(await repository.get_execution(e)).workflow_id for e in execution_ids}
    assert started == {"wf-a", "wf-b"}


@pytest.mark.asyncio
async def test_test_mode_is_recorded(coordinator, repository):
    workflow_id = await _seed(repository, make_workflow([trigger()]))
    execution_id = await coordinator.start_execution(workflow_id, None, TENANT, test_mode=True)
    await coordinator.wait_for(execution_id)
    execution = await repository.get_execution(execution_id)
    assert execution.test_mode is True
    assert execution.trigger_data == {}
