"""Example running a quote-to-invoice workflow against a local SQLite file.

Usage:
    python guides/quote_to_invoice.py [path/to/fieldflow.db]
"""

import asyncio
import sys

from fieldflow import ExecutionCoordinator
from fieldflow.config import FieldflowConfig, configure_logging
from fieldflow.contracts import WorkflowConnection, WorkflowDefinition, WorkflowNode
from fieldflow.persistence import SQLiteRecordStore

TENANT = "demo-tenant"

workflow = WorkflowDefinition(
    id="quote-to-invoice",
    name="Quote approved -> project, service order, invoice",
    tenant_id=TENANT,
    trigger_type="quote_approved",
    nodes=[
        WorkflowNode(node_id="trigger", node_type="trigger"),
        WorkflowNode(node_id="project", node_type="action", action_type="create_project"),
        WorkflowNode(
            node_id="order",
            node_type="action",
            action_type="create_service_order",
            config={"title": "Installation"},
        ),
        WorkflowNode(node_id="invoice", node_type="action", action_type="create_invoice"),
    ],
    connections=[
        WorkflowConnection(source_node_id="trigger", target_node_id="project"),
        WorkflowConnection(source_node_id="project", target_node_id="order"),
        WorkflowConnection(source_node_id="order", target_node_id="invoice"),
    ],
)


async def main():
    db_path = sys.argv[1] if len(sys.argv) > 1 else "fieldflow.db"
    configure_logging("INFO")

    store = SQLiteRecordStore(db_path)
    coordinator = ExecutionCoordinator(store=store, config=FieldflowConfig())
    await coordinator.repository.save_workflow(workflow)

    execution_ids = await coordinator.dispatch_trigger(
        "quote_approved", {"customerId": "customer-42", "sourceType": "quote"}, TENANT
    )
    await coordinator.drain()

    for execution_id in execution_ids:
        execution = await coordinator.repository.get_execution(execution_id)
        print(f"Execution {execution_id}: {execution.status.value}")
        for log in await coordinator.repository.get_logs(execution_id):
            print(f"  {log.node_id}: {log.status.value}")
    store.close()


if __name__ == "__main__":
    asyncio.run(main())
