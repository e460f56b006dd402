"""Access to workflow definitions, executions and execution logs."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..contracts import (
    ExecutionStatus,
    LogStatus,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionLog,
    utcnow,
)
from ..errors import NotFoundError, PersistenceError, WorkflowConfigurationError
from .repository import RecordStore

logger = logging.getLogger(__name__)

WORKFLOWS = "workflows"
NODES = "workflow_nodes"
CONNECTIONS = "workflow_connections"
EXECUTIONS = "workflow_executions"
EXECUTION_LOGS = "workflow_execution_logs"


class WorkflowRepository:
    """Read and write the workflow tables of a :class:`RecordStore`."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Definitions
    async def save_workflow(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Insert or replace ``definition`` together with its graph."""
        wid = definition.id
        logger.info(
            f"Saving workflow {wid} with {len(definition.nodes)} nodes "
            f"and {len(definition.connections)} connections"
        )
        await self.store.delete(NODES, {"workflow_id": wid})
        await self.store.delete(CONNECTIONS, {"workflow_id": wid})
        await self.store.delete(WORKFLOWS, {"id": wid})
        await self.store.insert(
            WORKFLOWS,
            definition.model_dump(mode="json", exclude={"nodes", "connections"}),
        )
        for node in definition.nodes:
            await self.store.insert(
                NODES, {"workflow_id": wid, **node.model_dump(mode="json")}
            )
        for conn in definition.connections:
            await self.store.insert(
                CONNECTIONS, {"workflow_id": wid, **conn.model_dump(mode="json")}
            )
        return definition

    async def load_active_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Load an active workflow with its nodes and connections.

        Raises:
            NotFoundError: If the workflow does not exist or is inactive.
        """
        row = await self.store.select_one(
            WORKFLOWS, {"id": workflow_id, "is_active": True}
        )
        if row is None:
            raise NotFoundError(f"Workflow not found or inactive: {workflow_id}")
        return await self._assemble(row)

    async def find_active_workflows(
        self, trigger_type: str, tenant_id: str
    ) -> list[WorkflowDefinition]:
        rows = await self.store.select(
            WORKFLOWS,
            {"trigger_type": trigger_type, "tenant_id": tenant_id, "is_active": True},
        )
        return [await self._assemble(row) for row in rows]

    async def _assemble(self, row: dict) -> WorkflowDefinition:
        nodes = await self.store.select(NODES, {"workflow_id": row["id"]})
        connections = await self.store.select(CONNECTIONS, {"workflow_id": row["id"]})
        try:
            return WorkflowDefinition.model_validate(
                {**row, "nodes": nodes, "connections": connections}
            )
        except ValidationError as e:
            raise WorkflowConfigurationError(
                f"Workflow {row['id']} is malformed: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(
        self,
        workflow_id: str,
        tenant_id: str,
        trigger_data: dict[str, Any],
        test_mode: bool = False,
    ) -> WorkflowExecution:
        try:
            row = await self.store.insert(
                EXECUTIONS,
                {
                    "workflow_id": workflow_id,
                    "tenant_id": tenant_id,
                    "trigger_data": trigger_data,
                    "status": ExecutionStatus.RUNNING.value,
                    "test_mode": test_mode,
                    "started_at": utcnow(),
                },
            )
        except PersistenceError as e:
            raise PersistenceError(f"Failed to create execution: {e}") from e
        return WorkflowExecution.model_validate(row)

    async def finish_execution(
        self,
        execution_id: str,
        status: ExecutionStatus,
        error_message: Optional[str] = None,
    ) -> None:
        values: dict[str, Any] = {"status": status.value, "completed_at": utcnow()}
        if error_message is not None:
            values["error_message"] = error_message
        await self.store.update(EXECUTIONS, {"id": execution_id}, values)

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        row = await self.store.select_one(EXECUTIONS, {"id": execution_id})
        return WorkflowExecution.model_validate(row) if row else None

    async def list_executions(
        self, workflow_id: Optional[str] = None
    ) -> list[WorkflowExecution]:
        filters = {"workflow_id": workflow_id} if workflow_id else None
        rows = await self.store.select(EXECUTIONS, filters, order_by="started_at")
        return [WorkflowExecution.model_validate(r) for r in rows]

    # ------------------------------------------------------------------
    # Logs
    async def append_log(
        self,
        execution_id: str,
        node_id: str,
        status: LogStatus,
        output: Optional[dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> None:
        await self.store.insert(
            EXECUTION_LOGS,
            {
                "execution_id": execution_id,
                "node_id": node_id,
                "status": status.value,
                "output": output,
                "error_message": error_message,
                "created_at": utcnow(),
            },
        )

    async def get_logs(self, execution_id: str) -> list[WorkflowExecutionLog]:
        rows = await self.store.select(
            EXECUTION_LOGS, {"execution_id": execution_id}, order_by="created_at"
        )
        return [WorkflowExecutionLog.model_validate(r) for r in rows]
