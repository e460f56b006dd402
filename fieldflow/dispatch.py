"""Execution coordinator: starts workflow runs and records their outcome."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .actions import ActionExecutor
from .config import FieldflowConfig, load_config
from .contracts import ExecutionContext, ExecutionStatus, WorkflowDefinition
from .errors import NoTriggerNodeError
from .execute import NodeGraphWalker, describe_error
from .persistence import RecordStore, WorkflowRepository, get_record_store

logger = logging.getLogger(__name__)


class ExecutionCoordinator:
    """Service responsible for starting workflow executions.

    ``start_execution`` returns as soon as the execution row exists; the walk
    runs as a detached task whose outcome is only visible through the
    ``workflow_executions`` and ``workflow_execution_logs`` tables.
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        config: Optional[FieldflowConfig] = None,
        actions: Optional[ActionExecutor] = None,
    ) -> None:
        self._config = config or load_config()
        self._store = store or get_record_store(config=self._config)
        self.repository = WorkflowRepository(self._store)
        self._actions = actions or ActionExecutor(self._store, email=self._config.email)
        self._walker = NodeGraphWalker(
            self.repository, self._actions, max_depth=self._config.engine.max_depth
        )
        self._tasks: Dict[str, asyncio.Task] = {}

    async def start_execution(
        self,
        workflow_id: str,
        trigger_data: Optional[Dict[str, Any]],
        tenant_id: str,
        test_mode: bool = False,
    ) -> str:
        """Start running ``workflow_id`` and return the new execution id.

        Raises:
            NotFoundError: If the workflow is missing or inactive.
            NoTriggerNodeError: If the workflow has no trigger node.
            PersistenceError: If the execution row cannot be created.
        """
        logger.info(
            f"Executing workflow {workflow_id} for tenant {tenant_id} "
            f"(test_mode={test_mode})"
        )
        definition = await self.repository.load_active_workflow(workflow_id)
        if definition.trigger_node() is None:
            raise NoTriggerNodeError(f"No trigger node found in workflow {workflow_id}")

        trigger_data = trigger_data or {}
        execution = await self.repository.create_execution(
            workflow_id, tenant_id, trigger_data, test_mode=test_mode
        )
        context = ExecutionContext(
            execution_id=execution.id,
            tenant_id=tenant_id,
            trigger_data=trigger_data,
            test_mode=test_mode,
        )
        task = asyncio.create_task(self._run(definition, context))
        self._tasks[execution.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(execution.id, None))
        return execution.id

    async def dispatch_trigger(
        self, trigger_type: str, trigger_data: Optional[Dict[str, Any]], tenant_id: str
    ) -> List[str]:
        """Start every active workflow of ``tenant_id`` listening to ``trigger_type``.

        A workflow that fails to start is logged and skipped so that the
        remaining workflows still run.
        """
        workflows = await self.repository.find_active_workflows(trigger_type, tenant_id)
        logger.info(f"Triggering {len(workflows)} workflows for {trigger_type}")
        execution_ids = []
        for workflow in workflows:
            try:
                execution_ids.append(
                    await self.start_execution(workflow.id, trigger_data, tenant_id)
                )
            except Exception:
                logger.exception(f"Failed to start workflow {workflow.id}")
        return execution_ids

    async def wait_for(self, execution_id: str) -> None:
        """Wait until the detached run of ``execution_id`` has finished."""
        task = self._tasks.get(execution_id)
        if task is not None:
            await asyncio.wait([task])

    async def drain(self) -> None:
        """Wait for every detached run started by this coordinator."""
        while self._tasks:
            await asyncio.wait(list(self._tasks.values()))

    async def _run(self, definition: WorkflowDefinition, context: ExecutionContext) -> None:
        execution_id = context.execution_id
        try:
            await self._walker.walk(
                definition.trigger_node(),
                execution_id,
                context,
                definition.node_index(),
                definition.adjacency(),
            )
        except Exception as e:
            logger.exception(f"Workflow execution failed: {execution_id}")
            await self._finish(execution_id, ExecutionStatus.FAILED, describe_error(e))
        else:
            logger.info(f"Workflow execution completed: {execution_id}")
            await self._finish(execution_id, ExecutionStatus.COMPLETED)

    async def _finish(
        self,
        execution_id: str,
        status: ExecutionStatus,
        error_message: Optional[str] = None,
    ) -> None:
        try:
            await self.repository.finish_execution(execution_id, status, error_message)
        except Exception:
            logger.exception(
                f"Could not record {status.value} state for execution {execution_id}"
            )
