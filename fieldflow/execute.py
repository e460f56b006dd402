"""Node graph walker for fieldflow workflows."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from .actions import ActionExecutor
from .conditions import evaluate_condition
from .config import DEFAULT_MAX_DEPTH
from .contracts import ExecutionContext, LogStatus, NodeType, WorkflowNode
from .errors import CycleDetectedError, MaxDepthExceededError
from .persistence import WorkflowRepository

logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


class NodeGraphWalker:
    """Walks a workflow graph depth-first from its trigger node.

    Each visited node gets exactly one log row. A failing node logs a
    ``failed`` row and its exception aborts the whole walk. A node reachable
    through several paths is visited once per path.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        actions: ActionExecutor,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._repository = repository
        self._actions = actions
        self._max_depth = max_depth

    async def walk(
        self,
        node: WorkflowNode,
        execution_id: str,
        context: ExecutionContext,
        node_index: Dict[str, WorkflowNode],
        adjacency: Dict[str, List[str]],
        path: Tuple[str, ...] = (),
    ) -> None:
        """Visit ``node`` and then, in order, every node it connects to.

        ``path`` holds the ancestors of ``node`` on the current branch.

        Raises:
            CycleDetectedError: If ``node`` is one of its own ancestors.
            MaxDepthExceededError: If the branch exceeds ``max_depth``.
        """
        logger.info(f"Executing node {node.node_id} type {node.node_type.value}")
        try:
            if node.node_id in path:
                raise CycleDetectedError(
                    f"Cycle detected: node {node.node_id} reached again via "
                    f"{' -> '.join(path)}"
                )
            if len(path) >= self._max_depth:
                raise MaxDepthExceededError(
                    f"Maximum workflow depth of {self._max_depth} exceeded at "
                    f"node {node.node_id}"
                )
            output = await self._visit(node, context)
            await self._repository.append_log(
                execution_id, node.node_id, LogStatus.SUCCESS, output=output
            )
        except Exception as e:
            logger.error(f"Node execution failed: {node.node_id}: {e}")
            await self._repository.append_log(
                execution_id,
                node.node_id,
                LogStatus.FAILED,
                error_message=describe_error(e),
            )
            raise

        branch = path + (node.node_id,)
        for next_node_id in adjacency.get(node.node_id, []):
            next_node = node_index.get(next_node_id)
            if next_node is not None:
                await self.walk(
                    next_node, execution_id, context, node_index, adjacency, branch
                )

    async def _visit(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> Dict[str, Any]:
        if node.node_type == NodeType.TRIGGER:
            return {"triggered": True, "data": context.trigger_data}
        if node.node_type == NodeType.ACTION:
            return await self._actions.execute(node, context)
        # every outgoing edge of a condition fires; the result is only logged
        return {"conditionMet": evaluate_condition(node, context)}
