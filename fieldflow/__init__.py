"""fieldflow: node-graph workflow automation for field-service operations."""

from .actions import ActionExecutor
from .conditions import evaluate_condition
from .contracts import (
    ExecutionContext,
    WorkflowConnection,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionLog,
    WorkflowNode,
)
from .dispatch import ExecutionCoordinator
from .execute import NodeGraphWalker
from .persistence import WorkflowRepository, get_record_store
from .validation import validate_workflow

__version__ = "0.1.0"
__all__ = [
    "ActionExecutor",
    "ExecutionContext",
    "ExecutionCoordinator",
    "NodeGraphWalker",
    "WorkflowConnection",
    "WorkflowDefinition",
    "WorkflowExecution",
    "WorkflowExecutionLog",
    "WorkflowNode",
    "WorkflowRepository",
    "evaluate_condition",
    "get_record_store",
    "validate_workflow",
]
