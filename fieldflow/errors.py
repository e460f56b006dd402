"""Exception taxonomy for workflow execution."""

from __future__ import annotations

from typing import Optional


class WorkflowError(Exception):
    """Base class for all fieldflow errors."""


class NotFoundError(WorkflowError):
    """Workflow is missing or not active."""


class WorkflowConfigurationError(WorkflowError):
    """Workflow definition cannot be executed as stored."""


class NoTriggerNodeError(WorkflowConfigurationError):
    """Workflow has no trigger node to start from."""


class PersistenceError(WorkflowError):
    """A record store operation failed."""


class ActionError(WorkflowError):
    """An action node failed while performing its side effect."""

    def __init__(self, message: str, action_type: Optional[str] = None) -> None:
        super().__init__(message)
        self.action_type = action_type


class UnknownActionError(ActionError):
    """The node's ``action_type`` has no registered handler."""


class GraphTraversalError(WorkflowError):
    """The graph walk cannot continue safely."""


class CycleDetectedError(GraphTraversalError):
    """A node was reached again along its own path."""


class MaxDepthExceededError(GraphTraversalError):
    """The walk went deeper than the configured limit."""


__all__ = [
    "WorkflowError",
    "NotFoundError",
    "WorkflowConfigurationError",
    "NoTriggerNodeError",
    "PersistenceError",
    "ActionError",
    "UnknownActionError",
    "GraphTraversalError",
    "CycleDetectedError",
    "MaxDepthExceededError",
]
