"""Action execution for action nodes."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

from ..config import HelpdeskEmailConfig
from ..contracts import ExecutionContext, WorkflowNode
from ..errors import ActionError, UnknownActionError
from ..persistence import RecordStore

logger = logging.getLogger(__name__)

ActionHandler = Callable[
    ["ActionExecutor", Dict[str, Any], ExecutionContext], Awaitable[Dict[str, Any]]
]

_ACTIONS: Dict[str, ActionHandler] = {}


def action(name: str) -> Callable[[ActionHandler], ActionHandler]:
    """Register the decorated coroutine as the handler for ``name``."""

    def register(func: ActionHandler) -> ActionHandler:
        _ACTIONS[name] = func
        return func

    return register


def registered_actions() -> list[str]:
    return sorted(_ACTIONS)


def first_set(*values: Any) -> Any:
    """Return the first value that is neither ``None`` nor empty."""
    return next((v for v in values if v not in (None, "")), None)


def resolve_reference(
    context: ExecutionContext,
    config: Dict[str, Any],
    document_type: str,
    key: str,
) -> Any:
    """Resolve a parent id: created document, then trigger data, then config."""
    return first_set(
        context.document_id(document_type),
        context.trigger_data.get(key),
        config.get(key),
    )


class ActionExecutor:
    """Runs the typed side effect of an action node against a record store."""

    def __init__(
        self,
        store: RecordStore,
        email: Optional[HelpdeskEmailConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.store = store
        self.email = email or HelpdeskEmailConfig()
        self._http_client = http_client

    @asynccontextmanager
    async def http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.email.timeout) as client:
            yield client

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> Dict[str, Any]:
        """Run ``node``'s action and return its output.

        Raises:
            UnknownActionError: If no handler is registered for the type.
            ActionError: If the side effect fails; any other error is wrapped
                with the original as ``__cause__``.
        """
        action_type = node.action_type
        handler = _ACTIONS.get(action_type or "")
        if handler is None:
            raise UnknownActionError(f"Unknown action type: {action_type}", action_type)

        logger.info(
            f"Executing action {action_type} for node {node.node_id} "
            f"(execution_id={context.execution_id})"
        )
        try:
            return await handler(self, node.config, context)
        except ActionError as e:
            e.action_type = e.action_type or action_type
            raise
        except Exception as e:
            raise ActionError(f"{action_type} failed: {e}", action_type) from e
