"""Actions that modify existing records, pause, or notify."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..contracts import ExecutionContext, table_for
from ..errors import ActionError
from ..utils import timing
from .executor import ActionExecutor, action, first_set

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MINUTES = 1


def _target_id(config: Dict[str, Any], context: ExecutionContext) -> Optional[Any]:
    document_type = config.get("documentType")
    return first_set(
        config.get("documentId"),
        context.document_id(document_type),
        context.trigger_data.get(f"{document_type}Id") if document_type else None,
    )


@action("update_status")
async def update_status(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    document_type = config.get("documentType")
    target_id = _target_id(config, context)
    if not target_id:
        raise ActionError(f"No document ID found for {document_type}", "update_status")
    new_status = config.get("newStatus")
    if not new_status:
        raise ActionError("No target status configured", "update_status")

    await executor.store.update(
        table_for(document_type), {"id": target_id}, {"status": new_status}
    )
    return {
        "updated": True,
        "documentType": document_type,
        "documentId": target_id,
        "newStatus": new_status,
    }


@action("assign_user")
async def assign_user(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    document_type = config.get("documentType")
    target_id = _target_id(config, context)
    assignee_id = first_set(
        config.get("userId"),
        context.trigger_data.get("assignedTo"),
        config.get("assignedTo"),
    )
    if not target_id or not assignee_id:
        raise ActionError("Missing document ID or user ID for assignment", "assign_user")

    await executor.store.update(
        table_for(document_type), {"id": target_id}, {"assigned_to": assignee_id}
    )
    return {
        "assigned": True,
        "documentType": document_type,
        "documentId": target_id,
        "userId": assignee_id,
    }


@action("delay")
async def delay(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    try:
        minutes = float(config.get("delayMinutes") or DEFAULT_DELAY_MINUTES)
    except (TypeError, ValueError):
        raise ActionError(
            f"Invalid delayMinutes: {config.get('delayMinutes')!r}", "delay"
        ) from None
    await timing.wait_minutes(minutes)
    return {"delayed": True, "delayMs": int(minutes * 60_000)}


@action("send_email")
async def send_email(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    logger.info("Email sending not yet implemented")
    return {"emailSent": False, "reason": "Not implemented"}
