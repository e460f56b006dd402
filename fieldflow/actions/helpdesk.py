"""Actions operating on the helpdesk ticket named by the trigger."""

from __future__ import annotations

from typing import Any, Dict

from ..contracts import ExecutionContext, utcnow
from ..errors import ActionError
from .executor import ActionExecutor, action, first_set


def _ticket_id(context: ExecutionContext, purpose: str, action_type: str) -> Any:
    ticket_id = context.trigger_data.get("ticketId")
    if not ticket_id:
        raise ActionError(f"No ticket ID provided for {purpose}", action_type)
    return ticket_id


@action("create_note")
async def create_note(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    ticket_id = _ticket_id(context, "note creation", "create_note")
    await executor.store.insert(
        "helpdesk_messages",
        {
            "ticket_id": ticket_id,
            "message_type": "internal_note",
            "body": first_set(config.get("content"), config.get("body"))
            or "Automated note from workflow",
            "tenant_id": context.tenant_id,
            "created_by": context.trigger_data.get("userId"),
        },
    )
    return {"noteCreated": True}


@action("update_ticket_status")
async def update_ticket_status(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    ticket_id = _ticket_id(context, "status update", "update_ticket_status")
    new_status = first_set(config.get("newStatus"), config.get("status"))
    if not new_status:
        raise ActionError("No target status configured", "update_ticket_status")
    await executor.store.update(
        "helpdesk_tickets",
        {"id": ticket_id},
        {"status": new_status, "updated_at": utcnow()},
    )
    return {"statusUpdated": True, "newStatus": new_status}


@action("assign_ticket")
async def assign_ticket(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    ticket_id = _ticket_id(context, "assignment", "assign_ticket")
    assignee_id = first_set(config.get("assignedTo"), config.get("userId"))
    if not assignee_id:
        raise ActionError("No user ID provided for assignment", "assign_ticket")
    await executor.store.update(
        "helpdesk_tickets",
        {"id": ticket_id},
        {"assigned_to": assignee_id, "updated_at": utcnow()},
    )
    return {"assigned": True, "assignedTo": assignee_id}


@action("send_helpdesk_email")
async def send_helpdesk_email(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    """Send a ticket reply through the helpdesk email endpoint."""
    ticket_id = _ticket_id(context, "email", "send_helpdesk_email")
    if not executor.email.url:
        raise ActionError(
            "Helpdesk email endpoint is not configured", "send_helpdesk_email"
        )

    headers = {"Content-Type": "application/json"}
    if executor.email.service_key:
        headers["Authorization"] = f"Bearer {executor.email.service_key}"
    body = {
        "ticketId": ticket_id,
        "to": first_set(config.get("toEmail"), context.trigger_data.get("contactEmail")),
        "subject": config.get("subject") or "Update on your ticket",
        "body": first_set(config.get("body"), config.get("content")) or "",
        "tenantId": context.tenant_id,
    }

    async with executor.http_client() as client:
        response = await client.post(executor.email.url, json=body, headers=headers)
    if response.is_error:
        raise ActionError(
            f"Failed to send email: {response.text}", "send_helpdesk_email"
        )
    return {"emailSent": True}
