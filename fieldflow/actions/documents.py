"""Actions that create business documents."""

from __future__ import annotations

from typing import Any, Dict

from ..contracts import DocumentType, ExecutionContext
from ..utils.timing import as_date, days_from_today, today
from .executor import ActionExecutor, action, first_set, resolve_reference

INVOICE_DUE_DAYS = 30
INVOICE_NUMBER_WIDTH = 5
DEFAULT_INVOICE_PREFIX = "INV"


def _source(context: ExecutionContext) -> str:
    return context.trigger_data.get("sourceType") or "workflow"


def _customer_id(config: Dict[str, Any], context: ExecutionContext) -> Any:
    return first_set(context.trigger_data.get("customerId"), config.get("customerId"))


def _created_by(context: ExecutionContext) -> Any:
    return context.trigger_data.get("userId")


@action("create_project")
async def create_project(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    project = await executor.store.insert(
        "projects",
        {
            "tenant_id": context.tenant_id,
            "name": config.get("projectName") or f"Project from {_source(context)}",
            "description": config.get("description") or "",
            "status": config.get("status") or "planning",
            "start_date": as_date(config.get("startDate")) or today(),
            "customer_id": _customer_id(config, context),
            "created_by": _created_by(context),
        },
    )
    context.created_documents[DocumentType.PROJECT.value] = project
    return {"projectId": project["id"], "project": project}


@action("create_service_order")
async def create_service_order(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    service_order = await executor.store.insert(
        "service_orders",
        {
            "tenant_id": context.tenant_id,
            "title": config.get("title") or f"Service Order from {_source(context)}",
            "description": config.get("description") or "",
            "status": config.get("status") or "draft",
            "customer_id": _customer_id(config, context),
            "project_id": resolve_reference(
                context, config, DocumentType.PROJECT.value, "projectId"
            ),
            "created_by": _created_by(context),
        },
    )
    context.created_documents[DocumentType.SERVICE_ORDER.value] = service_order
    return {"serviceOrderId": service_order["id"], "serviceOrder": service_order}


@action("create_invoice")
async def create_invoice(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    tenant = {"tenant_id": context.tenant_id}
    settings = await executor.store.select_one("invoice_settings", tenant) or {}
    prefix = settings.get("invoice_prefix") or DEFAULT_INVOICE_PREFIX
    # claimed before the insert: a failed insert leaves a gap, never a duplicate
    sequence = await executor.store.increment(
        "invoice_settings", tenant, "next_invoice_number", start=1
    )
    invoice_number = f"{prefix}-{sequence:0{INVOICE_NUMBER_WIDTH}d}"

    invoice = await executor.store.insert(
        "invoices",
        {
            "tenant_id": context.tenant_id,
            "invoice_number": invoice_number,
            "customer_id": _customer_id(config, context),
            "project_id": resolve_reference(
                context, config, DocumentType.PROJECT.value, "projectId"
            ),
            "service_order_id": resolve_reference(
                context, config, DocumentType.SERVICE_ORDER.value, "serviceOrderId"
            ),
            "status": config.get("status") or "draft",
            "issue_date": today(),
            "due_date": as_date(config.get("dueDate"))
            or days_from_today(INVOICE_DUE_DAYS),
            "created_by": _created_by(context),
        },
    )
    context.created_documents[DocumentType.INVOICE.value] = invoice
    return {"invoiceId": invoice["id"], "invoice": invoice}


@action("create_task")
async def create_task(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    task = await executor.store.insert(
        "tasks",
        {
            "tenant_id": context.tenant_id,
            "title": config.get("title") or f"Task from {_source(context)}",
            "description": config.get("description") or "",
            "status": config.get("status") or "pending",
            "priority": config.get("priority") or "medium",
            "due_date": as_date(config.get("dueDate")),
            "assigned_to": first_set(
                config.get("assignedTo"), context.trigger_data.get("userId")
            ),
            "project_id": resolve_reference(
                context, config, DocumentType.PROJECT.value, "projectId"
            ),
            "service_order_id": resolve_reference(
                context, config, DocumentType.SERVICE_ORDER.value, "serviceOrderId"
            ),
            "created_by": _created_by(context),
        },
    )
    return {"taskId": task["id"], "task": task}


@action("create_checklist")
async def create_checklist(
    executor: ActionExecutor, config: Dict[str, Any], context: ExecutionContext
) -> Dict[str, Any]:
    """Create a task carrying checklist items.

    When the trigger refers to a helpdesk ticket, a checklist message is also
    added to the ticket timeline.
    """
    data = context.trigger_data
    from_ticket = data.get("sourceType") == "helpdesk_ticket"
    task = await executor.store.insert(
        "tasks",
        {
            "tenant_id": context.tenant_id,
            "title": config.get("title") or f"Checklist from {_source(context)}",
            "description": config.get("description") or "",
            "status": config.get("status") or "pending",
            "priority": config.get("priority") or "medium",
            "due_date": as_date(config.get("dueDate")),
            "assigned_to": first_set(config.get("assignedTo"), data.get("userId")),
            "linked_module": "helpdesk" if from_ticket else config.get("linkedModule"),
            "linked_record_id": first_set(
                data.get("ticketId"), data.get("sourceId"), config.get("linkedRecordId")
            ),
            "created_by": _created_by(context),
        },
    )

    items = config.get("items") or []
    for index, title in enumerate(items):
        await executor.store.insert(
            "task_checklist_items",
            {
                "task_id": task["id"],
                "title": title,
                "is_completed": False,
                "item_order": index,
            },
        )
    if items and data.get("ticketId"):
        await executor.store.insert(
            "helpdesk_messages",
            {
                "ticket_id": data["ticketId"],
                "message_type": "checklist",
                "body": "Checklist",
                "tenant_id": context.tenant_id,
                "task_id": task["id"],
                "created_by": _created_by(context),
            },
        )

    context.created_documents[DocumentType.CHECKLIST.value] = task
    return {"taskId": task["id"], "task": task, "itemCount": len(items)}
