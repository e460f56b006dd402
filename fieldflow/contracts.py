"""Core data contracts for the fieldflow workflow engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .errors import ActionError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeType(str, Enum):
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class LogStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class DocumentType(str, Enum):
    """Document type tags used in node config and ``created_documents``."""

    PROJECT = "project"
    SERVICE_ORDER = "serviceOrder"
    INVOICE = "invoice"
    TASK = "task"
    CHECKLIST = "checklist"
    QUOTE = "quote"
    PURCHASE_ORDER = "purchaseOrder"
    EXPENSE = "expense"
    APPOINTMENT = "appointment"
    TICKET = "ticket"


DOCUMENT_TABLES: Dict[DocumentType, str] = {
    DocumentType.PROJECT: "projects",
    DocumentType.SERVICE_ORDER: "service_orders",
    DocumentType.INVOICE: "invoices",
    DocumentType.TASK: "tasks",
    DocumentType.CHECKLIST: "tasks",
    DocumentType.QUOTE: "quotes",
    DocumentType.PURCHASE_ORDER: "purchase_orders",
    DocumentType.EXPENSE: "expenses",
    DocumentType.APPOINTMENT: "appointments",
    DocumentType.TICKET: "helpdesk_tickets",
}


def table_for(document_type: Optional[str]) -> str:
    """Return the table holding records of ``document_type``.

    Raises:
        ActionError: If the tag is not one of :class:`DocumentType`.
    """
    try:
        return DOCUMENT_TABLES[DocumentType(document_type)]
    except ValueError:
        raise ActionError(f"Unsupported document type: {document_type}") from None


class WorkflowNode(BaseModel):
    """One vertex of a workflow graph."""

    node_id: str
    node_type: NodeType
    action_type: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    label: Optional[str] = None

    @field_validator("config", mode="before")
    @classmethod
    def _null_config(cls, v: Any) -> Any:
        return {} if v is None else v


class WorkflowConnection(BaseModel):
    """Directed edge between two nodes.

    ``source_handle`` is kept as written by the workflow builder. The walker
    follows every outgoing edge regardless of it.
    """

    source_node_id: str
    target_node_id: str
    source_handle: Optional[str] = None


class WorkflowDefinition(BaseModel):
    """A stored workflow graph, read once per execution."""

    id: str
    name: str = ""
    tenant_id: Optional[str] = None
    trigger_type: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[WorkflowConnection] = Field(default_factory=list)

    def trigger_node(self) -> Optional[WorkflowNode]:
        """Return the first trigger node, if any."""
        return next(
            (n for n in self.nodes if n.node_type == NodeType.TRIGGER), None
        )

    def node_index(self) -> Dict[str, WorkflowNode]:
        return {n.node_id: n for n in self.nodes}

    def adjacency(self) -> Dict[str, List[str]]:
        """Map each source node to its targets in connection order."""
        targets: Dict[str, List[str]] = {}
        for conn in self.connections:
            targets.setdefault(conn.source_node_id, []).append(conn.target_node_id)
        return targets


class ExecutionContext(BaseModel):
    """State shared by every node of one execution.

    ``created_documents`` maps a document type tag to the most recently
    created record of that type and is mutated in place as actions run.
    """

    execution_id: str
    tenant_id: str
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    created_documents: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    test_mode: bool = False

    def document_id(self, document_type: Optional[str]) -> Optional[Any]:
        """Return the id of the document created under ``document_type``."""
        if not isinstance(document_type, str) or not document_type:
            return None
        return (self.created_documents.get(document_type) or {}).get("id")


class WorkflowExecution(BaseModel):
    """Persisted status row for one run of a workflow."""

    id: str
    workflow_id: str
    tenant_id: str
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    error_message: Optional[str] = None
    test_mode: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class WorkflowExecutionLog(BaseModel):
    """Append-only record of one visited node."""

    id: Optional[str] = None
    execution_id: str
    node_id: str
    status: LogStatus
    output: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
