"""Static checks for workflow definitions before they are activated."""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Literal, Optional, Set

from pydantic import BaseModel, Field

from .actions import registered_actions
from .contracts import NodeType, WorkflowDefinition, WorkflowNode


class ValidationIssue(BaseModel):
    severity: Literal["error", "warning"]
    message: str
    node_id: Optional[str] = None


class ValidationResult(BaseModel):
    is_valid: bool
    issues: List[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]


def _name(node: WorkflowNode) -> str:
    return node.label or node.node_id


def _reachable(start: str, adjacency: Dict[str, List[str]]) -> Set[str]:
    reachable: Set[str] = set()
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for target in adjacency.get(current, []):
            if target not in reachable:
                reachable.add(target)
                queue.append(target)
    return reachable


def _find_cycle_node(start: str, adjacency: Dict[str, List[str]]) -> Optional[str]:
    """Return a node closing a cycle reachable from ``start``, if any."""
    visiting: Set[str] = set()
    done: Set[str] = set()
    stack = [(start, iter(adjacency.get(start, [])))]
    visiting.add(start)
    while stack:
        node_id, targets = stack[-1]
        target = next(targets, None)
        if target is None:
            stack.pop()
            visiting.discard(node_id)
            done.add(node_id)
        elif target in visiting:
            return target
        elif target not in done:
            visiting.add(target)
            stack.append((target, iter(adjacency.get(target, []))))
    return None


def _config_issues(node: WorkflowNode) -> List[ValidationIssue]:
    config = node.config
    missing: Optional[str] = None
    if node.node_type == NodeType.CONDITION and not config.get("conditionType"):
        missing = f'Condition "{_name(node)}" has no condition type and always passes'
    elif node.action_type == "update_status" and not (
        config.get("documentType") and config.get("newStatus")
    ):
        missing = f'Status update "{_name(node)}" is missing document type or target status'
    elif node.action_type == "assign_user" and not config.get("documentType"):
        missing = f'User assignment "{_name(node)}" is missing a document type'
    elif node.action_type == "delay" and config.get("delayMinutes") is None:
        missing = f'Delay "{_name(node)}" has no duration and will wait one minute'
    if missing is None:
        return []
    return [ValidationIssue(severity="warning", node_id=node.node_id, message=missing)]


def validate_workflow(definition: WorkflowDefinition) -> ValidationResult:
    """Check ``definition`` for structural and configuration problems.

    Errors mark workflows that cannot run to completion; warnings flag
    likely mistakes that still execute.
    """
    issues: List[ValidationIssue] = []
    index = definition.node_index()
    adjacency = definition.adjacency()
    triggers = [n for n in definition.nodes if n.node_type == NodeType.TRIGGER]

    if not triggers:
        issues.append(
            ValidationIssue(
                severity="error", message="Workflow must have at least one trigger node"
            )
        )
    elif len(triggers) > 1:
        issues.append(
            ValidationIssue(
                severity="error", message="Workflow can only have one trigger node"
            )
        )

    for conn in definition.connections:
        for endpoint in (conn.source_node_id, conn.target_node_id):
            if endpoint not in index:
                issues.append(
                    ValidationIssue(
                        severity="warning",
                        node_id=endpoint,
                        message=f"Connection references missing node {endpoint}",
                    )
                )

    known_actions = set(registered_actions())
    for node in definition.nodes:
        if node.node_type == NodeType.ACTION and node.action_type not in known_actions:
            issues.append(
                ValidationIssue(
                    severity="error",
                    node_id=node.node_id,
                    message=f'Action "{_name(node)}" has unknown type {node.action_type}',
                )
            )
        if node.node_type == NodeType.CONDITION:
            handles = {
                c.source_handle
                for c in definition.connections
                if c.source_node_id == node.node_id
            }
            if not {"true", "false"} <= handles:
                issues.append(
                    ValidationIssue(
                        severity="warning",
                        node_id=node.node_id,
                        message=f'Condition "{_name(node)}" should have both true and '
                        "false branches; all branches run regardless of the result",
                    )
                )
        issues.extend(_config_issues(node))

    if len(triggers) == 1:
        trigger = triggers[0]
        if not adjacency.get(trigger.node_id):
            issues.append(
                ValidationIssue(
                    severity="error",
                    node_id=trigger.node_id,
                    message="Trigger node must be connected to at least one action or condition",
                )
            )
        reachable = _reachable(trigger.node_id, adjacency)
        for node in definition.nodes:
            if node.node_id != trigger.node_id and node.node_id not in reachable:
                issues.append(
                    ValidationIssue(
                        severity="warning",
                        node_id=node.node_id,
                        message=f'Node "{_name(node)}" is not connected to the workflow',
                    )
                )
        cycle_node = _find_cycle_node(trigger.node_id, adjacency)
        if cycle_node is not None:
            issues.append(
                ValidationIssue(
                    severity="error",
                    node_id=cycle_node,
                    message=f"Workflow contains a cycle through node {cycle_node}",
                )
            )

    return ValidationResult(
        is_valid=not any(i.severity == "error" for i in issues), issues=issues
    )
