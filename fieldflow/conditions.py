"""Condition evaluation for condition nodes.

Evaluation never raises: unknown condition types pass, and values that do not
coerce to numbers compare as NaN, so every numeric comparison against them is
false.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Optional

from .contracts import ExecutionContext, WorkflowNode

ConditionCheck = Callable[[Dict[str, Any], ExecutionContext], bool]

_CONDITIONS: Dict[str, ConditionCheck] = {}


def condition(name: str) -> Callable[[ConditionCheck], ConditionCheck]:
    def register(func: ConditionCheck) -> ConditionCheck:
        _CONDITIONS[name] = func
        return func

    return register


def lookup_field(
    context: ExecutionContext, field: Optional[str], document_type: Optional[str]
) -> Any:
    """Read ``field`` from the trigger data, else from a created document."""
    if not isinstance(field, str) or not field:
        return None
    value = context.trigger_data.get(field)
    if value is not None:
        return value
    if not isinstance(document_type, str) or not document_type:
        return None
    return (context.created_documents.get(document_type) or {}).get(field)


def to_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            # integers beyond float range
            return math.inf if value > 0 else -math.inf
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    try:
        return str(value)
    except ValueError:
        # integers past the digit limit for str()
        return "Infinity" if value > 0 else "-Infinity"


def strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    return type(left) is type(right) and left == right


def _field(config: Dict[str, Any], context: ExecutionContext) -> Any:
    return lookup_field(context, config.get("fieldName"), config.get("documentType"))


@condition("field_equals")
def _field_equals(config: Dict[str, Any], context: ExecutionContext) -> bool:
    return strict_equals(_field(config, context), config.get("expectedValue"))


@condition("field_greater_than")
def _field_greater_than(config: Dict[str, Any], context: ExecutionContext) -> bool:
    return to_number(_field(config, context)) > to_number(config.get("threshold"))


@condition("field_less_than")
def _field_less_than(config: Dict[str, Any], context: ExecutionContext) -> bool:
    return to_number(_field(config, context)) < to_number(config.get("threshold"))


@condition("field_contains")
def _field_contains(config: Dict[str, Any], context: ExecutionContext) -> bool:
    search = config.get("searchText")
    if search is None:
        return False
    return to_text(search) in to_text(_field(config, context))


@condition("field_comparison")
def _field_comparison(config: Dict[str, Any], context: ExecutionContext) -> bool:
    value = lookup_field(context, config.get("field"), config.get("documentType"))
    expected = config.get("value")
    operator = config.get("operator")
    if operator == "equals":
        return to_text(value) == to_text(expected)
    if operator == "not_equals":
        return to_text(value) != to_text(expected)
    if operator == "greater_than":
        return to_number(value) > to_number(expected)
    if operator == "less_than":
        return to_number(value) < to_number(expected)
    if operator == "contains":
        return to_text(expected) in to_text(value)
    return True


@condition("is_assigned_to_current_user")
def _is_assigned_to_current_user(
    config: Dict[str, Any], context: ExecutionContext
) -> bool:
    data = context.trigger_data
    assigned_to = data.get("assigned_to") or data.get("assignedTo")
    return assigned_to == data.get("userId")


@condition("is_created_by_current_user")
def _is_created_by_current_user(
    config: Dict[str, Any], context: ExecutionContext
) -> bool:
    data = context.trigger_data
    created_by = data.get("created_by") or data.get("createdBy")
    return created_by == data.get("userId")


@condition("has_customer")
def _has_customer(config: Dict[str, Any], context: ExecutionContext) -> bool:
    data = context.trigger_data
    return bool(data.get("customerId") or data.get("customer_id"))


@condition("has_project")
def _has_project(config: Dict[str, Any], context: ExecutionContext) -> bool:
    data = context.trigger_data
    return bool(data.get("projectId") or data.get("project_id"))


def evaluate_condition(node: WorkflowNode, context: ExecutionContext) -> bool:
    """Evaluate the predicate configured on ``node`` against ``context``.

    Unrecognised or missing ``conditionType`` values evaluate to ``True``.
    """
    condition_type = node.config.get("conditionType")
    check = _CONDITIONS.get(condition_type) if isinstance(condition_type, str) else None
    if check is None:
        return True
    return check(node.config, context)


__all__ = ["evaluate_condition", "lookup_field", "to_number"]
