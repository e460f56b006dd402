"""Typed side-effecting actions run by action nodes."""

from __future__ import annotations

from . import documents, helpdesk, records  # noqa: F401  registers handlers
from .executor import ActionExecutor, action, registered_actions

__all__ = ["ActionExecutor", "action", "registered_actions"]
