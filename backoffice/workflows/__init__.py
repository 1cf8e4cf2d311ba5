"""Workflow (n8n) action routing."""

from .router import ACTION_ALIASES, WorkflowRouter
from .schemas import LineItem, WorkflowActionRequest, WorkflowResponse

__all__ = [
    "ACTION_ALIASES",
    "LineItem",
    "WorkflowActionRequest",
    "WorkflowResponse",
    "WorkflowRouter",
]
