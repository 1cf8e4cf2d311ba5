"""Resolve and validate the acting user for workflow (n8n) calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class WorkflowContextError(ValueError):
    """Raised when a workflow call cannot be attributed to a valid user."""


@dataclass(frozen=True)
class WorkflowContext:
    user_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    service_account_id: Optional[str] = None
    service_account_name: Optional[str] = None
    permissions: List[str] = field(default_factory=list)


def extract_user_id(
    user_id: Optional[str],
    service_account_user_id: Optional[str],
    requested_user_id: Optional[str],
) -> str:
    """
    Pick the acting user id.

    Priority: the user a service account is bound to, then the user id
    requested in the workflow payload, then the query/header fallback.
    """

    if service_account_user_id:
        return service_account_user_id
    if requested_user_id:
        return requested_user_id
    if user_id:
        return user_id
    raise WorkflowContextError("User ID is required but not provided")


def validate_user_context(db, user_id: str, service_account_id: str) -> dict:
    user = db.get_user(user_id)
    if not user:
        raise WorkflowContextError(f"User not found: {user_id}")

    service_account = db.get_service_account(service_account_id)
    if not service_account or not service_account.get("active"):
        raise WorkflowContextError(f"Service account not found or inactive: {service_account_id}")

    return {
        "user_id": user["id"],
        "user_email": user.get("email"),
        "user_name": user.get("name"),
        "service_account_id": service_account["id"],
        "service_account_name": service_account.get("name"),
        "permissions": list(service_account.get("permissions") or []),
    }


def create_workflow_context(
    user_id: str,
    user_email: Optional[str],
    user_name: Optional[str],
    service_account_id: Optional[str],
    service_account_name: Optional[str],
    permissions: Optional[List[str]] = None,
) -> WorkflowContext:
    return WorkflowContext(
        user_id=user_id,
        user_email=user_email,
        user_name=user_name,
        service_account_id=service_account_id,
        service_account_name=service_account_name,
        permissions=list(permissions or []),
    )


__all__ = [
    "WorkflowContext",
    "WorkflowContextError",
    "create_workflow_context",
    "extract_user_id",
    "validate_user_context",
]
