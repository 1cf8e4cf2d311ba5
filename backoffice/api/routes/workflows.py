"""Workflow (n8n) action endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from ...auth import (
    WorkflowContext,
    WorkflowContextError,
    create_workflow_context,
    extract_user_id,
    validate_user_context,
)
from ...container import get_workflow_router
from ...db import get_database_client
from ...workflows import WorkflowActionRequest
from ..dependencies import verify_workflow_key

logger = logging.getLogger(__name__)

router = APIRouter()


def resolve_workflow_context(db, request: WorkflowActionRequest, header_user_id: Optional[str]) -> WorkflowContext:
    """Build the acting user's context, validating the service account when one is named."""

    if request.service_account_id:
        service_account = db.get_service_account(request.service_account_id) or {}
        user_id = extract_user_id(header_user_id, service_account.get("user_id"), request.user_id)
        return create_workflow_context(**validate_user_context(db, user_id, request.service_account_id))

    user_id = extract_user_id(header_user_id, None, request.user_id)
    user = db.get_user(user_id)
    if not user:
        raise WorkflowContextError(f"User not found: {user_id}")
    return create_workflow_context(
        user_id=user["id"],
        user_email=user.get("email"),
        user_name=user.get("name"),
        service_account_id=None,
        service_account_name=None,
    )


@router.post("/workflows/actions", dependencies=[Depends(verify_workflow_key)])
def run_workflow_action(
    request: WorkflowActionRequest,
    x_user_id: Optional[str] = Header(None),
) -> Dict[str, Any]:
    """Execute one named action; failures come back as ``{success: false, ...}`` envelopes."""

    db = get_database_client()
    try:
        context = resolve_workflow_context(db, request, x_user_id)
    except WorkflowContextError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    logger.info("Workflow action %s for user %s", request.action, context.user_id)
    return get_workflow_router().route(request.action, request.parameters, context).to_dict()


@router.get("/workflows/actions", dependencies=[Depends(verify_workflow_key)])
def list_workflow_actions() -> Dict[str, Any]:
    return {"actions": get_workflow_router().available_actions}
