"""Automation management endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...automations import AutomationConfigError, AutomationNotFoundError
from ...container import get_automation_service
from ...worker.tasks import handle_automation_event
from ..dependencies import get_current_user_id
from ..schemas import AutomationCreateRequest, AutomationEventRequest, AutomationToggleRequest

router = APIRouter()


def _not_found(exc: AutomationNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("/automations")
def list_automations(
    category: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    automations = get_automation_service().list_automations(user_id, category=category)
    return {"automations": automations, "total": len(automations)}


@router.post("/automations", status_code=status.HTTP_201_CREATED)
def create_automation(
    request: AutomationCreateRequest,
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    service = get_automation_service()
    try:
        if request.template_id:
            overrides = request.model_dump(exclude={"template_id"}, exclude_none=True)
            automation = service.create_from_template(user_id, request.template_id, overrides)
        else:
            automation = service.create_automation(user_id, request.definition())
    except AutomationNotFoundError as exc:
        raise _not_found(exc) from exc
    except AutomationConfigError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"automation": automation}


# Declared before the ``{automation_id}`` routes so it is not captured as an id.
@router.get("/automations/templates")
def list_templates(
    category: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, List[Dict[str, Any]]]:
    return {"templates": get_automation_service().list_templates(category)}


@router.post("/automations/events", status_code=status.HTTP_202_ACCEPTED)
def queue_event(
    request: AutomationEventRequest,
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Queue an application event (``invoice.created`` ...) for the caller's event automations."""

    task = handle_automation_event.delay(request.event, user_id, request.data)
    return {"success": True, "task_id": task.id, "status": "queued"}


@router.post("/automations/{automation_id}/toggle")
def toggle_automation(
    automation_id: str,
    request: Optional[AutomationToggleRequest] = None,
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    enabled = request.enabled if request else None
    try:
        automation = get_automation_service().set_enabled(user_id, automation_id, enabled)
    except AutomationNotFoundError as exc:
        raise _not_found(exc) from exc
    except AutomationConfigError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"automation": automation}


@router.post("/automations/{automation_id}/test")
def test_automation(
    automation_id: str,
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Dry run: no actions execute and no run is recorded."""

    try:
        preview = get_automation_service().preview(user_id, automation_id)
    except AutomationNotFoundError as exc:
        raise _not_found(exc) from exc
    return {"success": True, "preview": preview}


@router.get("/automations/{automation_id}/runs")
def list_runs(
    automation_id: str,
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    try:
        runs = get_automation_service().list_runs(user_id, automation_id, limit=limit)
    except AutomationNotFoundError as exc:
        raise _not_found(exc) from exc
    return {"runs": runs}


@router.delete("/automations/{automation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_automation(
    automation_id: str,
    user_id: str = Depends(get_current_user_id),
) -> None:
    try:
        get_automation_service().delete_automation(user_id, automation_id)
    except AutomationNotFoundError as exc:
        raise _not_found(exc) from exc
