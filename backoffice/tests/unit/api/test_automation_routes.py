"""Tests for automation management routes."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from backoffice.api.routes import automations as automation_routes
from backoffice.api.schemas import AutomationCreateRequest, AutomationEventRequest, AutomationToggleRequest
from backoffice.automations import ActionExecutor, AutomationEngine, AutomationService
from backoffice.workflows import WorkflowRouter


@pytest.fixture
def service(memory_db, fixed_clock, monkeypatch: pytest.MonkeyPatch) -> AutomationService:
    memory_db.seed(
        "automation_templates",
        {
            "id": "tpl-quote",
            "name": "Verlopen offertes opvolgen",
            "category": "quote",
            "trigger_type": "schedule",
            "default_trigger_config": {"schedule": "daily", "time": "10:00"},
            "default_conditions": {"status": "SENT", "expired": True},
            "default_actions": [{"type": "send_notification", "config": {"title": "Offerte {number} verlopen"}}],
            "is_active": True,
        },
    )
    router = WorkflowRouter(memory_db, clock=fixed_clock)
    executor = ActionExecutor(memory_db, router, messaging=None, clock=fixed_clock)
    engine = AutomationEngine(memory_db, executor, clock=fixed_clock)
    service = AutomationService(memory_db, engine, clock=fixed_clock)
    monkeypatch.setattr(automation_routes, "get_automation_service", lambda: service)
    return service


def _definition(**overrides) -> AutomationCreateRequest:
    payload = {
        "name": "Herinnering achterstallige facturen",
        "category": "invoice",
        "triggerType": "schedule",
        "triggerConfig": {"schedule": "daily", "time": "09:00"},
        "conditions": {"daysOverdue": 7},
        "actions": [{"type": "send_notification", "config": {"title": "Factuur {number} is te laat"}}],
    }
    payload.update(overrides)
    return AutomationCreateRequest.model_validate(payload)


def test_create_and_list_automations(service) -> None:
    created = automation_routes.create_automation(_definition(), user_id="user-1")["automation"]

    assert created["enabled"] is True
    assert created["next_run_at"] == "2025-03-15T09:00:00+00:00"

    listed = automation_routes.list_automations(category=None, user_id="user-1")
    assert listed["total"] == 1
    assert listed["automations"][0]["last_run"] is None
    assert automation_routes.list_automations(category="quote", user_id="user-1")["total"] == 0


def test_create_from_template_with_overrides(service) -> None:
    request = AutomationCreateRequest.model_validate({"templateId": "tpl-quote", "name": "Mijn opvolging"})

    created = automation_routes.create_automation(request, user_id="user-1")["automation"]

    assert created["name"] == "Mijn opvolging"
    assert created["template_id"] == "tpl-quote"
    assert created["next_run_at"] == "2025-03-14T10:00:00+00:00"


def test_create_rejects_invalid_definitions(service) -> None:
    with pytest.raises(HTTPException) as invalid:
        automation_routes.create_automation(_definition(actions=[{"type": "launch_rocket"}]), user_id="user-1")
    assert invalid.value.status_code == 400

    with pytest.raises(HTTPException) as missing:
        automation_routes.create_automation(
            AutomationCreateRequest.model_validate({"templateId": "tpl-missing"}), user_id="user-1"
        )
    assert missing.value.status_code == 404
    assert missing.value.detail == "Template not found"


def test_toggle_preview_runs_and_delete(service, memory_db) -> None:
    automation_id = automation_routes.create_automation(_definition(), user_id="user-1")["automation"]["id"]

    toggled = automation_routes.toggle_automation(automation_id, request=None, user_id="user-1")["automation"]
    assert toggled["enabled"] is False
    assert toggled["next_run_at"] is None
    enabled = automation_routes.toggle_automation(
        automation_id, request=AutomationToggleRequest(enabled=True), user_id="user-1"
    )["automation"]
    assert enabled["enabled"] is True

    preview = automation_routes.test_automation(automation_id, user_id="user-1")
    assert preview["success"] is True
    assert preview["preview"]["wouldTrigger"] is False
    assert automation_routes.list_runs(automation_id, limit=20, user_id="user-1") == {"runs": []}

    with pytest.raises(HTTPException) as foreign:
        automation_routes.list_runs(automation_id, limit=20, user_id="user-2")
    assert foreign.value.status_code == 404

    automation_routes.delete_automation(automation_id, user_id="user-1")
    assert memory_db.tables["automations"] == []
    with pytest.raises(HTTPException) as gone:
        automation_routes.delete_automation(automation_id, user_id="user-1")
    assert gone.value.status_code == 404


def test_templates_and_event_queueing(service, monkeypatch: pytest.MonkeyPatch) -> None:
    queued = []

    def fake_delay(*args):
        queued.append(args)
        return SimpleNamespace(id="task-42")

    monkeypatch.setattr(automation_routes, "handle_automation_event", SimpleNamespace(delay=fake_delay))

    templates = automation_routes.list_templates(category="quote", user_id="user-1")["templates"]
    result = automation_routes.queue_event(
        AutomationEventRequest(event="invoice.paid", data={"id": "i1"}),
        user_id="user-1",
    )

    assert [template["id"] for template in templates] == ["tpl-quote"]
    assert result == {"success": True, "task_id": "task-42", "status": "queued"}
    assert queued == [("invoice.paid", "user-1", {"id": "i1"})]
