"""Tests for the automation lifecycle service."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backoffice.automations import (
    ActionExecutor,
    AutomationConfigError,
    AutomationEngine,
    AutomationNotFoundError,
    AutomationService,
)

NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


class RecordingMessaging:
    def __init__(self):
        self.sent = []

    def send_email(self, user_id, **payload):
        self.sent.append(payload)


@pytest.fixture
def messaging() -> RecordingMessaging:
    return RecordingMessaging()


@pytest.fixture
def service(memory_db, messaging) -> AutomationService:
    executor = ActionExecutor(memory_db, None, messaging, clock=lambda: NOW)
    engine = AutomationEngine(memory_db, executor, clock=lambda: NOW, tz_name="UTC")
    return AutomationService(memory_db, engine, clock=lambda: NOW, tz_name="UTC")


def _payload(**overrides):
    payload = {
        "name": "Betalingsherinnering",
        "category": "invoice",
        "triggerType": "schedule",
        "triggerConfig": {"schedule": "daily", "time": "09:00"},
        "conditions": {"invoiceStatus": "SENT", "daysOverdue": 7},
        "actions": [{"type": "send_email", "config": {"to": "me@example.com", "subject": "S", "body": "B"}}],
    }
    payload.update(overrides)
    return payload


def test_create_automation_sets_initial_schedule(service: AutomationService) -> None:
    automation = service.create_automation("user-1", _payload())

    assert automation["user_id"] == "user-1"
    assert automation["next_run_at"] == "2025-03-15T09:00:00+00:00"
    assert (automation["run_count"], automation["success_count"], automation["error_count"]) == (0, 0, 0)


def test_create_disabled_or_event_automation_has_no_next_run(service: AutomationService) -> None:
    disabled = service.create_automation("user-1", _payload(enabled=False))
    event = service.create_automation(
        "user-1", _payload(triggerType="event", triggerConfig={"event": "invoice.paid"})
    )

    assert disabled["next_run_at"] is None
    assert event["next_run_at"] is None


def test_create_automation_rejects_invalid_definition(service: AutomationService, memory_db) -> None:
    with pytest.raises(AutomationConfigError):
        service.create_automation("user-1", _payload(triggerConfig={"schedule": "yearly", "time": "09:00"}))

    assert memory_db.tables["automations"] == []


def test_create_from_template_merges_overrides(service: AutomationService, memory_db) -> None:
    memory_db.seed(
        "automation_templates",
        {
            "id": "tpl-1",
            "name": "Offerte verloopt",
            "description": "Herinner klanten aan verlopen offertes",
            "category": "quote",
            "trigger_type": "schedule",
            "default_trigger_config": {"schedule": "weekly", "time": "08:00"},
            "default_conditions": {"status": "SENT", "expired": True},
            "default_actions": [{"type": "send_notification", "config": {}}],
        },
    )

    automation = service.create_from_template("user-1", "tpl-1", {"name": "Mijn offertes"})

    assert automation["name"] == "Mijn offertes"
    assert automation["category"] == "quote"
    assert automation["template_id"] == "tpl-1"
    # Friday 09:30 -> next Monday 08:00.
    assert automation["next_run_at"] == "2025-03-17T08:00:00+00:00"

    with pytest.raises(AutomationNotFoundError):
        service.create_from_template("user-1", "missing")


def test_set_enabled_toggles_and_recomputes(service: AutomationService) -> None:
    automation = service.create_automation("user-1", _payload())

    disabled = service.set_enabled("user-1", automation["id"])
    enabled = service.set_enabled("user-1", automation["id"])

    assert disabled["enabled"] is False
    assert disabled["next_run_at"] is None
    assert enabled["enabled"] is True
    assert enabled["next_run_at"] == "2025-03-15T09:00:00+00:00"


def test_other_users_cannot_touch_automation(service: AutomationService) -> None:
    automation = service.create_automation("user-1", _payload())

    with pytest.raises(AutomationNotFoundError):
        service.set_enabled("user-2", automation["id"], False)
    with pytest.raises(AutomationNotFoundError):
        service.delete_automation("user-2", automation["id"])
    with pytest.raises(AutomationNotFoundError):
        service.list_runs("user-2", automation["id"])


def test_set_enabled_writes_with_owner_scope(service: AutomationService, memory_db, monkeypatch) -> None:
    automation = service.create_automation("user-1", _payload())
    calls = []
    original = memory_db.update_automation

    def recording_update(automation_id, updates, user_id=None):
        calls.append(user_id)
        return original(automation_id, updates, user_id=user_id)

    monkeypatch.setattr(memory_db, "update_automation", recording_update)

    service.set_enabled("user-1", automation["id"], False)

    assert calls == ["user-1"]


def test_delete_automation(service: AutomationService) -> None:
    automation = service.create_automation("user-1", _payload())

    service.delete_automation("user-1", automation["id"])

    assert service.list_automations("user-1") == []


def test_list_automations_attaches_last_run(service: AutomationService, memory_db) -> None:
    automation = service.create_automation("user-1", _payload())
    memory_db.create_automation_run(
        {"automation_id": automation["id"], "status": "skipped", "started_at": "2025-03-13T09:00:00+00:00"}
    )
    memory_db.create_automation_run(
        {"automation_id": automation["id"], "status": "success", "started_at": "2025-03-14T09:00:00+00:00"}
    )

    listed = service.list_automations("user-1", category="invoice")
    runs = service.list_runs("user-1", automation["id"])

    assert listed[0]["last_run"]["status"] == "success"
    assert [run["status"] for run in runs] == ["success", "skipped"]


def test_preview_counts_items_without_side_effects(service: AutomationService, memory_db, messaging) -> None:
    memory_db.seed(
        "invoices",
        {"id": "i1", "user_id": "user-1", "number": "INV-2025-001", "status": "SENT", "due_date": "2025-03-01"},
        {"id": "i2", "user_id": "user-1", "number": "INV-2025-002", "status": "SENT", "due_date": "2025-02-01"},
        {"id": "i3", "user_id": "user-1", "number": "INV-2025-003", "status": "SENT", "due_date": "2025-03-13"},
    )
    automation = service.create_automation("user-1", _payload())

    preview = service.preview("user-1", automation["id"])

    assert preview["wouldTrigger"] is True
    assert preview["itemsFound"] == 2
    assert {item["number"] for item in preview["items"]} == {"INV-2025-001", "INV-2025-002"}
    assert preview["nextRunAt"] == "2025-03-15T09:00:00+00:00"
    assert messaging.sent == []
    assert memory_db.tables["automation_runs"] == []


def test_preview_reports_unmet_conditions(service: AutomationService) -> None:
    automation = service.create_automation("user-1", _payload())

    preview = service.preview("user-1", automation["id"])

    assert preview["wouldTrigger"] is False
    assert preview["itemsFound"] == 0
    assert "Conditions not met" in preview["message"]
