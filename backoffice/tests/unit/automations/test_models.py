"""Tests for automation definition parsing."""

from __future__ import annotations

import pytest

from backoffice.automations.models import (
    AutomationConfigError,
    AutomationDefinition,
    InvoiceConditions,
    SendEmailAction,
    parse_action,
    parse_conditions,
    parse_trigger,
)


def _reminder(**overrides):
    payload = {
        "name": "Betalingsherinnering",
        "category": "invoice",
        "triggerType": "schedule",
        "triggerConfig": {"schedule": "daily", "time": "9:00"},
        "conditions": {"invoiceStatus": "sent", "daysOverdue": 7},
        "actions": [
            {"type": "send_email", "config": {"subject": "Herinnering {number}", "body": "Beste {client_name}"}}
        ],
    }
    payload.update(overrides)
    return payload


def test_definition_accepts_camel_case_and_normalizes_record() -> None:
    record = AutomationDefinition.parse(_reminder()).to_record()

    assert record["trigger_type"] == "schedule"
    assert record["trigger_config"] == {"schedule": "daily", "time": "09:00"}
    assert record["actions"][0]["type"] == "send_email"
    assert record["enabled"] is True
    assert record["is_default"] is False


def test_definition_rejects_unknown_action_type() -> None:
    with pytest.raises(AutomationConfigError, match="Unknown action type: launch_rocket"):
        AutomationDefinition.parse(_reminder(actions=[{"type": "launch_rocket", "config": {}}]))


def test_definition_requires_at_least_one_action() -> None:
    with pytest.raises(AutomationConfigError):
        AutomationDefinition.parse(_reminder(actions=[]))


def test_definition_rejects_bad_schedule_time() -> None:
    with pytest.raises(AutomationConfigError, match="HH:MM"):
        AutomationDefinition.parse(_reminder(triggerConfig={"schedule": "daily", "time": "half nine"}))


def test_definition_rejects_negative_days_overdue() -> None:
    with pytest.raises(AutomationConfigError):
        AutomationDefinition.parse(_reminder(conditions={"daysOverdue": -1}))


def test_event_trigger_requires_dotted_name() -> None:
    assert parse_trigger("event", {"event": "invoice.paid"}).event == "invoice.paid"
    with pytest.raises(AutomationConfigError):
        parse_trigger("event", {"event": "InvoicePaid"})
    with pytest.raises(AutomationConfigError, match="Unknown trigger type"):
        parse_trigger("webhook", {})


def test_parse_conditions_normalizes_status() -> None:
    conditions = parse_conditions("invoice", {"invoiceStatus": " sent ", "daysOverdue": 3})

    assert isinstance(conditions, InvoiceConditions)
    assert conditions.invoice_status == "SENT"
    assert conditions.days_overdue == 3
    assert parse_conditions("time", {"anything": True}) is None
    assert parse_conditions("invoice", {}) is None


def test_parse_action_unknown_type_returns_none() -> None:
    assert parse_action({"type": "launch_rocket"}) is None


def test_parse_action_validates_known_type() -> None:
    action = parse_action({"type": "send_email", "config": {"subject": "Hi", "body": "There"}})
    assert isinstance(action, SendEmailAction)

    with pytest.raises(AutomationConfigError, match="send_email"):
        parse_action({"type": "send_email", "config": {"subject": "Hi"}})


def test_update_invoice_rejects_identity_fields() -> None:
    with pytest.raises(AutomationConfigError):
        parse_action({"type": "update_invoice", "config": {"fields": {"user_id": "someone-else"}}})

    action = parse_action({"type": "update_invoice", "config": {"fields": {"status": "OVERDUE"}}})
    assert action.config.updates == {"status": "OVERDUE"}


def test_kilometer_action_uses_short_aliases() -> None:
    action = parse_action(
        {
            "type": "create_kilometer_entry",
            "config": {"from": "Utrecht", "to": "Amsterdam", "distance": 42.5, "purpose": "Klantbezoek"},
        }
    )

    assert action.config.from_location == "Utrecht"
    assert action.config.distance_km == 42.5
    assert action.config.type == "zakelijk"
