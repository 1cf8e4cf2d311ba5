"""Tests for the workflow action endpoint."""

from __future__ import annotations

import pytest
from fastapi import HTTPException

from backoffice.api.routes import workflows
from backoffice.auth import WorkflowContextError
from backoffice.workflows import WorkflowActionRequest, WorkflowRouter


@pytest.fixture
def db(memory_db, fixed_clock, monkeypatch: pytest.MonkeyPatch):
    memory_db.seed(
        "service_accounts",
        {"id": "sa-1", "name": "n8n", "user_id": "user-2", "active": True, "permissions": ["workflows:run"]},
    )
    memory_db.seed("clients", {"id": "c1", "user_id": "user-1", "name": "Jan Jansen"})
    router = WorkflowRouter(memory_db, clock=fixed_clock)
    monkeypatch.setattr(workflows, "get_database_client", lambda: memory_db)
    monkeypatch.setattr(workflows, "get_workflow_router", lambda: router)
    return memory_db


def test_resolve_context_prefers_service_account_user(db) -> None:
    request = WorkflowActionRequest(action="get_invoices", userId="user-1", serviceAccountId="sa-1")

    context = workflows.resolve_workflow_context(db, request, None)

    assert context.user_id == "user-2"
    assert context.service_account_name == "n8n"
    assert context.permissions == ["workflows:run"]


def test_resolve_context_falls_back_to_header(db) -> None:
    request = WorkflowActionRequest(action="get_invoices")

    context = workflows.resolve_workflow_context(db, request, "user-1")

    assert context.user_email == "sam@example.com"
    assert context.service_account_id is None

    with pytest.raises(WorkflowContextError, match="User not found: ghost"):
        workflows.resolve_workflow_context(db, request, "ghost")


def test_run_workflow_action_returns_envelope(db) -> None:
    request = WorkflowActionRequest(
        action="create_invoice",
        userId="user-1",
        parameters={"clientId": "c1", "amount": 100},
    )

    result = workflows.run_workflow_action(request, x_user_id=None)

    assert result["success"] is True
    assert result["data"]["number"] == "INV-2025-001"
    assert result["data"]["amount"] == 121.0


def test_run_workflow_action_failures(db) -> None:
    unknown = workflows.run_workflow_action(WorkflowActionRequest(action="explode", userId="user-1"), x_user_id=None)
    assert unknown["success"] is False
    assert unknown["error"] == "Unknown action: explode"

    with pytest.raises(HTTPException) as exc:
        workflows.run_workflow_action(WorkflowActionRequest(action="get_quotes"), x_user_id=None)
    assert exc.value.status_code == 400
    assert exc.value.detail == "User ID is required but not provided"


def test_list_workflow_actions(db) -> None:
    assert workflows.list_workflow_actions()["actions"][:2] == ["create_invoice", "create_quote"]
