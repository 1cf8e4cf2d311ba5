"""Tests for workflow user context resolution."""

from __future__ import annotations

import pytest

from backoffice.auth import (
    WorkflowContextError,
    create_workflow_context,
    extract_user_id,
    validate_user_context,
)


@pytest.fixture
def db(memory_db):
    memory_db.seed(
        "service_accounts",
        {"id": "sa-1", "name": "n8n", "user_id": "user-1", "active": True, "permissions": ["workflows:run"]},
        {"id": "sa-off", "name": "retired", "active": False},
    )
    return memory_db


def test_extract_user_id_priority() -> None:
    assert extract_user_id("query-user", "bound-user", "payload-user") == "bound-user"
    assert extract_user_id("query-user", None, "payload-user") == "payload-user"
    assert extract_user_id("query-user", None, None) == "query-user"


def test_extract_user_id_requires_one_source() -> None:
    with pytest.raises(WorkflowContextError, match="User ID is required"):
        extract_user_id(None, None, "")


def test_validate_user_context_returns_identity(db) -> None:
    result = validate_user_context(db, "user-1", "sa-1")

    assert result == {
        "user_id": "user-1",
        "user_email": "sam@example.com",
        "user_name": "Sam de Vries",
        "service_account_id": "sa-1",
        "service_account_name": "n8n",
        "permissions": ["workflows:run"],
    }
    context = create_workflow_context(**result)
    assert context.user_id == "user-1"
    assert context.permissions == ["workflows:run"]


def test_validate_user_context_rejects_unknown_user(db) -> None:
    with pytest.raises(WorkflowContextError, match="User not found: ghost"):
        validate_user_context(db, "ghost", "sa-1")


@pytest.mark.parametrize("service_account_id", ["sa-off", "sa-missing"])
def test_validate_user_context_rejects_inactive_accounts(db, service_account_id) -> None:
    with pytest.raises(WorkflowContextError, match="Service account not found or inactive"):
        validate_user_context(db, "user-1", service_account_id)
