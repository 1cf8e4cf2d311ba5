"""Repository-wide pytest fixtures."""

from __future__ import annotations

import os
from collections.abc import Generator
from datetime import datetime, timezone

import pytest

from backoffice.auth import WorkflowContext
from backoffice.config import reload_config
from backoffice.db import InMemoryDatabaseClient

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _set_default_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Pin configuration to the in-memory backend with no outbound secrets."""

    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DATABASE_BACKEND", "memory")
    monkeypatch.setenv("OPENAI_CLIENT", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", os.getenv("OPENAI_API_KEY", "test-key"))
    monkeypatch.setenv("AUTOMATION_TIMEZONE", "UTC")
    for name in ("CRON_SECRET", "N8N_API_KEY", "N8N_WEBHOOK_URL", "DEFAULT_TAX_RATE", "RAG_INDEX_ASYNC"):
        monkeypatch.delenv(name, raising=False)
    reload_config()
    yield


@pytest.fixture
def memory_db() -> InMemoryDatabaseClient:
    db = InMemoryDatabaseClient()
    db.seed("users", {"id": "user-1", "email": "sam@example.com", "name": "Sam de Vries"})
    db.seed("users", {"id": "user-2", "email": "other@example.com", "name": "Other User"})
    return db


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def workflow_context() -> WorkflowContext:
    """Reusable workflow context fixture."""

    return WorkflowContext(
        user_id="user-1",
        user_email="sam@example.com",
        user_name="Sam de Vries",
        service_account_id="sa-1",
        service_account_name="n8n",
        permissions=["workflows:run"],
    )
