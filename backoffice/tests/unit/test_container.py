"""Tests for the default service wiring."""

from __future__ import annotations

import pytest

from backoffice import container
from backoffice.db import set_database_client
from backoffice.worker import tasks


@pytest.fixture(autouse=True)
def _reset():
    set_database_client(None)
    container.reset_container()
    yield
    container.reset_container()
    set_database_client(None)


def test_getters_share_instances() -> None:
    router = container.get_workflow_router()

    assert container.get_workflow_router() is router
    assert router.retriever is container.get_retriever()
    assert container.get_automation_engine().executor.router is router
    assert container.get_automation_service().engine is container.get_automation_engine()


def test_index_created_entity_runs_inline_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    class StubAutoIndexer:
        def index(self, *args):
            calls.append(args)
            return True

    monkeypatch.setattr(container, "get_auto_indexer", lambda: StubAutoIndexer())

    container.index_created_entity("invoice", "user-1", "i1")

    assert calls == [("invoice", "user-1", "i1")]


def test_index_created_entity_queues_when_async(monkeypatch: pytest.MonkeyPatch) -> None:
    queued = []
    monkeypatch.setattr(container.CONFIG, "rag_index_async", True)
    monkeypatch.setattr(tasks.index_entity, "delay", lambda *args: queued.append(args))
    monkeypatch.setattr(container, "get_auto_indexer", lambda: pytest.fail("indexed inline"))

    container.index_created_entity("client", "user-1", "c1")

    assert queued == [("client", "user-1", "c1")]
