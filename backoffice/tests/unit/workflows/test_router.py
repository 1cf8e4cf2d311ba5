"""Tests for the workflow action router."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backoffice.rag.retriever import RetrievedContext
from backoffice.services.assistant import AssistantReply, IntentAnalysis
from backoffice.workflows import WorkflowRouter

NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def db(memory_db):
    memory_db.seed(
        "clients",
        {"id": "c1", "user_id": "user-1", "name": "Jan Jansen", "email": "jan@jansen.nl", "company": "Jansen BV"},
        {"id": "c2", "user_id": "user-1", "name": "Kees Bakker", "tags": ["vip"]},
        {"id": "c3", "user_id": "user-1", "name": "Anna de Boer"},
        {"id": "c-foreign", "user_id": "user-2", "name": "Not Yours"},
    )
    memory_db.seed("projects", {"id": "p-foreign", "user_id": "user-2", "name": "Secret"})
    return memory_db


@pytest.fixture
def created():
    return []


@pytest.fixture
def router(db, created) -> WorkflowRouter:
    return WorkflowRouter(
        db,
        on_entity_created=lambda *args: created.append(args),
        clock=lambda: NOW,
    )


def test_create_invoice_numbers_sequentially_and_notifies(router, workflow_context, created) -> None:
    parameters = {
        "clientId": "c1",
        "description": "Website",
        "lineItems": [
            {"description": "Design", "quantity": 1, "rate": 100, "amount": 100},
            {"description": "Hosting", "quantity": 2, "rate": 25, "amount": 50},
        ],
    }

    first = router.route("create_invoice", parameters, workflow_context)
    second = router.route("invoice.create", parameters, workflow_context)

    assert first.success is True
    assert first.message == "Invoice created successfully"
    assert first.data["number"] == "INV-2025-001"
    assert second.data["number"] == "INV-2025-002"
    assert first.data["status"] == "DRAFT"
    assert (first.data["subtotal"], first.data["tax_rate"], first.data["tax_amount"], first.data["amount"]) == (
        150.0,
        21.0,
        31.5,
        181.5,
    )
    assert first.data["client"] == {"id": "c1", "name": "Jan Jansen", "email": "jan@jansen.nl", "company": "Jansen BV"}
    assert created == [("invoice", "user-1", first.data["id"]), ("invoice", "user-1", second.data["id"])]


def test_create_invoice_single_amount_and_zero_tax(router, workflow_context) -> None:
    response = router.route("create_invoice", {"clientId": "c1", "amount": 80, "taxRate": 0}, workflow_context)

    assert response.data["line_items"] == [{"description": "Service", "quantity": 1.0, "rate": 80.0, "amount": 80.0}]
    assert response.data["amount"] == 80.0
    assert response.data["tax_amount"] == 0.0


def test_create_invoice_requires_owned_client(router, workflow_context, db, created) -> None:
    missing = router.route("create_invoice", {"amount": 10}, workflow_context)
    foreign = router.route("create_invoice", {"clientId": "c-foreign", "amount": 10}, workflow_context)

    assert missing.to_dict() == {"success": False, "error": "clientId is required"}
    assert foreign.error == "Client not found"
    assert db.tables["invoices"] == []
    assert created == []


def test_create_invoice_rejects_invalid_line_items(router, workflow_context, db) -> None:
    response = router.route(
        "create_invoice",
        {"clientId": "c1", "lineItems": [{"description": "  ", "quantity": 0, "rate": 10, "amount": 10}]},
        workflow_context,
    )

    assert response.success is False
    assert response.error.startswith("Invalid line items")
    assert db.tables["invoices"] == []


def test_numbering_uses_local_year(db, workflow_context) -> None:
    new_year_eve = datetime(2024, 12, 31, 23, 30, tzinfo=timezone.utc)
    router = WorkflowRouter(db, clock=lambda: new_year_eve, tz_name="Europe/Amsterdam")

    response = router.route("create_invoice", {"clientId": "c1", "amount": 100}, workflow_context)

    assert response.success is True
    assert response.data["number"] == "INV-2025-001"


def test_create_quote_defaults_validity(router, workflow_context) -> None:
    response = router.route("quote.create", {"clientId": "c2", "amount": 1000}, workflow_context)

    assert response.data["number"] == "QUO-2025-001"
    assert response.data["valid_until"].startswith("2025-04-13")
    assert response.data["amount"] == 1210.0


def test_hook_failure_does_not_fail_action(db, workflow_context) -> None:
    def explode(*args):
        raise RuntimeError("broker unavailable")

    router = WorkflowRouter(db, on_entity_created=explode, clock=lambda: NOW)

    response = router.route("create_contact", {"name": "Nieuwe Klant"}, workflow_context)

    assert response.success is True
    assert response.data["name"] == "Nieuwe Klant"


def test_add_time_entry_validation(router, workflow_context) -> None:
    assert router.route("add_time_entry", {"hours": 2}, workflow_context).error == "project is required"
    assert router.route("add_time_entry", {"project": "Site"}, workflow_context).error == "hours is required"
    negative = router.route("add_time_entry", {"project": "Site", "hours": "-2"}, workflow_context)
    assert negative.error == "hours must be greater than 0"
    foreign = router.route("add_time_entry", {"project": "Site", "hours": 1, "clientId": "c-foreign"}, workflow_context)
    assert foreign.error == "Client not found"


def test_add_time_entry_accepts_aliases(router, workflow_context, db) -> None:
    response = router.route("time.create", {"projectName": "Webshop", "hour": "2.5"}, workflow_context)

    assert response.success is True
    entry = db.tables["time_entries"][0]
    assert entry["hours"] == 2.5
    assert entry["date"] == "2025-03-14"
    assert entry["billable"] is True


def test_add_kilometer(router, workflow_context, db) -> None:
    base = {"from": "Utrecht", "to": "Amsterdam", "distance": "42.5"}

    assert router.route("add_kilometer", base, workflow_context).error == "purpose is required"
    foreign = router.route("km.create", {**base, "purpose": "Bezoek", "projectId": "p-foreign"}, workflow_context)
    assert foreign.error == "Project not found"

    response = router.route("add_kilometer", {**base, "purpose": "Bezoek", "clientId": "c1"}, workflow_context)

    assert response.success is True
    entry = db.tables["kilometer_entries"][0]
    assert entry["distance_km"] == 42.5
    assert entry["type"] == "zakelijk"
    assert entry["client_id"] == "c1"
    assert response.data["project"] is None


def test_search_contacts_paginates(router, workflow_context) -> None:
    response = router.route("contacts.search", {"page": 2, "limit": 2}, workflow_context)

    assert [contact["name"] for contact in response.data["contacts"]] == ["Kees Bakker"]
    assert response.data["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}

    tagged = router.route("search_contacts", {"tag": "vip"}, workflow_context)
    assert [contact["id"] for contact in tagged.data["contacts"]] == ["c2"]


def test_get_invoices_attaches_clients(router, workflow_context) -> None:
    router.route("create_invoice", {"clientId": "c1", "amount": 10}, workflow_context)

    response = router.route("invoices.list", {"status": "DRAFT"}, workflow_context)

    assert response.data["pagination"]["total"] == 1
    assert response.data["invoices"][0]["client"]["name"] == "Jan Jansen"
    assert router.route("get_quotes", {}, workflow_context).data["quotes"] == []


def test_unknown_action_lists_available_actions(router, workflow_context) -> None:
    response = router.route("delete_everything", {}, workflow_context)

    assert response.success is False
    assert response.error == "Unknown action: delete_everything"
    assert response.message.startswith("Available actions: create_invoice, create_quote")


def test_handler_exceptions_become_envelopes(workflow_context) -> None:
    class BrokenDatabase:
        def get_client(self, client_id, user_id):
            raise RuntimeError("connection reset")

    router = WorkflowRouter(BrokenDatabase(), clock=lambda: NOW)

    response = router.route("create_invoice", {"clientId": "c1"}, workflow_context)

    assert response.to_dict() == {"success": False, "error": "connection reset", "message": "connection reset"}


def test_ai_intent_requires_assistant(router, workflow_context) -> None:
    assert router.route("ai_intent", {}, workflow_context).error == "message is required"
    assert router.route("ai.chat", {"message": "hoi"}, workflow_context).error == "AI assistant is not configured"


def test_ai_intent_combines_intent_and_reply(db, workflow_context) -> None:
    class StubAssistant:
        def analyze_intent(self, message, user_id, history):
            return IntentAnalysis(intent="CREATE_INVOICE", confidence=0.92, reasoning="bedrag genoemd")

        def generate_response(self, message, user_id, history):
            return AssistantReply(
                response="Ik maak de factuur aan.",
                reasoning="klant gevonden",
                sources=[{"type": "client", "id": "c1"}],
            )

    router = WorkflowRouter(db, assistant=StubAssistant(), clock=lambda: NOW)

    response = router.route("ai_intent", {"message": "Factuur €500 voor Jan"}, workflow_context)

    assert response.data == {
        "response": "Ik maak de factuur aan.",
        "intent": "CREATE_INVOICE",
        "action": "create_invoice",
        "reasoning": "bedrag genoemd",
        "confidence": 0.92,
        "sources": [{"type": "client", "id": "c1"}],
    }


def test_context_search_delegates_to_retriever(db, workflow_context) -> None:
    calls = []

    class StubRetriever:
        def retrieve_context(self, user_id, query, **kwargs):
            calls.append(("explicit", user_id, query, kwargs))
            return RetrievedContext(content="ctx", sources=[{"type": "invoice", "id": "i1"}])

        def retrieve_smart_context(self, user_id, query, intent=None):
            calls.append(("smart", user_id, query, intent))
            return RetrievedContext()

    router = WorkflowRouter(db, retriever=StubRetriever(), clock=lambda: NOW)

    explicit = router.route("context_search", {"query": "Jan", "entityTypes": ["invoice"], "limit": 3}, workflow_context)
    smart = router.route("search.context", {"search": "offerte"}, workflow_context)

    assert explicit.data == {"content": "ctx", "sources": [{"type": "invoice", "id": "i1"}], "total": 1}
    assert smart.data["total"] == 0
    assert calls[0] == ("explicit", "user-1", "Jan", {"entity_types": ["invoice"], "max_results": 3})
    assert calls[1] == ("smart", "user-1", "offerte", None)
