"""Render business records to text summaries and store them in the vector index."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..db.memory import parse_timestamp
from .vector_store import VectorStore, VectorStoreDocument


logger = logging.getLogger(__name__)

CLIENT_PREVIEW_LIMIT = 5
CONVERSATION_REINDEX_LIMIT = 100
ANSWER_PREVIEW_CHARS = 500


def _euro(value: Any) -> str:
    if value is None or value == "":
        return "€0"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return f"€{value}"
    if number.is_integer():
        return f"€{int(number)}"
    return f"€{round(number, 2)}"


def _day(value: Any) -> Optional[str]:
    parsed = parse_timestamp(value)
    return parsed.date().isoformat() if parsed else None


def _join(lines: Iterable[Optional[str]]) -> str:
    return "\n".join(line for line in lines if line)


def _amount(record: Dict[str, Any]) -> Any:
    return record.get("amount") if record.get("amount") is not None else record.get("total")


def _client_label(client: Optional[Dict[str, Any]]) -> str:
    if not client:
        return "Onbekend"
    label = client.get("name") or "Onbekend"
    if client.get("company"):
        label = f"{label} ({client['company']})"
    return label


def _line_items_text(items: Optional[List[Dict[str, Any]]]) -> str:
    return "\n".join(
        f"{item.get('description') or 'Item'}: {item.get('quantity')}x "
        f"{_euro(item.get('rate') or 0)} = {_euro(item.get('amount') or 0)}"
        for item in items or []
    )


def _document_preview(label: str, records: List[Dict[str, Any]]) -> Optional[str]:
    if not records:
        return None
    entries = ", ".join(
        f"#{record.get('number')} ({_euro(_amount(record))}, {record.get('status')})" for record in records
    )
    return f"{label}: {entries}"


class RAGIndexer:
    """Builds deterministic summaries per entity kind and upserts them.

    Every ``index_*`` method is best-effort: a missing or foreign record is
    ignored and any failure is logged. They return ``True`` only when a
    row was written.
    """

    def __init__(self, db, vector_store: VectorStore):
        self.db = db
        self.vector_store = vector_store

    def _store(self, user_id: str, document: VectorStoreDocument) -> bool:
        try:
            self.vector_store.store_embedding(user_id, document)
        except Exception as exc:
            logger.error("Error indexing %s %s: %s", document.entity_type, document.entity_id, exc)
            return False
        return True

    def _related_client(self, record: Dict[str, Any], user_id: str) -> Optional[Dict[str, Any]]:
        client_id = record.get("client_id")
        return self.db.get_client(client_id, user_id) if client_id else None

    # ------------------------------------------------------------------
    # Renderers
    # ------------------------------------------------------------------
    def render_client(self, client: Dict[str, Any], invoices: List[Dict[str, Any]], quotes: List[Dict[str, Any]]) -> str:
        return _join(
            [
                f"Klant: {client.get('name')}",
                f"Bedrijf: {client['company']}" if client.get("company") else None,
                f"Email: {client['email']}" if client.get("email") else None,
                f"Telefoon: {client['phone']}" if client.get("phone") else None,
                f"Adres: {client['address']}" if client.get("address") else None,
                f"Notities: {client['notes']}" if client.get("notes") else None,
                f"Branche: {client['industry']}" if client.get("industry") else None,
                _document_preview("Facturen", invoices),
                _document_preview("Offertes", quotes),
            ]
        )

    def render_invoice(self, invoice: Dict[str, Any], client: Optional[Dict[str, Any]]) -> str:
        lines_text = _line_items_text(invoice.get("line_items"))
        due = _day(invoice.get("due_date"))
        return _join(
            [
                f"Factuur {invoice.get('number')}",
                f"Klant: {_client_label(client)}",
                f"Bedrag: {_euro(_amount(invoice))}",
                f"Status: {invoice.get('status')}",
                f"Beschrijving: {invoice['description']}" if invoice.get("description") else None,
                f"Vervaldatum: {due}" if due else None,
                f"Regels:\n{lines_text}" if lines_text else None,
            ]
        )

    def render_quote(self, quote: Dict[str, Any], client: Optional[Dict[str, Any]]) -> str:
        lines_text = _line_items_text(quote.get("line_items"))
        valid_until = _day(quote.get("valid_until"))
        return _join(
            [
                f"Offerte {quote.get('number')}",
                f"Klant: {_client_label(client)}",
                f"Bedrag: {_euro(_amount(quote))}",
                f"Status: {quote.get('status')}",
                f"Beschrijving: {quote['description']}" if quote.get("description") else None,
                f"Notities: {quote['notes']}" if quote.get("notes") else None,
                f"Geldig tot: {valid_until}" if valid_until else None,
                f"Regels:\n{lines_text}" if lines_text else None,
            ]
        )

    def render_project(self, project: Dict[str, Any], client: Optional[Dict[str, Any]]) -> str:
        return _join(
            [
                f"Project: {project.get('name')}",
                f"Beschrijving: {project['description']}" if project.get("description") else None,
                f"Klant: {_client_label(client)}" if client else None,
                f"Uurtarief: {_euro(project['hourly_rate'])}" if project.get("hourly_rate") else None,
                f"Budget: {_euro(project['budget'])}" if project.get("budget") else None,
                f"Status: {project.get('status')}",
            ]
        )

    def render_conversation(self, conversation: Dict[str, Any]) -> str:
        answer = conversation.get("ai_response")
        return _join(
            [
                f"Vraag: {conversation.get('user_message')}",
                f"Antwoord: {answer[:ANSWER_PREVIEW_CHARS]}" if answer else None,
            ]
        )

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------
    def index_client(self, user_id: str, client_id: str) -> bool:
        try:
            client = self.db.get_client(client_id, user_id)
            if not client:
                return False
            invoices = self.db.list_invoices(user_id, client_id=client_id, limit=CLIENT_PREVIEW_LIMIT)
            quotes = self.db.list_quotes(user_id, client_id=client_id, limit=CLIENT_PREVIEW_LIMIT)
            document = VectorStoreDocument(
                entity_type="client",
                entity_id=client_id,
                content=self.render_client(client, invoices, quotes),
                metadata={
                    "name": client.get("name"),
                    "company": client.get("company"),
                    "email": client.get("email"),
                    "createdAt": client.get("created_at"),
                },
            )
        except Exception as exc:
            logger.error("Error indexing client %s: %s", client_id, exc)
            return False
        return self._store(user_id, document)

    def index_invoice(self, user_id: str, invoice_id: str) -> bool:
        try:
            invoice = self.db.get_invoice(invoice_id, user_id)
            if not invoice:
                return False
            client = self._related_client(invoice, user_id)
            document = VectorStoreDocument(
                entity_type="invoice",
                entity_id=invoice_id,
                content=self.render_invoice(invoice, client),
                metadata={
                    "number": invoice.get("number"),
                    "amount": float(_amount(invoice) or 0),
                    "status": invoice.get("status"),
                    "clientName": (client or {}).get("name"),
                    "createdAt": invoice.get("created_at"),
                },
            )
        except Exception as exc:
            logger.error("Error indexing invoice %s: %s", invoice_id, exc)
            return False
        return self._store(user_id, document)

    def index_quote(self, user_id: str, quote_id: str) -> bool:
        try:
            quote = self.db.get_quote(quote_id, user_id)
            if not quote:
                return False
            client = self._related_client(quote, user_id)
            document = VectorStoreDocument(
                entity_type="quote",
                entity_id=quote_id,
                content=self.render_quote(quote, client),
                metadata={
                    "number": quote.get("number"),
                    "amount": float(_amount(quote) or 0),
                    "status": quote.get("status"),
                    "clientName": (client or {}).get("name"),
                    "createdAt": quote.get("created_at"),
                },
            )
        except Exception as exc:
            logger.error("Error indexing quote %s: %s", quote_id, exc)
            return False
        return self._store(user_id, document)

    def index_project(self, user_id: str, project_id: str) -> bool:
        try:
            project = self.db.get_project(project_id, user_id)
            if not project:
                return False
            client = self._related_client(project, user_id)
            document = VectorStoreDocument(
                entity_type="project",
                entity_id=project_id,
                content=self.render_project(project, client),
                metadata={
                    "name": project.get("name"),
                    "status": project.get("status"),
                    "clientName": (client or {}).get("name"),
                    "createdAt": project.get("created_at"),
                },
            )
        except Exception as exc:
            logger.error("Error indexing project %s: %s", project_id, exc)
            return False
        return self._store(user_id, document)

    def index_conversation(self, user_id: str, conversation_id: str) -> bool:
        try:
            conversation = self.db.get_conversation(conversation_id, user_id)
            if not conversation:
                return False
            document = VectorStoreDocument(
                entity_type="conversation",
                entity_id=conversation_id,
                content=self.render_conversation(conversation),
                metadata={
                    "actionType": conversation.get("action_type"),
                    "status": conversation.get("status"),
                    "createdAt": conversation.get("created_at"),
                },
            )
        except Exception as exc:
            logger.error("Error indexing conversation %s: %s", conversation_id, exc)
            return False
        return self._store(user_id, document)

    def index_all_user_data(self, user_id: str) -> Dict[str, int]:
        """Re-index every entity a user owns. Intended for backfills, not steady state."""

        logger.info("Starting full re-index for user %s", user_id)
        counts = {"client": 0, "invoice": 0, "quote": 0, "project": 0, "conversation": 0}

        for client in self.db.list_clients(user_id):
            counts["client"] += self.index_client(user_id, client["id"])
        for invoice in self.db.list_invoices(user_id):
            counts["invoice"] += self.index_invoice(user_id, invoice["id"])
        for quote in self.db.list_quotes(user_id):
            counts["quote"] += self.index_quote(user_id, quote["id"])
        for project in self.db.list_projects(user_id):
            counts["project"] += self.index_project(user_id, project["id"])
        for conversation in self.db.list_conversations(user_id, limit=CONVERSATION_REINDEX_LIMIT):
            counts["conversation"] += self.index_conversation(user_id, conversation["id"])

        logger.info("Completed full re-index for user %s: %s", user_id, counts)
        return counts


__all__ = ["RAGIndexer"]
