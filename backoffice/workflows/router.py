"""
Workflow action router.

Maps a named external action (``create_invoice``, ``invoice.create`` ...)
plus its parameters and a resolved ``WorkflowContext`` to one side effect,
always answering with a ``WorkflowResponse`` envelope.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from ..auth.workflow_context import WorkflowContext
from ..config import CONFIG
from ..db.memory import parse_timestamp
from .schemas import LineItem, WorkflowResponse


logger = logging.getLogger(__name__)

EntityCreatedHook = Callable[[str, str, str], Any]
Handler = Callable[[Dict[str, Any], WorkflowContext], WorkflowResponse]

ACTION_ALIASES: Dict[str, Tuple[str, ...]] = {
    "create_invoice": ("create_invoice", "invoice.create"),
    "create_quote": ("create_quote", "quote.create"),
    "add_time_entry": ("add_time_entry", "time_entry.create", "time.create"),
    "add_kilometer": ("add_kilometer", "kilometer.create", "km.create"),
    "create_contact": ("create_contact", "contact.create"),
    "search_contacts": ("search_contacts", "contacts.search"),
    "get_invoices": ("get_invoices", "invoices.list"),
    "get_quotes": ("get_quotes", "quotes.list"),
    "ai_intent": ("ai_intent", "ai.chat"),
    "context_search": ("context_search", "search.context"),
}

FAILURE_MESSAGES = {
    "create_invoice": "Failed to create invoice",
    "create_quote": "Failed to create quote",
    "add_time_entry": "Failed to add time entry",
    "add_kilometer": "Failed to add kilometer entry",
    "create_contact": "Failed to create contact",
    "search_contacts": "Failed to search contacts",
    "get_invoices": "Failed to get invoices",
    "get_quotes": "Failed to get quotes",
    "ai_intent": "Failed to generate AI response",
    "context_search": "Failed to search context",
}


def _first(parameters: Dict[str, Any], *names: str) -> Any:
    for name in names:
        value = parameters.get(name)
        if value not in (None, ""):
            return value
    return None


def _positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _client_summary(client: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not client:
        return None
    return {key: client.get(key) for key in ("id", "name", "email", "company")}


def _money(value: float) -> float:
    return round(value, 2)


class WorkflowRouter:
    """Dispatch table for workflow actions, scoped to ``context.user_id``.

    ``assistant`` and ``retriever`` back the ``ai_intent`` and
    ``context_search`` actions. ``on_entity_created`` receives
    ``(entity_type, user_id, entity_id)`` after a client, invoice or quote
    is written; its failures are logged and never reach the caller.
    """

    def __init__(
        self,
        db,
        *,
        retriever=None,
        assistant=None,
        on_entity_created: Optional[EntityCreatedHook] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tz_name: Optional[str] = None,
    ):
        self.db = db
        self.retriever = retriever
        self.assistant = assistant
        self.on_entity_created = on_entity_created
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.tz_name = tz_name or CONFIG.automation_timezone
        handlers: Dict[str, Handler] = {
            "create_invoice": self._create_invoice,
            "create_quote": self._create_quote,
            "add_time_entry": self._add_time_entry,
            "add_kilometer": self._add_kilometer,
            "create_contact": self._create_contact,
            "search_contacts": self._search_contacts,
            "get_invoices": self._get_invoices,
            "get_quotes": self._get_quotes,
            "ai_intent": self._ai_intent,
            "context_search": self._context_search,
        }
        self._routes: Dict[str, str] = {
            alias: canonical for canonical, aliases in ACTION_ALIASES.items() for alias in aliases
        }
        self._handlers = handlers

    @property
    def available_actions(self) -> List[str]:
        return list(ACTION_ALIASES)

    def resolve(self, action: str) -> Optional[str]:
        return self._routes.get((action or "").strip().lower())

    def route(self, action: str, parameters: Optional[Dict[str, Any]], context: WorkflowContext) -> WorkflowResponse:
        try:
            canonical = self.resolve(action)
            if canonical is None:
                return WorkflowResponse.fail(
                    f"Unknown action: {action}",
                    f"Available actions: {', '.join(self.available_actions)}",
                )
            return self._run(canonical, dict(parameters or {}), context)
        except Exception as exc:
            logger.exception("Workflow action %s failed for user %s", action, context.user_id)
            return WorkflowResponse.fail(str(exc) or "Unknown error", f"Failed to execute action: {action}")

    def _run(self, canonical: str, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        try:
            return self._handlers[canonical](parameters, context)
        except ValidationError as exc:
            detail = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
            )
            return WorkflowResponse.fail(f"Invalid line items: {detail}", detail)
        except Exception as exc:
            logger.warning("Workflow action %s failed for user %s: %s", canonical, context.user_id, exc)
            message = str(exc) or None
            return WorkflowResponse.fail(message or FAILURE_MESSAGES[canonical], message)

    def _notify_created(self, entity_type: str, user_id: str, entity_id: str) -> None:
        if self.on_entity_created is None:
            return
        try:
            self.on_entity_created(entity_type, user_id, entity_id)
        except Exception as exc:
            logger.error("Entity-created hook failed for %s %s: %s", entity_type, entity_id, exc)

    def _owned_client(self, client_id: Any, context: WorkflowContext) -> Optional[Dict[str, Any]]:
        return self.db.get_client(str(client_id), context.user_id)

    # ------------------------------------------------------------------
    # Invoices & quotes
    # ------------------------------------------------------------------
    def _line_items(self, parameters: Dict[str, Any]) -> List[LineItem]:
        raw = parameters.get("lineItems") or [
            {
                "description": parameters.get("description") or "Service",
                "quantity": parameters.get("quantity") or 1,
                "rate": parameters.get("amount") or 0,
                "amount": parameters.get("amount") or 0,
            }
        ]
        if not isinstance(raw, list):
            raise ValueError("lineItems must be a list")
        return [LineItem.model_validate(item) for item in raw]

    def _document_totals(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        items = self._line_items(parameters)
        tax_rate = parameters.get("taxRate")
        tax_rate = CONFIG.default_tax_rate if tax_rate in (None, "") else float(tax_rate)
        subtotal = _money(sum(item.amount for item in items))
        tax_amount = _money(subtotal * tax_rate / 100)
        return {
            "line_items": [item.model_dump() for item in items],
            "subtotal": subtotal,
            "tax_rate": tax_rate,
            "tax_amount": tax_amount,
            "amount": _money(subtotal + tax_amount),
        }

    def _local_now(self) -> datetime:
        return self._clock().astimezone(ZoneInfo(self.tz_name))

    def _next_number(self, prefix: str, count: Callable[..., int], user_id: str) -> str:
        # Count-based sequence; concurrent creations can collide.
        number_prefix = f"{prefix}-{self._local_now().year}-"
        existing = count(user_id, number_prefix=number_prefix)
        return f"{number_prefix}{existing + 1:03d}"

    def _create_invoice(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        client_id = parameters.get("clientId")
        if not client_id:
            return WorkflowResponse.fail("clientId is required")
        client = self._owned_client(client_id, context)
        if not client:
            return WorkflowResponse.fail("Client not found")

        totals = self._document_totals(parameters)
        due_date = parse_timestamp(parameters.get("dueDate"))
        invoice = self.db.create_invoice(
            {
                "user_id": context.user_id,
                "client_id": client["id"],
                "number": self._next_number("INV", self.db.count_invoices, context.user_id),
                "status": "DRAFT",
                "description": parameters.get("description"),
                "due_date": due_date.isoformat() if due_date else None,
                **totals,
            }
        )
        self._notify_created("invoice", context.user_id, invoice["id"])
        invoice["client"] = _client_summary(client)
        return WorkflowResponse.ok(invoice, "Invoice created successfully")

    def _create_quote(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        client_id = parameters.get("clientId")
        if not client_id:
            return WorkflowResponse.fail("clientId is required")
        client = self._owned_client(client_id, context)
        if not client:
            return WorkflowResponse.fail("Client not found")

        totals = self._document_totals(parameters)
        valid_until = parse_timestamp(parameters.get("validUntil"))
        if valid_until is None:
            valid_until = self._clock() + timedelta(days=CONFIG.quote_validity_days)
        quote = self.db.create_quote(
            {
                "user_id": context.user_id,
                "client_id": client["id"],
                "number": self._next_number("QUO", self.db.count_quotes, context.user_id),
                "status": "DRAFT",
                "description": parameters.get("description"),
                "valid_until": valid_until.isoformat(),
                **totals,
            }
        )
        self._notify_created("quote", context.user_id, quote["id"])
        quote["client"] = _client_summary(client)
        return WorkflowResponse.ok(quote, "Quote created successfully")

    # ------------------------------------------------------------------
    # Time & kilometer registration
    # ------------------------------------------------------------------
    def _entry_date(self, parameters: Dict[str, Any]) -> str:
        parsed = parse_timestamp(parameters.get("date"))
        return (parsed or self._local_now()).date().isoformat()

    def _add_time_entry(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        project = _first(parameters, "project", "projectName")
        if not project:
            return WorkflowResponse.fail("project is required")
        hours = _first(parameters, "hours", "hour")
        if not hours:
            return WorkflowResponse.fail("hours is required")
        hours = float(hours)
        if hours <= 0:
            return WorkflowResponse.fail("hours must be greater than 0")

        client = None
        if parameters.get("clientId"):
            client = self._owned_client(parameters["clientId"], context)
            if not client:
                return WorkflowResponse.fail("Client not found")

        billable = parameters.get("billable")
        entry = self.db.create_time_entry(
            {
                "user_id": context.user_id,
                "project": project,
                "hours": hours,
                "date": self._entry_date(parameters),
                "notes": parameters.get("notes"),
                "client_id": client["id"] if client else None,
                "billable": True if billable is None else bool(billable),
            }
        )
        entry["client"] = _client_summary(client)
        return WorkflowResponse.ok(entry, "Time entry added successfully")

    def _add_kilometer(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        from_location = _first(parameters, "fromLocation", "from")
        if not from_location:
            return WorkflowResponse.fail("fromLocation is required")
        to_location = _first(parameters, "toLocation", "to")
        if not to_location:
            return WorkflowResponse.fail("toLocation is required")
        distance = _first(parameters, "distanceKm", "distance")
        if not distance:
            return WorkflowResponse.fail("distanceKm is required")
        distance = float(distance)
        if distance <= 0:
            return WorkflowResponse.fail("distanceKm must be greater than 0")
        if not parameters.get("purpose"):
            return WorkflowResponse.fail("purpose is required")

        client = None
        if parameters.get("clientId"):
            client = self._owned_client(parameters["clientId"], context)
            if not client:
                return WorkflowResponse.fail("Client not found")
        project = None
        if parameters.get("projectId"):
            project = self.db.get_project(str(parameters["projectId"]), context.user_id)
            if not project:
                return WorkflowResponse.fail("Project not found")

        is_billable = parameters.get("isBillable")
        entry = self.db.create_kilometer_entry(
            {
                "user_id": context.user_id,
                "date": self._entry_date(parameters),
                "from_location": from_location,
                "to_location": to_location,
                "distance_km": distance,
                "purpose": parameters["purpose"],
                "type": parameters.get("type") or "zakelijk",
                "notes": parameters.get("notes"),
                "is_billable": True if is_billable is None else bool(is_billable),
                "client_id": client["id"] if client else None,
                "project_id": project["id"] if project else None,
            }
        )
        entry["client"] = _client_summary(client)
        entry["project"] = {"id": project["id"], "name": project.get("name")} if project else None
        return WorkflowResponse.ok(entry, "Kilometer entry added successfully")

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------
    def _create_contact(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        if not parameters.get("name"):
            return WorkflowResponse.fail("name is required")
        contact = self.db.create_client(
            {
                "user_id": context.user_id,
                "name": parameters["name"],
                "email": parameters.get("email") or None,
                "phone": parameters.get("phone") or None,
                "company": parameters.get("company") or None,
                "position": parameters.get("position") or None,
                "notes": parameters.get("notes") or None,
                "tags": list(parameters.get("tags") or []),
            }
        )
        self._notify_created("client", context.user_id, contact["id"])
        return WorkflowResponse.ok(contact, "Contact created successfully")

    # ------------------------------------------------------------------
    # Read-only listings
    # ------------------------------------------------------------------
    @staticmethod
    def _pagination(parameters: Dict[str, Any]) -> Tuple[int, int]:
        page = _positive_int(parameters.get("page"), 1)
        limit = _positive_int(parameters.get("limit"), CONFIG.workflow_page_size)
        return page, limit

    @staticmethod
    def _page_info(page: int, limit: int, total: int) -> Dict[str, int]:
        return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}

    def _search_contacts(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        page, limit = self._pagination(parameters)
        filters = {"search": parameters.get("search") or None, "tag": parameters.get("tag") or None}
        contacts = self.db.list_clients(context.user_id, limit=limit, offset=(page - 1) * limit, **filters)
        total = self.db.count_clients(context.user_id, **filters)
        return WorkflowResponse.ok(
            {"contacts": contacts, "pagination": self._page_info(page, limit, total)},
            f"Found {total} contacts",
        )

    def _attach_clients(self, records: List[Dict[str, Any]], user_id: str) -> List[Dict[str, Any]]:
        cache: Dict[str, Optional[Dict[str, Any]]] = {}
        for record in records:
            client_id = record.get("client_id")
            if client_id and client_id not in cache:
                cache[client_id] = _client_summary(self.db.get_client(client_id, user_id))
            record["client"] = cache.get(client_id) if client_id else None
        return records

    def _get_invoices(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        page, limit = self._pagination(parameters)
        filters = {
            "status": parameters.get("status") or None,
            "client_id": parameters.get("clientId") or None,
            "search": parameters.get("search") or None,
        }
        invoices = self.db.list_invoices(context.user_id, limit=limit, offset=(page - 1) * limit, **filters)
        total = self.db.count_invoices(context.user_id, **filters)
        return WorkflowResponse.ok(
            {
                "invoices": self._attach_clients(invoices, context.user_id),
                "pagination": self._page_info(page, limit, total),
            },
            f"Retrieved {len(invoices)} invoices",
        )

    def _get_quotes(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        page, limit = self._pagination(parameters)
        filters = {
            "status": parameters.get("status") or None,
            "client_id": parameters.get("clientId") or None,
            "search": parameters.get("search") or None,
        }
        quotes = self.db.list_quotes(context.user_id, limit=limit, offset=(page - 1) * limit, **filters)
        total = self.db.count_quotes(context.user_id, **filters)
        return WorkflowResponse.ok(
            {
                "quotes": self._attach_clients(quotes, context.user_id),
                "pagination": self._page_info(page, limit, total),
            },
            f"Retrieved {len(quotes)} quotes",
        )

    # ------------------------------------------------------------------
    # AI & retrieval
    # ------------------------------------------------------------------
    def _ai_intent(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        if not parameters.get("message"):
            return WorkflowResponse.fail("message is required")
        if self.assistant is None:
            return WorkflowResponse.fail("AI assistant is not configured")

        history = parameters.get("conversationHistory") or []
        intent = self.assistant.analyze_intent(parameters["message"], context.user_id, history)
        reply = self.assistant.generate_response(parameters["message"], context.user_id, history)
        return WorkflowResponse.ok(
            {
                "response": reply.response,
                "intent": intent.intent,
                "action": intent.action,
                "reasoning": intent.reasoning,
                "confidence": intent.confidence,
                "sources": reply.sources,
            },
            "AI response generated",
        )

    def _context_search(self, parameters: Dict[str, Any], context: WorkflowContext) -> WorkflowResponse:
        query = _first(parameters, "query", "search")
        if not query:
            return WorkflowResponse.fail("query is required")
        if self.retriever is None:
            return WorkflowResponse.fail("Context retrieval is not configured")

        entity_types = parameters.get("entityTypes") or None
        if entity_types:
            retrieved = self.retriever.retrieve_context(
                context.user_id,
                query,
                entity_types=entity_types,
                max_results=_positive_int(parameters.get("limit"), CONFIG.rag_max_results),
            )
        else:
            retrieved = self.retriever.retrieve_smart_context(context.user_id, query, parameters.get("intent"))
        total = len(retrieved.sources)
        return WorkflowResponse.ok(
            {"content": retrieved.content, "sources": retrieved.sources, "total": total},
            f"Found {total} results",
        )


__all__ = ["ACTION_ALIASES", "WorkflowRouter"]
