"""Side effects an automation can perform for one item or event payload."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from ..auth.workflow_context import WorkflowContext
from .models import (
    CreateCalendarEventAction,
    CreateInvoiceAction,
    CreateKilometerEntryAction,
    CreateQuoteAction,
    CreateTimeEntryAction,
    DocumentConfig,
    SendEmailAction,
    SendNotificationAction,
    SendWhatsAppAction,
    UpdateInvoiceAction,
    parse_action,
)


logger = logging.getLogger(__name__)

AUTOMATION_ACCOUNT = "automation-engine"

_PLACEHOLDER = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")


class ActionExecutionError(RuntimeError):
    """Raised when an action ran but did not achieve its side effect."""


def render_template(template: Optional[str], values: Dict[str, Any]) -> str:
    """Fill ``{name}`` placeholders; unknown names are left as written."""

    if not template:
        return ""

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        value = values.get(key)
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(_replace, template)


class ActionExecutor:
    """Runs typed automation actions.

    Messaging actions go through ``messaging`` (the n8n webhook gateway),
    record-creating actions go through the workflow ``router`` so they
    share its validation and numbering, notifications and invoice updates
    write directly through ``db``.
    """

    def __init__(
        self,
        db,
        router,
        messaging,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.router = router
        self.messaging = messaging
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._dispatch = {
            "send_email": self._send_email,
            "send_whatsapp": self._send_whatsapp,
            "create_invoice": self._create_invoice,
            "create_quote": self._create_quote,
            "create_time_entry": self._create_time_entry,
            "create_kilometer_entry": self._create_kilometer_entry,
            "create_calendar_event": self._create_calendar_event,
            "send_notification": self._send_notification,
            "update_invoice": self._update_invoice,
        }

    def execute(self, raw_action: Dict[str, Any], item: Dict[str, Any], user_id: str) -> bool:
        """Run one action. Returns False for unknown action types, which are skipped."""

        action = parse_action(raw_action)
        if action is None:
            logger.warning("Unknown action type: %s", raw_action.get("type"))
            return False
        self._dispatch[action.type](action, item or {}, user_id)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def template_values(self, item: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            key: value for key, value in item.items() if isinstance(value, (str, int, float))
        }
        client = item.get("client") if isinstance(item.get("client"), dict) else None
        if client is None and item.get("client_id"):
            client = self.db.get_client(item["client_id"], user_id)
        if client:
            values.setdefault("client_name", client.get("name"))
            values.setdefault("client_email", client.get("email"))
            values.setdefault("client_phone", client.get("phone"))
            values.setdefault("client_company", client.get("company"))
        values.setdefault("today", self._clock().date().isoformat())
        return values

    def _context(self, user_id: str) -> WorkflowContext:
        user = self.db.get_user(user_id) or {}
        return WorkflowContext(
            user_id=user_id,
            user_email=user.get("email"),
            user_name=user.get("name"),
            service_account_name=AUTOMATION_ACCOUNT,
        )

    def _route(self, action_name: str, parameters: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        response = self.router.route(action_name, parameters, self._context(user_id))
        if not response.success:
            raise ActionExecutionError(f"{action_name} failed: {response.error}")
        return response.data or {}

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------
    def _send_email(self, action: SendEmailAction, item: Dict[str, Any], user_id: str) -> None:
        values = self.template_values(item, user_id)
        recipient = render_template(action.config.to, values) if action.config.to else values.get("client_email")
        if not recipient:
            raise ActionExecutionError("send_email has no recipient (set config.to or link a client with an email)")
        self.messaging.send_email(
            user_id,
            to=recipient,
            subject=render_template(action.config.subject, values),
            body=render_template(action.config.body, values),
        )

    def _send_whatsapp(self, action: SendWhatsAppAction, item: Dict[str, Any], user_id: str) -> None:
        values = self.template_values(item, user_id)
        recipient = render_template(action.config.to, values) if action.config.to else values.get("client_phone")
        if not recipient:
            raise ActionExecutionError("send_whatsapp has no recipient (set config.to or link a client with a phone)")
        self.messaging.send_whatsapp(user_id, to=recipient, message=render_template(action.config.message, values))

    def _create_calendar_event(self, action: CreateCalendarEventAction, item: Dict[str, Any], user_id: str) -> None:
        values = self.template_values(item, user_id)
        start_text = render_template(action.config.start, values) if action.config.start else None
        start = datetime.fromisoformat(start_text) if start_text else self._clock()
        end = start + timedelta(minutes=action.config.duration_minutes)
        self.messaging.create_calendar_event(
            user_id,
            title=render_template(action.config.title, values),
            start=start.isoformat(),
            end=end.isoformat(),
            description=render_template(action.config.description, values) or None,
        )

    # ------------------------------------------------------------------
    # Record creation (through the workflow router)
    # ------------------------------------------------------------------
    def _document_parameters(self, config: DocumentConfig, item: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        values = self.template_values(item, user_id)
        parameters: Dict[str, Any] = {
            "clientId": config.client_id or item.get("client_id"),
            "description": render_template(config.description, values) or item.get("description"),
        }
        if config.line_items:
            parameters["lineItems"] = config.line_items
        else:
            amount = config.amount if config.amount is not None else item.get("subtotal")
            parameters["amount"] = amount
        if config.tax_rate is not None:
            parameters["taxRate"] = config.tax_rate
        return parameters

    def _create_invoice(self, action: CreateInvoiceAction, item: Dict[str, Any], user_id: str) -> None:
        parameters = self._document_parameters(action.config, item, user_id)
        if action.config.due_in_days is not None:
            parameters["dueDate"] = (self._clock() + timedelta(days=action.config.due_in_days)).isoformat()
        invoice = self._route("create_invoice", parameters, user_id)
        logger.info("Automation created invoice %s for user %s", invoice.get("number"), user_id)

    def _create_quote(self, action: CreateQuoteAction, item: Dict[str, Any], user_id: str) -> None:
        parameters = self._document_parameters(action.config, item, user_id)
        if action.config.valid_days is not None:
            parameters["validUntil"] = (self._clock() + timedelta(days=action.config.valid_days)).isoformat()
        quote = self._route("create_quote", parameters, user_id)
        logger.info("Automation created quote %s for user %s", quote.get("number"), user_id)

    def _create_time_entry(self, action: CreateTimeEntryAction, item: Dict[str, Any], user_id: str) -> None:
        values = self.template_values(item, user_id)
        config = action.config
        self._route(
            "add_time_entry",
            {
                "project": render_template(config.project, values),
                "hours": config.hours,
                "billable": config.billable,
                "notes": render_template(config.notes, values) or None,
                "clientId": config.client_id or item.get("client_id"),
            },
            user_id,
        )

    def _create_kilometer_entry(self, action: CreateKilometerEntryAction, item: Dict[str, Any], user_id: str) -> None:
        values = self.template_values(item, user_id)
        config = action.config
        self._route(
            "add_kilometer",
            {
                "fromLocation": render_template(config.from_location, values),
                "toLocation": render_template(config.to_location, values),
                "distanceKm": config.distance_km,
                "purpose": render_template(config.purpose, values),
                "type": config.type,
                "clientId": config.client_id or item.get("client_id"),
                "projectId": config.project_id or item.get("project_id"),
            },
            user_id,
        )

    # ------------------------------------------------------------------
    # Direct writes
    # ------------------------------------------------------------------
    def _send_notification(self, action: SendNotificationAction, item: Dict[str, Any], user_id: str) -> None:
        values = self.template_values(item, user_id)
        config = action.config
        self.db.create_notification(
            {
                "user_id": user_id,
                "type": config.type,
                "title": render_template(config.title, values),
                "message": render_template(config.message, values),
                "data": item,
                "priority": config.priority,
                "read": False,
            }
        )

    def _update_invoice(self, action: UpdateInvoiceAction, item: Dict[str, Any], user_id: str) -> None:
        invoice_id = item.get("id")
        if not invoice_id:
            raise ActionExecutionError("update_invoice needs an invoice item with an id")
        updated = self.db.update_invoice(invoice_id, user_id, dict(action.config.updates))
        if updated is None:
            raise ActionExecutionError(f"Invoice not found: {invoice_id}")


__all__ = ["AUTOMATION_ACCOUNT", "ActionExecutionError", "ActionExecutor", "render_template"]
