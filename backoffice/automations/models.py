"""Typed automation definitions: triggers, per-category conditions and actions."""

from __future__ import annotations

import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator, model_validator


CATEGORIES = ("invoice", "quote", "time", "email", "calendar", "kilometer")
TRIGGER_TYPES = ("schedule", "event")
RUN_STATUSES = ("success", "error", "skipped")

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_EVENT_PATTERN = re.compile(r"^[a-z][a-z0-9_]*\.[a-z][a-z0-9_]*$")


class AutomationConfigError(ValueError):
    """Raised when an automation definition cannot be interpreted."""


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'value'}: {error['msg']}" for error in exc.errors()
    )


class _Config(BaseModel):
    model_config = {"populate_by_name": True, "extra": "allow"}


# ----------------------------------------------------------------------
# Triggers
# ----------------------------------------------------------------------
class ScheduleTrigger(_Config):
    schedule: Literal["daily", "weekly", "monthly"]
    time: str
    day_of_week: Optional[int] = Field(default=None, alias="dayOfWeek", ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, alias="dayOfMonth", ge=1, le=31)

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        match = _TIME_PATTERN.match((value or "").strip())
        if not match:
            raise ValueError("time must be HH:MM")
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    @property
    def hour(self) -> int:
        return int(self.time.split(":")[0])

    @property
    def minute(self) -> int:
        return int(self.time.split(":")[1])


class EventTrigger(_Config):
    event: str

    @field_validator("event")
    @classmethod
    def validate_event(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not _EVENT_PATTERN.match(cleaned):
            raise ValueError("event must look like '<domain>.<verb>', e.g. invoice.paid")
        return cleaned


def parse_trigger(trigger_type: str, config: Optional[Dict[str, Any]]) -> Union[ScheduleTrigger, EventTrigger]:
    try:
        if trigger_type == "schedule":
            return ScheduleTrigger.model_validate(config or {})
        if trigger_type == "event":
            return EventTrigger.model_validate(config or {})
    except ValidationError as exc:
        raise AutomationConfigError(f"Invalid {trigger_type} trigger: {_describe(exc)}") from exc
    raise AutomationConfigError(f"Unknown trigger type: {trigger_type}")


# ----------------------------------------------------------------------
# Conditions
# ----------------------------------------------------------------------
class InvoiceConditions(_Config):
    invoice_status: Optional[str] = Field(default=None, alias="invoiceStatus")
    days_overdue: Optional[int] = Field(default=None, alias="daysOverdue", ge=0)

    @field_validator("invoice_status")
    @classmethod
    def normalize_status(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value and value.strip() else None


class QuoteConditions(_Config):
    status: Optional[str] = None
    expired: Optional[bool] = None

    @field_validator("status")
    @classmethod
    def normalize_status(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value and value.strip() else None


CONDITION_MODELS = {"invoice": InvoiceConditions, "quote": QuoteConditions}


def parse_conditions(category: str, conditions: Optional[Dict[str, Any]]):
    """Return the typed conditions for ``category``, or None when there is nothing to check."""
    if not conditions:
        return None
    model = CONDITION_MODELS.get(category)
    if model is None:
        return None
    try:
        return model.model_validate(conditions)
    except ValidationError as exc:
        raise AutomationConfigError(f"Invalid {category} conditions: {_describe(exc)}") from exc


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------
class EmailConfig(_Config):
    to: Optional[str] = None
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)


class WhatsAppConfig(_Config):
    to: Optional[str] = None
    message: str = Field(..., min_length=1)


class DocumentConfig(_Config):
    client_id: Optional[str] = Field(default=None, alias="clientId")
    description: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    line_items: Optional[List[Dict[str, Any]]] = Field(default=None, alias="lineItems")
    tax_rate: Optional[float] = Field(default=None, alias="taxRate", ge=0)
    due_in_days: Optional[int] = Field(default=None, alias="dueInDays", ge=0)
    valid_days: Optional[int] = Field(default=None, alias="validDays", ge=1)


class TimeEntryConfig(_Config):
    project: str = Field(..., min_length=1)
    hours: float = Field(..., gt=0)
    billable: bool = True
    notes: Optional[str] = None
    client_id: Optional[str] = Field(default=None, alias="clientId")


class KilometerEntryConfig(_Config):
    from_location: str = Field(..., alias="from", min_length=1)
    to_location: str = Field(..., alias="to", min_length=1)
    distance_km: float = Field(..., alias="distance", gt=0)
    purpose: str = Field(..., min_length=1)
    type: str = "zakelijk"
    client_id: Optional[str] = Field(default=None, alias="clientId")
    project_id: Optional[str] = Field(default=None, alias="projectId")


class CalendarEventConfig(_Config):
    title: str = Field(..., min_length=1)
    start: Optional[str] = None
    duration_minutes: int = Field(default=60, alias="durationMinutes", ge=1)
    description: Optional[str] = None


class NotificationConfig(_Config):
    type: str = "automation"
    title: str = "Automation Notification"
    message: str = "An automation has been executed"
    priority: Literal["low", "medium", "high"] = "medium"


class UpdateInvoiceConfig(_Config):
    updates: Dict[str, Any] = Field(..., alias="fields")

    @field_validator("updates")
    @classmethod
    def forbid_identity_columns(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if not value:
            raise ValueError("fields must not be empty")
        forbidden = {"id", "user_id", "userId", "created_at"} & set(value)
        if forbidden:
            raise ValueError(f"fields may not change {', '.join(sorted(forbidden))}")
        return value


class SendEmailAction(BaseModel):
    type: Literal["send_email"]
    config: EmailConfig


class SendWhatsAppAction(BaseModel):
    type: Literal["send_whatsapp"]
    config: WhatsAppConfig


class CreateInvoiceAction(BaseModel):
    type: Literal["create_invoice"]
    config: DocumentConfig = Field(default_factory=DocumentConfig)


class CreateQuoteAction(BaseModel):
    type: Literal["create_quote"]
    config: DocumentConfig = Field(default_factory=DocumentConfig)


class CreateTimeEntryAction(BaseModel):
    type: Literal["create_time_entry"]
    config: TimeEntryConfig


class CreateKilometerEntryAction(BaseModel):
    type: Literal["create_kilometer_entry"]
    config: KilometerEntryConfig


class CreateCalendarEventAction(BaseModel):
    type: Literal["create_calendar_event"]
    config: CalendarEventConfig


class SendNotificationAction(BaseModel):
    type: Literal["send_notification"]
    config: NotificationConfig = Field(default_factory=NotificationConfig)


class UpdateInvoiceAction(BaseModel):
    type: Literal["update_invoice"]
    config: UpdateInvoiceConfig


AutomationAction = Annotated[
    Union[
        SendEmailAction,
        SendWhatsAppAction,
        CreateInvoiceAction,
        CreateQuoteAction,
        CreateTimeEntryAction,
        CreateKilometerEntryAction,
        CreateCalendarEventAction,
        SendNotificationAction,
        UpdateInvoiceAction,
    ],
    Field(discriminator="type"),
]

ACTION_TYPES = (
    "send_email",
    "send_whatsapp",
    "create_invoice",
    "create_quote",
    "create_time_entry",
    "create_kilometer_entry",
    "create_calendar_event",
    "send_notification",
    "update_invoice",
)

_ACTION_ADAPTER = TypeAdapter(AutomationAction)


def parse_action(raw: Dict[str, Any]) -> Optional[AutomationAction]:
    """
    Parse one stored action.

    Unknown action types return None so the engine can skip them; a known
    type with a malformed config raises ``AutomationConfigError``.
    """
    if not isinstance(raw, dict):
        raise AutomationConfigError("Action must be an object with 'type' and 'config'")
    if raw.get("type") not in ACTION_TYPES:
        return None
    payload = {"type": raw["type"], "config": raw.get("config") or {}}
    try:
        return _ACTION_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise AutomationConfigError(f"Invalid {raw['type']} action: {_describe(exc)}") from exc


# ----------------------------------------------------------------------
# Definition (save-time validation)
# ----------------------------------------------------------------------
class AutomationDefinition(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Literal["invoice", "quote", "time", "email", "calendar", "kilometer"]
    trigger_type: Literal["schedule", "event"] = Field(..., alias="triggerType")
    trigger_config: Dict[str, Any] = Field(..., alias="triggerConfig")
    conditions: Dict[str, Any] = Field(default_factory=dict)
    actions: List[Dict[str, Any]] = Field(..., min_length=1)
    enabled: bool = True
    is_default: bool = Field(default=False, alias="isDefault")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def validate_parts(self) -> "AutomationDefinition":
        parse_trigger(self.trigger_type, self.trigger_config)
        parse_conditions(self.category, self.conditions)
        for raw in self.actions:
            if parse_action(raw) is None:
                raise AutomationConfigError(f"Unknown action type: {raw.get('type')}")
        return self

    @classmethod
    def parse(cls, payload: Dict[str, Any]) -> "AutomationDefinition":
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise AutomationConfigError(_describe(exc)) from exc

    def to_record(self) -> Dict[str, Any]:
        return {
            "name": self.name.strip(),
            "description": self.description,
            "category": self.category,
            "trigger_type": self.trigger_type,
            "trigger_config": parse_trigger(self.trigger_type, self.trigger_config).model_dump(exclude_none=True),
            "conditions": self.conditions,
            "actions": [{"type": raw["type"], "config": raw.get("config") or {}} for raw in self.actions],
            "enabled": self.enabled,
            "is_default": self.is_default,
        }


__all__ = [
    "ACTION_TYPES",
    "CATEGORIES",
    "RUN_STATUSES",
    "TRIGGER_TYPES",
    "AutomationAction",
    "AutomationConfigError",
    "AutomationDefinition",
    "EventTrigger",
    "InvoiceConditions",
    "QuoteConditions",
    "ScheduleTrigger",
    "parse_action",
    "parse_conditions",
    "parse_trigger",
]
