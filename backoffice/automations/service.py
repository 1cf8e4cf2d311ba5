"""Automation lifecycle: create, template instantiation, toggle, history and dry runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..config import CONFIG
from .engine import AutomationEngine
from .models import AutomationConfigError, AutomationDefinition
from .schedule import calculate_next_run


logger = logging.getLogger(__name__)


class AutomationNotFoundError(LookupError):
    """Raised when an automation or template does not exist for the caller."""


class AutomationService:
    def __init__(
        self,
        db,
        engine: AutomationEngine,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        tz_name: Optional[str] = None,
    ):
        self.db = db
        self.engine = engine
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.tz_name = tz_name or CONFIG.automation_timezone

    def _next_run(self, trigger_type: str, trigger_config: Dict[str, Any]) -> Optional[datetime]:
        if trigger_type != "schedule":
            return None
        next_run = calculate_next_run(trigger_config, self._clock(), self.tz_name)
        if next_run is None:
            raise AutomationConfigError(f"Schedule cannot be resolved: {trigger_config}")
        return next_run

    def get_automation(self, user_id: str, automation_id: str) -> Dict[str, Any]:
        automation = self.db.get_automation(automation_id, user_id)
        if not automation:
            raise AutomationNotFoundError("Automation not found")
        return automation

    def create_automation(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a definition and store it with its first ``next_run_at``."""

        definition = AutomationDefinition.parse(payload)
        record = definition.to_record()
        next_run = self._next_run(record["trigger_type"], record["trigger_config"])
        automation = self.db.create_automation(
            {
                **record,
                "user_id": user_id,
                "next_run_at": next_run if definition.enabled else None,
                "last_run_at": None,
                "run_count": 0,
                "success_count": 0,
                "error_count": 0,
                "last_error": None,
            }
        )
        logger.info("Created automation %s (%s) for user %s", automation["id"], record["category"], user_id)
        return automation

    def create_from_template(
        self,
        user_id: str,
        template_id: str,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        template = self.db.get_automation_template(template_id)
        if not template:
            raise AutomationNotFoundError("Template not found")

        overrides = dict(overrides or {})
        payload = {
            "name": template.get("name"),
            "description": template.get("description"),
            "category": template.get("category"),
            "trigger_type": template.get("trigger_type"),
            "trigger_config": template.get("default_trigger_config") or {},
            "conditions": template.get("default_conditions") or {},
            "actions": template.get("default_actions") or [],
            "is_default": bool(template.get("is_default")),
        }
        for key in ("name", "description", "trigger_config", "conditions", "actions", "enabled"):
            camel = {"trigger_config": "triggerConfig"}.get(key, key)
            value = overrides.get(key, overrides.get(camel))
            if value not in (None, [], {}):
                payload[key] = value
        automation = self.create_automation(user_id, payload)
        if template.get("id"):
            self.db.update_automation(automation["id"], {"template_id": template["id"]}, user_id=user_id)
            automation["template_id"] = template["id"]
        return automation

    def list_automations(self, user_id: str, *, category: Optional[str] = None) -> List[Dict[str, Any]]:
        automations = self.db.list_automations(user_id, category=category)
        for automation in automations:
            runs = self.db.list_automation_runs(automation["id"], limit=1)
            automation["last_run"] = runs[0] if runs else None
        automations.sort(key=lambda item: not item.get("is_default"))
        return automations

    def list_templates(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.db.list_automation_templates(category)

    def set_enabled(self, user_id: str, automation_id: str, enabled: Optional[bool] = None) -> Dict[str, Any]:
        """Enable or disable; ``enabled=None`` toggles. Enabling a schedule recomputes ``next_run_at``."""

        automation = self.get_automation(user_id, automation_id)
        new_enabled = (not automation.get("enabled")) if enabled is None else bool(enabled)
        updates: Dict[str, Any] = {"enabled": new_enabled}
        if not new_enabled:
            updates["next_run_at"] = None
        elif automation.get("trigger_type") == "schedule":
            updates["next_run_at"] = self._next_run("schedule", automation.get("trigger_config") or {})
        return self.db.update_automation(automation_id, updates, user_id=user_id) or {**automation, **updates}

    def delete_automation(self, user_id: str, automation_id: str) -> None:
        if not self.db.delete_automation(automation_id, user_id):
            raise AutomationNotFoundError("Automation not found")
        logger.info("Deleted automation %s for user %s", automation_id, user_id)

    def list_runs(self, user_id: str, automation_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        self.get_automation(user_id, automation_id)
        return self.db.list_automation_runs(automation_id, limit=limit)

    def preview(self, user_id: str, automation_id: str) -> Dict[str, Any]:
        """Dry run: evaluate conditions and count target items without executing actions or writing a run."""

        automation = self.get_automation(user_id, automation_id)
        trigger_config = automation.get("trigger_config") or {}
        preview: Dict[str, Any] = {
            "automation": {
                "name": automation.get("name"),
                "category": automation.get("category"),
                "triggerType": automation.get("trigger_type"),
            },
            "actionsPreview": automation.get("actions") or [],
            "wouldTrigger": False,
            "itemsFound": 0,
            "items": [],
        }

        if automation.get("trigger_type") == "event":
            preview.update(
                wouldTrigger=True,
                itemsFound=1,
                message=f"Would trigger when {trigger_config.get('event')} occurs",
            )
            return preview

        conditions_met = self.engine.validate_conditions(
            automation.get("conditions"), automation.get("category"), user_id
        )
        items = self.engine.get_items_for_automation(automation) if conditions_met else []
        next_run = calculate_next_run(trigger_config, self._clock(), self.tz_name)
        preview.update(
            wouldTrigger=conditions_met,
            itemsFound=len(items),
            items=[{"id": item.get("id"), "number": item.get("number")} for item in items],
            nextRunAt=next_run.isoformat() if next_run else None,
            message=(
                f"Would run {trigger_config.get('schedule')} at {trigger_config.get('time')} "
                f"and process {len(items)} item(s)"
                if conditions_met
                else "Conditions not met; the next run would be skipped"
            ),
        )
        return preview


__all__ = ["AutomationNotFoundError", "AutomationService"]
