"""
Automation engine.

Lifecycle per scheduler tick:
1. Fetch every enabled schedule automation whose ``next_run_at`` is due (or unset)
2. Validate guard conditions before doing any heavy work
3. Collect the target items (invoices, quotes ...) for the automation category
4. Run the action pipeline per item, counting successes and failures
5. Persist one ``automation_runs`` row and bump ``next_run_at``

Automations and items run sequentially. A failing item, action or
automation is logged and recorded; it never aborts its siblings.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..config import CONFIG
from .actions import ActionExecutor
from .models import InvoiceConditions, QuoteConditions, parse_conditions
from .schedule import calculate_next_run


logger = logging.getLogger(__name__)


class RunRecordError(RuntimeError):
    """Raised when a failed automation run could not be persisted; its error is already counted."""


def invoice_filters(
    conditions: Optional[InvoiceConditions],
    now: datetime,
    default_status: Optional[str] = None,
) -> Dict[str, Any]:
    """Query filters for invoice conditions; ``days_overdue`` means due more than N days ago."""
    status = conditions.invoice_status if conditions else None
    filters: Dict[str, Any] = {"status": status or default_status}
    if conditions and conditions.days_overdue is not None:
        filters["due_before"] = now - timedelta(days=conditions.days_overdue)
    return filters


def quote_filters(conditions: Optional[QuoteConditions], now: datetime) -> Dict[str, Any]:
    filters: Dict[str, Any] = {"status": conditions.status if conditions else None}
    if conditions and conditions.expired:
        filters["valid_before"] = now
    return filters


class AutomationEngine:
    def __init__(
        self,
        db,
        executor: ActionExecutor,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        max_items: Optional[int] = None,
        tz_name: Optional[str] = None,
    ):
        self.db = db
        self.executor = executor
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.max_items = max_items or CONFIG.automation_max_items
        self.tz_name = tz_name or CONFIG.automation_timezone

    # ------------------------------------------------------------------
    # Scheduled execution
    # ------------------------------------------------------------------
    def run_scheduled_automations(self) -> Dict[str, int]:
        """Run every due automation. Returns how many ran and how many raised."""

        automations = self.db.list_due_automations(self._clock())
        logger.info("Running %s scheduled automations", len(automations))

        failed = 0
        for automation in automations:
            try:
                self.execute_automation(automation)
            except RunRecordError:
                failed += 1
                logger.exception("Could not record run for automation %s", automation.get("id"))
            except Exception as exc:
                failed += 1
                logger.exception("Error executing automation %s", automation.get("id"))
                self._safe_record_error(automation, str(exc) or "Unknown error")
        return {"due": len(automations), "failed": failed}

    def execute_automation(self, automation: Dict[str, Any]) -> Dict[str, Any]:
        started = time.monotonic()
        started_at = self._clock()
        automation_id = automation["id"]
        user_id = automation["user_id"]
        logger.info("Executing automation %s (%s)", automation.get("name"), automation_id)

        processed = succeeded = failed = 0
        try:
            if not self.validate_conditions(automation.get("conditions"), automation.get("category"), user_id):
                logger.info("Automation %s conditions not met, skipping", automation_id)
                self.db.update_automation(automation_id, {"next_run_at": self._next_run(automation)}, user_id=user_id)
                return self.record_run(
                    automation_id,
                    status="skipped",
                    started_at=started_at,
                    execution_ms=self._elapsed_ms(started),
                )

            items = self.get_items_for_automation(automation)
            processed = len(items)
            for item in items:
                try:
                    self.execute_actions(automation.get("actions") or [], item, user_id)
                    succeeded += 1
                except Exception as exc:
                    failed += 1
                    logger.error(
                        "Error processing item %s in automation %s: %s",
                        item.get("id"),
                        automation_id,
                        exc,
                    )

            error_message = f"{failed} items failed" if failed else None
            updates: Dict[str, Any] = {
                "last_run_at": self._clock(),
                "next_run_at": self._next_run(automation),
                "run_count": (automation.get("run_count") or 0) + 1,
                "last_error": error_message,
            }
            if succeeded:
                updates["success_count"] = (automation.get("success_count") or 0) + 1
            if failed:
                updates["error_count"] = (automation.get("error_count") or 0) + 1
            self.db.update_automation(automation_id, updates, user_id=user_id)

            return self.record_run(
                automation_id,
                status="error" if failed else "success",
                processed=processed,
                succeeded=succeeded,
                failed=failed,
                result_data={"itemsProcessed": processed, "itemsSucceeded": succeeded, "itemsFailed": failed},
                error_message=error_message,
                started_at=started_at,
                execution_ms=self._elapsed_ms(started),
            )
        except Exception as exc:
            message = str(exc) or "Unknown error"
            logger.error("Automation %s failed: %s", automation_id, message)
            self._safe_record_error(automation, message)
            try:
                return self.record_run(
                    automation_id,
                    status="error",
                    processed=processed,
                    succeeded=succeeded,
                    failed=failed,
                    error_message=message,
                    started_at=started_at,
                    execution_ms=self._elapsed_ms(started),
                )
            except Exception as record_exc:
                raise RunRecordError(f"{automation_id}: {record_exc}") from record_exc

    # ------------------------------------------------------------------
    # Event execution
    # ------------------------------------------------------------------
    def handle_event(self, event_type: str, event_data: Optional[Dict[str, Any]], user_id: str) -> int:
        """Run every enabled automation of ``user_id`` listening for ``event_type``. Returns the match count."""

        logger.info("Handling event %s for user %s", event_type, user_id)
        candidates = self.db.list_event_automations(user_id)
        # Trigger config is opaque JSON; match in memory.
        matching = [
            automation
            for automation in candidates
            if (automation.get("trigger_config") or {}).get("event") == event_type
        ]

        for automation in matching:
            try:
                self.execute_automation_with_context(automation, event_data or {})
            except Exception as exc:
                logger.error("Error handling event %s for automation %s: %s", event_type, automation.get("id"), exc)
        return len(matching)

    def execute_automation_with_context(self, automation: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        """Run the action list once with the event payload as the item; re-raises on failure."""

        started = time.monotonic()
        started_at = self._clock()
        automation_id = automation["id"]
        try:
            self.execute_actions(automation.get("actions") or [], context, automation["user_id"])
        except Exception as exc:
            message = str(exc) or "Unknown error"
            self._safe_record_error(automation, message)
            self.record_run(
                automation_id,
                status="error",
                processed=1,
                failed=1,
                trigger_data=context,
                error_message=message,
                started_at=started_at,
                execution_ms=self._elapsed_ms(started),
            )
            raise

        self.db.update_automation(
            automation_id,
            {
                "last_run_at": self._clock(),
                "run_count": (automation.get("run_count") or 0) + 1,
                "success_count": (automation.get("success_count") or 0) + 1,
            },
            user_id=automation.get("user_id"),
        )
        return self.record_run(
            automation_id,
            status="success",
            processed=1,
            succeeded=1,
            trigger_data=context,
            started_at=started_at,
            execution_ms=self._elapsed_ms(started),
        )

    # ------------------------------------------------------------------
    # Conditions & items
    # ------------------------------------------------------------------
    def validate_conditions(self, conditions: Optional[Dict[str, Any]], category: Optional[str], user_id: str) -> bool:
        parsed = parse_conditions(category or "", conditions)
        if parsed is None:
            return True

        now = self._clock()
        if isinstance(parsed, InvoiceConditions):
            return self.db.count_invoices(user_id, **invoice_filters(parsed, now)) > 0
        if isinstance(parsed, QuoteConditions):
            return self.db.count_quotes(user_id, **quote_filters(parsed, now)) > 0
        return True

    def get_items_for_automation(self, automation: Dict[str, Any]) -> List[Dict[str, Any]]:
        category = automation.get("category")
        user_id = automation["user_id"]
        conditions = parse_conditions(category or "", automation.get("conditions"))
        now = self._clock()

        if category == "invoice":
            filters = invoice_filters(conditions, now, default_status="SENT")
            return self.db.list_invoices(user_id, limit=self.max_items, **filters)
        if category == "quote":
            return self.db.list_quotes(user_id, limit=self.max_items, **quote_filters(conditions, now))
        # Time, email, calendar and kilometer automations are event driven.
        return []

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def execute_actions(self, actions: List[Dict[str, Any]], item: Dict[str, Any], user_id: str) -> None:
        for action in actions:
            self.execute_action(action, item, user_id)

    def execute_action(self, action: Dict[str, Any], item: Dict[str, Any], user_id: str) -> bool:
        return self.executor.execute(action, item, user_id)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------
    def _next_run(self, automation: Dict[str, Any]) -> Optional[datetime]:
        if automation.get("trigger_type") != "schedule":
            return None
        return calculate_next_run(automation.get("trigger_config"), self._clock(), self.tz_name)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def record_run(
        self,
        automation_id: str,
        *,
        status: str,
        started_at: datetime,
        execution_ms: int,
        processed: int = 0,
        succeeded: int = 0,
        failed: int = 0,
        trigger_data: Optional[Dict[str, Any]] = None,
        result_data: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.db.create_automation_run(
            {
                "automation_id": automation_id,
                "status": status,
                "items_processed": processed,
                "items_succeeded": succeeded,
                "items_failed": failed,
                "trigger_data": trigger_data,
                "result_data": result_data,
                "error_message": error_message,
                "execution_time": execution_ms,
                "started_at": started_at,
                "completed_at": self._clock(),
            }
        )

    def record_error(self, automation: Dict[str, Any], message: str) -> None:
        self.db.update_automation(
            automation["id"],
            {
                "error_count": (automation.get("error_count") or 0) + 1,
                "last_error": message,
            },
            user_id=automation.get("user_id"),
        )

    def _safe_record_error(self, automation: Dict[str, Any], message: str) -> None:
        try:
            self.record_error(automation, message)
        except Exception as exc:
            logger.error("Could not record error for automation %s: %s", automation.get("id"), exc)


__all__ = ["AutomationEngine", "RunRecordError", "invoice_filters", "quote_filters"]
