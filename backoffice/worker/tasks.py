"""Celery task definitions for automations and RAG indexing.

The beat schedule fires ``automations.run_scheduled`` once per tick; the
other tasks are queued by the API (events, reindex requests) and by the
workflow router after it creates a record.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from celery.utils.log import get_task_logger

from .. import container
from .celery_app import celery_app


logger = get_task_logger(__name__)


@celery_app.task(bind=True, name="automations.run_scheduled")
def run_scheduled_automations(self) -> Dict[str, int]:
    """Run every due scheduled automation once."""

    summary = container.get_automation_engine().run_scheduled_automations()
    logger.info("Scheduled automations finished: %s due, %s failed", summary["due"], summary["failed"])
    return summary


@celery_app.task(bind=True, name="automations.handle_event")
def handle_automation_event(
    self,
    event_type: str,
    user_id: str,
    event_data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    matched = container.get_automation_engine().handle_event(event_type, event_data or {}, user_id)
    logger.info("Event %s for user %s matched %s automations", event_type, user_id, matched)
    return {"event": event_type, "matched": matched}


@celery_app.task(bind=True, name="rag.index_entity")
def index_entity(self, entity_type: str, user_id: str, entity_id: str) -> Dict[str, Any]:
    """Index a single record; failures are logged by the indexer and reported as ``indexed: False``."""

    indexed = container.get_auto_indexer().index(entity_type, user_id, entity_id)
    return {"entity_type": entity_type, "entity_id": entity_id, "indexed": indexed}


@celery_app.task(bind=True, name="rag.reindex_user")
def reindex_user(self, user_id: str) -> Dict[str, int]:
    logger.info("Reindexing all data for user %s", user_id)
    counts = container.get_indexer().index_all_user_data(user_id)
    logger.info("Reindex for user %s finished: %s", user_id, counts)
    return counts
