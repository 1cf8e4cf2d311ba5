"""Background worker components for the back office."""

from .celery_app import celery_app
from .tasks import handle_automation_event, index_entity, reindex_user, run_scheduled_automations

__all__ = [
    "celery_app",
    "handle_automation_event",
    "index_entity",
    "reindex_user",
    "run_scheduled_automations",
]
