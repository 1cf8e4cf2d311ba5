"""Route modules for the FastAPI application."""

from . import automations, cron, rag, workflows

__all__ = ["automations", "cron", "rag", "workflows"]
