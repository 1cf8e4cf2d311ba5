"""Cron trigger for hosts without a Celery beat process."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ...container import get_automation_engine
from ..dependencies import verify_cron_secret

router = APIRouter()


@router.get("/cron/run-automations", dependencies=[Depends(verify_cron_secret)])
def run_automations() -> Dict[str, Any]:
    """Run all due scheduled automations once and report how many ran."""

    try:
        summary = get_automation_engine().run_scheduled_automations()
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or "Unknown error",
        ) from exc

    return {
        "success": True,
        "message": "Automations executed",
        "due": summary["due"],
        "failed": summary["failed"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
