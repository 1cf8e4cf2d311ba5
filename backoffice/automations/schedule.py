"""Next-run computation for scheduled automations."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from ..config import CONFIG
from .models import AutomationConfigError, ScheduleTrigger, parse_trigger


def _local_now(now: Optional[datetime], tz: ZoneInfo) -> datetime:
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz)


def _at(day: datetime, trigger: ScheduleTrigger) -> datetime:
    return day.replace(hour=trigger.hour, minute=trigger.minute, second=0, microsecond=0)


def _monthly(local_now: datetime, trigger: ScheduleTrigger, tz: ZoneInfo) -> datetime:
    wanted = trigger.day_of_month or 1
    year, month = local_now.year, local_now.month
    for _ in range(2):
        day = min(wanted, calendar.monthrange(year, month)[1])
        candidate = datetime(year, month, day, trigger.hour, trigger.minute, tzinfo=tz)
        if candidate > local_now:
            return candidate
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return candidate


def calculate_next_run(
    trigger_config: Optional[Dict[str, Any]],
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> Optional[datetime]:
    """
    Return the next occurrence strictly after ``now`` as an aware UTC datetime.

    ``daily`` fires every day at ``time``; ``weekly`` on ``day_of_week``
    (0 = Monday, the default); ``monthly`` on ``day_of_month`` (default 1,
    clamped to the month length). Wall-clock times are interpreted in the
    automation timezone. Anything unrecognised yields None.
    """

    if not trigger_config or not trigger_config.get("schedule"):
        return None
    try:
        trigger = parse_trigger("schedule", trigger_config)
    except AutomationConfigError:
        return None

    tz = ZoneInfo(tz_name or CONFIG.automation_timezone)
    local_now = _local_now(now, tz)

    if trigger.schedule == "daily":
        candidate = _at(local_now, trigger)
        if candidate <= local_now:
            candidate = _at(local_now + timedelta(days=1), trigger)
    elif trigger.schedule == "weekly":
        weekday = 0 if trigger.day_of_week is None else trigger.day_of_week
        days_ahead = (weekday - local_now.weekday()) % 7
        candidate = _at(local_now + timedelta(days=days_ahead), trigger)
        if candidate <= local_now:
            candidate = _at(local_now + timedelta(days=days_ahead + 7), trigger)
    else:
        candidate = _monthly(local_now, trigger, tz)

    # Re-anchor so DST transitions resolve to the intended wall-clock time.
    candidate = datetime(
        candidate.year, candidate.month, candidate.day, candidate.hour, candidate.minute, tzinfo=tz
    )
    return candidate.astimezone(timezone.utc)


__all__ = ["calculate_next_run"]
