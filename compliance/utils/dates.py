"""Deadline date helpers: status classification, recurrence and display text."""
from __future__ import annotations

import calendar
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

STATUS_COMPLETED = "completed"
STATUS_OVERDUE = "overdue"
STATUS_DUE_SOON = "due_soon"
STATUS_UPCOMING = "upcoming"
DEADLINE_STATUSES = (STATUS_UPCOMING, STATUS_DUE_SOON, STATUS_OVERDUE, STATUS_COMPLETED)

DUE_SOON_DAYS = 14

RECURRENCE_WEEKLY = "weekly"
RECURRENCE_MONTHLY = "monthly"
RECURRENCE_QUARTERLY = "quarterly"
RECURRENCE_SEMI_ANNUAL = "semi_annual"
RECURRENCE_ANNUAL = "annual"
RECURRENCE_CUSTOM = "custom"
RECURRENCE_TYPES = (
    RECURRENCE_WEEKLY,
    RECURRENCE_MONTHLY,
    RECURRENCE_QUARTERLY,
    RECURRENCE_SEMI_ANNUAL,
    RECURRENCE_ANNUAL,
    RECURRENCE_CUSTOM,
)

_MONTH_STEPS = {
    RECURRENCE_MONTHLY: 1,
    RECURRENCE_QUARTERLY: 3,
    RECURRENCE_SEMI_ANNUAL: 6,
    RECURRENCE_ANNUAL: 12,
}

BASE_DUE_DATE = "due_date"
BASE_COMPLETION_DATE = "completion_date"


def get_days_until(due_date: datetime, now: datetime) -> int:
    return math.ceil((due_date - now).total_seconds() / 86400)


def get_deadline_status(
    due_date: datetime,
    completed_at: Optional[datetime],
    now: datetime,
    due_soon_days: int = DUE_SOON_DAYS,
) -> str:
    if completed_at is not None:
        return STATUS_COMPLETED
    days = get_days_until(due_date, now)
    if days < 0:
        return STATUS_OVERDUE
    if days <= due_soon_days:
        return STATUS_DUE_SOON
    return STATUS_UPCOMING


def format_relative_date(due_date: datetime, now: datetime) -> str:
    days = get_days_until(due_date, now)
    if days == 0:
        return "Due today"
    if days == 1:
        return "Due tomorrow"
    if days == -1:
        return "1 day overdue"
    if days < 0:
        return f"{abs(days)} days overdue"
    return f"Due in {days} days"


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's end."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _parse_end_date(raw) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calculate_next_due_date(
    due_date: datetime,
    recurrence: Optional[dict],
    completed_at: Optional[datetime] = None,
) -> Optional[datetime]:
    """Next occurrence for a recurrence rule, or None when the series ends.

    ``recurrence`` is ``{"type", "interval"?, "end_date"?, "base_date"?}``.
    With ``base_date == "completion_date"`` the interval counts from when
    the deadline was completed instead of when it was due.
    """
    if not recurrence:
        return None
    rtype = recurrence.get("type")
    base = due_date
    if recurrence.get("base_date") == BASE_COMPLETION_DATE and completed_at is not None:
        base = completed_at

    if rtype == RECURRENCE_WEEKLY:
        next_date = base + timedelta(days=7)
    elif rtype in _MONTH_STEPS:
        next_date = add_months(base, _MONTH_STEPS[rtype])
    elif rtype == RECURRENCE_CUSTOM:
        interval = recurrence.get("interval")
        if not interval:
            return None
        next_date = base + timedelta(days=int(interval))
    else:
        return None

    end_date = _parse_end_date(recurrence.get("end_date"))
    if end_date is not None and next_date > end_date:
        return None
    return next_date


def validate_recurrence(recurrence: Optional[dict]) -> None:
    """Raise ValueError for malformed recurrence payloads."""
    if recurrence is None:
        return
    rtype = recurrence.get("type")
    if rtype not in RECURRENCE_TYPES:
        raise ValueError(f"Invalid recurrence type '{rtype}'. Allowed: {', '.join(RECURRENCE_TYPES)}")
    if rtype == RECURRENCE_CUSTOM:
        interval = recurrence.get("interval")
        if not isinstance(interval, int) or interval < 1:
            raise ValueError("Custom recurrence requires a positive interval in days")
    base = recurrence.get("base_date")
    if base is not None and base not in (BASE_DUE_DATE, BASE_COMPLETION_DATE):
        raise ValueError(f"Invalid recurrence base_date '{base}'")
    _parse_end_date(recurrence.get("end_date"))


def describe_recurrence(recurrence: Optional[dict]) -> Optional[str]:
    if not recurrence:
        return None
    rtype = recurrence.get("type")
    if rtype == RECURRENCE_CUSTOM:
        return f"Every {recurrence.get('interval')} days"
    return {
        RECURRENCE_WEEKLY: "Weekly",
        RECURRENCE_MONTHLY: "Monthly",
        RECURRENCE_QUARTERLY: "Quarterly",
        RECURRENCE_SEMI_ANNUAL: "Every 6 months",
        RECURRENCE_ANNUAL: "Annually",
    }.get(rtype)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Tag naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
