"""Due date helpers for industry template deadlines."""
from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Optional

from .dates import calculate_next_due_date, describe_recurrence

ANCHOR_FIXED_DATE = "fixed_date"
ANCHOR_ANNIVERSARY = "anniversary"
ANCHOR_CUSTOM = "custom"
ANCHOR_TYPES = (ANCHOR_FIXED_DATE, ANCHOR_ANNIVERSARY, ANCHOR_CUSTOM)

_MONTH_NAMES = list(calendar.month_name)


def _fixed_date(year: int, month: int, day: int) -> datetime:
    clamped = min(day, calendar.monthrange(year, month)[1])
    return datetime(year, month, clamped, 23, 59, 59, tzinfo=timezone.utc)


def requires_custom_date(template_deadline: dict) -> bool:
    if template_deadline.get("anchor_type") != ANCHOR_FIXED_DATE:
        return True
    return not (template_deadline.get("default_month") and template_deadline.get("default_day"))


def calculate_default_due_date(template_deadline: dict, reference: datetime) -> Optional[datetime]:
    """First occurrence of a fixed month/day on or after ``reference``.

    Anniversary and custom anchors depend on organization-specific dates
    and have no default.
    """
    if requires_custom_date(template_deadline):
        return None
    month = int(template_deadline["default_month"])
    day = int(template_deadline["default_day"])
    candidate = _fixed_date(reference.year, month, day)
    if candidate < reference:
        candidate = _fixed_date(reference.year + 1, month, day)
    return candidate


def calculate_next_occurrence(
    template_deadline: dict,
    start: datetime,
    reference: datetime,
) -> Optional[datetime]:
    """Roll ``start`` forward by the deadline's recurrence until it passes ``reference``."""
    recurrence = template_deadline.get("recurrence")
    current = start
    # Bounded so a malformed rule cannot spin forever.
    for _ in range(1000):
        if current > reference:
            return current
        nxt = calculate_next_due_date(current, recurrence)
        if nxt is None or nxt <= current:
            return None
        current = nxt
    return None


def format_anchor_type(anchor_type: str) -> str:
    return {
        ANCHOR_FIXED_DATE: "Fixed date",
        ANCHOR_ANNIVERSARY: "Anniversary date",
        ANCHOR_CUSTOM: "Custom date",
    }.get(anchor_type, anchor_type)


def describe_deadline_timing(template_deadline: dict) -> str:
    parts = []
    if template_deadline.get("anchor_type") == ANCHOR_FIXED_DATE and not requires_custom_date(template_deadline):
        parts.append(f"{_MONTH_NAMES[int(template_deadline['default_month'])]} {int(template_deadline['default_day'])}")
    elif template_deadline.get("anchor_type") == ANCHOR_ANNIVERSARY:
        parts.append("Based on your anniversary date")
    else:
        parts.append("Date set by your organization")
    recurrence_text = describe_recurrence(template_deadline.get("recurrence"))
    if recurrence_text:
        parts.append(recurrence_text.lower())
    return ", ".join(parts)
