"""
Calendar views and iCal export.
"""
from __future__ import annotations

import re
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from icalendar import Alarm, Calendar, Event
from sqlalchemy.orm import Session

from compliance.db import models
from compliance.db.models.base import now_utc
from compliance.db.repositories import deadlines as repo_deadlines
from compliance.services import access
from compliance.services.deadline_service import annotate_status, due_soon_days_for
from compliance.utils.dates import (
    RECURRENCE_ANNUAL,
    RECURRENCE_CUSTOM,
    RECURRENCE_MONTHLY,
    RECURRENCE_QUARTERLY,
    RECURRENCE_SEMI_ANNUAL,
    RECURRENCE_WEEKLY,
    describe_recurrence,
    ensure_utc,
)
from compliance.utils.urgency import get_urgency_level
from compliance.utils.urls import build_google_calendar_url, build_webcal_url

PRODID = "-//Compliance Calendar//EN"
DEFAULT_CALENDAR_NAME = "Compliance Deadlines"
ALARM_DAYS = (7, 1)

# (FREQ, INTERVAL) per recurrence type; custom uses its own day interval
_RRULES = {
    RECURRENCE_WEEKLY: ("WEEKLY", 1),
    RECURRENCE_MONTHLY: ("MONTHLY", 1),
    RECURRENCE_QUARTERLY: ("MONTHLY", 3),
    RECURRENCE_SEMI_ANNUAL: ("MONTHLY", 6),
    RECURRENCE_ANNUAL: ("YEARLY", 1),
}


def _rrule(recurrence: Optional[dict]) -> Optional[dict]:
    if not recurrence:
        return None
    rtype = recurrence.get("type")
    if rtype == RECURRENCE_CUSTOM:
        if not recurrence.get("interval"):
            return None
        return {"freq": "DAILY", "interval": int(recurrence["interval"])}
    if rtype not in _RRULES:
        return None
    freq, interval = _RRULES[rtype]
    return {"freq": freq, "interval": interval}


def _describe(deadline, assignee_names: Dict[uuid.UUID, str]) -> str:
    parts = [f"Category: {deadline.category}"]
    if deadline.assigned_to:
        parts.append(f"Assigned to: {assignee_names.get(deadline.assigned_to, deadline.assigned_to)}")
    if deadline.description:
        parts.extend(["", deadline.description])
    recurrence_text = describe_recurrence(deadline.recurrence)
    if recurrence_text:
        parts.extend(["", f"Repeats: {recurrence_text}"])
    return "\n".join(parts)


def generate_ical_feed(
    deadlines: Sequence[models.Deadline],
    calendar_name: str = DEFAULT_CALENDAR_NAME,
    organization_name: Optional[str] = None,
    assignee_names: Optional[Dict[uuid.UUID, str]] = None,
    now: Optional[datetime] = None,
) -> bytes:
    """One all-day VEVENT per deadline with 7-day and 1-day display alarms."""
    now = now or now_utc()
    assignee_names = assignee_names or {}
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", calendar_name)
    if organization_name:
        cal.add("x-wr-caldesc", f"Compliance deadlines for {organization_name}")

    for deadline in deadlines:
        due = ensure_utc(deadline.due_date).date()
        event = Event()
        event.add("uid", f"{deadline.id}@compliance-calendar")
        event.add("summary", deadline.title)
        event.add("description", _describe(deadline, assignee_names))
        event.add("dtstart", due)
        event.add("dtend", due + timedelta(days=1))
        event.add("dtstamp", now)
        event.add("categories", [deadline.category])

        if deadline.completed_at is None:
            rule = _rrule(deadline.recurrence)
            if rule:
                event.add("rrule", rule)
        else:
            event.add("status", "COMPLETED")

        for days in ALARM_DAYS:
            alarm = Alarm()
            alarm.add("action", "DISPLAY")
            alarm.add("trigger", timedelta(days=-days))
            when = "tomorrow" if days == 1 else f"in {days} days"
            alarm.add("description", f"Reminder: {deadline.title} is due {when}")
            event.add_component(alarm)

        cal.add_component(event)
    return cal.to_ical()


def generate_ical_filename(org_name: Optional[str] = None, date_range: Optional[tuple] = None) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]", "-", org_name).lower() if org_name else "compliance"
    if date_range:
        start, end = date_range
        start_month, end_month = start.strftime("%Y-%m"), end.strftime("%Y-%m")
        if start_month == end_month:
            return f"{slug}-deadlines-{start_month}.ics"
        return f"{slug}-deadlines-{start_month}-to-{end_month}.ics"
    return f"{slug}-deadlines.ics"


def generate_webcal_url(organization_id: uuid.UUID) -> str:
    return build_webcal_url(organization_id)


def generate_google_calendar_url(organization_id: uuid.UUID) -> str:
    return build_google_calendar_url(organization_id)


# === Calendar queries ===

def list_for_calendar(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    include_completed: bool = True,
    now: Optional[datetime] = None,
) -> List[models.Deadline]:
    """Deadlines in range with ``status`` and ``urgency`` attributes set."""
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:read")
    now = now or now_utc()
    rows = repo_deadlines.list_deadlines(
        db,
        organization_id,
        category=category,
        assigned_to=assigned_to,
        completed=None if include_completed else False,
        due_from=ensure_utc(start),
        due_to=ensure_utc(end),
    )
    annotate_status(rows, now, due_soon_days_for(org))
    for row in rows:
        row.urgency = None if row.completed_at else get_urgency_level(row.due_date, now)
    return rows


def deadlines_for_date(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    day: datetime,
    now: Optional[datetime] = None,
) -> List[models.Deadline]:
    start = ensure_utc(day).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return list_for_calendar(db, organization_id, user_id, start=start, end=end, now=now)


def categories(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> List[str]:
    access.require_permission(db, organization_id, user_id, "deadlines:read")
    return [category for category, _ in repo_deadlines.categories_with_counts(db, organization_id)]


def assignees(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> List[models.User]:
    access.require_permission(db, organization_id, user_id, "deadlines:read")
    assigned_ids = {d.assigned_to for d in repo_deadlines.list_deadlines(db, organization_id) if d.assigned_to}
    if not assigned_ids:
        return []
    return db.query(models.User).filter(models.User.id.in_(assigned_ids)).order_by(models.User.email.asc()).all()


def export_feed(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category: Optional[str] = None,
    include_completed: bool = True,
    now: Optional[datetime] = None,
):
    """Return ``(ics_bytes, filename)`` for the organization's deadlines."""
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:read")
    rows = list_for_calendar(
        db, organization_id, user_id,
        start=start, end=end, category=category, include_completed=include_completed, now=now,
    )
    users = assignees(db, organization_id, user_id)
    names = {u.id: (u.display_name or u.email) for u in users}
    content = generate_ical_feed(rows, organization_name=org.name, assignee_names=names, now=now)
    date_range = (start, end) if start and end else None
    return content, generate_ical_filename(org.name, date_range)
