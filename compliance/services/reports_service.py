"""
Reporting queries: compliance summary, team performance and cost avoidance.

All three read deadlines that are not in trash. Date ranges are inclusive
and come from a preset (``last_30_days`` and friends) or explicit bounds.
"""
from __future__ import annotations

import math
import re
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from compliance.db import crud
from compliance.db.models.base import now_utc
from compliance.db.repositories import deadlines as repo_deadlines
from compliance.db.repositories import organizations as repo_orgs
from compliance.errors import InvalidInput
from compliance.services import access
from compliance.utils.dates import add_months, ensure_utc
from compliance.utils.role_permissions import ROLE_OWNER

RANGE_PRESETS: Dict[str, int] = {
    "last_7_days": 7,
    "last_30_days": 30,
    "last_quarter": 90,
    "last_year": 365,
}
DEFAULT_RANGE = "last_30_days"
SCORE_HISTORY_MONTHS = 12
UPCOMING_LIMIT = 10
BREAKDOWN_LIMIT = 50

# Industry-average penalty per missed deadline, in USD
CATEGORY_PENALTIES: Dict[str, int] = {
    "licenses": 5000,
    "certifications": 3000,
    "training_records": 1000,
    "audit_reports": 10000,
    "policies": 2000,
    "insurance": 7500,
    "contracts": 5000,
    "tax_filing": 2500,
    "regulatory": 15000,
    "other": 1000,
}
DEFAULT_PENALTY = 1000
COST_DISCLAIMER = (
    "Estimates based on average industry penalties. "
    "Actual penalties vary by jurisdiction and violation type."
)

_DOLLAR_AMOUNT = re.compile(r"\$\s?(\d[\d,]*)")


def resolve_date_range(
    range_type: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Explicit bounds win; a missing bound is filled from the preset."""
    now = now or now_utc()
    range_type = range_type or DEFAULT_RANGE
    if range_type not in RANGE_PRESETS:
        raise InvalidInput(f"Unknown date range '{range_type}'", allowed=list(RANGE_PRESETS))
    end = ensure_utc(date_to) or now
    start = ensure_utc(date_from) or end - timedelta(days=RANGE_PRESETS[range_type])
    if start > end:
        raise InvalidInput("Date range start must be before its end")
    return start, end


def _on_time(deadline) -> bool:
    return deadline.completed_at is not None and deadline.completed_at <= deadline.due_date


def _rate(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def _score_history(deadlines, now: datetime) -> List[Dict[str, Any]]:
    history = []
    this_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    for offset in range(SCORE_HISTORY_MONTHS - 1, -1, -1):
        month_start = add_months(this_month, -offset)
        month_end = add_months(month_start, 1)
        due = [d for d in deadlines if month_start <= d.due_date < month_end]
        on_time = sum(1 for d in due if _on_time(d))
        history.append({
            "month": month_start.strftime("%b %Y"),
            # A month with nothing due counts as fully compliant
            "score": round(on_time / len(due) * 100) if due else 100,
        })
    return history


def get_compliance_summary(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    date_from: datetime,
    date_to: datetime,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Completion stats for deadlines due in the range, plus a 12-month score history."""
    access.require_permission(db, organization_id, user_id, "deadlines:read")
    now = now or now_utc()
    deadlines = repo_deadlines.list_deadlines(db, organization_id)
    in_range = [d for d in deadlines if date_from <= d.due_date <= date_to]

    completed = [d for d in in_range if d.completed_at is not None]
    on_time = [d for d in completed if _on_time(d)]
    open_items = [d for d in in_range if d.completed_at is None]
    overdue = [d for d in open_items if d.due_date < now]
    pending = [d for d in open_items if d.due_date >= now]

    by_category: Dict[str, Dict[str, Any]] = {}
    for d in open_items:
        group = by_category.setdefault(d.category, {"category": d.category, "count": 0, "overdue": 0})
        group["count"] += 1
        if d.due_date < now:
            group["overdue"] += 1

    return {
        "date_from": date_from,
        "date_to": date_to,
        "summary": {
            "total": len(in_range),
            "completed": len(completed),
            "on_time": len(on_time),
            "late": len(completed) - len(on_time),
            "overdue": len(overdue),
            "pending": len(pending),
            "completion_rate": _rate(len(completed), len(in_range)),
            "on_time_rate": _rate(len(on_time), len(completed)),
        },
        "score_history": _score_history(deadlines, now),
        "by_category": [by_category[key] for key in sorted(by_category)],
        "upcoming": [
            {"id": d.id, "title": d.title, "due_date": d.due_date, "category": d.category}
            for d in pending[:UPCOMING_LIMIT]
        ],
        "overdue_items": [
            {
                "id": d.id,
                "title": d.title,
                "due_date": d.due_date,
                "category": d.category,
                "days_overdue": math.floor((now - d.due_date).total_seconds() / 86400),
            }
            for d in overdue
        ],
    }


def get_team_performance(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    date_from: datetime,
    date_to: datetime,
) -> List[Dict[str, Any]]:
    """Per-member completions in the range (by completion date) and open assignments."""
    org, _ = access.require_permission(db, organization_id, user_id, "users:read")
    deadlines = repo_deadlines.list_deadlines(db, organization_id)
    completed = [
        d for d in deadlines
        if d.completed_at is not None and d.completed_by is not None and date_from <= d.completed_at <= date_to
    ]

    members = [(m.user_id, m.role) for m in repo_orgs.get_memberships(db, org.id)]
    if org.owner_user_id not in {member_id for member_id, _ in members}:
        members.insert(0, (org.owner_user_id, ROLE_OWNER))

    rows = []
    for member_id, role in members:
        member = crud.get_user(db, member_id)
        if member is None:
            continue
        done = [d for d in completed if d.completed_by == member_id]
        lead_days = [(d.due_date - d.completed_at).total_seconds() / 86400 for d in done]
        rows.append({
            "user_id": member_id,
            "email": member.email,
            "display_name": member.display_name,
            "role": role,
            "completed": len(done),
            "on_time_rate": _rate(sum(1 for d in done if _on_time(d)), len(done)),
            "avg_days_before": round(sum(lead_days) / len(lead_days)) if lead_days else 0,
            "active_assignments": sum(
                1 for d in deadlines if d.assigned_to == member_id and d.completed_at is None
            ),
        })
    return rows


def estimated_penalty(deadline) -> int:
    """Dollar figure from the template's penalty range, else the category average."""
    penalty_range = (deadline.metadata_json or {}).get("penalty_range")
    if penalty_range:
        match = _DOLLAR_AMOUNT.search(penalty_range)
        if match:
            return int(match.group(1).replace(",", ""))
    return CATEGORY_PENALTIES.get(deadline.category, DEFAULT_PENALTY)


def get_cost_avoidance(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    date_from: datetime,
    date_to: datetime,
) -> Dict[str, Any]:
    access.require_permission(db, organization_id, user_id, "deadlines:read")
    on_time = [
        d for d in repo_deadlines.list_deadlines(db, organization_id, completed=True)
        if _on_time(d) and date_from <= d.completed_at <= date_to
    ]

    total = 0
    breakdown = []
    by_category: Dict[str, Dict[str, Any]] = {}
    for d in on_time:
        penalty = estimated_penalty(d)
        total += penalty
        breakdown.append({
            "deadline_id": d.id,
            "title": d.title,
            "category": d.category,
            "completed_at": d.completed_at,
            "estimated_penalty": penalty,
        })
        group = by_category.setdefault(d.category, {"category": d.category, "count": 0, "total_avoided": 0})
        group["count"] += 1
        group["total_avoided"] += penalty

    return {
        "total_avoided": total,
        "deadlines_completed_on_time": len(on_time),
        "breakdown": breakdown[:BREAKDOWN_LIMIT],
        "by_category": [by_category[key] for key in sorted(by_category)],
        "disclaimer": COST_DISCLAIMER,
    }
