"""
Dashboard aggregates: compliance score, due buckets, stats and recent
activity in one call.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from compliance.db.models.base import now_utc
from compliance.db.repositories import deadlines as repo_deadlines
from compliance.db.repositories import documents as repo_documents
from compliance.errors import InvalidInput
from compliance.services import access, audit_service
from compliance.services.deadline_service import annotate_status, due_soon_days_for
from compliance.utils.score import calculate_compliance_score, calculate_score_breakdown, get_score_label

VIEW_MODES = ("team", "my_items", "category")
UPCOMING_LIMIT = 10


def _category_breakdown(active, now: datetime) -> List[Dict[str, Any]]:
    groups: Dict[str, Dict[str, int]] = {}
    for d in active:
        group = groups.setdefault(d.category, {"count": 0, "overdue_count": 0})
        group["count"] += 1
        if d.due_date < now:
            group["overdue_count"] += 1
    return [{"category": category, **stats} for category, stats in sorted(groups.items())]


def get_dashboard_data(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    view_mode: str = "team",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    if view_mode not in VIEW_MODES:
        raise InvalidInput(f"Invalid view mode '{view_mode}'", allowed=list(VIEW_MODES))
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:read")
    now = now or now_utc()

    deadlines = repo_deadlines.list_deadlines(db, organization_id)
    if view_mode == "my_items":
        deadlines = [d for d in deadlines if d.assigned_to == user_id or d.created_by == user_id]
    annotate_status(deadlines, now, due_soon_days_for(org))

    active = [d for d in deadlines if d.completed_at is None]
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)
    week_end = now + timedelta(days=7)
    month_end = now + timedelta(days=30)

    overdue = [d for d in active if d.due_date < now]
    due_today = [d for d in active if day_start <= d.due_date < day_end]
    due_this_week = [d for d in active if now < d.due_date <= week_end]
    upcoming = [d for d in active if week_end < d.due_date <= month_end][:UPCOMING_LIMIT]

    recent_cutoff = now - timedelta(days=30)
    completed_recently = [d for d in deadlines if d.completed_at and d.completed_at >= recent_cutoff]
    on_time = [d for d in completed_recently if d.completed_at <= d.due_date]
    on_time_rate = round(len(on_time) / len(completed_recently) * 100) if completed_recently else 100

    score = calculate_compliance_score(deadlines, now)
    return {
        "score": score,
        "score_label": get_score_label(score),
        "overdue": overdue,
        "due_today": due_today,
        "due_this_week": due_this_week,
        "upcoming": upcoming,
        "stats": {
            "total_active": len(active),
            "completed_this_month": len(completed_recently),
            "documents_stored": repo_documents.count_documents(db, organization_id),
            "on_time_rate": on_time_rate,
        },
        "by_category": _category_breakdown(active, now),
        "recent_activity": audit_service.recent_activity(db, organization_id),
    }


def get_stats_summary(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    access.require_permission(db, organization_id, user_id, "deadlines:read")
    now = now or now_utc()
    deadlines = repo_deadlines.list_deadlines(db, organization_id)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)
    active = [d for d in deadlines if d.completed_at is None]
    return {
        "score": calculate_compliance_score(deadlines, now),
        "overdue_count": sum(1 for d in active if d.due_date < now),
        "due_today_count": sum(1 for d in active if day_start <= d.due_date < day_end),
    }


def get_score_breakdown(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    access.require_permission(db, organization_id, user_id, "deadlines:read")
    now = now or now_utc()
    breakdown = calculate_score_breakdown(repo_deadlines.list_deadlines(db, organization_id), now)
    breakdown["label"] = get_score_label(breakdown["score"])
    return breakdown
