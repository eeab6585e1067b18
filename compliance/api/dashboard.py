"""Dashboard API endpoints."""
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.api.calendar import CalendarDeadline
from compliance.api.deps import get_current_user_context
from compliance.services import dashboard_service


router = APIRouter(prefix="/organizations/{org_id}/dashboard", tags=["dashboard"])


def _serialize_deadlines(rows):
    return [CalendarDeadline.model_validate(row).model_dump(mode="json") for row in rows]


@router.get("/")
def get_dashboard(
    org_id: uuid.UUID,
    view: str = Query(default="team"),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    data = dashboard_service.get_dashboard_data(db, org_id, user.id, view_mode=view)
    for bucket in ("overdue", "due_today", "due_this_week", "upcoming"):
        data[bucket] = _serialize_deadlines(data[bucket])
    data["recent_activity"] = [
        {
            "id": entry.id,
            "action_type": entry.action_type,
            "target_type": entry.target_type,
            "target_title": entry.target_title,
            "actor_email": entry.actor_email,
            "created_at": entry.created_at,
        }
        for entry in data["recent_activity"]
    ]
    return data


@router.get("/stats")
def get_stats(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return dashboard_service.get_stats_summary(db, org_id, user.id)


@router.get("/score")
def get_score(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return dashboard_service.get_score_breakdown(db, org_id, user.id)
