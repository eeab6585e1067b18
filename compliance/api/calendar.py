"""
Calendar API endpoints: range views, day view, filter options and the
iCal feed with its subscription links.
"""
from datetime import datetime
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import calendar_service


router = APIRouter(prefix="/calendar/{org_id}", tags=["calendar"])

FEED_CACHE_SECONDS = 15 * 60


class CalendarDeadline(schemas.Deadline):
    urgency: Optional[str] = None


@router.get("/deadlines", response_model=List[CalendarDeadline])
def calendar_deadlines(
    org_id: uuid.UUID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    include_completed: bool = True,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return calendar_service.list_for_calendar(
        db, org_id, user.id,
        start=start, end=end, category=category,
        assigned_to=assigned_to, include_completed=include_completed,
    )


@router.get("/day", response_model=List[CalendarDeadline])
def calendar_day(
    org_id: uuid.UUID,
    date: datetime,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return calendar_service.deadlines_for_date(db, org_id, user.id, date)


@router.get("/filters")
def calendar_filters(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return {
        "categories": calendar_service.categories(db, org_id, user.id),
        "assignees": [
            {"user_id": u.id, "email": u.email, "display_name": u.display_name}
            for u in calendar_service.assignees(db, org_id, user.id)
        ],
    }


@router.get("/links")
def calendar_links(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    # Membership check only; the links themselves carry no data
    calendar_service.categories(db, org_id, user.id)
    return {
        "webcal_url": calendar_service.generate_webcal_url(org_id),
        "google_calendar_url": calendar_service.generate_google_calendar_url(org_id),
    }


@router.get("/feed.ics")
def calendar_feed(
    org_id: uuid.UUID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category: Optional[str] = None,
    include_completed: bool = True,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    content, filename = calendar_service.export_feed(
        db, org_id, user.id,
        start=start, end=end, category=category, include_completed=include_completed,
    )
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": f"private, max-age={FEED_CACHE_SECONDS}",
            "X-Content-Type-Options": "nosniff",
        },
    )
