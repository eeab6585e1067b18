"""
Reporting API endpoints.

Each report takes a ``range`` preset (last_7_days, last_30_days,
last_quarter, last_year) or explicit ``date_from``/``date_to`` bounds.
"""
from datetime import datetime
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.api.deps import get_current_user_context
from compliance.services import reports_service


router = APIRouter(prefix="/organizations/{org_id}/reports", tags=["reports"])


@router.get("/compliance-summary")
def compliance_summary(
    org_id: uuid.UUID,
    range_type: Optional[str] = Query(default=None, alias="range"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    start, end = reports_service.resolve_date_range(range_type, date_from, date_to)
    return reports_service.get_compliance_summary(db, org_id, user.id, start, end)


@router.get("/team-performance")
def team_performance(
    org_id: uuid.UUID,
    range_type: Optional[str] = Query(default="last_year", alias="range"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Completions are counted by completion date; defaults to the last year."""
    user, _ = user_context
    start, end = reports_service.resolve_date_range(range_type, date_from, date_to)
    return reports_service.get_team_performance(db, org_id, user.id, start, end)


@router.get("/cost-avoidance")
def cost_avoidance(
    org_id: uuid.UUID,
    range_type: Optional[str] = Query(default=None, alias="range"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    start, end = reports_service.resolve_date_range(range_type, date_from, date_to)
    return reports_service.get_cost_avoidance(db, org_id, user.id, start, end)
