"""
Alert API endpoints: listing, acknowledge/snooze/retry, delivery
preferences and test sends.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import alert_service


router = APIRouter(prefix="/organizations/{org_id}/alerts", tags=["alerts"])


@router.get("/", response_model=List[schemas.Alert])
def list_alerts(
    org_id: uuid.UUID,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.list_by_org(db, org_id, user.id, status=status_filter, limit=limit)


@router.get("/failed", response_model=List[schemas.Alert])
def list_failed_alerts(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.failed_alerts(db, org_id, user.id)


@router.get("/by-deadline/{deadline_id}", response_model=List[schemas.Alert])
def list_deadline_alerts(
    org_id: uuid.UUID,
    deadline_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.list_by_deadline(db, org_id, deadline_id, user.id)


@router.get("/preferences", response_model=schemas.AlertPreference)
def get_alert_preferences(
    org_id: uuid.UUID,
    user_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Effective preferences for ``user_id``, or the org-wide defaults when omitted."""
    user, _ = user_context
    return alert_service.get_preferences(db, org_id, user.id, user_id=user_id)


@router.put("/preferences", response_model=schemas.AlertPreference)
def save_alert_preferences(
    org_id: uuid.UUID,
    payload: schemas.AlertPreferenceUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.save_preferences(db, org_id, user.id, payload)


@router.post("/test")
def send_test_alert(
    org_id: uuid.UUID,
    payload: schemas.TestAlertRequest,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.send_test_alert(
        db, org_id, user.id, channel=payload.channel, phone_number=payload.phone_number
    )


@router.get("/{alert_id}", response_model=schemas.Alert)
def get_alert(
    org_id: uuid.UUID,
    alert_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.get_alert(db, org_id, alert_id, user.id)


@router.post("/{alert_id}/acknowledge", response_model=schemas.Alert)
def acknowledge_alert(
    org_id: uuid.UUID,
    alert_id: uuid.UUID,
    payload: Optional[schemas.AlertAcknowledge] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    via = payload.via if payload else "in_app_button"
    return alert_service.acknowledge(db, org_id, alert_id, user.id, via=via)


@router.post("/{alert_id}/snooze", response_model=schemas.Alert)
def snooze_alert(
    org_id: uuid.UUID,
    alert_id: uuid.UUID,
    payload: schemas.AlertSnooze,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.snooze(db, org_id, alert_id, user.id, payload.until)


@router.post("/{alert_id}/unsnooze", response_model=schemas.Alert)
def unsnooze_alert(
    org_id: uuid.UUID,
    alert_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.unsnooze(db, org_id, alert_id, user.id)


@router.post("/{alert_id}/retry", response_model=schemas.Alert)
def retry_alert(
    org_id: uuid.UUID,
    alert_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.retry(db, org_id, alert_id, user.id)


@router.get("/{alert_id}/history", response_model=List[schemas.AlertAuditEntry])
def alert_history(
    org_id: uuid.UUID,
    alert_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return alert_service.alert_history(db, org_id, alert_id, user.id)
