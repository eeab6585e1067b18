"""
Alert repository functions.

Alerts, per-user/org alert preferences and the alert audit trail.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from compliance.db import models


def create_alert(db: Session, **fields: Any) -> models.Alert:
    alert = models.Alert(**fields)
    db.add(alert)
    db.flush()
    return alert


def get_alert(db: Session, alert_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None):
    query = db.query(models.Alert).filter(models.Alert.id == alert_id)
    if organization_id is not None:
        query = query.filter(models.Alert.organization_id == organization_id)
    return query.first()


def get_by_provider_message_id(db: Session, provider_message_id: str) -> Optional[models.Alert]:
    return (
        db.query(models.Alert)
        .filter(models.Alert.provider_message_id == provider_message_id)
        .first()
    )


def list_by_deadline(db: Session, deadline_id: uuid.UUID, status: Optional[str] = None) -> List[models.Alert]:
    query = db.query(models.Alert).filter(models.Alert.deadline_id == deadline_id)
    if status:
        query = query.filter(models.Alert.status == status)
    return query.order_by(models.Alert.scheduled_for.asc()).all()


def list_by_org(
    db: Session,
    organization_id: uuid.UUID,
    status: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
    limit: int = 100,
) -> List[models.Alert]:
    query = db.query(models.Alert).filter(models.Alert.organization_id == organization_id)
    if status:
        query = query.filter(models.Alert.status == status)
    if user_id:
        query = query.filter(models.Alert.user_id == user_id)
    return query.order_by(models.Alert.scheduled_for.desc()).limit(limit).all()


def list_failed(db: Session, organization_id: uuid.UUID) -> List[models.Alert]:
    return (
        db.query(models.Alert)
        .filter(models.Alert.organization_id == organization_id, models.Alert.status == 'failed')
        .order_by(models.Alert.scheduled_for.desc())
        .all()
    )


def list_due(db: Session, window_start: datetime, now: datetime) -> List[models.Alert]:
    """Scheduled alerts inside [window_start, now] whose snooze (if any) has elapsed."""
    return (
        db.query(models.Alert)
        .filter(
            models.Alert.status == 'scheduled',
            models.Alert.scheduled_for >= window_start,
            models.Alert.scheduled_for <= now,
            or_(models.Alert.snoozed_until.is_(None), models.Alert.snoozed_until <= now),
        )
        .order_by(models.Alert.scheduled_for.asc())
        .all()
    )


def delete_alert(db: Session, alert: models.Alert) -> None:
    db.delete(alert)
    db.flush()


def get_preference(db: Session, organization_id: uuid.UUID, user_id: Optional[uuid.UUID]):
    query = db.query(models.AlertPreference).filter(models.AlertPreference.organization_id == organization_id)
    if user_id is None:
        query = query.filter(models.AlertPreference.user_id.is_(None))
    else:
        query = query.filter(models.AlertPreference.user_id == user_id)
    return query.first()


def upsert_preference(
    db: Session,
    organization_id: uuid.UUID,
    user_id: Optional[uuid.UUID],
    values: Dict[str, Any],
) -> models.AlertPreference:
    pref = get_preference(db, organization_id, user_id)
    if pref is None:
        pref = models.AlertPreference(organization_id=organization_id, user_id=user_id, **values)
        db.add(pref)
    else:
        for key, value in values.items():
            setattr(pref, key, value)
    db.flush()
    return pref


def add_audit(
    db: Session,
    alert: models.Alert,
    action: str,
    details: Optional[Dict[str, Any]] = None,
) -> models.AlertAuditLog:
    entry = models.AlertAuditLog(
        alert_id=alert.id,
        deadline_id=alert.deadline_id,
        organization_id=alert.organization_id,
        action=action,
        details=details,
    )
    db.add(entry)
    db.flush()
    return entry


def list_audit(db: Session, alert_id: uuid.UUID) -> List[models.AlertAuditLog]:
    return (
        db.query(models.AlertAuditLog)
        .filter(models.AlertAuditLog.alert_id == alert_id)
        .order_by(models.AlertAuditLog.created_at.desc())
        .all()
    )
