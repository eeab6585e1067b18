"""
Notification repository functions: in-app notifications and email logs.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from compliance.db import models


def create_notification(
    db: Session,
    *,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> models.Notification:
    notification = models.Notification(
        organization_id=organization_id,
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data,
    )
    db.add(notification)
    db.flush()
    return notification


def _for_user(db: Session, user_id: uuid.UUID, organization_id: Optional[uuid.UUID]):
    query = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if organization_id is not None:
        query = query.filter(models.Notification.organization_id == organization_id)
    return query


def list_notifications(
    db: Session,
    user_id: uuid.UUID,
    organization_id: Optional[uuid.UUID] = None,
    unread_only: bool = False,
    limit: int = 50,
) -> List[models.Notification]:
    query = _for_user(db, user_id, organization_id)
    if unread_only:
        query = query.filter(models.Notification.read_at.is_(None))
    return query.order_by(models.Notification.created_at.desc()).limit(limit).all()


def count_unread(db: Session, user_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None) -> int:
    return (
        _for_user(db, user_id, organization_id)
        .filter(models.Notification.read_at.is_(None))
        .with_entities(func.count(models.Notification.id))
        .scalar()
        or 0
    )


def get_notification(db: Session, notification_id: uuid.UUID, user_id: uuid.UUID):
    return _for_user(db, user_id, None).filter(models.Notification.id == notification_id).first()


def mark_all_read(db: Session, user_id: uuid.UUID, organization_id: Optional[uuid.UUID], now: datetime) -> int:
    rows = _for_user(db, user_id, organization_id).filter(models.Notification.read_at.is_(None)).all()
    for row in rows:
        row.read_at = now
    db.flush()
    return len(rows)


def delete_notification(db: Session, notification: models.Notification) -> None:
    db.delete(notification)
    db.flush()


def create_email_log(
    db: Session,
    *,
    email_address: str,
    event_type: str,
    subject: str,
    organization_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
) -> models.EmailNotificationLog:
    log = models.EmailNotificationLog(
        organization_id=organization_id,
        user_id=user_id,
        email_address=email_address,
        event_type=event_type,
        subject=subject,
        status='pending',
    )
    db.add(log)
    db.flush()
    return log
