"""
Audit log repository functions.

Implements create and query functions for the organization activity log.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from compliance.db import schemas, models


def create_audit_log(
    db: Session,
    audit_log: schemas.AuditLogCreate,
    actor_user_id: Optional[uuid.UUID],
    organization_id: uuid.UUID,
):
    data = audit_log.model_dump()
    metadata_payload = data.pop('metadata', None)
    db_audit_log = models.AuditLog(
        **data,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        metadata_json=metadata_payload,
    )
    db.add(db_audit_log)
    db.flush()
    return db_audit_log


def _filtered(
    db: Session,
    organization_id: uuid.UUID,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    query = db.query(models.AuditLog).filter(models.AuditLog.organization_id == organization_id)
    if user_id:
        query = query.filter(models.AuditLog.actor_user_id == user_id)
    if action_type:
        query = query.filter(models.AuditLog.action_type == action_type)
    if target_type:
        query = query.filter(models.AuditLog.target_type == target_type)
    if target_id:
        query = query.filter(models.AuditLog.target_id == target_id)
    if date_from is not None:
        query = query.filter(models.AuditLog.created_at >= date_from)
    if date_to is not None:
        query = query.filter(models.AuditLog.created_at <= date_to)
    return query


def get_audit_logs(
    db: Session,
    organization_id: uuid.UUID,
    *,
    skip: int = 0,
    limit: int = 50,
    **filters,
) -> Tuple[List[models.AuditLog], int]:
    query = _filtered(db, organization_id, **filters)
    total = query.count()
    rows = query.order_by(models.AuditLog.created_at.desc()).offset(skip).limit(limit).all()
    return rows, total


def get_action_types(db: Session, organization_id: uuid.UUID) -> List[str]:
    rows = (
        db.query(models.AuditLog.action_type)
        .filter(models.AuditLog.organization_id == organization_id)
        .distinct()
        .all()
    )
    return sorted(r[0] for r in rows)


def get_actor_users(db: Session, organization_id: uuid.UUID) -> List[models.User]:
    actor_ids = (
        db.query(models.AuditLog.actor_user_id)
        .filter(
            models.AuditLog.organization_id == organization_id,
            models.AuditLog.actor_user_id.isnot(None),
        )
        .distinct()
    )
    return db.query(models.User).filter(models.User.id.in_(actor_ids)).order_by(models.User.email.asc()).all()
