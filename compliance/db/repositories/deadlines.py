"""
Deadline repository functions.

Every query is scoped by organization id; callers never look a deadline up
by id alone so one tenant cannot reach another's rows.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from compliance.db import models


def create_deadline(db: Session, **fields: Any) -> models.Deadline:
    deadline = models.Deadline(**fields)
    db.add(deadline)
    db.flush()
    return deadline


def get_deadline(
    db: Session,
    organization_id: uuid.UUID,
    deadline_id: uuid.UUID,
    include_deleted: bool = True,
) -> Optional[models.Deadline]:
    query = db.query(models.Deadline).filter(
        models.Deadline.id == deadline_id,
        models.Deadline.organization_id == organization_id,
    )
    if not include_deleted:
        query = query.filter(models.Deadline.deleted_at.is_(None))
    return query.first()


def list_deadlines(
    db: Session,
    organization_id: uuid.UUID,
    *,
    category: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    include_deleted: bool = False,
    only_deleted: bool = False,
    completed: Optional[bool] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
) -> List[models.Deadline]:
    query = db.query(models.Deadline).filter(models.Deadline.organization_id == organization_id)
    if only_deleted:
        query = query.filter(models.Deadline.deleted_at.isnot(None))
    elif not include_deleted:
        query = query.filter(models.Deadline.deleted_at.is_(None))
    if category:
        query = query.filter(models.Deadline.category == category)
    if assigned_to:
        query = query.filter(models.Deadline.assigned_to == assigned_to)
    if completed is True:
        query = query.filter(models.Deadline.completed_at.isnot(None))
    elif completed is False:
        query = query.filter(models.Deadline.completed_at.is_(None))
    if due_from is not None:
        query = query.filter(models.Deadline.due_date >= due_from)
    if due_to is not None:
        query = query.filter(models.Deadline.due_date <= due_to)
    return query.order_by(models.Deadline.due_date.asc()).all()


def count_active(db: Session, organization_id: uuid.UUID) -> int:
    return (
        db.query(func.count(models.Deadline.id))
        .filter(
            models.Deadline.organization_id == organization_id,
            models.Deadline.deleted_at.is_(None),
            models.Deadline.completed_at.is_(None),
        )
        .scalar()
        or 0
    )


def count_active_assigned(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> int:
    return (
        db.query(func.count(models.Deadline.id))
        .filter(
            models.Deadline.organization_id == organization_id,
            models.Deadline.assigned_to == user_id,
            models.Deadline.deleted_at.is_(None),
            models.Deadline.completed_at.is_(None),
        )
        .scalar()
        or 0
    )


def unassign_user(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> int:
    """Clear the assignee on a user's active deadlines; returns the count."""
    rows = (
        db.query(models.Deadline)
        .filter(
            models.Deadline.organization_id == organization_id,
            models.Deadline.assigned_to == user_id,
            models.Deadline.deleted_at.is_(None),
            models.Deadline.completed_at.is_(None),
        )
        .all()
    )
    for row in rows:
        row.assigned_to = None
    db.flush()
    return len(rows)


def categories_with_counts(db: Session, organization_id: uuid.UUID) -> List[Tuple[str, int]]:
    return (
        db.query(models.Deadline.category, func.count(models.Deadline.id))
        .filter(
            models.Deadline.organization_id == organization_id,
            models.Deadline.deleted_at.is_(None),
        )
        .group_by(models.Deadline.category)
        .order_by(models.Deadline.category.asc())
        .all()
    )


def delete_deadline(db: Session, deadline: models.Deadline) -> None:
    db.query(models.DeadlineAuditLog).filter(models.DeadlineAuditLog.deadline_id == deadline.id).delete(
        synchronize_session=False
    )
    db.query(models.Alert).filter(models.Alert.deadline_id == deadline.id).delete(synchronize_session=False)
    db.delete(deadline)
    db.flush()


def add_audit_entry(
    db: Session,
    *,
    deadline: models.Deadline,
    action: str,
    user_id: Optional[uuid.UUID] = None,
    changes: Optional[Dict[str, Any]] = None,
) -> models.DeadlineAuditLog:
    entry = models.DeadlineAuditLog(
        deadline_id=deadline.id,
        organization_id=deadline.organization_id,
        user_id=user_id,
        action=action,
        changes=changes,
    )
    db.add(entry)
    db.flush()
    return entry


def get_audit_entries(db: Session, deadline_id: uuid.UUID) -> List[models.DeadlineAuditLog]:
    return (
        db.query(models.DeadlineAuditLog)
        .filter(models.DeadlineAuditLog.deadline_id == deadline_id)
        .order_by(models.DeadlineAuditLog.created_at.desc())
        .all()
    )
