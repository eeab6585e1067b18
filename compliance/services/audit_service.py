"""Read side of the organization activity log."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from compliance.db import models
from compliance.db.repositories import audits as repo_audits
from compliance.errors import InvalidInput
from compliance.services import access

MAX_PAGE_SIZE = 200


def _attach_actor_emails(db: Session, rows: List[models.AuditLog]) -> List[models.AuditLog]:
    actor_ids = {row.actor_user_id for row in rows if row.actor_user_id}
    emails = {}
    if actor_ids:
        emails = {
            user.id: user.email
            for user in db.query(models.User).filter(models.User.id.in_(actor_ids)).all()
        }
    for row in rows:
        row.actor_email = emails.get(row.actor_user_id)
    return rows


def get_audit_log(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    action_type: Optional[str] = None,
    actor_user_id: Optional[uuid.UUID] = None,
    target_type: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = 1,
    page_size: int = 50,
) -> Dict[str, Any]:
    """Newest-first page of activity entries; requires ``audit:read``."""
    access.require_permission(db, organization_id, user_id, "audit:read")
    if page < 1 or not 1 <= page_size <= MAX_PAGE_SIZE:
        raise InvalidInput("Invalid pagination", page=page, page_size=page_size)
    rows, total = repo_audits.get_audit_logs(
        db,
        organization_id,
        skip=(page - 1) * page_size,
        limit=page_size,
        user_id=actor_user_id,
        action_type=action_type,
        target_type=target_type,
        date_from=date_from,
        date_to=date_to,
    )
    return {
        "items": _attach_actor_emails(db, rows),
        "total": total,
        "page": page,
        "page_size": page_size,
    }


def get_resource_audit_log(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    target_type: str,
    target_id: uuid.UUID,
    limit: int = 100,
) -> List[models.AuditLog]:
    access.require_permission(db, organization_id, user_id, "audit:read")
    rows, _ = repo_audits.get_audit_logs(
        db, organization_id, limit=limit, target_type=target_type, target_id=target_id
    )
    return _attach_actor_emails(db, rows)


def get_audit_action_types(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> List[str]:
    access.require_permission(db, organization_id, user_id, "audit:read")
    return repo_audits.get_action_types(db, organization_id)


def get_audit_users(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> List[Dict[str, Any]]:
    access.require_permission(db, organization_id, user_id, "audit:read")
    return [
        {"user_id": user.id, "email": user.email, "display_name": user.display_name}
        for user in repo_audits.get_actor_users(db, organization_id)
    ]


def recent_activity(db: Session, organization_id: uuid.UUID, limit: int = 10) -> List[models.AuditLog]:
    """Latest entries without a permission check, for the dashboard feed."""
    rows, _ = repo_audits.get_audit_logs(db, organization_id, limit=limit)
    return _attach_actor_emails(db, rows)
