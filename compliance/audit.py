"""
Activity logging helpers and enums.

Centralized helpers to persist normalized organization activity records
with a consistent schema; includes convenience wrappers per target type.
"""
from __future__ import annotations
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.orm import Session

from compliance.db import crud, models, schemas


class AuditAction(str, Enum):
    # Deadlines
    DEADLINE_CREATED = "deadline_created"
    DEADLINE_COMPLETED = "deadline_completed"
    DEADLINE_UPDATED = "deadline_updated"
    DEADLINE_DELETED = "deadline_deleted"
    # Documents
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_DELETED = "document_deleted"
    # Alerts
    ALERT_SENT = "alert_sent"
    ALERT_ACKNOWLEDGED = "alert_acknowledged"
    # Templates / settings
    TEMPLATE_IMPORTED = "template_imported"
    SETTINGS_UPDATED = "settings_updated"
    # Team
    USER_INVITED = "user_invited"
    USER_JOINED = "user_joined"
    USER_REMOVED = "user_removed"
    ROLE_CHANGED = "role_changed"
    INVITATION_REVOKED = "invitation_revoked"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"


class AuditTarget(str, Enum):
    DEADLINE = "deadline"
    DOCUMENT = "document"
    ALERT = "alert"
    TEMPLATE = "template"
    ORGANIZATION = "organization"
    USER = "user"
    INVITATION = "invitation"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def log(
    db: Session,
    *,
    action: AuditAction | str,
    target_type: AuditTarget | str,
    organization_id: uuid.UUID,
    actor_user_id: Optional[uuid.UUID] = None,
    target_id: Optional[uuid.UUID] = None,
    target_title: Optional[str] = None,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> models.AuditLog:
    """Central activity logging helper.

    ``actor_user_id`` is None for actions taken by scheduled jobs.
    """
    # Persist pure string values, not Enum reprs
    audit_log = schemas.AuditLogCreate(
        action_type=action.value if isinstance(action, Enum) else str(action),
        status=status.value if isinstance(status, Enum) else str(status),
        target_type=target_type.value if isinstance(target_type, Enum) else str(target_type),
        target_id=target_id,
        target_title=target_title,
        ip_address=ip_address,
        metadata=metadata or {},
    )
    return crud.create_audit_log(
        db,
        audit_log=audit_log,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
    )


__all__ = ["AuditAction", "AuditTarget", "AuditStatus", "log"]


# Convenience wrappers
def log_deadline(db: Session, *, actor_user_id: Optional[uuid.UUID], deadline: models.Deadline, action: AuditAction, metadata: Optional[Dict[str, Any]] = None, ip_address: Optional[str] = None):
    return log(
        db,
        action=action,
        target_type=AuditTarget.DEADLINE,
        target_id=deadline.id,
        target_title=deadline.title,
        actor_user_id=actor_user_id,
        organization_id=deadline.organization_id,
        metadata=metadata,
        ip_address=ip_address,
    )


def log_document(db: Session, *, actor_user_id: Optional[uuid.UUID], document: models.Document, action: AuditAction, metadata: Optional[Dict[str, Any]] = None, ip_address: Optional[str] = None):
    return log(
        db,
        action=action,
        target_type=AuditTarget.DOCUMENT,
        target_id=document.id,
        target_title=document.file_name,
        actor_user_id=actor_user_id,
        organization_id=document.organization_id,
        metadata=metadata,
        ip_address=ip_address,
    )


def log_team(db: Session, *, actor_user_id: uuid.UUID, organization_id: uuid.UUID, action: AuditAction, target_type: AuditTarget = AuditTarget.USER, target_id: Optional[uuid.UUID] = None, target_title: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
    return log(
        db,
        action=action,
        target_type=target_type,
        target_id=target_id,
        target_title=target_title,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        metadata=metadata,
    )


__all__.extend(["log_deadline", "log_document", "log_team"])
