"""
CRUD facade for cross-cutting lookups.

Users and the activity log are touched from almost every service; this
module gives them one import point and delegates to the repositories.
"""
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from . import models, schemas
from .repositories import audits as repo_audits


def get_user(db: Session, user_id: uuid.UUID) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def create_user(db: Session, user: schemas.UserCreate, *, is_superadmin: bool = False) -> models.User:
    db_user = models.User(
        email=user.email.strip().lower(),
        display_name=user.display_name,
        phone=user.phone,
        is_superadmin=is_superadmin,
    )
    db.add(db_user)
    db.flush()
    return db_user


# CRUD for AuditLog (facade delegates to repository)
def create_audit_log(
    db: Session,
    audit_log: schemas.AuditLogCreate,
    *,
    actor_user_id: Optional[uuid.UUID],
    organization_id: uuid.UUID,
):
    return repo_audits.create_audit_log(db, audit_log, actor_user_id, organization_id)


def get_audit_logs(db: Session, organization_id: uuid.UUID, *, skip: int = 0, limit: int = 50, **filters):
    return repo_audits.get_audit_logs(db, organization_id, skip=skip, limit=limit, **filters)
