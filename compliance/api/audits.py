"""
Audit log API endpoints.

Query the organization activity log; every route requires ``audit:read``.
"""
from datetime import datetime
from typing import Optional, List
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import audit_service

router = APIRouter(prefix="/organizations/{org_id}/audit-log", tags=["audits"])


@router.get("/", response_model=schemas.AuditLogPage)
def list_audit_logs(
    org_id: uuid.UUID,
    action_type: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
    target_type: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=audit_service.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return audit_service.get_audit_log(
        db,
        org_id,
        user.id,
        action_type=action_type,
        actor_user_id=user_id,
        target_type=target_type,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
    )


@router.get("/action-types", response_model=List[str])
def list_action_types(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return audit_service.get_audit_action_types(db, org_id, user.id)


@router.get("/users", response_model=List[schemas.AuditUser])
def list_audit_users(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return audit_service.get_audit_users(db, org_id, user.id)


@router.get("/{target_type}/{target_id}", response_model=List[schemas.AuditLog])
def resource_audit_log(
    org_id: uuid.UUID,
    target_type: str,
    target_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return audit_service.get_resource_audit_log(db, org_id, user.id, target_type, target_id)
