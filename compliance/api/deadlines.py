"""
Deadline API endpoints.

CRUD, completion with recurrence, soft delete with trash/restore, and the
per-deadline change history.
"""
from typing import Dict, List, Optional
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import deadline_service


router = APIRouter(prefix="/organizations/{org_id}/deadlines", tags=["deadlines"])


@router.get("/", response_model=List[schemas.Deadline])
def list_deadlines(
    org_id: uuid.UUID,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    category: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.list_deadlines(
        db, org_id, user.id, status=status_filter, category=category, assigned_to=assigned_to
    )


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=schemas.Deadline)
def create_deadline(
    org_id: uuid.UUID,
    payload: schemas.DeadlineCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.create_deadline(db, org_id, user.id, payload)


@router.get("/upcoming", response_model=List[schemas.Deadline])
def upcoming_deadlines(
    org_id: uuid.UUID,
    days: int = Query(default=30, ge=1, le=365),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.upcoming(db, org_id, user.id, days=days)


@router.get("/overdue", response_model=List[schemas.Deadline])
def overdue_deadlines(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.overdue(db, org_id, user.id)


@router.get("/by-category", response_model=Dict[str, List[schemas.Deadline]])
def deadlines_by_category(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.by_category(db, org_id, user.id)


@router.get("/trash", response_model=List[schemas.Deadline])
def deadline_trash(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.trash(db, org_id, user.id)


@router.get("/{deadline_id}", response_model=schemas.Deadline)
def get_deadline(
    org_id: uuid.UUID,
    deadline_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.get_deadline(db, org_id, deadline_id, user.id)


@router.put("/{deadline_id}", response_model=schemas.Deadline)
def update_deadline(
    org_id: uuid.UUID,
    deadline_id: uuid.UUID,
    payload: schemas.DeadlineUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.update_deadline(db, org_id, deadline_id, user.id, payload)


@router.post("/{deadline_id}/complete", response_model=schemas.DeadlineCompletion)
def complete_deadline(
    org_id: uuid.UUID,
    deadline_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    deadline, next_id = deadline_service.complete_deadline(db, org_id, deadline_id, user.id)
    return {"deadline": deadline, "next_deadline_id": next_id}


@router.delete("/{deadline_id}", response_model=schemas.Deadline)
def delete_deadline(
    org_id: uuid.UUID,
    deadline_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Move to trash; alerts are cancelled and the row can be restored."""
    user, _ = user_context
    return deadline_service.soft_delete(db, org_id, deadline_id, user.id)


@router.post("/{deadline_id}/restore", response_model=schemas.Deadline)
def restore_deadline(
    org_id: uuid.UUID,
    deadline_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.restore(db, org_id, deadline_id, user.id)


@router.delete("/{deadline_id}/permanent", status_code=status.HTTP_204_NO_CONTENT)
def hard_delete_deadline(
    org_id: uuid.UUID,
    deadline_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    deadline_service.hard_delete(db, org_id, deadline_id, user.id)


@router.get("/{deadline_id}/history", response_model=List[schemas.DeadlineAuditEntry])
def deadline_history(
    org_id: uuid.UUID,
    deadline_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return deadline_service.audit_history(db, org_id, deadline_id, user.id)
