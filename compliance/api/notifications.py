"""
Notification API Endpoints

In-app notifications for the current user: list, unread count, mark read
and dismiss.
"""

from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services.notification_service import NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=List[schemas.Notification])
def get_notifications(
    organization_id: Optional[uuid.UUID] = None,
    unread_only: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context)
):
    """
    Get notifications for the current user.

    - **organization_id**: Restrict to one organization
    - **unread_only**: If true, only return unread notifications
    - **limit**: Maximum number of notifications to return (default 50)
    """
    user, _ = user_context
    service = NotificationService(db)
    if unread_only:
        return service.unread(user.id, organization_id)
    return service.list(user.id, organization_id, limit=limit)


@router.get("/unread-count", response_model=schemas.UnreadCount)
def get_unread_count(
    organization_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context)
):
    user, _ = user_context
    return {"count": NotificationService(db).unread_count(user.id, organization_id)}


@router.post("/{notification_id}/read", response_model=schemas.Notification)
def mark_notification_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context)
):
    user, _ = user_context
    return NotificationService(db).mark_read(notification_id, user.id)


@router.post("/read-all")
def mark_all_read(
    organization_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context)
):
    user, _ = user_context
    return {"updated": NotificationService(db).mark_all_read(user.id, organization_id)}


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context)
):
    user, _ = user_context
    NotificationService(db).remove(notification_id, user.id)
