"""Onboarding checklist API endpoints."""
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.errors import NotFound
from compliance.services import access, onboarding_service


router = APIRouter(tags=["onboarding"])


def _progress_or_404(db: Session, org_id: uuid.UUID):
    progress = onboarding_service.get_progress(db, org_id)
    if progress is None:
        raise NotFound("Onboarding progress not found")
    return progress


def _with_incomplete(progress) -> dict:
    payload = schemas.OnboardingProgress.model_validate(progress).model_dump(mode="json")
    payload["incomplete_steps"] = onboarding_service.get_incomplete(progress)
    return payload


@router.get("/onboarding")
def my_onboarding(
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Progress records for organizations the current user started."""
    user, _ = user_context
    return [_with_incomplete(p) for p in onboarding_service.get_progress_by_user(db, user.id)]


@router.get("/organizations/{org_id}/onboarding")
def get_onboarding(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_membership(db, org_id, user.id)
    return _with_incomplete(_progress_or_404(db, org_id))


@router.post("/organizations/{org_id}/onboarding/steps")
def complete_onboarding_step(
    org_id: uuid.UUID,
    payload: schemas.OnboardingStepUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_membership(db, org_id, user.id)
    progress = _progress_or_404(db, org_id)
    onboarding_service.mark_step_complete(db, org_id, payload.step)
    db.commit()
    db.refresh(progress)
    return _with_incomplete(progress)


@router.post("/organizations/{org_id}/onboarding/complete")
def complete_onboarding(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_membership(db, org_id, user.id)
    return _with_incomplete(onboarding_service.mark_complete(db, org_id))


@router.post("/organizations/{org_id}/onboarding/reset")
def reset_onboarding(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_permission(db, org_id, user.id, "settings:write")
    return _with_incomplete(onboarding_service.reset_progress(db, org_id))
