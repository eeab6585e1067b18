"""Organization profile API endpoints."""
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import profile_service


router = APIRouter(prefix="/organizations/{org_id}/profile", tags=["profile"])


@router.get("/", response_model=Optional[schemas.OrganizationProfile])
def get_profile(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return profile_service.get_profile(db, org_id, user.id)


@router.put("/", response_model=schemas.OrganizationProfile)
def upsert_profile(
    org_id: uuid.UUID,
    payload: schemas.OrganizationProfileUpsert,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return profile_service.upsert_profile(db, org_id, user.id, payload)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
def delete_profile(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    profile_service.delete_profile(db, org_id, user.id)


@router.get("/completion", response_model=schemas.ProfileCompletion)
def get_profile_completion(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return profile_service.get_completion(db, org_id, user.id)
