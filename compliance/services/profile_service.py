"""Organization profile: the business identity used to pre-fill forms."""
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from compliance import audit
from compliance.db import models, schemas
from compliance.errors import NotFound
from compliance.services import access

REQUIRED_FIELDS = ("legal_name", "ein", "addresses", "phones", "emails")
OPTIONAL_FIELDS = ("dba_names", "website", "license_numbers", "npi_number", "officers", "incorporation_date")
REQUIRED_WEIGHT = 60
OPTIONAL_WEIGHT = 40


def get_profile_record(db: Session, organization_id: uuid.UUID) -> Optional[models.OrganizationProfile]:
    return (
        db.query(models.OrganizationProfile)
        .filter(models.OrganizationProfile.organization_id == organization_id)
        .first()
    )


def get_profile(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> Optional[models.OrganizationProfile]:
    access.require_permission(db, organization_id, user_id, "settings:read")
    return get_profile_record(db, organization_id)


def upsert_profile(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: schemas.OrganizationProfileUpsert,
) -> models.OrganizationProfile:
    org, _ = access.require_permission(db, organization_id, user_id, "settings:write")
    values = payload.model_dump(exclude_unset=True, mode="json")
    profile = get_profile_record(db, organization_id)
    if profile is None:
        profile = models.OrganizationProfile(organization_id=organization_id, **values)
        db.add(profile)
    else:
        for key, value in values.items():
            setattr(profile, key, value)
    db.flush()
    audit.log(
        db,
        action=audit.AuditAction.SETTINGS_UPDATED,
        target_type=audit.AuditTarget.ORGANIZATION,
        target_id=organization_id,
        target_title=org.name,
        actor_user_id=user_id,
        organization_id=organization_id,
        metadata={"section": "profile", "fields": sorted(values)},
    )
    db.commit()
    db.refresh(profile)
    return profile


def delete_profile(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> None:
    access.require_permission(db, organization_id, user_id, "settings:write")
    profile = get_profile_record(db, organization_id)
    if profile is None:
        raise NotFound("Organization profile not found")
    db.delete(profile)
    db.commit()


def _is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)):
        return len(value) > 0
    return True


def completion_status(profile: Optional[models.OrganizationProfile]) -> Dict[str, Any]:
    """Required fields count for 60% of the score, optional ones for 40%."""
    if profile is None:
        return {
            "has_profile": False,
            "completion_percentage": 0,
            "missing_required": list(REQUIRED_FIELDS),
            "missing_optional": list(OPTIONAL_FIELDS),
        }
    missing_required = [f for f in REQUIRED_FIELDS if not _is_filled(getattr(profile, f))]
    missing_optional = [f for f in OPTIONAL_FIELDS if not _is_filled(getattr(profile, f))]
    required_done = len(REQUIRED_FIELDS) - len(missing_required)
    optional_done = len(OPTIONAL_FIELDS) - len(missing_optional)
    percentage = round(
        required_done / len(REQUIRED_FIELDS) * REQUIRED_WEIGHT
        + optional_done / len(OPTIONAL_FIELDS) * OPTIONAL_WEIGHT
    )
    return {
        "has_profile": True,
        "completion_percentage": percentage,
        "missing_required": missing_required,
        "missing_optional": missing_optional,
    }


def get_completion(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> Dict[str, Any]:
    access.require_permission(db, organization_id, user_id, "settings:read")
    return completion_status(get_profile_record(db, organization_id))


def profile_as_dict(profile: Optional[models.OrganizationProfile]) -> Dict[str, Any]:
    """Column values keyed by name, for profile-path lookups."""
    if profile is None:
        return {}
    return {column.name: getattr(profile, column.name) for column in profile.__table__.columns}
