"""Organization creation and settings."""
from __future__ import annotations

import logging
import uuid
from typing import List

from sqlalchemy.orm import Session

from compliance import audit
from compliance.db import models, schemas
from compliance.db.repositories import organizations as repo_orgs
from compliance.services import access, onboarding_service

logger = logging.getLogger(__name__)


def create_organization(db: Session, user: models.User, payload: schemas.OrganizationCreate) -> models.Organization:
    settings = (payload.settings or schemas.OrganizationSettings()).model_dump()
    org = repo_orgs.create_organization(
        db,
        name=payload.name.strip(),
        industry=payload.industry,
        owner_user_id=user.id,
        settings=settings,
    )
    onboarding_service.initialize_progress(db, org.id, user.id)
    onboarding_service.mark_step_complete(db, org.id, "org_setup")
    audit.log(
        db,
        action=audit.AuditAction.SETTINGS_UPDATED,
        target_type=audit.AuditTarget.ORGANIZATION,
        target_id=org.id,
        target_title=org.name,
        actor_user_id=user.id,
        organization_id=org.id,
        metadata={"event": "organization_created", "industry": org.industry},
    )
    db.commit()
    db.refresh(org)
    logger.info("Organization %s created by %s", org.id, user.id)
    return org


def list_organizations(db: Session, user_id: uuid.UUID) -> List[models.Organization]:
    return repo_orgs.get_organizations_for_user(db, user_id)


def get_organization(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> models.Organization:
    org, _ = access.require_permission(db, organization_id, user_id, "settings:read")
    return org


def update_organization(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: schemas.OrganizationUpdate,
) -> models.Organization:
    org, _ = access.require_permission(db, organization_id, user_id, "settings:write")
    data = payload.model_dump(exclude_unset=True, exclude={"settings"})
    if payload.settings is not None:
        merged = dict(org.settings or {})
        merged.update(payload.settings.model_dump())
        data["settings"] = merged
    repo_orgs.update_organization(db, org, data)
    audit.log(
        db,
        action=audit.AuditAction.SETTINGS_UPDATED,
        target_type=audit.AuditTarget.ORGANIZATION,
        target_id=org.id,
        target_title=org.name,
        actor_user_id=user_id,
        organization_id=org.id,
        metadata={"fields": sorted(data)},
    )
    db.commit()
    db.refresh(org)
    return org
