"""
Tenant access checks shared by every service.

A caller's role in an organization comes from its membership row. The
organization owner is treated as ``owner`` even without a membership row,
and superadmins act with owner rights everywhere.
"""
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from compliance.db import crud, models
from compliance.db.repositories import organizations as repo_orgs
from compliance.errors import Forbidden, NotFound
from compliance.utils.role_permissions import ROLE_OWNER, has_permission


def require_org(db: Session, organization_id: uuid.UUID) -> models.Organization:
    org = repo_orgs.get_organization(db, organization_id)
    if org is None:
        raise NotFound("Organization not found", organization_id=str(organization_id))
    return org


def get_role(db: Session, organization: models.Organization, user_id: uuid.UUID) -> Optional[str]:
    membership = repo_orgs.get_membership(db, organization.id, user_id)
    if membership is not None:
        return membership.role
    if organization.owner_user_id == user_id:
        return ROLE_OWNER
    user = crud.get_user(db, user_id)
    if user is not None and user.is_superadmin:
        return ROLE_OWNER
    return None


def require_membership(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID):
    """Return ``(organization, role)`` or raise when the caller is not a member."""
    org = require_org(db, organization_id)
    role = get_role(db, org, user_id)
    if role is None:
        raise Forbidden("Not a member of this organization")
    return org, role


def require_permission(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    permission: str,
    resource_owner_id: Optional[uuid.UUID] = None,
):
    org, role = require_membership(db, organization_id, user_id)
    if not has_permission(role, permission, user_id=user_id, resource_owner_id=resource_owner_id):
        raise Forbidden(f"Permission denied: {permission}", permission=permission, role=role)
    return org, role
