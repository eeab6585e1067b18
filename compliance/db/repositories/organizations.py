"""
Organization repository functions.

Implements CRUD for organizations, memberships, and invitations.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from compliance.db import models


def create_organization(
    db: Session,
    *,
    name: str,
    owner_user_id: uuid.UUID,
    industry: Optional[str] = None,
    settings: Optional[Dict[str, Any]] = None,
) -> models.Organization:
    db_organization = models.Organization(
        name=name,
        industry=industry,
        owner_user_id=owner_user_id,
        settings=settings or {},
    )
    db.add(db_organization)
    db.flush()
    # Creator is recorded as an explicit owner membership too
    db.add(models.OrganizationMembership(
        organization_id=db_organization.id,
        user_id=owner_user_id,
        role='owner',
    ))
    db.flush()
    return db_organization


def get_organization(db: Session, organization_id: uuid.UUID) -> Optional[models.Organization]:
    return db.query(models.Organization).filter(models.Organization.id == organization_id).first()


def get_organizations_for_user(db: Session, user_id: uuid.UUID, skip: int = 0, limit: int = 100):
    member_org_ids = db.query(models.OrganizationMembership.organization_id).filter(
        models.OrganizationMembership.user_id == user_id
    )
    return (
        db.query(models.Organization)
        .filter(
            (models.Organization.id.in_(member_org_ids))
            | (models.Organization.owner_user_id == user_id)
        )
        .order_by(models.Organization.created_at.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def list_active_organizations(db: Session) -> List[models.Organization]:
    return db.query(models.Organization).filter(models.Organization.is_active.is_(True)).all()


def update_organization(db: Session, organization: models.Organization, data: Dict[str, Any]):
    for key, value in data.items():
        setattr(organization, key, value)
    db.flush()
    return organization


def get_membership(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID):
    return (
        db.query(models.OrganizationMembership)
        .filter(
            models.OrganizationMembership.organization_id == organization_id,
            models.OrganizationMembership.user_id == user_id,
        )
        .first()
    )


def get_memberships(db: Session, organization_id: uuid.UUID) -> List[models.OrganizationMembership]:
    return (
        db.query(models.OrganizationMembership)
        .filter(models.OrganizationMembership.organization_id == organization_id)
        .order_by(models.OrganizationMembership.joined_at.asc())
        .all()
    )


def count_memberships(db: Session, organization_id: uuid.UUID) -> int:
    return (
        db.query(func.count())
        .select_from(models.OrganizationMembership)
        .filter(models.OrganizationMembership.organization_id == organization_id)
        .scalar()
        or 0
    )


def add_membership(
    db: Session,
    *,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    role: str,
    invited_by: Optional[uuid.UUID] = None,
) -> models.OrganizationMembership:
    membership = models.OrganizationMembership(
        organization_id=organization_id,
        user_id=user_id,
        role=role,
        invited_by=invited_by,
    )
    db.add(membership)
    db.flush()
    return membership


def delete_membership(db: Session, membership: models.OrganizationMembership) -> None:
    db.delete(membership)
    db.flush()


def create_invitation(
    db: Session,
    *,
    organization_id: uuid.UUID,
    email: str,
    role: str,
    invited_by_user_id: uuid.UUID,
    expires_at: datetime,
    token: str,
) -> models.OrganizationInvitation:
    invitation = models.OrganizationInvitation(
        organization_id=organization_id,
        email=email,
        role=role,
        invited_by_user_id=invited_by_user_id,
        expires_at=expires_at,
        token=token,
        status='pending',
    )
    db.add(invitation)
    db.flush()
    return invitation


def get_invitation(db: Session, invitation_id: uuid.UUID) -> Optional[models.OrganizationInvitation]:
    return (
        db.query(models.OrganizationInvitation)
        .filter(models.OrganizationInvitation.id == invitation_id)
        .first()
    )


def get_pending_invitation_for_email(db: Session, organization_id: uuid.UUID, email: str):
    return (
        db.query(models.OrganizationInvitation)
        .filter(
            models.OrganizationInvitation.organization_id == organization_id,
            models.OrganizationInvitation.email == email,
            models.OrganizationInvitation.status == 'pending',
        )
        .first()
    )


def get_invitations(db: Session, organization_id: uuid.UUID, status: Optional[str] = None):
    query = db.query(models.OrganizationInvitation).filter(
        models.OrganizationInvitation.organization_id == organization_id
    )
    if status:
        query = query.filter(models.OrganizationInvitation.status == status)
    return query.order_by(models.OrganizationInvitation.created_at.desc()).all()
