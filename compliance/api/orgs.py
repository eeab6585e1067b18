"""
Organizations API endpoints.

Manage organizations, memberships and invitations. Role enforcement and
activity logging live in the services; routes only translate HTTP.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import organization_service, team_service
from compliance.utils.role_permissions import get_assignable_roles, get_resolved_permissions


router = APIRouter(prefix="/organizations", tags=["organizations"])


class InvitationAccept(BaseModel):
    token: Optional[str] = None


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=schemas.Organization)
def create_organization(
    payload: schemas.OrganizationCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return organization_service.create_organization(db, user, payload)


@router.get("/", response_model=List[schemas.Organization])
def list_organizations(
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """List organizations where the user has membership (for organization switcher)."""
    user, _ = user_context
    return organization_service.list_organizations(db, user.id)


@router.get("/{org_id}", response_model=schemas.Organization)
def get_organization(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return organization_service.get_organization(db, org_id, user.id)


@router.put("/{org_id}", response_model=schemas.Organization)
def update_organization(
    org_id: uuid.UUID,
    payload: schemas.OrganizationUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return organization_service.update_organization(db, org_id, user.id, payload)


@router.get("/{org_id}/role")
def get_my_role(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    role = team_service.current_user_role(db, org_id, user.id)
    return {
        "role": role,
        "permissions": get_resolved_permissions(role),
        "assignable_roles": get_assignable_roles(role),
    }


# --- Members ---

@router.get("/{org_id}/members", response_model=List[schemas.OrganizationMember])
def list_members(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return team_service.list_members(db, org_id, user.id)


@router.put("/{org_id}/members/{member_user_id}/role")
def update_member_role(
    org_id: uuid.UUID,
    member_user_id: uuid.UUID,
    payload: schemas.OrganizationMemberRoleUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    membership = team_service.update_role(db, org_id, member_user_id, user.id, payload.role.value)
    return {"user_id": membership.user_id, "role": membership.role}


@router.delete("/{org_id}/members/{member_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    org_id: uuid.UUID,
    member_user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    team_service.remove_member(db, org_id, member_user_id, user.id)


@router.post("/{org_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_organization(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    team_service.leave_organization(db, org_id, user.id)


@router.post("/{org_id}/transfer-ownership", response_model=schemas.Organization)
def transfer_ownership(
    org_id: uuid.UUID,
    payload: schemas.OwnershipTransfer,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return team_service.transfer_ownership(db, org_id, user.id, payload.new_owner_user_id)


# --- Invitations ---

@router.post(
    "/{org_id}/invitations",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.OrganizationInvitation,
)
def create_invitation(
    org_id: uuid.UUID,
    payload: schemas.OrganizationInvitationCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return team_service.invite(db, org_id, user.id, payload.email, payload.role.value)


@router.get("/{org_id}/invitations", response_model=List[schemas.OrganizationInvitation])
def list_invitations(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return team_service.list_pending_invitations(db, org_id, user.id)


@router.post("/{org_id}/invitations/{invitation_id}/revoke", response_model=schemas.OrganizationInvitation)
def revoke_invitation(
    org_id: uuid.UUID,
    invitation_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    return team_service.revoke_invitation(db, org_id, invitation_id, user.id)


@router.post("/{org_id}/invitations/{invitation_id}/accept")
def accept_invitation(
    org_id: uuid.UUID,
    invitation_id: uuid.UUID,
    payload: Optional[InvitationAccept] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    membership = team_service.accept_invitation(
        db, org_id, invitation_id, user, token=payload.token if payload else None
    )
    return {
        "organization_id": membership.organization_id,
        "user_id": membership.user_id,
        "role": membership.role,
    }
