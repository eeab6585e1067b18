"""
Team management: members, invitations, role changes and ownership transfer.

Role changes follow the hierarchy in ``role_permissions``: nobody can touch
the owner except through ``transfer_ownership``, and every other change
requires the actor to outrank both the current and the requested role.
"""
from __future__ import annotations

import logging
import re
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from compliance import audit
from compliance.db import crud, models
from compliance.db.models.base import now_utc
from compliance.db.repositories import deadlines as repo_deadlines
from compliance.db.repositories import organizations as repo_orgs
from compliance.errors import Duplicate, Expired, Forbidden, InvalidInput, InvalidState, NotFound
from compliance.services import access, billing_service
from compliance.utils.role_permissions import (
    INVITABLE_ROLES,
    ROLE_ADMIN,
    ROLE_OWNER,
    can_manage_role,
)
from compliance.utils.urls import build_invite_link

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(days=7)
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _enforce_user_limit(db: Session, organization_id: uuid.UUID) -> None:
    billing_service.enforce_limit(
        db, organization_id, "users",
        "User limit reached ({limit} users on your plan). Upgrade to add more team members.",
    )


def member_count(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> int:
    org, _ = access.require_membership(db, organization_id, user_id)
    return billing_service.member_count(db, org)


def current_user_role(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> str:
    _, role = access.require_membership(db, organization_id, user_id)
    return role


def list_members(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> List[Dict[str, Any]]:
    org, _ = access.require_membership(db, organization_id, user_id)
    rows: List[Dict[str, Any]] = []
    seen = set()

    def _row(member_id: uuid.UUID, role: str, joined_at: Optional[datetime]):
        member = crud.get_user(db, member_id)
        if member is None:
            return
        seen.add(member_id)
        rows.append({
            "user_id": member.id,
            "email": member.email,
            "display_name": member.display_name,
            "role": role,
            "joined_at": joined_at,
            "deadline_count": repo_deadlines.count_active_assigned(db, org.id, member.id),
            "is_current_user": member.id == user_id,
        })

    for membership in repo_orgs.get_memberships(db, org.id):
        _row(membership.user_id, membership.role, membership.joined_at)
    if org.owner_user_id not in seen:
        _row(org.owner_user_id, ROLE_OWNER, org.created_at)
    return rows


# === Invitations ===

def invite(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    email: str,
    role: str,
    now: Optional[datetime] = None,
) -> models.OrganizationInvitation:
    if role not in INVITABLE_ROLES:
        raise InvalidInput(f"Invalid role '{role}'", allowed=sorted(INVITABLE_ROLES))
    access.require_org(db, organization_id)
    _enforce_user_limit(db, organization_id)
    org, actor_role = access.require_permission(db, organization_id, user_id, "users:invite")

    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise InvalidInput("Invalid email address", email=email)
    if not can_manage_role(actor_role, role):
        raise Forbidden(f"You cannot invite users with role '{role}'", role=role)
    if repo_orgs.get_pending_invitation_for_email(db, organization_id, email) is not None:
        raise Duplicate("Pending invitation already exists for this email", email=email)
    existing_user = crud.get_user_by_email(db, email)
    if existing_user is not None and access.get_role(db, org, existing_user.id) is not None:
        raise Duplicate("User is already a member of this organization", email=email)

    now = now or now_utc()
    invitation = repo_orgs.create_invitation(
        db,
        organization_id=organization_id,
        email=email,
        role=role,
        invited_by_user_id=user_id,
        expires_at=now + INVITATION_TTL,
        token=secrets.token_urlsafe(32),
    )
    audit.log_team(
        db,
        actor_user_id=user_id,
        organization_id=organization_id,
        action=audit.AuditAction.USER_INVITED,
        target_type=audit.AuditTarget.INVITATION,
        target_id=invitation.id,
        target_title=email,
        metadata={"email": email, "role": role},
    )

    from compliance.services import onboarding_service
    onboarding_service.mark_step_complete(db, organization_id, "team_invited", now=now)
    db.commit()

    _send_invitation(db, org, invitation, user_id, existing_user)
    logger.info("Invitation %s created for %s in org %s", invitation.id, email, organization_id)
    return invitation


def _send_invitation(
    db: Session,
    org: models.Organization,
    invitation: models.OrganizationInvitation,
    inviter_id: uuid.UUID,
    invitee: Optional[models.User],
) -> None:
    from compliance.services.notification_service import NotificationService

    inviter = crud.get_user(db, inviter_id)
    inviter_name = (inviter.display_name or inviter.email) if inviter else "A teammate"
    accept_url = build_invite_link(
        invitation_id=str(invitation.id), org_id=str(org.id), email=invitation.email, token=invitation.token
    )
    notifier = NotificationService(db)
    result = notifier.send_email(
        template_name="org_invitation",
        to_email=invitation.email,
        subject=f"You're invited to join {org.name}",
        context={
            "organization_name": org.name,
            "inviter_name": inviter_name,
            "role": invitation.role,
            "accept_url": accept_url,
            "expires_at": invitation.expires_at.strftime("%B %d, %Y"),
        },
        organization_id=org.id,
        user_id=invitee.id if invitee else None,
        event_type="org_invitation",
    )
    if not result.get("success"):
        logger.error("Failed to send invitation email for %s: %s", invitation.id, result.get("error"))
    if invitee is not None:
        notifier.notify(
            organization_id=org.id,
            user_id=invitee.id,
            type="invitation",
            title=f"Invitation to {org.name}",
            message=f"{inviter_name} invited you to join {org.name} as {invitation.role}.",
            data={"invitation_id": str(invitation.id), "accept_url": accept_url},
        )
    db.commit()


def list_pending_invitations(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> List[models.OrganizationInvitation]:
    access.require_permission(db, organization_id, user_id, "users:read")
    now = now or now_utc()
    return [
        invitation
        for invitation in repo_orgs.get_invitations(db, organization_id, status="pending")
        if invitation.expires_at > now
    ]


def _get_invitation(db: Session, organization_id: uuid.UUID, invitation_id: uuid.UUID) -> models.OrganizationInvitation:
    invitation = repo_orgs.get_invitation(db, invitation_id)
    if invitation is None or invitation.organization_id != organization_id:
        raise NotFound("Invitation not found", invitation_id=str(invitation_id))
    return invitation


def revoke_invitation(
    db: Session,
    organization_id: uuid.UUID,
    invitation_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> models.OrganizationInvitation:
    access.require_permission(db, organization_id, user_id, "users:invite")
    invitation = _get_invitation(db, organization_id, invitation_id)
    if invitation.status != "pending":
        raise InvalidState(f"Invitation is already {invitation.status}", status=invitation.status)
    invitation.status = "revoked"
    invitation.revoked_at = now or now_utc()
    audit.log_team(
        db,
        actor_user_id=user_id,
        organization_id=organization_id,
        action=audit.AuditAction.INVITATION_REVOKED,
        target_type=audit.AuditTarget.INVITATION,
        target_id=invitation.id,
        target_title=invitation.email,
    )
    db.commit()
    return invitation


def accept_invitation(
    db: Session,
    organization_id: uuid.UUID,
    invitation_id: uuid.UUID,
    user: models.User,
    token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.OrganizationMembership:
    now = now or now_utc()
    invitation = _get_invitation(db, organization_id, invitation_id)
    token_ok = token is not None and invitation.token is not None and secrets.compare_digest(token, invitation.token)
    if not token_ok and invitation.email.lower() != (user.email or "").lower():
        raise Forbidden("Invitation is for a different user")
    if invitation.status != "pending":
        raise InvalidState(f"Invitation is already {invitation.status}", status=invitation.status)
    if invitation.expires_at <= now:
        invitation.status = "expired"
        db.commit()
        raise Expired("Invitation has expired", expired_at=invitation.expires_at.isoformat())

    org = access.require_org(db, organization_id)
    _enforce_user_limit(db, organization_id)
    if access.get_role(db, org, user.id) is not None:
        raise Duplicate("You are already a member of this organization")

    membership = repo_orgs.add_membership(
        db,
        organization_id=organization_id,
        user_id=user.id,
        role=invitation.role,
        invited_by=invitation.invited_by_user_id,
    )
    invitation.status = "accepted"
    invitation.accepted_at = now
    invitation.accepted_by = user.id
    audit.log_team(
        db,
        actor_user_id=user.id,
        organization_id=organization_id,
        action=audit.AuditAction.USER_JOINED,
        target_id=user.id,
        target_title=user.email,
        metadata={"role": invitation.role, "invitation_id": str(invitation.id)},
    )
    db.commit()
    return membership


# === Members ===

def update_role(
    db: Session,
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    user_id: uuid.UUID,
    new_role: str,
) -> models.OrganizationMembership:
    org, actor_role = access.require_permission(db, organization_id, user_id, "users:remove")
    if member_id == org.owner_user_id:
        raise Forbidden("Cannot change the owner's role. Transfer ownership instead")
    membership = repo_orgs.get_membership(db, organization_id, member_id)
    if membership is None:
        raise NotFound("Member not found", user_id=str(member_id))
    if member_id == user_id and actor_role != ROLE_OWNER:
        raise Forbidden("Cannot change your own role")
    if not can_manage_role(actor_role, membership.role) or not can_manage_role(actor_role, new_role):
        raise Forbidden(f"You cannot change a {membership.role} to {new_role}", role=actor_role)

    old_role = membership.role
    membership.role = new_role
    member = crud.get_user(db, member_id)
    audit.log_team(
        db,
        actor_user_id=user_id,
        organization_id=organization_id,
        action=audit.AuditAction.ROLE_CHANGED,
        target_id=member_id,
        target_title=member.email if member else None,
        metadata={"from": old_role, "to": new_role},
    )

    from compliance.services.notification_service import NotificationService
    NotificationService(db).notify(
        organization_id=organization_id,
        user_id=member_id,
        type="role_changed",
        title="Your role changed",
        message=f"Your role in {org.name} is now {new_role}.",
        data={"from": old_role, "to": new_role},
    )
    db.commit()
    return membership


def _remove(db: Session, org: models.Organization, membership: models.OrganizationMembership) -> int:
    unassigned = repo_deadlines.unassign_user(db, org.id, membership.user_id)
    repo_orgs.delete_membership(db, membership)
    return unassigned


def remove_member(db: Session, organization_id: uuid.UUID, member_id: uuid.UUID, user_id: uuid.UUID) -> None:
    org, actor_role = access.require_permission(db, organization_id, user_id, "users:remove")
    if member_id == org.owner_user_id:
        raise Forbidden("Cannot remove the organization owner")
    if member_id == user_id:
        raise Forbidden("Cannot remove yourself; leave the organization instead")
    membership = repo_orgs.get_membership(db, organization_id, member_id)
    if membership is None:
        raise NotFound("Member not found", user_id=str(member_id))
    if not can_manage_role(actor_role, membership.role):
        raise Forbidden(f"You cannot remove a {membership.role}", role=actor_role)

    member = crud.get_user(db, member_id)
    unassigned = _remove(db, org, membership)
    audit.log_team(
        db,
        actor_user_id=user_id,
        organization_id=organization_id,
        action=audit.AuditAction.USER_REMOVED,
        target_id=member_id,
        target_title=member.email if member else None,
        metadata={"role": membership.role, "unassigned_deadlines": unassigned},
    )
    db.commit()


def leave_organization(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> None:
    org = access.require_org(db, organization_id)
    if org.owner_user_id == user_id:
        raise Forbidden("The owner cannot leave the organization. Transfer ownership first")
    membership = repo_orgs.get_membership(db, organization_id, user_id)
    if membership is None:
        raise NotFound("Not a member of this organization")
    unassigned = _remove(db, org, membership)
    member = crud.get_user(db, user_id)
    audit.log_team(
        db,
        actor_user_id=user_id,
        organization_id=organization_id,
        action=audit.AuditAction.USER_REMOVED,
        target_id=user_id,
        target_title=member.email if member else None,
        metadata={"left": True, "unassigned_deadlines": unassigned},
    )
    db.commit()


def transfer_ownership(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    new_owner_id: uuid.UUID,
) -> models.Organization:
    org = access.require_org(db, organization_id)
    if org.owner_user_id != user_id:
        raise Forbidden("Only the owner can transfer ownership")
    if new_owner_id == user_id:
        raise InvalidInput("You already own this organization")
    new_membership = repo_orgs.get_membership(db, organization_id, new_owner_id)
    if new_membership is None:
        raise InvalidInput("New owner must already be a member of the organization", user_id=str(new_owner_id))

    new_membership.role = ROLE_OWNER
    org.owner_user_id = new_owner_id
    previous = repo_orgs.get_membership(db, organization_id, user_id)
    if previous is None:
        repo_orgs.add_membership(db, organization_id=organization_id, user_id=user_id, role=ROLE_ADMIN)
    else:
        previous.role = ROLE_ADMIN

    new_owner = crud.get_user(db, new_owner_id)
    audit.log_team(
        db,
        actor_user_id=user_id,
        organization_id=organization_id,
        action=audit.AuditAction.OWNERSHIP_TRANSFERRED,
        target_type=audit.AuditTarget.ORGANIZATION,
        target_id=organization_id,
        target_title=org.name,
        metadata={"from": str(user_id), "to": str(new_owner_id), "new_owner_email": new_owner.email if new_owner else None},
    )
    db.commit()
    logger.info("Ownership of org %s transferred from %s to %s", organization_id, user_id, new_owner_id)
    return org
