"""
Deadline lifecycle: create, update, complete (with recurrence roll-over),
soft delete, restore and permanent delete.

Every operation is scoped to one organization and checked against the
caller's role before touching rows. Each mutation writes a per-deadline
audit entry and an organization activity record, and keeps the deadline's
pending alerts in step with its due date.
"""
from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from compliance import audit
from compliance.db import models, schemas
from compliance.db.models.base import now_utc
from compliance.db.repositories import deadlines as repo_deadlines
from compliance.errors import Forbidden, InvalidInput, InvalidState, NotFound
from compliance.services import access, alert_service, billing_service
from compliance.utils.dates import (
    DEADLINE_STATUSES,
    DUE_SOON_DAYS,
    STATUS_OVERDUE,
    calculate_next_due_date,
    ensure_utc,
    get_deadline_status,
    validate_recurrence,
)
from compliance.utils.role_permissions import has_permission

logger = logging.getLogger(__name__)

TRASH_RETENTION_DAYS = 30

# Fields copied onto the next occurrence of a recurring deadline
_RECURRENCE_COPY_FIELDS = (
    "organization_id",
    "title",
    "description",
    "category",
    "recurrence",
    "assigned_to",
    "created_by",
    "alert_days",
    "importance",
    "template_id",
    "template_deadline_id",
    "notes",
)

# Changes to these fields move the alert schedule
_SCHEDULE_FIELDS = ("due_date", "alert_days", "assigned_to")


def due_soon_days_for(organization: Optional[models.Organization]) -> int:
    settings = (organization.settings or {}) if organization is not None else {}
    try:
        return int(settings.get("due_soon_days", DUE_SOON_DAYS))
    except (TypeError, ValueError):
        return DUE_SOON_DAYS


def annotate_status(deadlines, now: datetime, due_soon_days: int = DUE_SOON_DAYS):
    """Attach the computed ``status`` attribute read by the response schema."""
    for deadline in deadlines:
        deadline.status = get_deadline_status(deadline.due_date, deadline.completed_at, now, due_soon_days)
    return deadlines


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _get_or_404(db: Session, organization_id: uuid.UUID, deadline_id: uuid.UUID) -> models.Deadline:
    deadline = repo_deadlines.get_deadline(db, organization_id, deadline_id)
    if deadline is None:
        raise NotFound("Deadline not found", deadline_id=str(deadline_id))
    return deadline


def _check_assignee(db: Session, organization: models.Organization, assigned_to: Optional[uuid.UUID]) -> None:
    if assigned_to is not None and access.get_role(db, organization, assigned_to) is None:
        raise InvalidInput("Assignee is not a member of this organization", assigned_to=str(assigned_to))


# === Queries ===

def list_deadlines(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    status: Optional[str] = None,
    category: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    include_deleted: bool = False,
    now: Optional[datetime] = None,
) -> List[models.Deadline]:
    if status is not None and status not in DEADLINE_STATUSES:
        raise InvalidInput(f"Invalid status filter '{status}'", allowed=list(DEADLINE_STATUSES))
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:read")
    now = now or now_utc()
    due_soon_days = due_soon_days_for(org)
    rows = repo_deadlines.list_deadlines(
        db,
        organization_id,
        category=category,
        assigned_to=assigned_to,
        include_deleted=include_deleted,
    )
    annotate_status(rows, now, due_soon_days)
    if status is not None:
        rows = [row for row in rows if row.status == status]
    return rows


def get_deadline(
    db: Session,
    organization_id: uuid.UUID,
    deadline_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> models.Deadline:
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:read")
    deadline = _get_or_404(db, organization_id, deadline_id)
    annotate_status([deadline], now or now_utc(), due_soon_days_for(org))
    return deadline


def upcoming(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    days: int = 30,
    now: Optional[datetime] = None,
) -> List[models.Deadline]:
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:read")
    now = now or now_utc()
    rows = repo_deadlines.list_deadlines(
        db, organization_id, completed=False, due_from=now, due_to=now + timedelta(days=days)
    )
    return annotate_status(rows, now, due_soon_days_for(org))


def overdue(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> List[models.Deadline]:
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:read")
    now = now or now_utc()
    rows = repo_deadlines.list_deadlines(db, organization_id, completed=False, due_to=now)
    annotate_status(rows, now, due_soon_days_for(org))
    return [row for row in rows if row.status == STATUS_OVERDUE]


def by_category(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Dict[str, List[models.Deadline]]:
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:read")
    rows = annotate_status(repo_deadlines.list_deadlines(db, organization_id), now or now_utc(), due_soon_days_for(org))
    grouped: Dict[str, List[models.Deadline]] = {}
    for row in rows:
        grouped.setdefault(row.category, []).append(row)
    return grouped


def trash(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> List[models.Deadline]:
    access.require_permission(db, organization_id, user_id, "deadlines:read")
    return repo_deadlines.list_deadlines(db, organization_id, only_deleted=True)


def audit_history(db: Session, organization_id: uuid.UUID, deadline_id: uuid.UUID, user_id: uuid.UUID):
    access.require_permission(db, organization_id, user_id, "deadlines:read")
    _get_or_404(db, organization_id, deadline_id)
    return repo_deadlines.get_audit_entries(db, deadline_id)


# === Mutations ===

def create_deadline_record(
    db: Session,
    organization: models.Organization,
    user_id: Optional[uuid.UUID],
    fields: Dict[str, Any],
    *,
    schedule_alerts: bool = True,
    now: Optional[datetime] = None,
) -> models.Deadline:
    """Insert one deadline with its limit check, usage, audit and alerts.

    Does not commit; ``create_deadline`` and template import wrap it.
    """
    now = now or now_utc()
    billing_service.enforce_limit(
        db, organization.id, "deadlines",
        "Deadline limit reached ({limit} active deadlines on your plan)",
    )
    validate_recurrence(fields.get("recurrence"))
    fields["due_date"] = ensure_utc(fields["due_date"])
    deadline = repo_deadlines.create_deadline(
        db,
        organization_id=organization.id,
        created_by=user_id,
        **fields,
    )
    billing_service.increment_usage(db, organization.id, "deadlines_created", now=now)
    repo_deadlines.add_audit_entry(db, deadline=deadline, action="created", user_id=user_id)
    audit.log_deadline(db, actor_user_id=user_id, deadline=deadline, action=audit.AuditAction.DEADLINE_CREATED)
    if schedule_alerts:
        alert_service.schedule_alerts_for_deadline(db, deadline, now=now)

    from compliance.services import onboarding_service
    onboarding_service.mark_step_complete(db, organization.id, "first_deadline", now=now)
    return deadline


def create_deadline(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: schemas.DeadlineCreate,
    now: Optional[datetime] = None,
) -> models.Deadline:
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:create")
    _check_assignee(db, org, payload.assigned_to)
    fields = payload.model_dump(exclude={"schedule_alerts", "recurrence", "metadata"})
    fields["recurrence"] = payload.recurrence.to_json() if payload.recurrence else None
    fields["metadata_json"] = payload.metadata
    deadline = create_deadline_record(db, org, user_id, fields, schedule_alerts=payload.schedule_alerts, now=now)
    db.commit()
    db.refresh(deadline)
    logger.info("Deadline %s created in org %s", deadline.id, organization_id)
    return annotate_status([deadline], now or now_utc(), due_soon_days_for(org))[0]


def update_deadline(
    db: Session,
    organization_id: uuid.UUID,
    deadline_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: schemas.DeadlineUpdate,
    now: Optional[datetime] = None,
) -> models.Deadline:
    org, _ = access.require_permission(db, organization_id, user_id, "deadlines:update")
    now = now or now_utc()
    deadline = _get_or_404(db, organization_id, deadline_id)
    if deadline.deleted_at is not None:
        raise InvalidState("Cannot update deleted deadline")

    updates = payload.model_dump(exclude_unset=True, exclude={"recurrence"})
    if "recurrence" in payload.model_fields_set:
        updates["recurrence"] = payload.recurrence.to_json() if payload.recurrence else None
    if "due_date" in updates:
        if updates["due_date"] is None:
            raise InvalidInput("due_date cannot be cleared")
        updates["due_date"] = ensure_utc(updates["due_date"])
    if "assigned_to" in updates:
        _check_assignee(db, org, updates["assigned_to"])

    changes: Dict[str, Dict[str, Any]] = {}
    for field, value in updates.items():
        current = getattr(deadline, field)
        if current != value:
            changes[field] = {"from": _jsonable(current), "to": _jsonable(value)}
            setattr(deadline, field, value)

    if changes:
        repo_deadlines.add_audit_entry(db, deadline=deadline, action="updated", user_id=user_id, changes=changes)
        audit.log_deadline(
            db,
            actor_user_id=user_id,
            deadline=deadline,
            action=audit.AuditAction.DEADLINE_UPDATED,
            metadata={"fields": sorted(changes)},
        )
        if deadline.completed_at is None and any(field in changes for field in _SCHEDULE_FIELDS):
            alert_service.reschedule_alerts(db, deadline, now=now)
    db.commit()
    db.refresh(deadline)
    return annotate_status([deadline], now, due_soon_days_for(org))[0]


def create_next_occurrence(
    db: Session,
    deadline: models.Deadline,
    completed_at: datetime,
    now: Optional[datetime] = None,
) -> Optional[models.Deadline]:
    """Roll a completed recurring deadline into its next instance."""
    next_due = calculate_next_due_date(deadline.due_date, deadline.recurrence, completed_at)
    if next_due is None:
        return None
    fields = {name: getattr(deadline, name) for name in _RECURRENCE_COPY_FIELDS}
    next_deadline = repo_deadlines.create_deadline(db, due_date=next_due, **fields)
    repo_deadlines.add_audit_entry(
        db,
        deadline=next_deadline,
        action="created",
        user_id=deadline.completed_by,
        changes={"source": "recurrence", "parent_id": str(deadline.id)},
    )
    alert_service.schedule_alerts_for_deadline(db, next_deadline, now=now)
    return next_deadline


def complete_deadline(
    db: Session,
    organization_id: uuid.UUID,
    deadline_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Tuple[models.Deadline, Optional[uuid.UUID]]:
    """Mark complete; returns the deadline and the id of its next occurrence."""
    org, role = access.require_membership(db, organization_id, user_id)
    deadline = _get_or_404(db, organization_id, deadline_id)
    is_assignee = deadline.assigned_to is not None and deadline.assigned_to == user_id
    allowed = has_permission(role, "deadlines:complete") or (
        is_assignee
        and has_permission(role, "deadlines:complete:own", user_id=user_id, resource_owner_id=deadline.assigned_to)
    )
    if not allowed:
        raise Forbidden("Permission denied: deadlines:complete", permission="deadlines:complete", role=role)
    if deadline.deleted_at is not None:
        raise InvalidState("Cannot complete deleted deadline")
    if deadline.completed_at is not None:
        raise InvalidState("Already completed")

    now = now or now_utc()
    deadline.completed_at = now
    deadline.completed_by = user_id
    repo_deadlines.add_audit_entry(db, deadline=deadline, action="completed", user_id=user_id)
    audit.log_deadline(db, actor_user_id=user_id, deadline=deadline, action=audit.AuditAction.DEADLINE_COMPLETED)
    alert_service.cancel_pending_alerts(db, deadline.id, reason="completed")

    next_deadline = create_next_occurrence(db, deadline, now, now=now)

    from compliance.services import onboarding_service
    onboarding_service.mark_step_complete(db, organization_id, "first_completion", now=now)

    db.commit()
    db.refresh(deadline)
    annotate_status([deadline], now, due_soon_days_for(org))
    if next_deadline is not None:
        logger.info("Deadline %s completed; next occurrence %s due %s", deadline.id, next_deadline.id, next_deadline.due_date)
    return deadline, next_deadline.id if next_deadline is not None else None


def soft_delete(
    db: Session,
    organization_id: uuid.UUID,
    deadline_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> models.Deadline:
    access.require_permission(db, organization_id, user_id, "deadlines:delete")
    deadline = _get_or_404(db, organization_id, deadline_id)
    if deadline.deleted_at is not None:
        raise InvalidState("Already deleted")
    deadline.deleted_at = now or now_utc()
    repo_deadlines.add_audit_entry(db, deadline=deadline, action="deleted", user_id=user_id)
    audit.log_deadline(db, actor_user_id=user_id, deadline=deadline, action=audit.AuditAction.DEADLINE_DELETED)
    alert_service.cancel_pending_alerts(db, deadline.id, reason="deleted")
    db.commit()
    db.refresh(deadline)
    return deadline


def restore(
    db: Session,
    organization_id: uuid.UUID,
    deadline_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> models.Deadline:
    access.require_permission(db, organization_id, user_id, "deadlines:delete")
    now = now or now_utc()
    deadline = _get_or_404(db, organization_id, deadline_id)
    if deadline.deleted_at is None:
        raise InvalidState("Not deleted")
    deadline.deleted_at = None
    repo_deadlines.add_audit_entry(db, deadline=deadline, action="restored", user_id=user_id)
    if deadline.completed_at is None and deadline.due_date > now:
        alert_service.schedule_alerts_for_deadline(db, deadline, now=now)
    db.commit()
    db.refresh(deadline)
    return deadline


def hard_delete(
    db: Session,
    organization_id: uuid.UUID,
    deadline_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> None:
    access.require_permission(db, organization_id, user_id, "deadlines:delete")
    now = now or now_utc()
    deadline = _get_or_404(db, organization_id, deadline_id)
    if deadline.deleted_at is None:
        raise InvalidState("Must soft-delete first")
    eligible_at = deadline.deleted_at + timedelta(days=TRASH_RETENTION_DAYS)
    if now < eligible_at:
        remaining = math.ceil((eligible_at - now).total_seconds() / 86400)
        raise InvalidState(f"Cannot permanently delete until {remaining} more days", days_remaining=remaining)
    repo_deadlines.delete_deadline(db, deadline)
    db.commit()
    logger.info("Deadline %s permanently deleted from org %s", deadline_id, organization_id)
