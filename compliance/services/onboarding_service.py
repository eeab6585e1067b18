"""
Onboarding checklist per organization and the reminder job that nudges
owners who stall partway through.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from compliance.db import crud, models
from compliance.db.models.base import now_utc
from compliance.errors import InvalidInput, NotFound
from compliance.utils.urls import get_app_base_url

logger = logging.getLogger(__name__)

ONBOARDING_STEPS = (
    "account_created",
    "org_setup",
    "template_imported",
    "alerts_configured",
    "first_deadline",
    "team_invited",
    "first_completion",
)

REMINDER_24H = "24h"
REMINDER_7D = "7d"
# Hours since last activity during which each reminder is due
REMINDER_WINDOWS = {
    REMINDER_24H: (24, 48),
    REMINDER_7D: (168, 192),
}


def _initial_steps() -> Dict[str, bool]:
    steps = {step: False for step in ONBOARDING_STEPS}
    steps["account_created"] = True
    return steps


def get_progress(db: Session, organization_id: uuid.UUID) -> Optional[models.OnboardingProgress]:
    return (
        db.query(models.OnboardingProgress)
        .filter(models.OnboardingProgress.organization_id == organization_id)
        .first()
    )


def get_progress_by_user(db: Session, user_id: uuid.UUID) -> List[models.OnboardingProgress]:
    return (
        db.query(models.OnboardingProgress)
        .filter(models.OnboardingProgress.user_id == user_id)
        .order_by(models.OnboardingProgress.created_at.asc())
        .all()
    )


def initialize_progress(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> models.OnboardingProgress:
    existing = get_progress(db, organization_id)
    if existing is not None:
        return existing
    now = now or now_utc()
    progress = models.OnboardingProgress(
        organization_id=organization_id,
        user_id=user_id,
        steps=_initial_steps(),
        last_activity_at=now,
        reminders_sent={},
        created_at=now,
    )
    db.add(progress)
    db.flush()
    return progress


def mark_step_complete(
    db: Session,
    organization_id: uuid.UUID,
    step: str,
    now: Optional[datetime] = None,
) -> bool:
    """Flag ``step`` done. Returns False when the org has no progress record."""
    if step not in ONBOARDING_STEPS:
        raise InvalidInput(f"Unknown onboarding step '{step}'", allowed=list(ONBOARDING_STEPS))
    progress = get_progress(db, organization_id)
    if progress is None:
        return False
    now = now or now_utc()
    # JSONB columns are not mutation-tracked; assign a fresh dict
    steps = dict(progress.steps or {})
    steps[step] = True
    progress.steps = steps
    progress.last_activity_at = now
    if progress.completed_at is None and all(steps.get(name) for name in ONBOARDING_STEPS):
        progress.completed_at = now
    db.flush()
    return True


def mark_complete(db: Session, organization_id: uuid.UUID, now: Optional[datetime] = None) -> models.OnboardingProgress:
    progress = get_progress(db, organization_id)
    if progress is None:
        raise NotFound("Onboarding progress not found")
    now = now or now_utc()
    progress.steps = {step: True for step in ONBOARDING_STEPS}
    progress.completed_at = now
    progress.last_activity_at = now
    db.commit()
    return progress


def reset_progress(db: Session, organization_id: uuid.UUID, now: Optional[datetime] = None) -> models.OnboardingProgress:
    progress = get_progress(db, organization_id)
    if progress is None:
        raise NotFound("Onboarding progress not found")
    progress.steps = _initial_steps()
    progress.completed_at = None
    progress.reminders_sent = {}
    progress.last_activity_at = now or now_utc()
    db.commit()
    return progress


def get_incomplete(progress: models.OnboardingProgress) -> List[str]:
    steps = progress.steps or {}
    return [step for step in ONBOARDING_STEPS if not steps.get(step)]


def _due_reminder(progress: models.OnboardingProgress, now: datetime) -> Optional[str]:
    hours = (now - progress.last_activity_at).total_seconds() / 3600
    sent = progress.reminders_sent or {}
    for reminder_type, (start, end) in REMINDER_WINDOWS.items():
        if start <= hours < end and reminder_type not in sent:
            return reminder_type
    return None


def send_onboarding_reminders(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    from compliance.services.notification_service import NotificationService

    now = now or now_utc()
    pending = (
        db.query(models.OnboardingProgress)
        .filter(models.OnboardingProgress.completed_at.is_(None))
        .all()
    )
    notifier = NotificationService(db)
    counts = {"processed": 0, "sent_24h": 0, "sent_7d": 0}
    for progress in pending:
        counts["processed"] += 1
        reminder_type = _due_reminder(progress, now)
        if reminder_type is None:
            continue
        user = crud.get_user(db, progress.user_id)
        org = db.query(models.Organization).filter(models.Organization.id == progress.organization_id).first()
        if user is None or org is None:
            continue
        notifier.send_email(
            template_name="onboarding_reminder",
            to_email=user.email,
            subject=f"Finish setting up {org.name}",
            context={
                "organization_name": org.name,
                "reminder_type": reminder_type,
                "incomplete_steps": get_incomplete(progress),
                "app_url": get_app_base_url(),
            },
            organization_id=org.id,
            user_id=user.id,
            event_type="onboarding_reminder",
        )
        sent = dict(progress.reminders_sent or {})
        sent[reminder_type] = now.isoformat()
        progress.reminders_sent = sent
        counts[f"sent_{reminder_type}"] += 1
    db.commit()
    logger.info("Onboarding reminders: %s", counts)
    return counts
