"""
Billing repository functions: subscriptions, monthly usage and trial warnings.
"""
from __future__ import annotations

import uuid
from typing import Any, Optional
from sqlalchemy.orm import Session

from compliance.db import models

USAGE_FIELDS = (
    "deadlines_created",
    "documents_uploaded",
    "storage_used_bytes",
    "form_pre_fills",
    "alerts_sent",
)


def get_subscription(db: Session, organization_id: uuid.UUID) -> Optional[models.Subscription]:
    return (
        db.query(models.Subscription)
        .filter(models.Subscription.organization_id == organization_id)
        .first()
    )


def upsert_subscription(db: Session, organization_id: uuid.UUID, **fields: Any) -> models.Subscription:
    subscription = get_subscription(db, organization_id)
    if subscription is None:
        subscription = models.Subscription(organization_id=organization_id, **fields)
        db.add(subscription)
    else:
        for key, value in fields.items():
            setattr(subscription, key, value)
    db.flush()
    return subscription


def get_usage(db: Session, organization_id: uuid.UUID, month: str) -> Optional[models.Usage]:
    return (
        db.query(models.Usage)
        .filter(models.Usage.organization_id == organization_id, models.Usage.month == month)
        .first()
    )


def get_or_create_usage(db: Session, organization_id: uuid.UUID, month: str) -> models.Usage:
    usage = get_usage(db, organization_id, month)
    if usage is None:
        usage = models.Usage(
            organization_id=organization_id,
            month=month,
            **{field: 0 for field in USAGE_FIELDS},
        )
        db.add(usage)
        db.flush()
    return usage


def increment_usage(db: Session, organization_id: uuid.UUID, month: str, field: str, amount: int = 1) -> models.Usage:
    if field not in USAGE_FIELDS:
        raise ValueError(f"Unknown usage field '{field}'")
    usage = get_or_create_usage(db, organization_id, month)
    setattr(usage, field, (getattr(usage, field) or 0) + amount)
    db.flush()
    return usage


def has_trial_warning(db: Session, organization_id: uuid.UUID, days_remaining: int) -> bool:
    return (
        db.query(models.TrialWarning)
        .filter(
            models.TrialWarning.organization_id == organization_id,
            models.TrialWarning.days_remaining == days_remaining,
        )
        .first()
        is not None
    )


def add_trial_warning(db: Session, organization_id: uuid.UUID, days_remaining: int) -> models.TrialWarning:
    warning = models.TrialWarning(organization_id=organization_id, days_remaining=days_remaining)
    db.add(warning)
    db.flush()
    return warning
