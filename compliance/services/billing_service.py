"""
Plans, subscriptions, usage metering and trial handling.

Payment-provider webhooks live outside this service; the functions here
are what those handlers (and the API) call to move a subscription along.
"""
from __future__ import annotations

import logging
import math
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from compliance.db import models
from compliance.db.models.base import now_utc
from compliance.db.repositories import billing as repo_billing
from compliance.db.repositories import deadlines as repo_deadlines
from compliance.db.repositories import documents as repo_documents
from compliance.db.repositories import organizations as repo_orgs
from compliance.errors import InvalidInput, LimitExceeded, NotFound

logger = logging.getLogger(__name__)

UNLIMITED = -1
GB = 1024 ** 3
TRIAL_DAYS = 14
DEFAULT_PLAN = "professional"
TRIAL_WARNING_DAYS = (7, 3, 1, 0)

SUBSCRIPTION_STATUSES = (
    "trialing",
    "active",
    "past_due",
    "canceled",
    "unpaid",
    "incomplete",
    "incomplete_expired",
    "paused",
)


@dataclass(frozen=True)
class PlanDefinition:
    name: str
    display_name: str
    monthly_price: int
    yearly_price: int
    users: int
    deadlines: int
    storage_gb: int
    sms_alerts: bool
    form_pre_fills: int

    def limits(self) -> Dict[str, Any]:
        return {
            "users": self.users,
            "deadlines": self.deadlines,
            "storage_gb": self.storage_gb,
            "sms_alerts": self.sms_alerts,
            "form_pre_fills": self.form_pre_fills,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "monthly_price": self.monthly_price,
            "yearly_price": self.yearly_price,
            "limits": self.limits(),
        }


PLANS: Dict[str, PlanDefinition] = {
    "starter": PlanDefinition("starter", "Starter", 49, 490, 1, 25, 1, False, 0),
    "professional": PlanDefinition("professional", "Professional", 149, 1490, 5, UNLIMITED, 10, True, 10),
    "business": PlanDefinition("business", "Business", 299, 2990, 15, UNLIMITED, 50, True, UNLIMITED),
}

LIMIT_TYPES = ("deadlines", "storage", "form_pre_fills", "users")


def get_plan(plan_name: str) -> PlanDefinition:
    try:
        return PLANS[plan_name]
    except KeyError:
        raise InvalidInput(f"Unknown plan '{plan_name}'", allowed=list(PLANS))


def get_price_id(plan_name: str, interval: str) -> Optional[str]:
    """Stripe price id from env, e.g. STRIPE_PRICE_PROFESSIONAL_MONTHLY."""
    return os.getenv(f"STRIPE_PRICE_{plan_name.upper()}_{interval.upper()}")


def current_month(now: Optional[datetime] = None) -> str:
    return (now or now_utc()).strftime("%Y-%m")


def get_subscription(db: Session, organization_id: uuid.UUID) -> Optional[models.Subscription]:
    return repo_billing.get_subscription(db, organization_id)


def _require_subscription(db: Session, organization_id: uuid.UUID) -> models.Subscription:
    subscription = repo_billing.get_subscription(db, organization_id)
    if subscription is None:
        raise NotFound("No subscription found", organization_id=str(organization_id))
    return subscription


def get_active_plan(db: Session, organization_id: uuid.UUID) -> PlanDefinition:
    subscription = repo_billing.get_subscription(db, organization_id)
    if subscription is None:
        return PLANS[DEFAULT_PLAN]
    return PLANS.get(subscription.plan, PLANS[DEFAULT_PLAN])


def get_subscription_details(db: Session, organization_id: uuid.UUID) -> Dict[str, Any]:
    return {
        "subscription": repo_billing.get_subscription(db, organization_id),
        "plan": get_active_plan(db, organization_id).to_dict(),
    }


def create_subscription(
    db: Session,
    organization_id: uuid.UUID,
    plan: str,
    billing_interval: str = "monthly",
    *,
    stripe_customer_id: Optional[str] = None,
    stripe_subscription_id: Optional[str] = None,
    trial: bool = True,
    now: Optional[datetime] = None,
) -> models.Subscription:
    get_plan(plan)
    now = now or now_utc()
    fields: Dict[str, Any] = {
        "plan": plan,
        "billing_interval": billing_interval,
        "stripe_price_id": get_price_id(plan, billing_interval),
        "stripe_customer_id": stripe_customer_id,
        "stripe_subscription_id": stripe_subscription_id,
        "current_period_start": now,
        "current_period_end": now + timedelta(days=365 if billing_interval == "yearly" else 30),
        "canceled_at": None,
        "cancel_at_period_end": False,
    }
    if trial:
        fields.update(status="trialing", trial_start=now, trial_end=now + timedelta(days=TRIAL_DAYS))
    else:
        fields.update(status="active", trial_start=None, trial_end=None)
    subscription = repo_billing.upsert_subscription(db, organization_id, **fields)
    db.commit()
    logger.info("Subscription %s created for org %s (%s)", plan, organization_id, subscription.status)
    return subscription


def update_subscription(db: Session, organization_id: uuid.UUID, **fields: Any) -> models.Subscription:
    if "plan" in fields:
        get_plan(fields["plan"])
        fields.setdefault(
            "stripe_price_id",
            get_price_id(fields["plan"], fields.get("billing_interval", "monthly")),
        )
    if "status" in fields and fields["status"] not in SUBSCRIPTION_STATUSES:
        raise InvalidInput(f"Invalid subscription status '{fields['status']}'")
    subscription = _require_subscription(db, organization_id)
    for key, value in fields.items():
        setattr(subscription, key, value)
    db.commit()
    return subscription


def cancel_subscription(db: Session, organization_id: uuid.UUID, *, at_period_end: bool = False, now: Optional[datetime] = None):
    now = now or now_utc()
    subscription = _require_subscription(db, organization_id)
    if at_period_end:
        subscription.cancel_at_period_end = True
    else:
        subscription.status = "canceled"
        subscription.canceled_at = now
    db.commit()
    logger.info("Subscription canceled for org %s (at_period_end=%s)", organization_id, at_period_end)
    return subscription


def mark_payment_failed(db: Session, organization_id: uuid.UUID) -> models.Subscription:
    from compliance.services.notification_service import NotificationService

    subscription = _require_subscription(db, organization_id)
    subscription.status = "past_due"
    org = repo_orgs.get_organization(db, organization_id)
    if org is not None:
        NotificationService(db).notify(
            organization_id=org.id,
            user_id=org.owner_user_id,
            type="payment_failed",
            title="Payment failed",
            message="We could not process your latest payment. Please update your billing details.",
        )
    db.commit()
    logger.warning("Payment failed for org %s; subscription marked past_due", organization_id)
    return subscription


def get_current_usage(db: Session, organization_id: uuid.UUID, now: Optional[datetime] = None) -> models.Usage:
    usage = repo_billing.get_or_create_usage(db, organization_id, current_month(now))
    return usage


def increment_usage(db: Session, organization_id: uuid.UUID, field: str, amount: int = 1, now: Optional[datetime] = None):
    try:
        return repo_billing.increment_usage(db, organization_id, current_month(now), field, amount)
    except ValueError as exc:
        raise InvalidInput(str(exc))


def member_count(db: Session, organization: models.Organization) -> int:
    count = repo_orgs.count_memberships(db, organization.id)
    if repo_orgs.get_membership(db, organization.id, organization.owner_user_id) is None:
        count += 1
    return count


def check_limit(
    db: Session,
    organization_id: uuid.UUID,
    limit_type: str,
    *,
    additional_bytes: int = 0,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Return ``{allowed, remaining, limit, current}`` for one plan limit.

    ``limit`` and ``remaining`` are the string ``"unlimited"`` for
    uncapped plans. Storage is reported in whole gigabytes.
    """
    if limit_type not in LIMIT_TYPES:
        raise InvalidInput(f"Unknown limit type '{limit_type}'", allowed=list(LIMIT_TYPES))
    plan = get_active_plan(db, organization_id)

    if limit_type == "deadlines":
        limit = plan.deadlines
        current: float = repo_deadlines.count_active(db, organization_id)
        allowed = limit == UNLIMITED or current < limit
    elif limit_type == "form_pre_fills":
        limit = plan.form_pre_fills
        usage = repo_billing.get_usage(db, organization_id, current_month(now))
        current = usage.form_pre_fills if usage else 0
        allowed = limit == UNLIMITED or current < limit
    elif limit_type == "users":
        limit = plan.users
        org = repo_orgs.get_organization(db, organization_id)
        current = member_count(db, org) if org else 0
        allowed = limit == UNLIMITED or current < limit
    else:
        limit = plan.storage_gb
        used = repo_documents.storage_used_bytes(db, organization_id)
        current = math.ceil(used / GB) if used else 0
        allowed = limit == UNLIMITED or (used + additional_bytes) / GB <= limit

    if limit == UNLIMITED:
        return {"allowed": True, "remaining": "unlimited", "limit": "unlimited", "current": current}
    return {
        "allowed": allowed,
        "remaining": max(0, limit - current),
        "limit": limit,
        "current": current,
    }


def enforce_limit(db: Session, organization_id: uuid.UUID, limit_type: str, message: str, **kwargs) -> Dict[str, Any]:
    """check_limit that raises LimitExceeded; ``{limit}`` in the message is filled in."""
    result = check_limit(db, organization_id, limit_type, **kwargs)
    if not result["allowed"]:
        raise LimitExceeded(
            message.format(limit=result["limit"]),
            limit_type=limit_type,
            current=result["current"],
            limit=result["limit"],
        )
    return result


def plan_allows_sms(db: Session, organization_id: uuid.UUID) -> bool:
    return get_active_plan(db, organization_id).sms_alerts


def get_trial_status(db: Session, organization_id: uuid.UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or now_utc()
    subscription = repo_billing.get_subscription(db, organization_id)
    if subscription is None:
        org = repo_orgs.get_organization(db, organization_id)
        trial_end = (org.created_at if org and org.created_at else now) + timedelta(days=TRIAL_DAYS)
        plan = DEFAULT_PLAN
    elif subscription.status == "trialing" and subscription.trial_end is not None:
        trial_end = subscription.trial_end
        plan = subscription.plan
    else:
        return {"is_trialing": False, "days_remaining": 0, "trial_end": subscription.trial_end, "plan": subscription.plan}

    days_remaining = max(0, math.ceil((trial_end - now).total_seconds() / 86400))
    return {
        "is_trialing": trial_end > now,
        "days_remaining": days_remaining,
        "trial_end": trial_end,
        "plan": plan,
    }


def send_trial_warnings(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    """Email owners whose trial ends in 7, 3, 1 or 0 days; each warning is sent once."""
    from compliance.services.notification_service import NotificationService

    now = now or now_utc()
    notifier = NotificationService(db)
    checked = 0
    sent = 0
    for org in repo_orgs.list_active_organizations(db):
        subscription = repo_billing.get_subscription(db, org.id)
        if subscription is not None and subscription.status != "trialing":
            continue
        status = get_trial_status(db, org.id, now)
        # Trials that ended more than a day ago were already warned at 0 days
        if status["trial_end"] is None or status["trial_end"] <= now - timedelta(days=1):
            continue
        checked += 1
        days = status["days_remaining"]
        if days not in TRIAL_WARNING_DAYS or repo_billing.has_trial_warning(db, org.id, days):
            continue
        owner = db.query(models.User).filter(models.User.id == org.owner_user_id).first()
        if owner is None:
            continue
        notifier.send_email(
            template_name="trial_warning",
            to_email=owner.email,
            subject="Your trial ends today" if days == 0 else f"Your trial ends in {days} day{'s' if days != 1 else ''}",
            context={"organization_name": org.name, "days_remaining": days, "plan": status["plan"]},
            organization_id=org.id,
            user_id=owner.id,
            event_type="trial_warning",
        )
        repo_billing.add_trial_warning(db, org.id, days)
        sent += 1
    db.commit()
    logger.info("Trial warnings: checked=%s sent=%s", checked, sent)
    return {"checked": checked, "sent": sent}
