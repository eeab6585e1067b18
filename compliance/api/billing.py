"""
Billing API endpoints: plan catalog, subscription state, usage, limits
and trial status. Payment provider webhooks are handled elsewhere.
"""
from typing import List
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.db import schemas
from compliance.api.deps import get_current_user_context
from compliance.services import access, billing_service


router = APIRouter(tags=["billing"])


@router.get("/billing/plans", response_model=List[schemas.Plan])
def list_plans():
    return [plan.to_dict() for plan in billing_service.PLANS.values()]


@router.get("/organizations/{org_id}/billing/subscription", response_model=schemas.SubscriptionDetails)
def get_subscription(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_permission(db, org_id, user.id, "billing:read")
    return billing_service.get_subscription_details(db, org_id)


@router.put("/organizations/{org_id}/billing/subscription", response_model=schemas.Subscription)
def change_subscription(
    org_id: uuid.UUID,
    payload: schemas.SubscriptionChange,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Start a subscription, or switch plan/interval on the existing one."""
    user, _ = user_context
    access.require_permission(db, org_id, user.id, "billing:write")
    if billing_service.get_subscription(db, org_id) is None:
        return billing_service.create_subscription(db, org_id, payload.plan, payload.billing_interval)
    return billing_service.update_subscription(
        db, org_id, plan=payload.plan, billing_interval=payload.billing_interval
    )


@router.post("/organizations/{org_id}/billing/subscription/cancel", response_model=schemas.Subscription)
def cancel_subscription(
    org_id: uuid.UUID,
    at_period_end: bool = True,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_permission(db, org_id, user.id, "billing:write")
    return billing_service.cancel_subscription(db, org_id, at_period_end=at_period_end)


@router.get("/organizations/{org_id}/billing/usage", response_model=schemas.Usage)
def get_usage(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_permission(db, org_id, user.id, "billing:read")
    usage = billing_service.get_current_usage(db, org_id)
    db.commit()
    return usage


@router.get("/organizations/{org_id}/billing/limits/{limit_type}", response_model=schemas.LimitCheck)
def check_limit(
    org_id: uuid.UUID,
    limit_type: str,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_membership(db, org_id, user.id)
    return billing_service.check_limit(db, org_id, limit_type)


@router.get("/organizations/{org_id}/billing/trial", response_model=schemas.TrialStatus)
def get_trial_status(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    access.require_membership(db, org_id, user.id)
    return billing_service.get_trial_status(db, org_id)
