import uuid
from datetime import datetime
from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict

PlanName = Literal["starter", "professional", "business"]
BillingInterval = Literal["monthly", "yearly"]


class PlanLimits(BaseModel):
    users: int
    deadlines: int
    storage_gb: int
    sms_alerts: bool
    form_pre_fills: int


class Plan(BaseModel):
    name: str
    display_name: str
    monthly_price: int
    yearly_price: int
    limits: PlanLimits


class Subscription(BaseModel):
    id: Optional[uuid.UUID] = None
    organization_id: uuid.UUID
    plan: str
    billing_interval: str
    status: str
    current_period_end: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class SubscriptionDetails(BaseModel):
    subscription: Optional[Subscription] = None
    plan: Plan


class SubscriptionChange(BaseModel):
    plan: PlanName
    billing_interval: BillingInterval = "monthly"


class Usage(BaseModel):
    organization_id: uuid.UUID
    month: str
    deadlines_created: int
    documents_uploaded: int
    storage_used_bytes: int
    form_pre_fills: int
    alerts_sent: int
    model_config = ConfigDict(from_attributes=True)


class LimitCheck(BaseModel):
    allowed: bool
    remaining: Union[int, Literal["unlimited"]]
    limit: Union[int, Literal["unlimited"]]
    current: float


class TrialStatus(BaseModel):
    is_trialing: bool
    days_remaining: int
    trial_end: Optional[datetime] = None
    plan: str
