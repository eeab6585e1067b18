import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

Channel = Literal["email", "sms", "push", "in_app"]


class Alert(BaseModel):
    id: uuid.UUID
    deadline_id: uuid.UUID
    organization_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    scheduled_for: datetime
    channel: str
    urgency: str
    status: str
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_via: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int
    snoozed_until: Optional[datetime] = None
    provider_message_id: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AlertPreferenceBase(BaseModel):
    early_channels: List[Channel] = Field(default_factory=lambda: ["email"])
    medium_channels: List[Channel] = Field(default_factory=lambda: ["email", "in_app"])
    high_channels: List[Channel] = Field(default_factory=lambda: ["email", "sms", "in_app"])
    critical_channels: List[Channel] = Field(default_factory=lambda: ["email", "sms", "in_app"])
    alert_days: List[int] = Field(default_factory=lambda: [30, 14, 7, 3, 1, 0])
    escalation_enabled: bool = True
    escalation_contacts: List[uuid.UUID] = Field(default_factory=list)
    phone_number: Optional[str] = None
    email_override: Optional[str] = None


class AlertPreferenceUpdate(AlertPreferenceBase):
    # Omit for organization-wide defaults
    user_id: Optional[uuid.UUID] = None


class AlertPreference(AlertPreferenceBase):
    id: Optional[uuid.UUID] = None
    organization_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    model_config = ConfigDict(from_attributes=True)


class AlertSnooze(BaseModel):
    until: datetime


class AlertAcknowledge(BaseModel):
    via: Literal["email_link", "sms_reply", "in_app_button"] = "in_app_button"


class TestAlertRequest(BaseModel):
    channel: Literal["email", "email_sms"] = "email"
    phone_number: Optional[str] = None


class AlertAuditEntry(BaseModel):
    id: uuid.UUID
    alert_id: uuid.UUID
    action: str
    details: Optional[Dict[str, Any]] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AlertRunSummary(BaseModel):
    processed: int
    succeeded: int
    failed: int
