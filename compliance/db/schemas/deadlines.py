import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from compliance.utils.dates import validate_recurrence

Importance = Literal["critical", "high", "medium", "low"]


class RecurrenceRule(BaseModel):
    type: Literal["weekly", "monthly", "quarterly", "semi_annual", "annual", "custom"]
    interval: Optional[int] = Field(default=None, ge=1)
    end_date: Optional[datetime] = None
    base_date: Literal["due_date", "completion_date"] = "due_date"

    @field_validator("interval")
    @classmethod
    def _interval_only_for_custom(cls, value, info):
        if value is not None and info.data.get("type") not in (None, "custom"):
            raise ValueError("interval is only valid for custom recurrence")
        return value

    def to_json(self) -> Dict[str, Any]:
        payload = self.model_dump(mode="json")
        validate_recurrence(payload)
        return payload


class DeadlineBase(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    due_date: datetime
    category: str = Field(min_length=1, max_length=64)
    recurrence: Optional[RecurrenceRule] = None
    assigned_to: Optional[uuid.UUID] = None
    alert_days: Optional[List[int]] = None
    importance: Optional[Importance] = None
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class DeadlineCreate(DeadlineBase):
    schedule_alerts: bool = True


class DeadlineUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=64)
    recurrence: Optional[RecurrenceRule] = None
    assigned_to: Optional[uuid.UUID] = None
    alert_days: Optional[List[int]] = None
    importance: Optional[Importance] = None
    notes: Optional[str] = None


class Deadline(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    title: str
    description: Optional[str] = None
    due_date: datetime
    category: str
    recurrence: Optional[Dict[str, Any]] = None
    assigned_to: Optional[uuid.UUID] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[uuid.UUID] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    created_by: Optional[uuid.UUID] = None
    alert_days: Optional[List[int]] = None
    importance: Optional[str] = None
    template_id: Optional[uuid.UUID] = None
    template_deadline_id: Optional[str] = None
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("metadata_json", "metadata")
    )
    status: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class DeadlineCompletion(BaseModel):
    deadline: Deadline
    next_deadline_id: Optional[uuid.UUID] = None


class DeadlineAuditEntry(BaseModel):
    id: uuid.UUID
    deadline_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    action: str
    changes: Optional[Dict[str, Any]] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
