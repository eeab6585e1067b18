import uuid
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict


class OnboardingProgress(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: uuid.UUID
    steps: Dict[str, bool]
    completed_at: Optional[datetime] = None
    last_activity_at: datetime
    reminders_sent: Optional[Dict[str, str]] = None
    model_config = ConfigDict(from_attributes=True)


class OnboardingStepUpdate(BaseModel):
    step: str


class ReminderRunSummary(BaseModel):
    processed: int
    sent_24h: int
    sent_7d: int
