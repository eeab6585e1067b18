import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class AuditLogBase(BaseModel):
    action_type: str
    status: str = "success"
    target_type: Optional[str] = None
    target_id: Optional[uuid.UUID] = None
    target_title: Optional[str] = None
    ip_address: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class AuditLogCreate(AuditLogBase):
    pass


class AuditLog(AuditLogBase):
    id: uuid.UUID
    organization_id: uuid.UUID
    actor_user_id: Optional[uuid.UUID] = None
    actor_email: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("metadata_json", "metadata")
    )
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditLogPage(BaseModel):
    items: List[AuditLog]
    total: int
    page: int
    page_size: int


class AuditUser(BaseModel):
    user_id: uuid.UUID
    email: str
    display_name: Optional[str] = None
