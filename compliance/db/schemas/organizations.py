import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from compliance.utils.role_permissions import RoleEnum


class OrganizationSettings(BaseModel):
    timezone: str = "America/New_York"
    due_soon_days: int = Field(default=14, ge=1, le=90)
    default_alert_days: Optional[List[int]] = None


class OrganizationBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    industry: Optional[str] = None


class OrganizationCreate(OrganizationBase):
    settings: Optional[OrganizationSettings] = None


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    industry: Optional[str] = None
    settings: Optional[OrganizationSettings] = None


class Organization(OrganizationBase):
    id: uuid.UUID
    owner_user_id: uuid.UUID
    settings: Optional[Dict[str, Any]] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class OrganizationMember(BaseModel):
    user_id: uuid.UUID
    email: str
    display_name: Optional[str] = None
    role: str
    joined_at: Optional[datetime] = None
    deadline_count: int = 0
    is_current_user: bool = False


class OrganizationMemberRoleUpdate(BaseModel):
    role: RoleEnum


class OwnershipTransfer(BaseModel):
    new_owner_user_id: uuid.UUID


class OrganizationInvitationCreate(BaseModel):
    email: str
    role: RoleEnum = RoleEnum.member


class OrganizationInvitation(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    email: str
    role: str
    invited_by_user_id: uuid.UUID
    status: str
    created_at: datetime
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[uuid.UUID] = None
    revoked_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)
