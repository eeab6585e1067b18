import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class IndustryTemplateSummary(BaseModel):
    id: uuid.UUID
    slug: str
    industry: str
    sub_industry: Optional[str] = None
    name: str
    description: Optional[str] = None
    version: str
    deadline_count: int = 0
    model_config = ConfigDict(from_attributes=True)


class IndustryTemplate(BaseModel):
    id: uuid.UUID
    slug: str
    industry: str
    sub_industry: Optional[str] = None
    name: str
    description: Optional[str] = None
    version: str
    deadlines: List[Dict[str, Any]]
    document_categories: Optional[List[str]] = None
    regulatory_references: Optional[List[Dict[str, Any]]] = None
    is_active: bool
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class IndustryCount(BaseModel):
    industry: str
    template_count: int


class TemplateImportRequest(BaseModel):
    # None selects every deadline in the template
    selected_deadline_ids: Optional[List[str]] = None
    custom_dates: Dict[str, datetime] = Field(default_factory=dict)


class TemplateImport(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    template_id: uuid.UUID
    template_version: str
    imported_deadline_ids: List[uuid.UUID]
    customizations: Optional[Dict[str, Any]] = None
    imported_at: datetime
    last_notified_version: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)
