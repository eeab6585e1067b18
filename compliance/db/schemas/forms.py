import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict

FieldType = Literal["text", "checkbox", "dropdown", "radio", "signature"]


class FormField(BaseModel):
    name: str
    type: FieldType
    options: Optional[List[str]] = None
    required: bool = False
    default_value: Optional[str] = None


class FieldPosition(BaseModel):
    page: int = 0
    x: float = 0
    y: float = 0


class FieldMapping(BaseModel):
    field_name: str
    field_type: FieldType = "text"
    profile_key: Optional[str] = None
    position: Optional[FieldPosition] = None


class FormTemplateCreate(BaseModel):
    name: str
    industry: Optional[str] = None
    description: Optional[str] = None
    field_mappings: List[FieldMapping]


class FormTemplate(BaseModel):
    id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    name: str
    industry: Optional[str] = None
    description: Optional[str] = None
    field_mappings: List[Dict[str, Any]]
    times_used: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class FormFillRequest(BaseModel):
    overrides: Dict[str, str] = {}


class FormFillResult(BaseModel):
    success: bool
    fill_id: Optional[uuid.UUID] = None
    filled_fields: List[str] = []
    skipped_fields: List[str] = []
    signature_fields: List[str] = []
    warnings: List[str] = []
    error: Optional[str] = None


class FormAnalysisResult(BaseModel):
    success: bool
    fields: Optional[List[FormField]] = None
    analysis: Optional[List[Dict[str, Any]]] = None
    mappings: Optional[Dict[str, Dict[str, Any]]] = None
    unmatched_fields: Optional[List[str]] = None
    suggestions: Optional[Dict[str, Optional[str]]] = None
    stats: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class FormFill(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    template_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    field_values: Optional[Dict[str, Any]] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
