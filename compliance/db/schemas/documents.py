import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class Document(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    file_name: str
    file_type: str
    file_size: int
    category: str
    deadline_ids: Optional[List[uuid.UUID]] = None
    uploaded_by: Optional[uuid.UUID] = None
    uploaded_at: datetime
    version: int
    previous_version_id: Optional[uuid.UUID] = None
    deleted_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class DocumentUpdate(BaseModel):
    category: Optional[str] = None
    deadline_ids: Optional[List[uuid.UUID]] = None


class DocumentAccessEntry(BaseModel):
    id: uuid.UUID
    document_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    action: str
    ip_address: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditExportRequest(BaseModel):
    categories: Optional[List[str]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
