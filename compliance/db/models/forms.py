import uuid
from sqlalchemy import Column, String, Text, Integer, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, UTCDateTime, now_utc


class FormTemplate(Base):
    __tablename__ = 'form_templates'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # NULL organization_id marks a global template available to every tenant
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True)
    name = Column(String(300), nullable=False)
    industry = Column(String(64), nullable=True)
    description = Column(Text, nullable=True)
    storage_id = Column(String(128), nullable=False)
    # [{"field_name", "field_type", "profile_key", "position": {"page", "x", "y"}}]
    field_mappings = Column(JSONB, nullable=False)
    times_used = Column(Integer, nullable=False, default=0)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
    updated_at = Column(UTCDateTime, default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_form_templates_organization_id', 'organization_id'),
    )


class FormFill(Base):
    __tablename__ = 'form_fills'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    template_id = Column(UUID(as_uuid=True), ForeignKey('form_templates.id', ondelete='SET NULL'), nullable=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    storage_id = Column(String(128), nullable=False)
    field_values = Column(JSONB, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_form_fills_org_created_at', 'organization_id', 'created_at'),
    )
