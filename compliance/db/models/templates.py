import uuid
from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, UTCDateTime, now_utc


class IndustryTemplate(Base):
    __tablename__ = 'industry_templates'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slug = Column(String(128), nullable=False, unique=True)
    industry = Column(String(64), nullable=False)
    sub_industry = Column(String(64), nullable=True)
    name = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    version = Column(String(32), nullable=False)
    deadlines = Column(JSONB, nullable=False)
    document_categories = Column(JSONB, nullable=True)
    regulatory_references = Column(JSONB, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
    updated_at = Column(UTCDateTime, default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_industry_templates_industry', 'industry'),
    )


class TemplateImport(Base):
    __tablename__ = 'template_imports'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    template_id = Column(UUID(as_uuid=True), ForeignKey('industry_templates.id', ondelete='CASCADE'), nullable=False)
    template_version = Column(String(32), nullable=False)
    imported_deadline_ids = Column(JSONB, nullable=False)
    customizations = Column(JSONB, nullable=True)
    imported_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    imported_at = Column(UTCDateTime, default=now_utc, nullable=False)
    last_notified_version = Column(String(32), nullable=True)

    __table_args__ = (
        Index('idx_template_imports_org_template', 'organization_id', 'template_id', unique=True),
    )
