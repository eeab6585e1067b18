import uuid
from sqlalchemy import Column, String, Text, Integer, BigInteger, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, UTCDateTime, now_utc


class Document(Base):
    __tablename__ = 'documents'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    file_name = Column(String(500), nullable=False)
    file_type = Column(String(16), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    storage_id = Column(String(128), nullable=False)
    category = Column(String(64), nullable=False)
    deadline_ids = Column(JSONB, nullable=True)
    uploaded_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    uploaded_at = Column(UTCDateTime, default=now_utc, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    previous_version_id = Column(UUID(as_uuid=True), ForeignKey('documents.id', ondelete='SET NULL'), nullable=True)
    extracted_text = Column(Text, nullable=True)
    deleted_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index('idx_documents_org_category', 'organization_id', 'category'),
        Index('idx_documents_org_file_name', 'organization_id', 'file_name'),
        Index('idx_documents_deleted_at', 'deleted_at'),
    )


class DocumentAccessLog(Base):
    __tablename__ = 'document_access_log'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(UUID(as_uuid=True), ForeignKey('documents.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    action = Column(String(16), nullable=False)  # view|download|update|delete
    ip_address = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_document_access_document_id_created_at', 'document_id', 'created_at'),
    )
