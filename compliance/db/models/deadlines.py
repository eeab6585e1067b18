import uuid
from sqlalchemy import Column, String, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, UTCDateTime, now_utc


class Deadline(Base):
    __tablename__ = 'deadlines'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(UTCDateTime, nullable=False)
    category = Column(String(64), nullable=False)
    # {"type": "monthly", "interval": null, "end_date": null, "base_date": "due_date"}
    recurrence = Column(JSONB, nullable=True)
    assigned_to = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    completed_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    deleted_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    alert_days = Column(JSONB, nullable=True)
    importance = Column(String(16), nullable=True)
    template_id = Column(UUID(as_uuid=True), ForeignKey('industry_templates.id', ondelete='SET NULL'), nullable=True)
    template_deadline_id = Column(String(128), nullable=True)
    notes = Column(Text, nullable=True)
    metadata_json = Column('metadata', JSONB, nullable=True)

    __table_args__ = (
        Index('idx_deadlines_org_due_date', 'organization_id', 'due_date'),
        Index('idx_deadlines_assigned_to', 'assigned_to'),
        Index('idx_deadlines_deleted_at', 'deleted_at'),
        CheckConstraint(
            "importance is null or importance in ('critical','high','medium','low')",
            name='ck_deadlines_importance',
        ),
    )

    def get_metadata(self):
        return self.metadata_json

    def set_metadata(self, value):
        self.metadata_json = value


class DeadlineAuditLog(Base):
    """Per-deadline change history (created/updated/completed/deleted/restored)."""

    __tablename__ = 'deadline_audit_log'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deadline_id = Column(UUID(as_uuid=True), ForeignKey('deadlines.id', ondelete='CASCADE'), nullable=False)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    action = Column(String(32), nullable=False)
    changes = Column(JSONB, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_deadline_audit_deadline_id_created_at', 'deadline_id', 'created_at'),
    )
