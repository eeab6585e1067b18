import uuid
from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, UTCDateTime, now_utc


class Alert(Base):
    __tablename__ = 'alerts'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deadline_id = Column(UUID(as_uuid=True), ForeignKey('deadlines.id', ondelete='CASCADE'), nullable=False)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    scheduled_for = Column(UTCDateTime, nullable=False)
    channel = Column(String(16), nullable=False)  # email|sms|push|in_app
    urgency = Column(String(16), nullable=False)  # early|medium|high|critical
    status = Column(String(16), nullable=False, default='scheduled')
    sent_at = Column(UTCDateTime, nullable=True)
    delivered_at = Column(UTCDateTime, nullable=True)
    acknowledged_at = Column(UTCDateTime, nullable=True)
    acknowledged_via = Column(String(32), nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    snoozed_until = Column(UTCDateTime, nullable=True)
    # Resend email id or Twilio message SID, matched by delivery callbacks
    provider_message_id = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_alerts_status_scheduled_for', 'status', 'scheduled_for'),
        Index('idx_alerts_deadline_id', 'deadline_id'),
        Index('idx_alerts_organization_id', 'organization_id'),
        Index('idx_alerts_provider_message_id', 'provider_message_id'),
    )


class AlertPreference(Base):
    __tablename__ = 'alert_preferences'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    # NULL user_id holds the organization-wide defaults
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=True)
    early_channels = Column(JSONB, nullable=False)
    medium_channels = Column(JSONB, nullable=False)
    high_channels = Column(JSONB, nullable=False)
    critical_channels = Column(JSONB, nullable=False)
    alert_days = Column(JSONB, nullable=False)
    escalation_enabled = Column(Boolean, nullable=False, default=True)
    escalation_contacts = Column(JSONB, nullable=False)
    phone_number = Column(String(32), nullable=True)
    email_override = Column(String(320), nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
    updated_at = Column(UTCDateTime, default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_alert_preferences_org_user', 'organization_id', 'user_id'),
    )


class AlertAuditLog(Base):
    __tablename__ = 'alert_audit_log'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Cancelled alerts are deleted; their history is kept, so no FK here.
    alert_id = Column(UUID(as_uuid=True), nullable=False)
    deadline_id = Column(UUID(as_uuid=True), ForeignKey('deadlines.id', ondelete='CASCADE'), nullable=True)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    action = Column(String(32), nullable=False)
    details = Column(JSONB, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_alert_audit_alert_id_created_at', 'alert_id', 'created_at'),
    )
