import uuid
from sqlalchemy import Column, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, UTCDateTime, now_utc


class OnboardingProgress(Base):
    __tablename__ = 'onboarding_progress'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    # {"account_created": true, "org_setup": false, ...}
    steps = Column(JSONB, nullable=False)
    completed_at = Column(UTCDateTime, nullable=True)
    last_activity_at = Column(UTCDateTime, default=now_utc, nullable=False)
    # {"24h": "<iso timestamp>", "7d": "<iso timestamp>"}
    reminders_sent = Column(JSONB, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_onboarding_progress_org', 'organization_id', unique=True),
        Index('idx_onboarding_progress_user', 'user_id'),
    )
