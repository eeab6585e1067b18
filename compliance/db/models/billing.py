import uuid
from sqlalchemy import Column, String, Integer, BigInteger, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from .base import Base, UTCDateTime, now_utc


class Subscription(Base):
    __tablename__ = 'subscriptions'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, unique=True)
    plan = Column(String(32), nullable=False)  # starter|professional|business
    billing_interval = Column(String(16), nullable=False, default='monthly')
    status = Column(String(32), nullable=False, default='trialing')
    stripe_customer_id = Column(String(128), nullable=True)
    stripe_subscription_id = Column(String(128), nullable=True)
    stripe_price_id = Column(String(128), nullable=True)
    current_period_start = Column(UTCDateTime, nullable=True)
    current_period_end = Column(UTCDateTime, nullable=True)
    trial_start = Column(UTCDateTime, nullable=True)
    trial_end = Column(UTCDateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    canceled_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
    updated_at = Column(UTCDateTime, default=now_utc, onupdate=now_utc, nullable=False)


class Usage(Base):
    __tablename__ = 'usage'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    month = Column(String(7), nullable=False)  # YYYY-MM
    deadlines_created = Column(Integer, nullable=False, default=0)
    documents_uploaded = Column(Integer, nullable=False, default=0)
    storage_used_bytes = Column(BigInteger, nullable=False, default=0)
    form_pre_fills = Column(Integer, nullable=False, default=0)
    alerts_sent = Column(Integer, nullable=False, default=0)
    updated_at = Column(UTCDateTime, default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_usage_org_month', 'organization_id', 'month', unique=True),
    )


class TrialWarning(Base):
    __tablename__ = 'trial_warnings'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    days_remaining = Column(Integer, nullable=False)
    sent_at = Column(UTCDateTime, default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_trial_warnings_org_days', 'organization_id', 'days_remaining', unique=True),
    )
