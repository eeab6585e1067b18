import uuid
from sqlalchemy import Column, String, Boolean, ForeignKey, Index, CheckConstraint, Text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, UTCDateTime, now_utc


class Organization(Base):
    __tablename__ = 'organizations'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    industry = Column(String(64), nullable=True)
    owner_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=False)
    # {"timezone": "America/New_York", "due_soon_days": 14, "default_alert_days": [...]}
    settings = Column(JSONB, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, default=now_utc)
    updated_at = Column(UTCDateTime, default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('idx_organizations_owner_user_id', 'owner_user_id'),
    )


class OrganizationMembership(Base):
    __tablename__ = 'organization_memberships'
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), primary_key=True)
    role = Column(String, nullable=False)  # 'owner'|'admin'|'manager'|'member'|'viewer'
    invited_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    joined_at = Column(UTCDateTime, default=now_utc)

    __table_args__ = (
        Index('idx_org_memberships_user_id', 'user_id'),
        CheckConstraint(
            "role in ('owner','admin','manager','member','viewer')",
            name='ck_org_memberships_role',
        ),
    )


class OrganizationInvitation(Base):
    __tablename__ = 'organization_invitations'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    email = Column(Text, nullable=False)
    invited_by_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=False)
    role = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default='pending')  # pending|accepted|revoked|expired
    token = Column(Text, nullable=True, unique=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    accepted_at = Column(UTCDateTime, nullable=True)
    accepted_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    revoked_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index('ix_organization_invitations_email', 'email'),
        Index('ix_organization_invitations_organization_id', 'organization_id'),
    )
