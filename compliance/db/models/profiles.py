from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, UTCDateTime, now_utc


class OrganizationProfile(Base):
    """Business identity data used to pre-fill government forms."""

    __tablename__ = 'organization_profiles'

    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True)
    legal_name = Column(String(300), nullable=True)
    dba_names = Column(JSONB, nullable=True)
    ein = Column(String(16), nullable=True)
    addresses = Column(JSONB, nullable=True)
    phones = Column(JSONB, nullable=True)
    emails = Column(JSONB, nullable=True)
    website = Column(String(500), nullable=True)
    license_numbers = Column(JSONB, nullable=True)
    npi_number = Column(String(16), nullable=True)
    officers = Column(JSONB, nullable=True)
    incorporation_date = Column(String(10), nullable=True)  # YYYY-MM-DD
    custom_fields = Column(JSONB, nullable=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
    updated_at = Column(UTCDateTime, default=now_utc, onupdate=now_utc, nullable=False)
