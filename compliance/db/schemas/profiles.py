import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, field_validator

EIN_RE = re.compile(r"^\d{2}-\d{7}$")
NPI_RE = re.compile(r"^\d{10}$")


class Address(BaseModel):
    street: str
    city: str
    state: str
    zip: str
    country: str = "US"
    type: Optional[str] = None  # physical|mailing|billing


class Phone(BaseModel):
    number: str
    type: Optional[str] = None  # main|fax|mobile


class Email(BaseModel):
    address: str
    type: Optional[str] = None


class LicenseNumber(BaseModel):
    number: str
    type: Optional[str] = None
    state: Optional[str] = None
    expiration: Optional[str] = None


class Officer(BaseModel):
    name: str
    title: Optional[str] = None
    email: Optional[str] = None


class OrganizationProfileBase(BaseModel):
    legal_name: Optional[str] = None
    dba_names: Optional[List[str]] = None
    ein: Optional[str] = None
    addresses: Optional[List[Address]] = None
    phones: Optional[List[Phone]] = None
    emails: Optional[List[Email]] = None
    website: Optional[str] = None
    license_numbers: Optional[List[LicenseNumber]] = None
    npi_number: Optional[str] = None
    officers: Optional[List[Officer]] = None
    incorporation_date: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None


class OrganizationProfileUpsert(OrganizationProfileBase):
    @field_validator("ein")
    @classmethod
    def _check_ein(cls, value):
        if value and not EIN_RE.match(value):
            raise ValueError("EIN must be formatted as NN-NNNNNNN")
        return value

    @field_validator("npi_number")
    @classmethod
    def _check_npi(cls, value):
        if value and not NPI_RE.match(value):
            raise ValueError("NPI number must be 10 digits")
        return value


class OrganizationProfile(OrganizationProfileBase):
    organization_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ProfileCompletion(BaseModel):
    has_profile: bool
    completion_percentage: int
    missing_required: List[str]
    missing_optional: List[str]
