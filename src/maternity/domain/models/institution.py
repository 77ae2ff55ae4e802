from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from src.maternity.domain.models.common import UtcDatetime, new_id, utcnow


class InstitutionType(str, Enum):
    HOSPITAL = "hospital"
    CLINIC = "clinic"
    NGO = "ngo"
    GOVERNMENT = "government"


class ContactInfo(BaseModel):
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    website: Optional[str] = None


class GeoPoint(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class Institution(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    type: InstitutionType = InstitutionType.CLINIC
    description: str = ""
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    location: Optional[GeoPoint] = None
    timezone: str = "UTC"
    departments: List[str] = Field(default_factory=list)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class StaffRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    STAFF = "staff"


class StaffStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class StaffMember(BaseModel):
    id: str = Field(default_factory=new_id)
    institution_id: str
    user_id: str
    role: StaffRole = StaffRole.DOCTOR
    department: str = ""
    permissions: List[str] = Field(default_factory=list)
    status: StaffStatus = StaffStatus.ACTIVE
    joined_at: UtcDatetime = Field(default_factory=utcnow)
