from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr


class UserRole(str, Enum):
    PATIENT = "patient"
    PROVIDER = "provider"
    INSTITUTION = "institution"
    ADMIN = "admin"


class User(BaseModel):
    # Stable identifier used as patient_id/doctor_id across documents.
    id: str
    email: EmailStr
    role: UserRole
    institution_id: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in {UserRole.PROVIDER, UserRole.INSTITUTION, UserRole.ADMIN}
