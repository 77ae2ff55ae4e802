from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, new_id, utcnow


class PrescriptionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Medication(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    generic_name: Optional[str] = None
    dosage: str
    frequency: str
    # Days.
    duration: int = Field(ge=0)
    instructions: str = ""
    refills: int = Field(default=0, ge=0)
    side_effects: List[str] = Field(default_factory=list)


class Prescription(BaseModel):
    id: str = Field(default_factory=new_id)
    patient_id: str
    doctor_id: str
    institution_id: Optional[str] = None
    medications: List[Medication] = Field(min_length=1)
    diagnosis: Optional[str] = None
    instructions: str = ""
    status: PrescriptionStatus = PrescriptionStatus.ACTIVE
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)
    valid_until: OptionalUtcDatetime = None
    # Opaque code a pharmacy can scan to look the prescription up.
    qr_code: Optional[str] = None
