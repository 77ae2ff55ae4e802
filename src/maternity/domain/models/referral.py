from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, new_id, utcnow


class ReferralUrgency(str, Enum):
    ROUTINE = "routine"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class ReferralStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Referral(BaseModel):
    id: str = Field(default_factory=new_id)
    patient_id: str
    referring_doctor_id: str
    referring_institution_id: Optional[str] = None
    receiving_doctor_id: Optional[str] = None
    receiving_institution_id: str
    specialty: str
    urgency: ReferralUrgency = ReferralUrgency.ROUTINE
    reason: str
    clinical_notes: str = ""
    diagnosis: Optional[str] = None
    requested_tests: List[str] = Field(default_factory=list)
    status: ReferralStatus = ReferralStatus.PENDING
    patient_consent: bool = False
    consent_given_at: OptionalUtcDatetime = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)
    accepted_at: OptionalUtcDatetime = None
    completed_at: OptionalUtcDatetime = None
    response_notes: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)


class ReferralResponseKind(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    TRANSFER = "transfer"


class ReferralResponse(BaseModel):
    id: str = Field(default_factory=new_id)
    referral_id: str
    responding_doctor_id: str
    response: ReferralResponseKind
    notes: str = ""
    proposed_date: OptionalUtcDatetime = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
