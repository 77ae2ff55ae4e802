from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, new_id, utcnow


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class KickPosition(str, Enum):
    SITTING = "sitting"
    LYING = "lying"
    STANDING = "standing"


class KickIntensity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class KickCountMethod(str, Enum):
    COUNT_TO_TEN = "countToTen"
    FIXED_TIME = "fixedTime"


class Patient(BaseModel):
    """A pregnant patient's profile.

    ``id`` is the patient's user id so that every other document can refer to
    them by ``patient_id`` without a join.
    """

    id: str
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    pregnancy_week: Optional[int] = Field(default=None, ge=0, le=45)
    due_date: OptionalUtcDatetime = None
    last_checkup: OptionalUtcDatetime = None
    risk_level: RiskLevel = RiskLevel.LOW
    institution_id: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class KickSession(BaseModel):
    """A recorded interval of fetal-movement counting."""

    id: str = Field(default_factory=new_id)
    patient_id: str
    date: UtcDatetime
    kick_count: int = Field(ge=0)
    # Minutes spent counting.
    duration: float = Field(gt=0)
    position: Optional[KickPosition] = None
    intensity: Optional[KickIntensity] = None
    method: KickCountMethod = KickCountMethod.FIXED_TIME
    phone_on_abdomen: bool = False
    notes: Optional[str] = None
