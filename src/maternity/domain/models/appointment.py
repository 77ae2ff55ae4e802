from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from src.maternity.domain.models.common import UtcDatetime, new_id, utcnow


class AppointmentType(str, Enum):
    VIRTUAL = "virtual"
    PHYSICAL = "physical"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def check_hhmm(value: str) -> str:
    hour, sep, minute = value.partition(":")
    if not sep or not hour.isdigit() or not minute.isdigit():
        raise ValueError("time must be formatted as HH:MM")
    if not (0 <= int(hour) <= 23 and 0 <= int(minute) <= 59):
        raise ValueError("time must be formatted as HH:MM")
    return f"{int(hour):02d}:{int(minute):02d}"


class DoctorAvailability(BaseModel):
    """Weekly working hours for one doctor on one weekday.

    ``day_of_week`` uses 0 for Sunday through 6 for Saturday. Booked slots are
    appended to ``blocked_slots`` as aware UTC datetimes.
    """

    id: str = Field(default_factory=new_id)
    doctor_id: str
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    is_available: bool = True
    blocked_slots: List[UtcDatetime] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        return check_hhmm(value)


class Appointment(BaseModel):
    id: str = Field(default_factory=new_id)
    patient_id: str
    doctor_id: str
    institution_id: Optional[str] = None
    scheduled_time: UtcDatetime
    # Minutes.
    duration: int = 30
    type: AppointmentType = AppointmentType.PHYSICAL
    status: AppointmentStatus = AppointmentStatus.PENDING
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)