from __future__ import annotations

from datetime import date, datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from src.maternity.domain.models.appointment import DoctorAvailability, check_hhmm
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.scheduling.service import scheduling_service

router = APIRouter(
    prefix="/doctors",
    tags=["scheduling"],
    dependencies=[Depends(get_api_key)],
)


class AvailabilityRequest(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description="0 = Sunday")
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, value: str) -> str:
        return check_hhmm(value)


class SlotsResponse(BaseModel):
    doctor_id: str
    day: date
    slots: List[datetime]


class BlockSlotRequest(BaseModel):
    slot: datetime


class BlockSlotResponse(BaseModel):
    blocked: bool


def _ensure_can_manage(user: User, doctor_id: str) -> None:
    ensure_staff(user)
    if user.role == UserRole.PROVIDER and user.id != doctor_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Providers can only manage their own availability",
        )


@router.get("/{doctor_id}/availability", response_model=List[DoctorAvailability])
async def get_availability(doctor_id: str, current_user: User = Depends(get_current_user)) -> List[DoctorAvailability]:
    return scheduling_service.get_availability(doctor_id)


@router.put("/{doctor_id}/availability", response_model=DoctorAvailability)
async def update_availability(
    doctor_id: str,
    payload: AvailabilityRequest,
    current_user: User = Depends(get_current_user),
) -> DoctorAvailability:
    _ensure_can_manage(current_user, doctor_id)
    entry = scheduling_service.update_availability(DoctorAvailability(doctor_id=doctor_id, **payload.model_dump()))

    audit_service.log_event(
        action="update_availability",
        resource_type="doctor_availability",
        resource_id=entry.id,
        user=current_user,
        extra={"doctor_id": doctor_id, "day_of_week": entry.day_of_week},
    )
    return entry


@router.get("/{doctor_id}/slots", response_model=SlotsResponse)
async def available_slots(
    doctor_id: str,
    day: date = Query(..., alias="date"),
    current_user: User = Depends(get_current_user),
) -> SlotsResponse:
    return SlotsResponse(doctor_id=doctor_id, day=day, slots=scheduling_service.available_slots(doctor_id, day))


@router.post("/{doctor_id}/slots/block", response_model=BlockSlotResponse)
async def block_slot(
    doctor_id: str,
    payload: BlockSlotRequest,
    current_user: User = Depends(get_current_user),
) -> BlockSlotResponse:
    _ensure_can_manage(current_user, doctor_id)
    blocked = scheduling_service.block_time_slot(doctor_id, payload.slot)
    audit_service.log_event(
        action="block_slot",
        resource_type="doctor_availability",
        user=current_user,
        extra={"doctor_id": doctor_id, "blocked": blocked},
    )
    return BlockSlotResponse(blocked=blocked)
