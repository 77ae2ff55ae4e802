from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from src.maternity.domain.models.appointment import Appointment, AppointmentStatus, AppointmentType
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import PermissionDeniedError
from src.maternity.security import ensure_self_or_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.scheduling.service import scheduling_service

router = APIRouter(
    prefix="/appointments",
    tags=["scheduling"],
    dependencies=[Depends(get_api_key)],
)


class AppointmentCreateRequest(BaseModel):
    doctor_id: str
    scheduled_time: datetime
    patient_id: Optional[str] = None
    institution_id: Optional[str] = None
    type: AppointmentType = AppointmentType.PHYSICAL
    reason: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdateRequest(BaseModel):
    status: Optional[AppointmentStatus] = None
    type: Optional[AppointmentType] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


def _ensure_participant(user: User, appointment: Appointment) -> None:
    if user.role == UserRole.PATIENT and user.id != appointment.patient_id:
        raise PermissionDeniedError("Not authorized to access this appointment")


@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    payload: AppointmentCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Appointment:
    patient_id = payload.patient_id or current_user.id
    ensure_self_or_staff(current_user, patient_id)

    appointment = scheduling_service.book_appointment(
        patient_id=patient_id,
        doctor_id=payload.doctor_id,
        scheduled_time=payload.scheduled_time,
        type=payload.type,
        institution_id=payload.institution_id,
        reason=payload.reason,
        notes=payload.notes,
    )

    audit_service.log_event(
        action="book_appointment",
        resource_type="appointment",
        resource_id=appointment.id,
        user=current_user,
        extra={"doctor_id": payload.doctor_id, "patient_id": patient_id},
    )
    return appointment


@router.get("/", response_model=List[Appointment])
async def list_appointments(
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
) -> List[Appointment]:
    if current_user.role == UserRole.PATIENT:
        patient_id = current_user.id
    elif current_user.role == UserRole.PROVIDER and patient_id is None and doctor_id is None:
        doctor_id = current_user.id
    return scheduling_service.list_appointments(patient_id=patient_id, doctor_id=doctor_id, status=status_filter)


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(appointment_id: str, current_user: User = Depends(get_current_user)) -> Appointment:
    appointment = scheduling_service.get_appointment(appointment_id)
    _ensure_participant(current_user, appointment)
    return appointment


@router.patch("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> Appointment:
    appointment = scheduling_service.get_appointment(appointment_id)
    _ensure_participant(current_user, appointment)
    if current_user.role == UserRole.PATIENT and payload.status not in {None, AppointmentStatus.CANCELLED}:
        raise PermissionDeniedError("Patients can only cancel appointments")

    appointment = scheduling_service.update_appointment(
        appointment_id,
        status=payload.status,
        type=payload.type,
        reason=payload.reason,
        notes=payload.notes,
    )
    audit_service.log_event(
        action="update_appointment",
        resource_type="appointment",
        resource_id=appointment_id,
        user=current_user,
        extra={"status": appointment.status.value},
    )
    return appointment


@router.post("/{appointment_id}/cancel", response_model=Appointment)
async def cancel_appointment(appointment_id: str, current_user: User = Depends(get_current_user)) -> Appointment:
    _ensure_participant(current_user, scheduling_service.get_appointment(appointment_id))
    appointment = scheduling_service.cancel_appointment(appointment_id)
    audit_service.log_event(
        action="cancel_appointment",
        resource_type="appointment",
        resource_id=appointment_id,
        user=current_user,
    )
    return appointment
