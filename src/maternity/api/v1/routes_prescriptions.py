from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime
from src.maternity.domain.models.prescription import Medication, Prescription, PrescriptionStatus
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_role, ensure_self_or_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.prescriptions.service import prescription_service

router = APIRouter(
    prefix="/prescriptions",
    tags=["prescriptions"],
    dependencies=[Depends(get_api_key)],
)


class PrescriptionCreateRequest(BaseModel):
    patient_id: str
    institution_id: Optional[str] = None
    medications: List[Medication] = Field(min_length=1)
    diagnosis: Optional[str] = None
    instructions: str = ""
    valid_until: OptionalUtcDatetime = None


class PrescriptionUpdateRequest(BaseModel):
    medications: Optional[List[Medication]] = Field(default=None, min_length=1)
    diagnosis: Optional[str] = None
    instructions: Optional[str] = None
    status: Optional[PrescriptionStatus] = None
    valid_until: OptionalUtcDatetime = None


@router.post("/", response_model=Prescription, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    payload: PrescriptionCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Prescription:
    ensure_role(current_user, UserRole.PROVIDER)
    prescription = prescription_service.create_prescription(
        Prescription(
            doctor_id=current_user.id,
            institution_id=payload.institution_id or current_user.institution_id,
            **payload.model_dump(exclude={"institution_id"}),
        )
    )
    audit_service.log_event(
        action="create_prescription",
        resource_type="prescription",
        resource_id=prescription.id,
        user=current_user,
        extra={"patient_id": prescription.patient_id, "medications": len(prescription.medications)},
    )
    return prescription


@router.get("/", response_model=List[Prescription])
async def list_prescriptions(
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    status_filter: Optional[PrescriptionStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
) -> List[Prescription]:
    if current_user.role == UserRole.PATIENT:
        patient_id = current_user.id
    return prescription_service.list_prescriptions(patient_id=patient_id, doctor_id=doctor_id, status=status_filter)


@router.get("/{prescription_id}", response_model=Prescription)
async def get_prescription(prescription_id: str, current_user: User = Depends(get_current_user)) -> Prescription:
    prescription = prescription_service.get_prescription(prescription_id)
    ensure_self_or_staff(current_user, prescription.patient_id)
    audit_service.log_event(
        action="get_prescription",
        resource_type="prescription",
        resource_id=prescription_id,
        user=current_user,
    )
    return prescription


@router.patch("/{prescription_id}", response_model=Prescription)
async def update_prescription(
    prescription_id: str,
    payload: PrescriptionUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> Prescription:
    ensure_role(current_user, UserRole.PROVIDER)
    prescription = prescription_service.update_prescription(prescription_id, payload.model_dump(exclude_unset=True))
    audit_service.log_event(
        action="update_prescription",
        resource_type="prescription",
        resource_id=prescription_id,
        user=current_user,
        extra={"status": prescription.status.value},
    )
    return prescription


@router.delete("/{prescription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_prescription(prescription_id: str, current_user: User = Depends(get_current_user)) -> Response:
    ensure_role(current_user, UserRole.PROVIDER)
    prescription_service.delete_prescription(prescription_id)
    audit_service.log_event(
        action="delete_prescription",
        resource_type="prescription",
        resource_id=prescription_id,
        user=current_user,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
