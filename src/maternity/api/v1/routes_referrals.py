from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime
from src.maternity.domain.models.referral import (
    Referral,
    ReferralResponse,
    ReferralResponseKind,
    ReferralStatus,
    ReferralUrgency,
)
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import PermissionDeniedError
from src.maternity.security import ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.referrals.service import referral_service

router = APIRouter(
    prefix="/referrals",
    tags=["referrals"],
    dependencies=[Depends(get_api_key)],
)


class ReferralCreateRequest(BaseModel):
    patient_id: str
    receiving_institution_id: str
    receiving_doctor_id: Optional[str] = None
    referring_institution_id: Optional[str] = None
    specialty: str
    urgency: ReferralUrgency = ReferralUrgency.ROUTINE
    reason: str
    clinical_notes: str = ""
    diagnosis: Optional[str] = None
    requested_tests: List[str] = Field(default_factory=list)
    patient_consent: bool = False
    attachments: List[str] = Field(default_factory=list)


class ReferralDecisionRequest(BaseModel):
    notes: Optional[str] = None


class ReferralResponseRequest(BaseModel):
    response: ReferralResponseKind
    notes: str = ""
    proposed_date: OptionalUtcDatetime = None


def _ensure_party(user: User, referral: Referral) -> None:
    if user.role != UserRole.PATIENT:
        return
    if user.id != referral.patient_id:
        raise PermissionDeniedError("Not authorized to access this referral")


@router.post("/", response_model=Referral, status_code=status.HTTP_201_CREATED)
async def create_referral(payload: ReferralCreateRequest, current_user: User = Depends(get_current_user)) -> Referral:
    ensure_staff(current_user)
    data = payload.model_dump(exclude={"referring_institution_id"})
    referral = referral_service.create_referral(
        Referral(
            referring_doctor_id=current_user.id,
            referring_institution_id=payload.referring_institution_id or current_user.institution_id,
            **data,
        )
    )
    audit_service.log_event(
        action="create_referral",
        resource_type="referral",
        resource_id=referral.id,
        user=current_user,
        extra={"urgency": referral.urgency.value, "patient_id": referral.patient_id},
    )
    return referral


@router.get("/", response_model=List[Referral])
async def list_referrals(
    institution_id: Optional[str] = None,
    direction: Literal["sent", "received"] = "received",
    status_filter: Optional[ReferralStatus] = Query(None, alias="status"),
    urgency: Optional[ReferralUrgency] = None,
    current_user: User = Depends(get_current_user),
) -> List[Referral]:
    if institution_id is None:
        referrals = referral_service.list_for_user(current_user.id)
        return [
            r for r in referrals
            if (status_filter is None or r.status == status_filter) and (urgency is None or r.urgency == urgency)
        ]
    ensure_staff(current_user)
    return referral_service.list_for_institution(
        institution_id,
        direction=direction,
        status=status_filter,
        urgency=urgency,
    )


@router.get("/search", response_model=List[Referral])
async def search_referrals(
    term: str,
    institution_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
) -> List[Referral]:
    ensure_staff(current_user)
    return referral_service.search(term, institution_id=institution_id)


@router.get("/{referral_id}", response_model=Referral)
async def get_referral(referral_id: str, current_user: User = Depends(get_current_user)) -> Referral:
    referral = referral_service.get_referral(referral_id)
    _ensure_party(current_user, referral)
    audit_service.log_event(action="get_referral", resource_type="referral", resource_id=referral_id, user=current_user)
    return referral


@router.post("/{referral_id}/accept", response_model=Referral)
async def accept_referral(
    referral_id: str,
    payload: ReferralDecisionRequest,
    current_user: User = Depends(get_current_user),
) -> Referral:
    ensure_staff(current_user)
    referral = referral_service.accept(referral_id, doctor_id=current_user.id, notes=payload.notes)
    audit_service.log_event(action="accept_referral", resource_type="referral", resource_id=referral_id, user=current_user)
    return referral


@router.post("/{referral_id}/reject", response_model=Referral)
async def reject_referral(
    referral_id: str,
    payload: ReferralDecisionRequest,
    current_user: User = Depends(get_current_user),
) -> Referral:
    ensure_staff(current_user)
    referral = referral_service.reject(referral_id, doctor_id=current_user.id, notes=payload.notes or "")
    audit_service.log_event(action="reject_referral", resource_type="referral", resource_id=referral_id, user=current_user)
    return referral


@router.post("/{referral_id}/complete", response_model=Referral)
async def complete_referral(
    referral_id: str,
    payload: ReferralDecisionRequest,
    current_user: User = Depends(get_current_user),
) -> Referral:
    ensure_staff(current_user)
    referral = referral_service.complete(referral_id, notes=payload.notes)
    audit_service.log_event(action="complete_referral", resource_type="referral", resource_id=referral_id, user=current_user)
    return referral


@router.post("/{referral_id}/cancel", response_model=Referral)
async def cancel_referral(referral_id: str, current_user: User = Depends(get_current_user)) -> Referral:
    ensure_staff(current_user)
    referral = referral_service.cancel(referral_id)
    audit_service.log_event(action="cancel_referral", resource_type="referral", resource_id=referral_id, user=current_user)
    return referral


@router.post("/{referral_id}/responses", response_model=ReferralResponse, status_code=status.HTTP_201_CREATED)
async def add_referral_response(
    referral_id: str,
    payload: ReferralResponseRequest,
    current_user: User = Depends(get_current_user),
) -> ReferralResponse:
    ensure_staff(current_user)
    return referral_service.add_response(
        ReferralResponse(referral_id=referral_id, responding_doctor_id=current_user.id, **payload.model_dump())
    )


@router.get("/{referral_id}/responses", response_model=List[ReferralResponse])
async def list_referral_responses(referral_id: str, current_user: User = Depends(get_current_user)) -> List[ReferralResponse]:
    _ensure_party(current_user, referral_service.get_referral(referral_id))
    return referral_service.list_responses(referral_id)
