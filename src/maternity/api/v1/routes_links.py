from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from src.maternity.domain.models.patient_link import LinkPermissions, LinkStatus, PatientLink
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_self_or_staff, ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.linking.service import patient_link_service

router = APIRouter(
    prefix="/links",
    tags=["links"],
    dependencies=[Depends(get_api_key)],
)


class CodeRequest(BaseModel):
    institution_id: Optional[str] = None
    referrer_id: Optional[str] = None


class RedeemRequest(BaseModel):
    link_code: str
    # Staff may redeem on a patient's behalf; patients always redeem for themselves.
    patient_id: Optional[str] = None


class ManualLinkRequest(BaseModel):
    patient_id: str
    institution_id: Optional[str] = None
    permissions: Optional[LinkPermissions] = None
    notes: Optional[str] = None


class LinkUpdateRequest(BaseModel):
    permissions: Optional[LinkPermissions] = None
    status: Optional[LinkStatus] = None
    notes: Optional[str] = None


def _resolve_institution(user: User, requested: Optional[str]) -> str:
    institution_id = requested or user.institution_id
    if not institution_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="institution_id is required",
        )
    return institution_id


@router.post("/qr", response_model=PatientLink, status_code=status.HTTP_201_CREATED)
async def generate_qr_code(payload: CodeRequest, current_user: User = Depends(get_current_user)) -> PatientLink:
    ensure_staff(current_user)
    institution_id = _resolve_institution(current_user, payload.institution_id)
    link = patient_link_service.generate_qr_code(institution_id, created_by=current_user.id)

    audit_service.log_event(
        action="generate_qr_code",
        resource_type="patient_link",
        resource_id=link.id,
        user=current_user,
        extra={"institution_id": institution_id},
    )
    return link


@router.post("/referral", response_model=PatientLink, status_code=status.HTTP_201_CREATED)
async def generate_referral_code(payload: CodeRequest, current_user: User = Depends(get_current_user)) -> PatientLink:
    ensure_staff(current_user)
    institution_id = _resolve_institution(current_user, payload.institution_id)
    link = patient_link_service.generate_referral_code(
        institution_id,
        referrer_id=payload.referrer_id or current_user.id,
        created_by=current_user.id,
    )

    audit_service.log_event(
        action="generate_referral_code",
        resource_type="patient_link",
        resource_id=link.id,
        user=current_user,
        extra={"institution_id": institution_id},
    )
    return link


@router.post("/redeem", response_model=PatientLink)
async def redeem_link_code(payload: RedeemRequest, current_user: User = Depends(get_current_user)) -> PatientLink:
    patient_id = payload.patient_id if current_user.is_staff and payload.patient_id else current_user.id
    link = patient_link_service.validate_and_link(payload.link_code, patient_id)

    audit_service.log_event(
        action="redeem_link_code",
        resource_type="patient_link",
        resource_id=link.id,
        user=current_user,
        extra={"patient_id": patient_id, "institution_id": link.institution_id},
    )
    return link


@router.post("/", response_model=PatientLink, status_code=status.HTTP_201_CREATED)
async def create_manual_link(payload: ManualLinkRequest, current_user: User = Depends(get_current_user)) -> PatientLink:
    ensure_staff(current_user)
    link = patient_link_service.create_link(
        patient_id=payload.patient_id,
        institution_id=_resolve_institution(current_user, payload.institution_id),
        created_by=current_user.id,
        permissions=payload.permissions,
        notes=payload.notes,
    )
    audit_service.log_event(action="create_link", resource_type="patient_link", resource_id=link.id, user=current_user)
    return link


@router.get("/", response_model=List[PatientLink])
async def list_links(
    patient_id: Optional[str] = None,
    institution_id: Optional[str] = None,
    status_filter: Optional[LinkStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
) -> List[PatientLink]:
    if current_user.role == UserRole.PATIENT:
        return patient_link_service.list_for_patient(current_user.id)
    if patient_id is not None:
        return patient_link_service.list_for_patient(patient_id)
    return patient_link_service.list_for_institution(
        _resolve_institution(current_user, institution_id),
        status=status_filter,
    )


@router.get("/{link_id}", response_model=PatientLink)
async def get_link(link_id: str, current_user: User = Depends(get_current_user)) -> PatientLink:
    link = patient_link_service.get_link(link_id)
    ensure_self_or_staff(current_user, link.patient_id)
    return link


@router.patch("/{link_id}", response_model=PatientLink)
async def update_link(
    link_id: str,
    payload: LinkUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> PatientLink:
    ensure_staff(current_user)
    link = patient_link_service.update_link(
        link_id,
        permissions=payload.permissions,
        status=payload.status,
        notes=payload.notes,
    )
    audit_service.log_event(action="update_link", resource_type="patient_link", resource_id=link_id, user=current_user)
    return link


@router.post("/{link_id}/revoke", response_model=PatientLink)
async def revoke_link(link_id: str, current_user: User = Depends(get_current_user)) -> PatientLink:
    link = patient_link_service.get_link(link_id)
    # A patient may revoke their own link; staff may revoke any.
    ensure_self_or_staff(current_user, link.patient_id)
    link = patient_link_service.revoke_link(link_id)
    audit_service.log_event(action="revoke_link", resource_type="patient_link", resource_id=link_id, user=current_user)
    return link


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(link_id: str, current_user: User = Depends(get_current_user)) -> Response:
    ensure_staff(current_user)
    patient_link_service.delete_link(link_id)
    audit_service.log_event(action="delete_link", resource_type="patient_link", resource_id=link_id, user=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
