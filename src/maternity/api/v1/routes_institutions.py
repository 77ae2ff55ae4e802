from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from src.maternity.domain.models.institution import (
    ContactInfo,
    GeoPoint,
    Institution,
    InstitutionType,
    StaffMember,
    StaffRole,
    StaffStatus,
)
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_role, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.institutions.service import institution_service

router = APIRouter(
    prefix="/institutions",
    tags=["institutions"],
    dependencies=[Depends(get_api_key)],
)


class InstitutionCreateRequest(BaseModel):
    name: str
    type: InstitutionType = InstitutionType.CLINIC
    description: str = ""
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    location: Optional[GeoPoint] = None
    timezone: str = "UTC"
    departments: List[str] = Field(default_factory=list)


class InstitutionUpdateRequest(BaseModel):
    name: Optional[str] = None
    type: Optional[InstitutionType] = None
    description: Optional[str] = None
    contact_info: Optional[ContactInfo] = None
    location: Optional[GeoPoint] = None
    timezone: Optional[str] = None
    departments: Optional[List[str]] = None


class StaffCreateRequest(BaseModel):
    user_id: str
    role: StaffRole = StaffRole.DOCTOR
    department: str = ""
    permissions: List[str] = Field(default_factory=list)


class StaffUpdateRequest(BaseModel):
    role: Optional[StaffRole] = None
    department: Optional[str] = None
    permissions: Optional[List[str]] = None
    status: Optional[StaffStatus] = None


@router.post("/", response_model=Institution, status_code=status.HTTP_201_CREATED)
async def create_institution(
    payload: InstitutionCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Institution:
    ensure_role(current_user, UserRole.INSTITUTION)
    institution = institution_service.create_institution(Institution(**payload.model_dump()))
    audit_service.log_event(action="create_institution", resource_type="institution", resource_id=institution.id, user=current_user)
    return institution


@router.get("/", response_model=List[Institution])
async def list_institutions(
    type: Optional[InstitutionType] = None,
    current_user: User = Depends(get_current_user),
) -> List[Institution]:
    return institution_service.list_institutions(type=type)


@router.get("/{institution_id}", response_model=Institution)
async def get_institution(institution_id: str, current_user: User = Depends(get_current_user)) -> Institution:
    return institution_service.get_institution(institution_id)


@router.patch("/{institution_id}", response_model=Institution)
async def update_institution(
    institution_id: str,
    payload: InstitutionUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> Institution:
    ensure_role(current_user, UserRole.INSTITUTION)
    institution = institution_service.update_institution(institution_id, payload.model_dump(exclude_unset=True))
    audit_service.log_event(action="update_institution", resource_type="institution", resource_id=institution_id, user=current_user)
    return institution


@router.delete("/{institution_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_institution(institution_id: str, current_user: User = Depends(get_current_user)) -> Response:
    ensure_role(current_user)
    institution_service.delete_institution(institution_id)
    audit_service.log_event(action="delete_institution", resource_type="institution", resource_id=institution_id, user=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{institution_id}/staff", response_model=List[StaffMember])
async def list_staff(
    institution_id: str,
    status_filter: Optional[StaffStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
) -> List[StaffMember]:
    ensure_role(current_user, UserRole.INSTITUTION, UserRole.PROVIDER)
    return institution_service.list_staff(institution_id, status=status_filter)


@router.post("/{institution_id}/staff", response_model=StaffMember, status_code=status.HTTP_201_CREATED)
async def add_staff(
    institution_id: str,
    payload: StaffCreateRequest,
    current_user: User = Depends(get_current_user),
) -> StaffMember:
    ensure_role(current_user, UserRole.INSTITUTION)
    member = institution_service.add_staff(StaffMember(institution_id=institution_id, **payload.model_dump()))
    audit_service.log_event(
        action="add_staff",
        resource_type="staff_member",
        resource_id=member.id,
        user=current_user,
        extra={"institution_id": institution_id, "role": member.role.value},
    )
    return member


@router.patch("/{institution_id}/staff/{staff_id}", response_model=StaffMember)
async def update_staff(
    institution_id: str,
    staff_id: str,
    payload: StaffUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> StaffMember:
    ensure_role(current_user, UserRole.INSTITUTION)
    member = institution_service.update_staff(staff_id, payload.model_dump(exclude_unset=True))
    audit_service.log_event(action="update_staff", resource_type="staff_member", resource_id=staff_id, user=current_user)
    return member


@router.delete("/{institution_id}/staff/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_staff(institution_id: str, staff_id: str, current_user: User = Depends(get_current_user)) -> Response:
    ensure_role(current_user, UserRole.INSTITUTION)
    institution_service.remove_staff(staff_id)
    audit_service.log_event(action="remove_staff", resource_type="staff_member", resource_id=staff_id, user=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
