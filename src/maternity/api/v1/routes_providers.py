from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr

from src.maternity.domain.models.provider import ProviderAccount, ProviderStatus
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_role, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.providers.service import provider_service

router = APIRouter(
    prefix="/providers",
    tags=["providers"],
    dependencies=[Depends(get_api_key)],
)


class ProviderRegistrationRequest(BaseModel):
    name: str
    email: EmailStr
    specialization: str = ""
    license_number: str
    institution_name: Optional[str] = None


class ProviderRejectRequest(BaseModel):
    reason: str


@router.post("/", response_model=ProviderAccount, status_code=status.HTTP_201_CREATED)
async def register_provider(
    payload: ProviderRegistrationRequest,
    current_user: User = Depends(get_current_user),
) -> ProviderAccount:
    ensure_role(current_user, UserRole.PROVIDER)
    account = provider_service.register_provider(ProviderAccount(id=current_user.id, **payload.model_dump()))

    audit_service.log_event(action="register_provider", resource_type="provider", resource_id=account.id, user=current_user)
    return account


@router.get("/", response_model=List[ProviderAccount])
async def list_providers(
    status: Optional[ProviderStatus] = None,
    current_user: User = Depends(get_current_user),
) -> List[ProviderAccount]:
    ensure_role(current_user)
    return provider_service.list_providers(status=status)


@router.get("/pending", response_model=List[ProviderAccount])
async def list_pending_providers(current_user: User = Depends(get_current_user)) -> List[ProviderAccount]:
    ensure_role(current_user)
    return provider_service.list_pending()


@router.get("/{provider_id}", response_model=ProviderAccount)
async def get_provider(provider_id: str, current_user: User = Depends(get_current_user)) -> ProviderAccount:
    if current_user.id != provider_id:
        ensure_role(current_user)
    return provider_service.get_provider(provider_id)


@router.post("/{provider_id}/approve", response_model=ProviderAccount)
async def approve_provider(provider_id: str, current_user: User = Depends(get_current_user)) -> ProviderAccount:
    ensure_role(current_user)
    account = provider_service.approve(provider_id, admin_id=current_user.id)

    audit_service.log_event(action="approve_provider", resource_type="provider", resource_id=provider_id, user=current_user)
    return account


@router.post("/{provider_id}/reject", response_model=ProviderAccount)
async def reject_provider(
    provider_id: str,
    payload: ProviderRejectRequest,
    current_user: User = Depends(get_current_user),
) -> ProviderAccount:
    ensure_role(current_user)
    account = provider_service.reject(provider_id, admin_id=current_user.id, reason=payload.reason)

    audit_service.log_event(action="reject_provider", resource_type="provider", resource_id=provider_id, user=current_user)
    return account
