from __future__ import annotations

import hashlib
from contextvars import ContextVar
from typing import List, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from src.maternity.config import settings
from src.maternity.domain.models.user import User, UserRole
from src.maternity.services.users.service import user_service

# API key is expected in this header when ENABLE_API_AUTH is true.
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Stable, non-raw identifier for the current caller (a hashed API key when
# auth is enabled).
_current_subject: ContextVar[Optional[str]] = ContextVar("current_subject", default=None)


def get_current_subject() -> Optional[str]:
    return _current_subject.get()


def _parse_api_keys() -> List[str]:
    if not settings.api_keys:
        return []
    return [key.strip() for key in settings.api_keys.split(",") if key.strip()]


def subject_for_api_key(api_key: str) -> str:
    return "api-key:" + hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]


async def get_api_key(api_key: Optional[str] = Security(_api_key_header)) -> str:
    """FastAPI dependency for simple API-key based authentication.

    - If ENABLE_API_AUTH is false (development/tests), this always succeeds.
    - If ENABLE_API_AUTH is true, X-API-Key must match one of API_KEYS.
    """

    if not settings.enable_api_auth:
        _current_subject.set(None)
        return ""

    allowed_keys = _parse_api_keys()
    if not allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API authentication is enabled but no API keys are configured.",
        )

    if not api_key or api_key not in allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
        )

    _current_subject.set(subject_for_api_key(api_key))
    return api_key


async def get_current_user(
    api_key: str = Depends(get_api_key),
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    x_user_role: Optional[UserRole] = Header(None, alias="X-User-Role"),
    x_institution_id: Optional[str] = Header(None, alias="X-Institution-ID"),
) -> User:
    """Resolve the calling User.

    With auth disabled the identity headers are trusted as-is so that local
    clients and tests can act as any patient or provider; without them the
    caller is an anonymous admin. With auth enabled the user is looked up by
    the hashed API key, and unknown keys resolve to a provider account.
    """

    subject = get_current_subject()
    if subject is None:
        user_id = x_user_id or "anonymous"
        role = x_user_role or UserRole.ADMIN
        return user_service.upsert_user_for_subject(
            subject=f"dev:{user_id}:{role.value}",
            user_id=user_id,
            role=role,
            institution_id=x_institution_id,
        )

    user = user_service.get_user_by_subject(subject)
    if user is None:
        user = user_service.upsert_user_for_subject(
            subject=subject,
            user_id=subject,
            role=UserRole.PROVIDER,
        )
    return user


def ensure_role(user: User, *roles: UserRole) -> None:
    """Raise HTTP 403 unless the user has one of ``roles``; admins always pass."""

    if user.role == UserRole.ADMIN or user.role in roles:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Role '{user.role.value}' is not allowed to perform this action",
    )


def ensure_staff(user: User) -> None:
    ensure_role(user, UserRole.PROVIDER, UserRole.INSTITUTION)


def ensure_self_or_staff(user: User, patient_id: Optional[str]) -> None:
    """Patients may only touch their own data; staff may touch anyone's."""

    if user.is_staff:
        return
    if patient_id is None or user.id != patient_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access another patient's data",
        )
