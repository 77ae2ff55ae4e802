from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, utcnow


class ProviderStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class ProviderAccount(BaseModel):
    """A healthcare provider's registration, reviewed by an admin before use.

    ``id`` is the provider's user id.
    """

    id: str
    name: str
    email: EmailStr
    specialization: str = ""
    license_number: str
    institution_name: Optional[str] = None
    status: ProviderStatus = ProviderStatus.PENDING_APPROVAL
    registered_at: UtcDatetime = Field(default_factory=utcnow)
    approved_at: OptionalUtcDatetime = None
    approved_by: Optional[str] = None
    rejection_reason: Optional[str] = None
