from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, new_id, utcnow


class LinkType(str, Enum):
    QR = "qr"
    REFERRAL = "referral"
    MANUAL = "manual"


class LinkStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    REVOKED = "revoked"


class LinkSource(str, Enum):
    WALKIN = "walkin"
    REFERRAL = "referral"
    ONLINE = "online"


class LinkPermissions(BaseModel):
    view_records: bool = False
    create_consultations: bool = False
    manage_prescriptions: bool = False
    send_notifications: bool = False
    share_data: bool = False


class LinkMetadata(BaseModel):
    source: LinkSource = LinkSource.ONLINE
    referrer: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class PatientLink(BaseModel):
    """Association between a patient and a healthcare institution.

    Generated links start out ``pending`` with no patient attached; redeeming
    the ``link_code`` fills in ``patient_id`` and activates the link.
    """

    id: str = Field(default_factory=new_id)
    patient_id: Optional[str] = None
    institution_id: str
    link_type: LinkType
    link_code: str
    permissions: LinkPermissions = Field(default_factory=LinkPermissions)
    status: LinkStatus = LinkStatus.PENDING
    linked_at: UtcDatetime = Field(default_factory=utcnow)
    linked_by: Optional[str] = None
    expires_at: OptionalUtcDatetime = None
    metadata: LinkMetadata = Field(default_factory=LinkMetadata)
