from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, new_id, utcnow
from src.maternity.domain.models.patient import RiskLevel


class AlertType(str, Enum):
    REDUCED_MOVEMENT = "reduced_movement"
    PAIN = "pain"
    BLEEDING = "bleeding"
    OTHER = "other"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class EmergencyAlert(BaseModel):
    id: str = Field(default_factory=new_id)
    patient_id: str
    type: AlertType
    severity: RiskLevel
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    status: AlertStatus = AlertStatus.ACTIVE
    location: Optional[str] = None
    description: Optional[str] = None
    resolved_at: OptionalUtcDatetime = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
