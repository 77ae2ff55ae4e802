from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from src.maternity.domain.models.common import UtcDatetime


class TimelineEventType(str, Enum):
    MILESTONE = "milestone"
    APPOINTMENT = "appointment"
    KICK_SESSION = "kick_session"
    ALERT = "alert"
    NOTE = "note"
    PRESCRIPTION = "prescription"
    LINK = "link"
    MEDICAL_RECORD = "medical_record"
    TASK = "task"


class TimelineEvent(BaseModel):
    type: TimelineEventType
    timestamp: UtcDatetime
    label: str
    details: Optional[str] = None
    # Id of the document the event was built from; milestones have none.
    related_id: Optional[str] = None
