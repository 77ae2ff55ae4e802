from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.common import UtcDatetime, new_id, utcnow


class Conversation(BaseModel):
    id: str = Field(default_factory=new_id)
    patient_id: str
    provider_id: str
    last_message_id: Optional[str] = None
    last_message_preview: Optional[str] = None
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class Message(BaseModel):
    id: str = Field(default_factory=new_id)
    conversation_id: str
    sender_id: str
    sender_role: str
    content: str
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    read: bool = False


class NotificationType(str, Enum):
    ALERT = "alert"
    MESSAGE = "message"
    APPOINTMENT = "appointment"
    RISK_ALERT = "risk_alert"
    RECOMMENDATION = "recommendation"
    REFERRAL = "referral"
    TASK = "task"
    ACCOUNT = "account"


class Notification(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    type: NotificationType
    title: str
    message: str
    read: bool = False
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    # Id of the entity the notification is about (appointment, alert, ...).
    related_id: Optional[str] = None
