from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from src.maternity.domain.models.messaging import Conversation, Message, Notification, NotificationType
from src.maternity.domain.models.user import User
from src.maternity.security import ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.messaging.service import messaging_service, notification_service

router = APIRouter(
    prefix="",
    tags=["messaging"],
    dependencies=[Depends(get_api_key)],
)


class SendMessageRequest(BaseModel):
    recipient_id: str
    content: str = Field(min_length=1, max_length=5000)


@router.get("/conversations", response_model=List[Conversation])
async def list_conversations(current_user: User = Depends(get_current_user)) -> List[Conversation]:
    return messaging_service.list_conversations(current_user.id)


@router.get("/conversations/{conversation_id}/messages", response_model=List[Message])
async def list_messages(conversation_id: str, current_user: User = Depends(get_current_user)) -> List[Message]:
    return messaging_service.list_messages(conversation_id, user=current_user)


@router.post("/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(payload: SendMessageRequest, current_user: User = Depends(get_current_user)) -> Message:
    message = messaging_service.send_message(
        sender=current_user,
        recipient_id=payload.recipient_id,
        content=payload.content,
    )
    # Message content is not logged.
    audit_service.log_event(
        action="send_message",
        resource_type="message",
        resource_id=message.id,
        user=current_user,
        extra={"conversation_id": message.conversation_id},
    )
    return message


@router.post("/messages/{message_id}/read", response_model=Message)
async def mark_message_read(message_id: str, current_user: User = Depends(get_current_user)) -> Message:
    return messaging_service.mark_read(message_id, user=current_user)


@router.get("/notifications", response_model=List[Notification])
async def list_notifications(
    unread_only: bool = False,
    current_user: User = Depends(get_current_user),
) -> List[Notification]:
    return notification_service.list_for_user(current_user.id, unread_only=unread_only)


@router.post("/notifications/{notification_id}/read", response_model=Notification)
async def mark_notification_read(notification_id: str, current_user: User = Depends(get_current_user)) -> Notification:
    return notification_service.mark_read(notification_id, user=current_user)


class NotificationCreateRequest(BaseModel):
    user_id: str
    type: NotificationType = NotificationType.ALERT
    title: str
    message: str
    related_id: Optional[str] = None


@router.post("/notifications", response_model=Notification, status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: NotificationCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Notification:
    ensure_staff(current_user)
    return notification_service.notify(**payload.model_dump())
