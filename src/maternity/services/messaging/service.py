from __future__ import annotations

from typing import List, Optional

from src.maternity.domain.models.messaging import Conversation, Message, Notification, NotificationType
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import NotFoundError, PermissionDeniedError
from src.maternity.infra.db.inmemory import store

PREVIEW_LENGTH = 80


class NotificationService:
    def notify(
        self,
        *,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        related_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
        )
        store.notifications.save(notification)
        return notification

    def list_for_user(self, user_id: str, *, unread_only: bool = False) -> List[Notification]:
        items = [
            n for n in store.notifications.list_by_filters(user_id=user_id)
            if not (unread_only and n.read)
        ]
        items.sort(key=lambda n: n.timestamp, reverse=True)
        return items

    def mark_read(self, notification_id: str, *, user: User) -> Notification:
        notification = store.notifications.get(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        if notification.user_id != user.id and user.role != UserRole.ADMIN:
            raise PermissionDeniedError("Not authorized to update this notification")
        notification.read = True
        store.notifications.save(notification)
        return notification


class MessagingService:
    """Patient/provider conversations.

    There is at most one conversation per (patient, provider) pair; sending a
    message reuses it.
    """

    def __init__(self, notifications: NotificationService) -> None:
        self._notifications = notifications

    def list_conversations(self, user_id: str) -> List[Conversation]:
        seen = {c.id: c for c in store.conversations.list_by_filters(patient_id=user_id)}
        for conversation in store.conversations.list_by_filters(provider_id=user_id):
            seen[conversation.id] = conversation
        return sorted(seen.values(), key=lambda c: c.updated_at, reverse=True)

    def get_conversation(self, conversation_id: str, *, user: User) -> Conversation:
        conversation = store.conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        self._ensure_participant(conversation, user)
        return conversation

    def list_messages(self, conversation_id: str, *, user: User) -> List[Message]:
        self.get_conversation(conversation_id, user=user)
        messages = list(store.messages.list_by_filters(conversation_id=conversation_id))
        messages.sort(key=lambda m: m.timestamp)
        return messages

    def send_message(self, *, sender: User, recipient_id: str, content: str) -> Message:
        if sender.role == UserRole.PATIENT:
            patient_id, provider_id = sender.id, recipient_id
        else:
            patient_id, provider_id = recipient_id, sender.id

        conversation = next(
            iter(store.conversations.list_by_filters(patient_id=patient_id, provider_id=provider_id)),
            None,
        )
        if conversation is None:
            conversation = Conversation(patient_id=patient_id, provider_id=provider_id)

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender.id,
            sender_role=sender.role.value,
            content=content,
        )
        store.messages.save(message)

        conversation.last_message_id = message.id
        conversation.last_message_preview = content[:PREVIEW_LENGTH]
        conversation.updated_at = message.timestamp
        store.conversations.save(conversation)

        self._notifications.notify(
            user_id=recipient_id,
            type=NotificationType.MESSAGE,
            title="New message",
            message="You have a new message.",
            related_id=conversation.id,
        )
        return message

    def mark_read(self, message_id: str, *, user: User) -> Message:
        message = store.messages.get(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        self.get_conversation(message.conversation_id, user=user)
        message.read = True
        store.messages.save(message)
        return message

    @staticmethod
    def _ensure_participant(conversation: Conversation, user: User) -> None:
        if user.role == UserRole.ADMIN:
            return
        if user.id not in {conversation.patient_id, conversation.provider_id}:
            raise PermissionDeniedError("Not a participant in this conversation")


notification_service = NotificationService()
messaging_service = MessagingService(notification_service)
