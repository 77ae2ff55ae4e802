import pytest
from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.maternity.domain.models.alert import AlertStatus, AlertType
from src.maternity.domain.models.common import new_id
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.domain.models.patient import RiskLevel
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import ConflictError, PermissionDeniedError
from src.maternity.main import app
from src.maternity.services.alerts.service import alert_service
from src.maternity.services.messaging.service import messaging_service, notification_service


def _user(role):
    return User(id=new_id(), email="user@example.com", role=role)


def test_messages_reuse_the_pair_conversation():
    patient = _user(UserRole.PATIENT)
    provider = _user(UserRole.PROVIDER)

    first = messaging_service.send_message(sender=patient, recipient_id=provider.id, content="Feeling dizzy")
    reply = messaging_service.send_message(sender=provider, recipient_id=patient.id, content="Please rest and hydrate")

    assert first.conversation_id == reply.conversation_id
    conversations = messaging_service.list_conversations(patient.id)
    assert len(conversations) == 1
    assert conversations[0].last_message_id == reply.id
    assert conversations[0].last_message_preview == "Please rest and hydrate"
    assert messaging_service.list_conversations(provider.id)[0].id == conversations[0].id

    assert [m.id for m in messaging_service.list_messages(first.conversation_id, user=patient)] == [first.id, reply.id]
    assert notification_service.list_for_user(provider.id)[0].type == NotificationType.MESSAGE


def test_only_participants_read_conversations():
    patient = _user(UserRole.PATIENT)
    provider = _user(UserRole.PROVIDER)
    message = messaging_service.send_message(sender=patient, recipient_id=provider.id, content="Hello")

    with pytest.raises(PermissionDeniedError):
        messaging_service.list_messages(message.conversation_id, user=_user(UserRole.PROVIDER))

    assert messaging_service.mark_read(message.id, user=provider).read is True


def test_notifications_newest_first_and_mark_read():
    user = _user(UserRole.PATIENT)
    older = notification_service.notify(user_id=user.id, type=NotificationType.TASK, title="a", message="a")
    newer = notification_service.notify(user_id=user.id, type=NotificationType.TASK, title="b", message="b")

    items = notification_service.list_for_user(user.id)
    assert {n.id for n in items} == {newer.id, older.id}
    assert items[0].timestamp >= items[-1].timestamp

    notification_service.mark_read(older.id, user=user)
    assert [n.id for n in notification_service.list_for_user(user.id, unread_only=True)] == [newer.id]

    with pytest.raises(PermissionDeniedError):
        notification_service.mark_read(newer.id, user=_user(UserRole.PATIENT))


def test_alert_resolution():
    patient_id = new_id()
    alert = alert_service.raise_alert(patient_id=patient_id, type=AlertType.BLEEDING, severity=RiskLevel.HIGH)
    assert alert.status == AlertStatus.ACTIVE

    resolved = alert_service.resolve(alert.id, resolved_by="doc-alerts", notes="Seen in triage")
    assert resolved.status == AlertStatus.RESOLVED
    assert resolved.resolved_at is not None
    assert alert_service.list_alerts(patient_id=patient_id, active_only=True) == []
    assert len(alert_service.list_alerts(patient_id=patient_id)) == 1

    with pytest.raises(ConflictError):
        alert_service.resolve(alert.id, resolved_by="doc-alerts")


async def test_messaging_and_alerts_via_api():
    patient_id = new_id()
    provider_id = new_id()
    patient_headers = {"X-User-ID": patient_id, "X-User-Role": "patient"}
    provider_headers = {"X-User-ID": provider_id, "X-User-Role": "provider"}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        sent = await ac.post(
            "/api/v1/messages",
            json={"recipient_id": provider_id, "content": "Is swelling normal?"},
            headers=patient_headers,
        )
        assert sent.status_code == status.HTTP_201_CREATED

        inbox = await ac.get("/api/v1/notifications", params={"unread_only": True}, headers=provider_headers)
        assert [n["type"] for n in inbox.json()] == ["message"]

        empty = await ac.post("/api/v1/messages", json={"recipient_id": provider_id, "content": ""}, headers=patient_headers)
        assert empty.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

        alert = await ac.post("/api/v1/alerts/", json={"type": "pain", "location": "home"}, headers=patient_headers)
        assert alert.status_code == status.HTTP_201_CREATED
        assert alert.json()["patient_id"] == patient_id

        resolve_as_patient = await ac.post(f"/api/v1/alerts/{alert.json()['id']}/resolve", json={}, headers=patient_headers)
        assert resolve_as_patient.status_code == status.HTTP_403_FORBIDDEN

        resolved = await ac.post(f"/api/v1/alerts/{alert.json()['id']}/resolve", json={}, headers=provider_headers)
        assert resolved.json()["status"] == "resolved"
