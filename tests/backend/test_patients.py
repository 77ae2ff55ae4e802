from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.maternity.domain.models.alert import AlertType
from src.maternity.domain.models.common import new_id, utcnow
from src.maternity.domain.models.institution import StaffMember, StaffRole
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.domain.models.patient import KickSession, Patient, RiskLevel
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.main import app
from src.maternity.services.alerts.service import alert_service
from src.maternity.services.linking.service import patient_link_service
from src.maternity.services.messaging.service import notification_service
from src.maternity.services.patients.service import patient_service


def _linked_patient():
    """Create a patient linked to an institution with one doctor on staff."""

    institution_id = new_id()
    doctor_id = new_id()
    store.staff.save(StaffMember(institution_id=institution_id, user_id=doctor_id, role=StaffRole.DOCTOR))

    patient = patient_service.create_patient(Patient(id=new_id(), name="Amina", pregnancy_week=30))
    link = patient_link_service.generate_qr_code(institution_id)
    patient_link_service.validate_and_link(link.link_code, patient.id)
    return patient, institution_id, doctor_id


def test_create_and_get_patient():
    patient = patient_service.create_patient(Patient(id=new_id(), name="Grace", email="grace@example.com"))
    assert patient_service.get_patient(patient.id).risk_level == RiskLevel.LOW

    with pytest.raises(ConflictError):
        patient_service.create_patient(Patient(id=patient.id, name="Duplicate"))
    with pytest.raises(NotFoundError):
        patient_service.get_patient(new_id())


def test_update_patient_keeps_identity():
    patient = patient_service.create_patient(Patient(id=new_id(), name="Lindiwe", pregnancy_week=12))
    updated = patient_service.update_patient(patient.id, {"pregnancy_week": 13, "id": "hijack"})
    assert updated.id == patient.id
    assert updated.pregnancy_week == 13
    assert updated.updated_at >= patient.updated_at


def test_low_kick_count_raises_alert_for_care_team():
    patient, _, doctor_id = _linked_patient()

    outcome = patient_service.record_kick_session(
        KickSession(patient_id=patient.id, date=utcnow(), kick_count=2, duration=60)
    )

    assert outcome.previous_risk == RiskLevel.LOW
    assert outcome.risk_level == RiskLevel.HIGH
    assert outcome.alert is not None
    assert outcome.alert.type == AlertType.REDUCED_MOVEMENT
    assert patient_service.get_patient(patient.id).risk_level == RiskLevel.HIGH

    notifications = notification_service.list_for_user(doctor_id)
    assert [n.type for n in notifications] == [NotificationType.RISK_ALERT]
    assert notifications[0].related_id == outcome.alert.id
    assert [a.id for a in alert_service.list_alerts(patient_id=patient.id, active_only=True)] == [outcome.alert.id]


def test_risk_decrease_does_not_alert():
    patient, _, doctor_id = _linked_patient()
    patient_service.record_kick_session(KickSession(patient_id=patient.id, date=utcnow(), kick_count=3, duration=60))

    outcome = patient_service.record_kick_session(
        KickSession(patient_id=patient.id, date=utcnow(), kick_count=25, duration=60)
    )

    # Mean of 3 and 25 is 14.
    assert outcome.previous_risk == RiskLevel.HIGH
    assert outcome.risk_level == RiskLevel.LOW
    assert outcome.alert is None
    assert len(notification_service.list_for_user(doctor_id)) == 1


def test_list_kick_sessions_since():
    patient = patient_service.create_patient(Patient(id=new_id(), name="Zola"))
    now = utcnow()
    for hours_ago in (48, 2):
        store.kick_sessions.save(
            KickSession(patient_id=patient.id, date=now - timedelta(hours=hours_ago), kick_count=10, duration=60)
        )

    assert len(patient_service.list_kick_sessions(patient.id)) == 2
    recent = patient_service.list_kick_sessions(patient.id, since=now - timedelta(hours=24))
    assert len(recent) == 1


def test_list_patients_by_institution_includes_linked_patients():
    patient, institution_id, _ = _linked_patient()
    other = patient_service.create_patient(Patient(id=new_id(), name="Unlinked"))

    listed = [p.id for p in patient_service.list_patients(institution_id=institution_id)]
    assert patient.id in listed
    assert other.id not in listed


async def test_patient_profile_and_kick_session_via_api():
    patient_id = new_id()
    headers = {"X-User-ID": patient_id, "X-User-Role": "patient"}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        create_resp = await ac.post("/api/v1/patients/", json={"name": "Esi", "pregnancy_week": 34}, headers=headers)
        assert create_resp.status_code == status.HTTP_201_CREATED
        assert create_resp.json()["id"] == patient_id

        session_resp = await ac.post(
            f"/api/v1/patients/{patient_id}/kick-sessions",
            json={"kick_count": 12, "duration": 120, "phone_on_abdomen": True},
            headers=headers,
        )
        assert session_resp.status_code == status.HTTP_201_CREATED
        body = session_resp.json()
        assert body["risk_level"] == "low"
        assert body["alert_id"] is None
        assert body["session_assessment"]["status"] == "Normal"

        risk_resp = await ac.get(f"/api/v1/patients/{patient_id}/risk", headers=headers)
        assert risk_resp.json() == {"patient_id": patient_id, "risk_level": "low", "sessions_considered": 1}

        ai_resp = await ac.post(f"/api/v1/patients/{patient_id}/risk/ai", json={}, headers=headers)
        assert ai_resp.status_code == status.HTTP_200_OK
        assert ai_resp.json()["risk"] == "low"

        symptoms_resp = await ac.post(
            f"/api/v1/patients/{patient_id}/symptoms/analyze",
            json={"symptoms": ["swelling"], "severity": "moderate"},
            headers=headers,
        )
        assert symptoms_resp.json()["urgency"] == "medium"

        other_patient = await ac.get(
            f"/api/v1/patients/{patient_id}",
            headers={"X-User-ID": "someone-else", "X-User-Role": "patient"},
        )
        assert other_patient.status_code == status.HTTP_403_FORBIDDEN

        patients_list = await ac.get("/api/v1/patients/", headers=headers)
        assert patients_list.status_code == status.HTTP_403_FORBIDDEN


async def test_invalid_kick_session_payload_is_rejected():
    patient_id = new_id()
    headers = {"X-User-ID": patient_id, "X-User-Role": "patient"}
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        await ac.post("/api/v1/patients/", json={"name": "Nia"}, headers=headers)
        resp = await ac.post(
            f"/api/v1/patients/{patient_id}/kick-sessions",
            json={"kick_count": -1, "duration": 0},
            headers=headers,
        )
    assert resp.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert resp.json()["error"]["code"] == "validation_error"
