from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.maternity.domain.models.common import new_id
from src.maternity.domain.models.medical_record import FilePermissions, MedicalRecord
from src.maternity.domain.models.patient import KickSession, Patient
from src.maternity.domain.models.patient_timeline import TimelineEventType
from src.maternity.domain.models.progress_note import NoteStatus, ProgressNote
from src.maternity.domain.models.task import Task, TaskStatus
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.main import app
from src.maternity.services.patients.service import patient_service
from src.maternity.services.patients.summary_service import patient_summary_service

NOW = datetime(2030, 3, 1, 12, tzinfo=timezone.utc)
DOCTOR = User(id="doc-timeline", email="doc@example.com", role=UserRole.PROVIDER)


def _patient_with_history():
    patient = patient_service.create_patient(
        Patient(id=new_id(), name="Halima", due_date=NOW + timedelta(weeks=10))
    )
    store.kick_sessions.save(
        KickSession(patient_id=patient.id, date=NOW - timedelta(days=1), kick_count=12, duration=60)
    )
    for title, note_status in (("Shared plan", NoteStatus.VISIBLE), ("Draft thoughts", NoteStatus.DRAFT)):
        store.progress_notes.save(
            ProgressNote(
                patient_id=patient.id,
                doctor_id=DOCTOR.id,
                title=title,
                content="...",
                status=note_status,
                created_at=NOW - timedelta(days=2),
            )
        )
    for name, confidential in (("scan.pdf", False), ("psych.pdf", True)):
        store.medical_records.save(
            MedicalRecord(
                patient_id=patient.id,
                uploaded_by=DOCTOR.id,
                file_name=name,
                file_type="application/pdf",
                file_size=10,
                storage_url=f"/tmp/{name}",
                is_confidential=confidential,
                access_permissions=FilePermissions(view=[DOCTOR.id], download=[DOCTOR.id], share=[DOCTOR.id]),
                uploaded_at=NOW - timedelta(days=3),
            )
        )
    for title, task_status in (("Glucose test", TaskStatus.COMPLETED), ("Iron supplements", TaskStatus.PENDING)):
        store.tasks.save(
            Task(
                patient_id=patient.id,
                assigned_to=patient.id,
                created_by=DOCTOR.id,
                title=title,
                status=task_status,
                due_date=NOW - timedelta(days=4),
                completed_at=NOW - timedelta(days=4) if task_status == TaskStatus.COMPLETED else None,
            )
        )
    return patient


def test_timeline_for_patient_hides_private_notes_and_confidential_records():
    patient = _patient_with_history()
    viewer = User(id=patient.id, email="halima@example.com", role=UserRole.PATIENT)

    events = patient_summary_service.build_timeline(patient.id, user=viewer, now=NOW)

    labels = {e.type: [] for e in events}
    for event in events:
        labels[event.type].append(event.label)
    assert labels[TimelineEventType.NOTE] == ["Shared plan"]
    assert labels[TimelineEventType.MEDICAL_RECORD] == ["scan.pdf"]
    assert labels[TimelineEventType.TASK] == ["Glucose test"]
    assert labels[TimelineEventType.KICK_SESSION] == ["12 kicks in 60 minutes"]
    # Due in ten weeks means week 30 today: milestones up to week 28 are reached.
    assert labels[TimelineEventType.MILESTONE] == ["Week 28", "Week 24", "Week 20", "Week 16", "Week 12", "Week 8", "Week 4"]

    timestamps = [e.timestamp for e in events]
    assert timestamps == sorted(timestamps, reverse=True)


def test_timeline_for_staff_includes_everything():
    patient = _patient_with_history()

    events = patient_summary_service.build_timeline(patient.id, user=DOCTOR, now=NOW)

    notes = sorted(e.label for e in events if e.type == TimelineEventType.NOTE)
    records = sorted(e.label for e in events if e.type == TimelineEventType.MEDICAL_RECORD)
    assert notes == ["Draft thoughts", "Shared plan"]
    assert records == ["psych.pdf", "scan.pdf"]


def test_timeline_without_due_date_has_no_milestones():
    patient = patient_service.create_patient(Patient(id=new_id(), name="Zara"))

    assert patient_summary_service.build_timeline(patient.id, user=DOCTOR, now=NOW) == []
    with pytest.raises(NotFoundError):
        patient_summary_service.build_timeline(new_id(), user=DOCTOR)


async def test_timeline_via_api():
    patient = _patient_with_history()
    own = {"X-User-ID": patient.id, "X-User-Role": "patient"}

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.get(f"/api/v1/patients/{patient.id}/timeline", headers=own)
        assert resp.status_code == status.HTTP_200_OK
        types = {event["type"] for event in resp.json()}
        assert {"note", "medical_record", "task", "kick_session"} <= types
        assert "Draft thoughts" not in [event["label"] for event in resp.json()]

        other = await ac.get(
            f"/api/v1/patients/{patient.id}/timeline",
            headers={"X-User-ID": "someone-else", "X-User-Role": "patient"},
        )
        assert other.status_code == status.HTTP_403_FORBIDDEN

        missing = await ac.get(f"/api/v1/patients/{new_id()}/timeline")
        assert missing.status_code == status.HTTP_404_NOT_FOUND
