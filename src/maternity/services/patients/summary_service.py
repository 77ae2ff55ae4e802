from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from src.maternity.domain.models.common import ensure_utc, utcnow
from src.maternity.domain.models.patient import Patient
from src.maternity.domain.models.patient_link import LinkStatus
from src.maternity.domain.models.patient_timeline import TimelineEvent, TimelineEventType
from src.maternity.domain.models.progress_note import NoteStatus
from src.maternity.domain.models.task import TaskStatus
from src.maternity.domain.models.user import User
from src.maternity.infra.db.inmemory import store
from src.maternity.services.patients.service import patient_service
from src.maternity.services.records.service import can_view

PREGNANCY_WEEKS = 40

FETAL_MILESTONES = {
    4: "Embryo implants and the neural tube starts forming",
    8: "Heartbeat is detectable and limbs are forming",
    12: "All major organs are formed",
    16: "Baby can make facial expressions",
    20: "Halfway there; movements may be felt",
    24: "Lungs begin producing surfactant",
    28: "Eyes can open and close",
    32: "Baby practises breathing movements",
    36: "Baby is considered early term soon",
    40: "Due date",
}


def _milestone_events(patient: Patient, now: datetime) -> List[TimelineEvent]:
    if patient.due_date is None:
        return []
    conception = patient.due_date - timedelta(weeks=PREGNANCY_WEEKS)
    events = []
    for week, label in FETAL_MILESTONES.items():
        reached = conception + timedelta(weeks=week)
        if reached <= now:
            events.append(
                TimelineEvent(
                    type=TimelineEventType.MILESTONE,
                    timestamp=reached,
                    label=f"Week {week}",
                    details=label,
                )
            )
    return events


class PatientSummaryService:
    """Build a patient's pregnancy timeline from everything recorded about them.

    Events are filtered by what ``user`` may see: patients only get notes that
    were made visible and records their access rules allow.
    """

    def build_timeline(
        self,
        patient_id: str,
        *,
        user: User,
        now: Optional[datetime] = None,
    ) -> List[TimelineEvent]:
        patient = patient_service.get_patient(patient_id)
        now = ensure_utc(now) if now is not None else utcnow()

        events: List[TimelineEvent] = _milestone_events(patient, now)

        for appointment in store.appointments.list_by_filters(patient_id=patient_id):
            events.append(
                TimelineEvent(
                    type=TimelineEventType.APPOINTMENT,
                    timestamp=appointment.scheduled_time,
                    label=f"{appointment.type.value.capitalize()} appointment ({appointment.status.value})",
                    details=appointment.reason,
                    related_id=appointment.id,
                )
            )

        for session in store.kick_sessions.list_by_filters(patient_id=patient_id):
            events.append(
                TimelineEvent(
                    type=TimelineEventType.KICK_SESSION,
                    timestamp=session.date,
                    label=f"{session.kick_count} kicks in {session.duration:g} minutes",
                    details=session.notes,
                    related_id=session.id,
                )
            )

        for alert in store.alerts.list_by_filters(patient_id=patient_id):
            events.append(
                TimelineEvent(
                    type=TimelineEventType.ALERT,
                    timestamp=alert.timestamp,
                    label=f"{alert.severity.value.capitalize()} alert: {alert.type.value}",
                    details=alert.description,
                    related_id=alert.id,
                )
            )

        note_filters = {"patient_id": patient_id}
        if not user.is_staff:
            note_filters["status"] = NoteStatus.VISIBLE
        for note in store.progress_notes.list_by_filters(**note_filters):
            events.append(
                TimelineEvent(
                    type=TimelineEventType.NOTE,
                    timestamp=note.created_at,
                    label=note.title,
                    details=note.category.value,
                    related_id=note.id,
                )
            )

        for prescription in store.prescriptions.list_by_filters(patient_id=patient_id):
            events.append(
                TimelineEvent(
                    type=TimelineEventType.PRESCRIPTION,
                    timestamp=prescription.created_at,
                    label=", ".join(m.name for m in prescription.medications),
                    details=prescription.diagnosis,
                    related_id=prescription.id,
                )
            )

        for link in store.patient_links.list_by_filters(patient_id=patient_id, status=LinkStatus.ACTIVE):
            events.append(
                TimelineEvent(
                    type=TimelineEventType.LINK,
                    timestamp=link.linked_at,
                    label="Linked to institution",
                    details=link.institution_id,
                    related_id=link.id,
                )
            )

        for record in store.medical_records.list_by_filters(patient_id=patient_id):
            if not can_view(record, user):
                continue
            events.append(
                TimelineEvent(
                    type=TimelineEventType.MEDICAL_RECORD,
                    timestamp=record.uploaded_at,
                    label=record.file_name,
                    details=record.category.value,
                    related_id=record.id,
                )
            )

        for task in store.tasks.list_by_filters(patient_id=patient_id, status=TaskStatus.COMPLETED):
            events.append(
                TimelineEvent(
                    type=TimelineEventType.TASK,
                    timestamp=task.completed_at or task.updated_at,
                    label=task.title,
                    details=task.category.value,
                    related_id=task.id,
                )
            )

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events


patient_summary_service = PatientSummaryService()
