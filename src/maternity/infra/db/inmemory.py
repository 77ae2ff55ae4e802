from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from src.maternity.domain.models.alert import EmergencyAlert
from src.maternity.domain.models.appointment import Appointment, DoctorAvailability
from src.maternity.domain.models.institution import Institution, StaffMember
from src.maternity.domain.models.medical_record import MedicalRecord
from src.maternity.domain.models.messaging import Conversation, Message, Notification
from src.maternity.domain.models.patient import KickSession, Patient
from src.maternity.domain.models.patient_link import PatientLink
from src.maternity.domain.models.prescription import Prescription
from src.maternity.domain.models.progress_note import ProgressNote, Recommendation
from src.maternity.domain.models.provider import ProviderAccount
from src.maternity.domain.models.referral import Referral, ReferralResponse
from src.maternity.domain.models.task import Reminder, Task
from src.maternity.infra.db.repositories import DocumentRepository, ModelT, matches_filters


class InMemoryDocumentRepository(DocumentRepository[ModelT]):
    """Dict-backed repository used for tests and local development.

    Documents are deep-copied on the way in and out so callers cannot mutate
    stored state without going through ``save``.
    """

    def __init__(self, collection: str, model: type[ModelT]) -> None:
        super().__init__(collection, model)
        self._documents: Dict[str, ModelT] = {}

    def get(self, doc_id: str) -> Optional[ModelT]:
        document = self._documents.get(doc_id)
        return document.model_copy(deep=True) if document is not None else None

    def list_by_filters(self, **filters: Any) -> Iterable[ModelT]:
        for document in list(self._documents.values()):
            if matches_filters(document, filters):
                yield document.model_copy(deep=True)

    def save(self, document: ModelT) -> None:
        self._documents[document.id] = document.model_copy(deep=True)  # type: ignore[attr-defined]

    def delete(self, doc_id: str) -> bool:
        return self._documents.pop(doc_id, None) is not None


# (attribute name, collection name, document model)
COLLECTIONS = (
    ("patients", "patients", Patient),
    ("kick_sessions", "kick_sessions", KickSession),
    ("patient_links", "patient_links", PatientLink),
    ("availability", "doctor_availability", DoctorAvailability),
    ("appointments", "appointments", Appointment),
    ("prescriptions", "prescriptions", Prescription),
    ("progress_notes", "progress_notes", ProgressNote),
    ("recommendations", "recommendations", Recommendation),
    ("medical_records", "medical_records", MedicalRecord),
    ("referrals", "referrals", Referral),
    ("referral_responses", "referral_responses", ReferralResponse),
    ("tasks", "tasks", Task),
    ("reminders", "reminders", Reminder),
    ("conversations", "conversations", Conversation),
    ("messages", "messages", Message),
    ("notifications", "notifications", Notification),
    ("alerts", "alerts", EmergencyAlert),
    ("institutions", "institutions", Institution),
    ("staff", "staff", StaffMember),
    ("providers", "providers", ProviderAccount),
)


class RepositoryRegistry:
    """Holds one repository per collection.

    Services always go through ``store.<collection>`` so that the SQL bootstrap
    can swap implementations after import.
    """

    patients: DocumentRepository[Patient]
    kick_sessions: DocumentRepository[KickSession]
    patient_links: DocumentRepository[PatientLink]
    availability: DocumentRepository[DoctorAvailability]
    appointments: DocumentRepository[Appointment]
    prescriptions: DocumentRepository[Prescription]
    progress_notes: DocumentRepository[ProgressNote]
    recommendations: DocumentRepository[Recommendation]
    medical_records: DocumentRepository[MedicalRecord]
    referrals: DocumentRepository[Referral]
    referral_responses: DocumentRepository[ReferralResponse]
    tasks: DocumentRepository[Task]
    reminders: DocumentRepository[Reminder]
    conversations: DocumentRepository[Conversation]
    messages: DocumentRepository[Message]
    notifications: DocumentRepository[Notification]
    alerts: DocumentRepository[EmergencyAlert]
    institutions: DocumentRepository[Institution]
    staff: DocumentRepository[StaffMember]
    providers: DocumentRepository[ProviderAccount]

    def __init__(self) -> None:
        for attr, collection, model in COLLECTIONS:
            setattr(self, attr, InMemoryDocumentRepository(collection, model))


store = RepositoryRegistry()
