from __future__ import annotations

from typing import Any, Dict, List, Optional

from src.maternity.domain.models.common import utcnow
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.domain.models.progress_note import (
    NoteCategory,
    NoteStatus,
    NoteVisibility,
    ProgressNote,
    Recommendation,
    RecommendationStatus,
)
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.services.messaging.service import NotificationService, notification_service

_IMMUTABLE_NOTE_FIELDS = ("id", "patient_id", "doctor_id", "created_at", "approved_at", "approved_by", "status")


class ProgressNoteService:
    """Progress notes go draft -> approved -> visible; archiving ends the cycle."""

    def __init__(self, notifications: NotificationService) -> None:
        self._notifications = notifications

    def create_note(self, note: ProgressNote) -> ProgressNote:
        note.status = NoteStatus.DRAFT
        store.progress_notes.save(note)
        return note

    def get_note(self, note_id: str) -> ProgressNote:
        note = store.progress_notes.get(note_id)
        if note is None:
            raise NotFoundError("Progress note not found")
        return note

    def list_for_patient(
        self,
        patient_id: str,
        *,
        visible_only: bool = False,
        category: Optional[NoteCategory] = None,
    ) -> List[ProgressNote]:
        notes = list(
            store.progress_notes.list_by_filters(
                patient_id=patient_id,
                category=category,
                status=NoteStatus.VISIBLE if visible_only else None,
            )
        )
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return notes

    def list_for_doctor(self, doctor_id: str, *, status: Optional[NoteStatus] = None) -> List[ProgressNote]:
        notes = list(store.progress_notes.list_by_filters(doctor_id=doctor_id, status=status))
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return notes

    def update_note(self, note_id: str, updates: Dict[str, Any]) -> ProgressNote:
        current = self.get_note(note_id)
        if current.status == NoteStatus.ARCHIVED:
            raise ConflictError("Archived notes cannot be edited")
        payload = {**current.model_dump(), **updates}
        for field in _IMMUTABLE_NOTE_FIELDS:
            payload[field] = getattr(current, field)
        payload["updated_at"] = utcnow()
        updated = ProgressNote.model_validate(payload)
        store.progress_notes.save(updated)
        return updated

    def delete_note(self, note_id: str) -> None:
        if not store.progress_notes.delete(note_id):
            raise NotFoundError("Progress note not found")
        for recommendation in store.recommendations.list_by_filters(note_id=note_id):
            store.recommendations.delete(recommendation.id)

    def approve_note(self, note_id: str, *, approved_by: str) -> ProgressNote:
        note = self.get_note(note_id)
        if note.status != NoteStatus.DRAFT:
            raise ConflictError(f"Only draft notes can be approved; note is {note.status.value}")
        now = utcnow()
        note.status = NoteStatus.APPROVED
        note.approved_by = approved_by
        note.approved_at = now
        note.updated_at = now
        store.progress_notes.save(note)
        return note

    def make_visible(self, note_id: str) -> ProgressNote:
        note = self.get_note(note_id)
        if note.status == NoteStatus.ARCHIVED:
            raise ConflictError("Archived notes cannot be shared")
        note.status = NoteStatus.VISIBLE
        note.visibility = NoteVisibility.SHARED
        note.updated_at = utcnow()
        store.progress_notes.save(note)

        self._notifications.notify(
            user_id=note.patient_id,
            type=NotificationType.RECOMMENDATION,
            title="New progress note",
            message=f"Your provider shared a note: {note.title}",
            related_id=note.id,
        )
        return note

    def archive_note(self, note_id: str) -> ProgressNote:
        note = self.get_note(note_id)
        note.status = NoteStatus.ARCHIVED
        note.updated_at = utcnow()
        store.progress_notes.save(note)
        return note

    # Recommendations

    def create_recommendation(self, note_id: str, fields: Dict[str, Any]) -> Recommendation:
        note = self.get_note(note_id)
        recommendation = Recommendation(**fields, note_id=note.id, patient_id=note.patient_id)
        store.recommendations.save(recommendation)
        return recommendation

    def get_recommendation(self, recommendation_id: str) -> Recommendation:
        recommendation = store.recommendations.get(recommendation_id)
        if recommendation is None:
            raise NotFoundError("Recommendation not found")
        return recommendation

    def list_recommendations(
        self,
        *,
        note_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[RecommendationStatus] = None,
    ) -> List[Recommendation]:
        items = list(store.recommendations.list_by_filters(note_id=note_id, patient_id=patient_id, status=status))
        items.sort(key=lambda r: r.created_at, reverse=True)
        return items

    def update_recommendation(self, recommendation_id: str, updates: Dict[str, Any]) -> Recommendation:
        current = self.get_recommendation(recommendation_id)
        updated = Recommendation.model_validate(
            {
                **current.model_dump(),
                **updates,
                "id": current.id,
                "note_id": current.note_id,
                "patient_id": current.patient_id,
                "created_at": current.created_at,
            }
        )
        store.recommendations.save(updated)
        return updated

    def complete_recommendation(self, recommendation_id: str) -> Recommendation:
        recommendation = self.get_recommendation(recommendation_id)
        if recommendation.status != RecommendationStatus.ACTIVE:
            raise ConflictError(f"Recommendation is already {recommendation.status.value}")
        recommendation.status = RecommendationStatus.COMPLETED
        recommendation.completed_at = utcnow()
        store.recommendations.save(recommendation)
        return recommendation

    def delete_recommendation(self, recommendation_id: str) -> None:
        if not store.recommendations.delete(recommendation_id):
            raise NotFoundError("Recommendation not found")


progress_note_service = ProgressNoteService(notification_service)
