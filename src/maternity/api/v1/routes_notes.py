from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime
from src.maternity.domain.models.progress_note import (
    NoteCategory,
    NoteStatus,
    NoteVisibility,
    Priority,
    ProgressNote,
    Recommendation,
    RecommendationType,
)
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import NotFoundError
from src.maternity.security import ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.notes.service import progress_note_service

router = APIRouter(
    prefix="/notes",
    tags=["progress-notes"],
    dependencies=[Depends(get_api_key)],
)


class NoteCreateRequest(BaseModel):
    patient_id: str
    institution_id: Optional[str] = None
    title: str
    content: str
    category: NoteCategory = NoteCategory.CONSULTATION
    visibility: NoteVisibility = NoteVisibility.PRIVATE
    tags: List[str] = Field(default_factory=list)
    follow_up_date: OptionalUtcDatetime = None
    attachments: List[str] = Field(default_factory=list)


class NoteUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[NoteCategory] = None
    visibility: Optional[NoteVisibility] = None
    tags: Optional[List[str]] = None
    follow_up_date: OptionalUtcDatetime = None
    attachments: Optional[List[str]] = None


class RecommendationCreateRequest(BaseModel):
    type: RecommendationType
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: OptionalUtcDatetime = None


def _visible_note(note_id: str, user: User) -> ProgressNote:
    note = progress_note_service.get_note(note_id)
    if user.role == UserRole.PATIENT and (note.patient_id != user.id or note.status != NoteStatus.VISIBLE):
        # Drafts are indistinguishable from missing notes for patients.
        raise NotFoundError("Progress note not found")
    return note


@router.post("/", response_model=ProgressNote, status_code=status.HTTP_201_CREATED)
async def create_note(payload: NoteCreateRequest, current_user: User = Depends(get_current_user)) -> ProgressNote:
    ensure_staff(current_user)
    note = progress_note_service.create_note(
        ProgressNote(
            doctor_id=current_user.id,
            institution_id=payload.institution_id or current_user.institution_id,
            **payload.model_dump(exclude={"institution_id"}),
        )
    )
    audit_service.log_event(
        action="create_progress_note",
        resource_type="progress_note",
        resource_id=note.id,
        user=current_user,
        extra={"patient_id": note.patient_id},
    )
    return note


@router.get("/", response_model=List[ProgressNote])
async def list_notes(
    patient_id: Optional[str] = None,
    category: Optional[NoteCategory] = None,
    status_filter: Optional[NoteStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
) -> List[ProgressNote]:
    if current_user.role == UserRole.PATIENT:
        return progress_note_service.list_for_patient(current_user.id, visible_only=True, category=category)
    if patient_id is not None:
        notes = progress_note_service.list_for_patient(patient_id, category=category)
        return [n for n in notes if status_filter is None or n.status == status_filter]
    return progress_note_service.list_for_doctor(current_user.id, status=status_filter)


@router.get("/{note_id}", response_model=ProgressNote)
async def get_note(note_id: str, current_user: User = Depends(get_current_user)) -> ProgressNote:
    note = _visible_note(note_id, current_user)
    audit_service.log_event(action="get_progress_note", resource_type="progress_note", resource_id=note_id, user=current_user)
    return note


@router.patch("/{note_id}", response_model=ProgressNote)
async def update_note(
    note_id: str,
    payload: NoteUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> ProgressNote:
    ensure_staff(current_user)
    note = progress_note_service.update_note(note_id, payload.model_dump(exclude_unset=True))
    audit_service.log_event(action="update_progress_note", resource_type="progress_note", resource_id=note_id, user=current_user)
    return note


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(note_id: str, current_user: User = Depends(get_current_user)) -> Response:
    ensure_staff(current_user)
    progress_note_service.delete_note(note_id)
    audit_service.log_event(action="delete_progress_note", resource_type="progress_note", resource_id=note_id, user=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{note_id}/approve", response_model=ProgressNote)
async def approve_note(note_id: str, current_user: User = Depends(get_current_user)) -> ProgressNote:
    ensure_staff(current_user)
    note = progress_note_service.approve_note(note_id, approved_by=current_user.id)
    audit_service.log_event(action="approve_progress_note", resource_type="progress_note", resource_id=note_id, user=current_user)
    return note


@router.post("/{note_id}/visible", response_model=ProgressNote)
async def make_note_visible(note_id: str, current_user: User = Depends(get_current_user)) -> ProgressNote:
    ensure_staff(current_user)
    note = progress_note_service.make_visible(note_id)
    audit_service.log_event(action="share_progress_note", resource_type="progress_note", resource_id=note_id, user=current_user)
    return note


@router.post("/{note_id}/archive", response_model=ProgressNote)
async def archive_note(note_id: str, current_user: User = Depends(get_current_user)) -> ProgressNote:
    ensure_staff(current_user)
    return progress_note_service.archive_note(note_id)


@router.post("/{note_id}/recommendations", response_model=Recommendation, status_code=status.HTTP_201_CREATED)
async def create_recommendation(
    note_id: str,
    payload: RecommendationCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Recommendation:
    ensure_staff(current_user)
    recommendation = progress_note_service.create_recommendation(note_id, payload.model_dump())
    audit_service.log_event(
        action="create_recommendation",
        resource_type="recommendation",
        resource_id=recommendation.id,
        user=current_user,
        extra={"note_id": note_id},
    )
    return recommendation


@router.get("/{note_id}/recommendations", response_model=List[Recommendation])
async def list_note_recommendations(note_id: str, current_user: User = Depends(get_current_user)) -> List[Recommendation]:
    _visible_note(note_id, current_user)
    return progress_note_service.list_recommendations(note_id=note_id)
