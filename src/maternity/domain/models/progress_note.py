from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, new_id, utcnow


class NoteCategory(str, Enum):
    CONSULTATION = "consultation"
    RECOMMENDATION = "recommendation"
    ALERT = "alert"
    FOLLOWUP = "followup"


class NoteStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    VISIBLE = "visible"
    ARCHIVED = "archived"


class NoteVisibility(str, Enum):
    PRIVATE = "private"
    SHARED = "shared"
    PUBLIC = "public"


class ProgressNote(BaseModel):
    """Provider-authored free-text record about a patient.

    Patients only see a note once it has been made ``visible``.
    """

    id: str = Field(default_factory=new_id)
    patient_id: str
    doctor_id: str
    institution_id: Optional[str] = None
    title: str
    content: str
    category: NoteCategory = NoteCategory.CONSULTATION
    status: NoteStatus = NoteStatus.DRAFT
    visibility: NoteVisibility = NoteVisibility.PRIVATE
    tags: List[str] = Field(default_factory=list)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)
    approved_at: OptionalUtcDatetime = None
    approved_by: Optional[str] = None
    follow_up_date: OptionalUtcDatetime = None
    attachments: List[str] = Field(default_factory=list)


class RecommendationType(str, Enum):
    LIFESTYLE = "lifestyle"
    MEDICATION = "medication"
    EXERCISE = "exercise"
    DIET = "diet"
    MONITORING = "monitoring"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RecommendationStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Recommendation(BaseModel):
    id: str = Field(default_factory=new_id)
    note_id: str
    patient_id: str
    type: RecommendationType
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    status: RecommendationStatus = RecommendationStatus.ACTIVE
    due_date: OptionalUtcDatetime = None
    completed_at: OptionalUtcDatetime = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
