from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, new_id, utcnow
from src.maternity.domain.models.progress_note import Priority


class TaskCategory(str, Enum):
    FOLLOWUP = "followup"
    MEDICATION = "medication"
    TEST_RESULTS = "test_results"
    CONSULTATION = "consultation"
    OTHER = "other"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


OPEN_TASK_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecurrencePattern(BaseModel):
    frequency: RecurrenceFrequency
    interval: int = Field(default=1, ge=1)
    end_date: OptionalUtcDatetime = None


class Task(BaseModel):
    id: str = Field(default_factory=new_id)
    patient_id: str
    assigned_to: str
    created_by: str
    institution_id: Optional[str] = None
    title: str
    description: str = ""
    category: TaskCategory = TaskCategory.OTHER
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: UtcDatetime
    completed_at: OptionalUtcDatetime = None
    reminder_date: OptionalUtcDatetime = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    related_consultation_id: Optional[str] = None
    related_recommendation_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class ReminderType(str, Enum):
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"


class ReminderStatus(str, Enum):
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class Reminder(BaseModel):
    id: str = Field(default_factory=new_id)
    task_id: str
    type: ReminderType = ReminderType.PUSH
    scheduled_for: UtcDatetime
    sent_at: OptionalUtcDatetime = None
    status: ReminderStatus = ReminderStatus.SCHEDULED
    message: str
