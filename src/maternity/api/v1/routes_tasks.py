from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime
from src.maternity.domain.models.progress_note import Priority
from src.maternity.domain.models.task import (
    RecurrencePattern,
    Reminder,
    ReminderStatus,
    ReminderType,
    Task,
    TaskCategory,
    TaskStatus,
)
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import PermissionDeniedError
from src.maternity.security import ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.tasks.service import task_service

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    dependencies=[Depends(get_api_key)],
)


class TaskCreateRequest(BaseModel):
    patient_id: str
    assigned_to: Optional[str] = None
    institution_id: Optional[str] = None
    title: str
    description: str = ""
    category: TaskCategory = TaskCategory.OTHER
    priority: Priority = Priority.MEDIUM
    due_date: datetime
    reminder_date: OptionalUtcDatetime = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    related_consultation_id: Optional[str] = None
    related_recommendation_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class TaskUpdateRequest(BaseModel):
    assigned_to: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    due_date: OptionalUtcDatetime = None
    reminder_date: OptionalUtcDatetime = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    tags: Optional[List[str]] = None


class TaskStatusRequest(BaseModel):
    status: TaskStatus


class ReminderCreateRequest(BaseModel):
    type: ReminderType = ReminderType.PUSH
    scheduled_for: datetime
    message: str


class ReminderUpdateRequest(BaseModel):
    type: Optional[ReminderType] = None
    scheduled_for: OptionalUtcDatetime = None
    status: Optional[ReminderStatus] = None
    message: Optional[str] = None


def _ensure_task_access(user: User, task: Task) -> None:
    if user.is_staff or user.id in {task.patient_id, task.assigned_to}:
        return
    raise PermissionDeniedError("Not authorized to access this task")


@router.post("/", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreateRequest, current_user: User = Depends(get_current_user)) -> Task:
    ensure_staff(current_user)
    data = payload.model_dump(exclude={"assigned_to", "institution_id"})
    task = task_service.create_task(
        Task(
            assigned_to=payload.assigned_to or current_user.id,
            created_by=current_user.id,
            institution_id=payload.institution_id or current_user.institution_id,
            **data,
        )
    )
    audit_service.log_event(
        action="create_task",
        resource_type="task",
        resource_id=task.id,
        user=current_user,
        extra={"patient_id": task.patient_id, "priority": task.priority.value},
    )
    return task


@router.get("/", response_model=List[Task])
async def list_tasks(
    patient_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    institution_id: Optional[str] = None,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = None,
    current_user: User = Depends(get_current_user),
) -> List[Task]:
    if current_user.role == UserRole.PATIENT:
        patient_id, assigned_to, institution_id = current_user.id, None, None
    elif patient_id is None and assigned_to is None and institution_id is None:
        assigned_to = current_user.id
    return task_service.list_tasks(
        patient_id=patient_id,
        assigned_to=assigned_to,
        institution_id=institution_id,
        status=status_filter,
        priority=priority,
    )


@router.get("/overdue", response_model=List[Task])
async def overdue_tasks(
    assigned_to: Optional[str] = None,
    institution_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
) -> List[Task]:
    ensure_staff(current_user)
    if assigned_to is None and institution_id is None:
        assigned_to = current_user.id
    return task_service.overdue_tasks(assigned_to=assigned_to, institution_id=institution_id)


@router.get("/search", response_model=List[Task])
async def search_tasks(term: str, current_user: User = Depends(get_current_user)) -> List[Task]:
    ensure_staff(current_user)
    return task_service.search(term, assigned_to=None if current_user.role == UserRole.ADMIN else current_user.id)


@router.get("/{task_id}", response_model=Task)
async def get_task(task_id: str, current_user: User = Depends(get_current_user)) -> Task:
    task = task_service.get_task(task_id)
    _ensure_task_access(current_user, task)
    return task


@router.patch("/{task_id}", response_model=Task)
async def update_task(task_id: str, payload: TaskUpdateRequest, current_user: User = Depends(get_current_user)) -> Task:
    ensure_staff(current_user)
    task = task_service.update_task(task_id, payload.model_dump(exclude_unset=True))
    audit_service.log_event(action="update_task", resource_type="task", resource_id=task_id, user=current_user)
    return task


@router.post("/{task_id}/status", response_model=Task)
async def update_task_status(
    task_id: str,
    payload: TaskStatusRequest,
    current_user: User = Depends(get_current_user),
) -> Task:
    _ensure_task_access(current_user, task_service.get_task(task_id))
    task = task_service.update_status(task_id, payload.status)
    audit_service.log_event(
        action="update_task_status",
        resource_type="task",
        resource_id=task_id,
        user=current_user,
        extra={"status": task.status.value},
    )
    return task


@router.post("/{task_id}/complete", response_model=Task)
async def complete_task(task_id: str, current_user: User = Depends(get_current_user)) -> Task:
    _ensure_task_access(current_user, task_service.get_task(task_id))
    task = task_service.complete_task(task_id)
    audit_service.log_event(action="complete_task", resource_type="task", resource_id=task_id, user=current_user)
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, current_user: User = Depends(get_current_user)) -> Response:
    ensure_staff(current_user)
    task_service.delete_task(task_id)
    audit_service.log_event(action="delete_task", resource_type="task", resource_id=task_id, user=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{task_id}/reminders", response_model=Reminder, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    task_id: str,
    payload: ReminderCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Reminder:
    _ensure_task_access(current_user, task_service.get_task(task_id))
    return task_service.create_reminder(Reminder(task_id=task_id, **payload.model_dump()))


@router.get("/{task_id}/reminders", response_model=List[Reminder])
async def list_reminders(task_id: str, current_user: User = Depends(get_current_user)) -> List[Reminder]:
    _ensure_task_access(current_user, task_service.get_task(task_id))
    return task_service.list_reminders(task_id)


@router.patch("/reminders/{reminder_id}", response_model=Reminder)
async def update_reminder(
    reminder_id: str,
    payload: ReminderUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> Reminder:
    reminder = task_service.get_reminder(reminder_id)
    _ensure_task_access(current_user, task_service.get_task(reminder.task_id))
    return task_service.update_reminder(reminder_id, payload.model_dump(exclude_unset=True))


@router.post("/reminders/{reminder_id}/sent", response_model=Reminder)
async def mark_reminder_sent(reminder_id: str, current_user: User = Depends(get_current_user)) -> Reminder:
    ensure_staff(current_user)
    return task_service.mark_reminder_sent(reminder_id)


@router.delete("/reminders/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reminder(reminder_id: str, current_user: User = Depends(get_current_user)) -> Response:
    reminder = task_service.get_reminder(reminder_id)
    _ensure_task_access(current_user, task_service.get_task(reminder.task_id))
    task_service.delete_reminder(reminder_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
