from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from src.maternity.domain.models.common import ensure_utc, utcnow
from src.maternity.domain.models.progress_note import Priority
from src.maternity.domain.models.task import (
    OPEN_TASK_STATUSES,
    Reminder,
    ReminderStatus,
    Task,
    TaskStatus,
)
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.infra.db.inmemory import store

_IMMUTABLE_TASK_FIELDS = ("id", "created_by", "created_at")


class TaskService:
    def create_task(self, task: Task) -> Task:
        store.tasks.save(task)
        return task

    def get_task(self, task_id: str) -> Task:
        task = store.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def list_tasks(
        self,
        *,
        patient_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
        institution_id: Optional[str] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[Priority] = None,
    ) -> List[Task]:
        tasks = list(
            store.tasks.list_by_filters(
                patient_id=patient_id,
                assigned_to=assigned_to,
                institution_id=institution_id,
                status=status,
                priority=priority,
            )
        )
        tasks.sort(key=lambda t: t.due_date)
        return tasks

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Task:
        current = self.get_task(task_id)
        payload = {**current.model_dump(), **updates}
        for field in _IMMUTABLE_TASK_FIELDS:
            payload[field] = getattr(current, field)
        payload["updated_at"] = utcnow()
        updated = Task.model_validate(payload)
        if updated.status == TaskStatus.COMPLETED and updated.completed_at is None:
            updated.completed_at = updated.updated_at
        store.tasks.save(updated)
        return updated

    def update_status(self, task_id: str, status: TaskStatus) -> Task:
        task = self.get_task(task_id)
        now = utcnow()
        task.status = status
        task.updated_at = now
        task.completed_at = now if status == TaskStatus.COMPLETED else None
        store.tasks.save(task)
        return task

    def complete_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task.status in {TaskStatus.COMPLETED, TaskStatus.CANCELLED}:
            raise ConflictError(f"Task is already {task.status.value}")
        return self.update_status(task_id, TaskStatus.COMPLETED)

    def delete_task(self, task_id: str) -> None:
        if not store.tasks.delete(task_id):
            raise NotFoundError("Task not found")
        for reminder in store.reminders.list_by_filters(task_id=task_id):
            store.reminders.delete(reminder.id)

    def overdue_tasks(
        self,
        *,
        assigned_to: Optional[str] = None,
        institution_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Task]:
        """Flip open tasks past their due date to ``overdue`` and return every overdue task."""

        now = ensure_utc(now) if now is not None else utcnow()
        overdue: List[Task] = []
        for task in store.tasks.list_by_filters(assigned_to=assigned_to, institution_id=institution_id):
            if task.status in OPEN_TASK_STATUSES and task.due_date < now:
                task.status = TaskStatus.OVERDUE
                task.updated_at = now
                store.tasks.save(task)
            if task.status == TaskStatus.OVERDUE:
                overdue.append(task)
        overdue.sort(key=lambda t: t.due_date)
        return overdue

    def search(self, term: str, *, assigned_to: Optional[str] = None) -> List[Task]:
        needle = term.strip().lower()
        results = [
            t for t in store.tasks.list_by_filters(assigned_to=assigned_to)
            if needle in " ".join([t.title, t.description, *t.tags]).lower()
        ]
        results.sort(key=lambda t: t.due_date)
        return results

    # Reminders

    def create_reminder(self, reminder: Reminder) -> Reminder:
        self.get_task(reminder.task_id)
        store.reminders.save(reminder)
        return reminder

    def get_reminder(self, reminder_id: str) -> Reminder:
        reminder = store.reminders.get(reminder_id)
        if reminder is None:
            raise NotFoundError("Reminder not found")
        return reminder

    def list_reminders(self, task_id: str) -> List[Reminder]:
        reminders = list(store.reminders.list_by_filters(task_id=task_id))
        reminders.sort(key=lambda r: r.scheduled_for)
        return reminders

    def update_reminder(self, reminder_id: str, updates: Dict[str, Any]) -> Reminder:
        current = self.get_reminder(reminder_id)
        updated = Reminder.model_validate({**current.model_dump(), **updates, "id": current.id, "task_id": current.task_id})
        store.reminders.save(updated)
        return updated

    def mark_reminder_sent(self, reminder_id: str) -> Reminder:
        reminder = self.get_reminder(reminder_id)
        reminder.status = ReminderStatus.SENT
        reminder.sent_at = utcnow()
        store.reminders.save(reminder)
        return reminder

    def delete_reminder(self, reminder_id: str) -> None:
        if not store.reminders.delete(reminder_id):
            raise NotFoundError("Reminder not found")


task_service = TaskService()
