from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.maternity.domain.models.common import new_id, utcnow
from src.maternity.domain.models.progress_note import Priority
from src.maternity.domain.models.task import Reminder, ReminderStatus, Task, TaskStatus
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.main import app
from src.maternity.services.tasks.service import task_service


def _task(assigned_to, due_in_hours=24, **overrides):
    data = {
        "patient_id": new_id(),
        "assigned_to": assigned_to,
        "created_by": "doc-tasks",
        "title": "Review glucose results",
        "due_date": utcnow() + timedelta(hours=due_in_hours),
    }
    data.update(overrides)
    return task_service.create_task(Task(**data))


def test_status_updates_track_completion_time():
    task = _task(new_id())
    started = task_service.update_status(task.id, TaskStatus.IN_PROGRESS)
    assert started.completed_at is None

    done = task_service.complete_task(task.id)
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at is not None
    with pytest.raises(ConflictError):
        task_service.complete_task(task.id)

    reopened = task_service.update_status(task.id, TaskStatus.PENDING)
    assert reopened.completed_at is None


def test_overdue_flips_open_tasks_past_due():
    assignee = new_id()
    late = _task(assignee, due_in_hours=-2)
    later = _task(assignee, due_in_hours=-1)
    finished = _task(assignee, due_in_hours=-3)
    task_service.complete_task(finished.id)
    _task(assignee, due_in_hours=5)

    overdue = task_service.overdue_tasks(assigned_to=assignee)

    assert [t.id for t in overdue] == [late.id, later.id]
    assert task_service.get_task(late.id).status == TaskStatus.OVERDUE
    assert task_service.get_task(finished.id).status == TaskStatus.COMPLETED


def test_list_filters_and_search():
    assignee = new_id()
    urgent = _task(assignee, priority=Priority.URGENT, tags=["diabetes"])
    _task(assignee, title="Call patient")

    assert [t.id for t in task_service.list_tasks(assigned_to=assignee, priority=Priority.URGENT)] == [urgent.id]
    assert len(task_service.list_tasks(assigned_to=assignee, status=TaskStatus.PENDING)) == 2
    assert [t.id for t in task_service.search("DIABETES", assigned_to=assignee)] == [urgent.id]


def test_update_task_keeps_creator_and_sets_completion():
    task = _task(new_id())
    updated = task_service.update_task(task.id, {"created_by": "intruder", "status": TaskStatus.COMPLETED})
    assert updated.created_by == "doc-tasks"
    assert updated.completed_at is not None


def test_reminders_lifecycle():
    task = _task(new_id())
    reminder = task_service.create_reminder(
        Reminder(task_id=task.id, scheduled_for=utcnow() + timedelta(hours=1), message="Check results")
    )
    assert task_service.list_reminders(task.id) == [reminder]

    sent = task_service.mark_reminder_sent(reminder.id)
    assert sent.status == ReminderStatus.SENT
    assert sent.sent_at is not None

    with pytest.raises(NotFoundError):
        task_service.create_reminder(Reminder(task_id=new_id(), scheduled_for=utcnow(), message="orphan"))

    task_service.delete_task(task.id)
    with pytest.raises(NotFoundError):
        task_service.get_reminder(reminder.id)


async def test_tasks_via_api():
    doctor_headers = {"X-User-ID": "doc-api-tasks", "X-User-Role": "provider"}
    patient_id = new_id()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        created = await ac.post(
            "/api/v1/tasks/",
            json={
                "patient_id": patient_id,
                "title": "Follow up on BP",
                "due_date": (utcnow() - timedelta(hours=1)).isoformat(),
                "priority": "high",
            },
            headers=doctor_headers,
        )
        assert created.status_code == status.HTTP_201_CREATED
        task_id = created.json()["id"]
        assert created.json()["assigned_to"] == "doc-api-tasks"

        overdue = await ac.get("/api/v1/tasks/overdue", headers=doctor_headers)
        assert task_id in [t["id"] for t in overdue.json()]

        patient_tasks = await ac.get("/api/v1/tasks/", headers={"X-User-ID": patient_id, "X-User-Role": "patient"})
        assert [t["status"] for t in patient_tasks.json()] == ["overdue"]

        completed = await ac.post(
            f"/api/v1/tasks/{task_id}/complete",
            headers={"X-User-ID": patient_id, "X-User-Role": "patient"},
        )
        assert completed.json()["status"] == "completed"

        stranger = await ac.get(f"/api/v1/tasks/{task_id}", headers={"X-User-ID": "nobody", "X-User-Role": "patient"})
        assert stranger.status_code == status.HTTP_403_FORBIDDEN
