from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from threading import Lock
from typing import List, Optional

from src.maternity.config import settings
from src.maternity.domain.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    DoctorAvailability,
)
from src.maternity.domain.models.common import ensure_utc, utcnow
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.errors import ConflictError, DomainValidationError, NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.services.messaging.service import NotificationService, notification_service

logger = logging.getLogger("maternity.scheduling")

TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})


def day_of_week(day: date) -> int:
    """Weekday number with 0 for Sunday through 6 for Saturday."""

    return (day.weekday() + 1) % 7


def parse_hhmm(value: str) -> time:
    hour, _, minute = value.partition(":")
    return time(int(hour), int(minute), tzinfo=timezone.utc)


def generate_time_slots(
    day: date,
    start_time: str,
    end_time: str,
    step_minutes: Optional[int] = None,
) -> List[datetime]:
    """Enumerate slot start times with ``start <= slot < end``.

    Availability hours are interpreted in UTC.
    """

    step = timedelta(minutes=step_minutes or settings.slot_duration_minutes)
    current = datetime.combine(day, parse_hhmm(start_time))
    end = datetime.combine(day, parse_hhmm(end_time))

    slots: List[datetime] = []
    while current < end:
        slots.append(current)
        current += step
    return slots


class SchedulingService:
    """Doctor availability and appointment booking.

    Checking a slot and blocking it happen under one lock, so two bookings
    for the same slot cannot both succeed.
    """

    def __init__(self, notifications: NotificationService) -> None:
        self._notifications = notifications
        self._lock = Lock()

    # Availability

    def get_availability(self, doctor_id: str) -> List[DoctorAvailability]:
        entries = list(store.availability.list_by_filters(doctor_id=doctor_id))
        entries.sort(key=lambda a: a.day_of_week)
        return entries

    def _availability_for_day(self, doctor_id: str, weekday: int) -> Optional[DoctorAvailability]:
        return next(iter(store.availability.list_by_filters(doctor_id=doctor_id, day_of_week=weekday)), None)

    def update_availability(self, availability: DoctorAvailability) -> DoctorAvailability:
        """Upsert the entry for (doctor, weekday).

        Blocked slots already recorded for that weekday are kept unless the
        caller supplies its own list.
        """

        if parse_hhmm(availability.start_time) >= parse_hhmm(availability.end_time):
            raise DomainValidationError("start_time must be before end_time")

        with self._lock:
            existing = self._availability_for_day(availability.doctor_id, availability.day_of_week)
            if existing is not None:
                availability.id = existing.id
                if not availability.blocked_slots:
                    availability.blocked_slots = existing.blocked_slots
            store.availability.save(availability)
        return availability

    def available_slots(self, doctor_id: str, day: date) -> List[datetime]:
        entry = self._availability_for_day(doctor_id, day_of_week(day))
        if entry is None or not entry.is_available:
            return []
        blocked = set(entry.blocked_slots)
        return [slot for slot in generate_time_slots(day, entry.start_time, entry.end_time) if slot not in blocked]

    def block_time_slot(self, doctor_id: str, when: datetime, *, now: Optional[datetime] = None) -> bool:
        with self._lock:
            return self._block(doctor_id, ensure_utc(when), ensure_utc(now) if now is not None else None)

    def _block(self, doctor_id: str, when: datetime, now: Optional[datetime] = None) -> bool:
        entry = self._availability_for_day(doctor_id, day_of_week(when.date()))
        if entry is None:
            return False
        if when in entry.blocked_slots:
            return True
        # The entry recurs weekly; blocked slots already in the past are dropped.
        cutoff = now or utcnow()
        entry.blocked_slots = [slot for slot in entry.blocked_slots if slot >= cutoff]
        entry.blocked_slots.append(when)
        store.availability.save(entry)
        return True

    def _release(self, doctor_id: str, when: datetime) -> None:
        entry = self._availability_for_day(doctor_id, day_of_week(when.date()))
        if entry is None or when not in entry.blocked_slots:
            return
        entry.blocked_slots = [slot for slot in entry.blocked_slots if slot != when]
        store.availability.save(entry)

    # Appointments

    def book_appointment(
        self,
        *,
        patient_id: str,
        doctor_id: str,
        scheduled_time: datetime,
        type: AppointmentType = AppointmentType.PHYSICAL,
        institution_id: Optional[str] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        scheduled_time = ensure_utc(scheduled_time)
        now = ensure_utc(now) if now is not None else utcnow()
        if scheduled_time < now:
            raise DomainValidationError("Cannot book appointments in the past.")

        with self._lock:
            if scheduled_time not in self.available_slots(doctor_id, scheduled_time.date()):
                raise ConflictError("The requested time slot is not available")

            appointment = Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                institution_id=institution_id,
                scheduled_time=scheduled_time,
                duration=settings.slot_duration_minutes,
                type=type,
                status=AppointmentStatus.PENDING,
                reason=reason,
                notes=notes,
            )
            store.appointments.save(appointment)
            self._block(doctor_id, scheduled_time, now)

        when_label = scheduled_time.strftime("%Y-%m-%d %H:%M UTC")
        self._notifications.notify(
            user_id=patient_id,
            type=NotificationType.APPOINTMENT,
            title="Appointment Booked",
            message=f"Your appointment is scheduled for {when_label}",
            related_id=appointment.id,
        )
        self._notifications.notify(
            user_id=doctor_id,
            type=NotificationType.APPOINTMENT,
            title="New Appointment",
            message=f"New appointment scheduled for {when_label}",
            related_id=appointment.id,
        )
        logger.info("Booked appointment %s with doctor %s", appointment.id, doctor_id)
        return appointment

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = store.appointments.get(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    def list_appointments(
        self,
        *,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        appointments = list(
            store.appointments.list_by_filters(patient_id=patient_id, doctor_id=doctor_id, status=status)
        )
        appointments.sort(key=lambda a: a.scheduled_time)
        return appointments

    def update_appointment(
        self,
        appointment_id: str,
        *,
        status: Optional[AppointmentStatus] = None,
        type: Optional[AppointmentType] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        if status == AppointmentStatus.CANCELLED:
            return self.cancel_appointment(appointment_id)

        appointment = self.get_appointment(appointment_id)
        if appointment.status in TERMINAL_STATUSES:
            raise ConflictError(f"Appointment is already {appointment.status.value}")

        if status is not None:
            appointment.status = status
        if type is not None:
            appointment.type = type
        if reason is not None:
            appointment.reason = reason
        if notes is not None:
            appointment.notes = notes
        appointment.updated_at = utcnow()
        store.appointments.save(appointment)
        return appointment

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        with self._lock:
            appointment = self.get_appointment(appointment_id)
            if appointment.status in TERMINAL_STATUSES:
                raise ConflictError(f"Appointment is already {appointment.status.value}")
            appointment.status = AppointmentStatus.CANCELLED
            appointment.updated_at = utcnow()
            store.appointments.save(appointment)
            self._release(appointment.doctor_id, appointment.scheduled_time)

        self._notifications.notify(
            user_id=appointment.doctor_id,
            type=NotificationType.APPOINTMENT,
            title="Appointment Cancelled",
            message="An appointment was cancelled and the slot released.",
            related_id=appointment.id,
        )
        return appointment


scheduling_service = SchedulingService(notification_service)
