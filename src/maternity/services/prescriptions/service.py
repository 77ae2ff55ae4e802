from __future__ import annotations

import secrets
from datetime import timedelta
from typing import Any, Dict, List, Optional

from src.maternity.domain.models.common import utcnow
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.domain.models.prescription import Prescription, PrescriptionStatus
from src.maternity.errors import NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.services.messaging.service import NotificationService, notification_service


class PrescriptionService:
    def __init__(self, notifications: NotificationService) -> None:
        self._notifications = notifications

    def create_prescription(self, prescription: Prescription) -> Prescription:
        if prescription.valid_until is None:
            longest = max(m.duration for m in prescription.medications)
            prescription.valid_until = prescription.created_at + timedelta(days=longest)
        if prescription.qr_code is None:
            prescription.qr_code = f"RX_{prescription.id}_{secrets.token_hex(4)}"
        store.prescriptions.save(prescription)

        self._notifications.notify(
            user_id=prescription.patient_id,
            type=NotificationType.ALERT,
            title="New prescription",
            message=f"A prescription with {len(prescription.medications)} medication(s) was issued.",
            related_id=prescription.id,
        )
        return prescription

    def get_prescription(self, prescription_id: str) -> Prescription:
        prescription = store.prescriptions.get(prescription_id)
        if prescription is None:
            raise NotFoundError("Prescription not found")
        return prescription

    def list_prescriptions(
        self,
        *,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        status: Optional[PrescriptionStatus] = None,
    ) -> List[Prescription]:
        items = list(store.prescriptions.list_by_filters(patient_id=patient_id, doctor_id=doctor_id, status=status))
        items.sort(key=lambda p: p.created_at, reverse=True)
        return items

    def update_prescription(self, prescription_id: str, updates: Dict[str, Any]) -> Prescription:
        current = self.get_prescription(prescription_id)
        updated = Prescription.model_validate(
            {
                **current.model_dump(),
                **updates,
                "id": current.id,
                "patient_id": current.patient_id,
                "doctor_id": current.doctor_id,
                "created_at": current.created_at,
                "updated_at": utcnow(),
            }
        )
        store.prescriptions.save(updated)
        return updated

    def delete_prescription(self, prescription_id: str) -> None:
        if not store.prescriptions.delete(prescription_id):
            raise NotFoundError("Prescription not found")


prescription_service = PrescriptionService(notification_service)
