from __future__ import annotations

from typing import Iterable, List, Optional

from src.maternity.domain.models.alert import AlertStatus, AlertType, EmergencyAlert
from src.maternity.domain.models.common import utcnow
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.domain.models.patient import RiskLevel
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.services.messaging.service import NotificationService, notification_service


class AlertService:
    def __init__(self, notifications: NotificationService) -> None:
        self._notifications = notifications

    def raise_alert(
        self,
        *,
        patient_id: str,
        type: AlertType,
        severity: RiskLevel,
        description: Optional[str] = None,
        location: Optional[str] = None,
        notify_user_ids: Iterable[str] = (),
    ) -> EmergencyAlert:
        alert = EmergencyAlert(
            patient_id=patient_id,
            type=type,
            severity=severity,
            description=description,
            location=location,
        )
        store.alerts.save(alert)

        for user_id in notify_user_ids:
            self._notifications.notify(
                user_id=user_id,
                type=NotificationType.RISK_ALERT,
                title="Patient alert",
                message=f"A {severity.value}-severity {type.value.replace('_', ' ')} alert was raised.",
                related_id=alert.id,
            )
        return alert

    def get(self, alert_id: str) -> EmergencyAlert:
        alert = store.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("Alert not found")
        return alert

    def list_alerts(self, *, patient_id: Optional[str] = None, active_only: bool = False) -> List[EmergencyAlert]:
        alerts = list(
            store.alerts.list_by_filters(
                patient_id=patient_id,
                status=AlertStatus.ACTIVE if active_only else None,
            )
        )
        alerts.sort(key=lambda a: a.timestamp, reverse=True)
        return alerts

    def resolve(self, alert_id: str, *, resolved_by: str, notes: Optional[str] = None) -> EmergencyAlert:
        alert = self.get(alert_id)
        if alert.status == AlertStatus.RESOLVED:
            raise ConflictError("Alert is already resolved")
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = utcnow()
        alert.resolved_by = resolved_by
        alert.resolution_notes = notes
        store.alerts.save(alert)
        return alert


alert_service = AlertService(notification_service)
