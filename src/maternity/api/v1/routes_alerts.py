from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from src.maternity.domain.models.alert import AlertType, EmergencyAlert
from src.maternity.domain.models.patient import RiskLevel
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_self_or_staff, ensure_staff, get_api_key, get_current_user
from src.maternity.services.alerts.service import alert_service
from src.maternity.services.audit.service import audit_service
from src.maternity.services.linking.service import patient_link_service

router = APIRouter(
    prefix="/alerts",
    tags=["alerts"],
    dependencies=[Depends(get_api_key)],
)


class AlertCreateRequest(BaseModel):
    patient_id: Optional[str] = None
    type: AlertType
    severity: RiskLevel = RiskLevel.HIGH
    location: Optional[str] = None
    description: Optional[str] = None


class AlertResolveRequest(BaseModel):
    notes: Optional[str] = None


@router.post("/", response_model=EmergencyAlert, status_code=status.HTTP_201_CREATED)
async def raise_alert(payload: AlertCreateRequest, current_user: User = Depends(get_current_user)) -> EmergencyAlert:
    patient_id = payload.patient_id or current_user.id
    ensure_self_or_staff(current_user, patient_id)

    alert = alert_service.raise_alert(
        patient_id=patient_id,
        type=payload.type,
        severity=payload.severity,
        description=payload.description,
        location=payload.location,
        notify_user_ids=sorted(patient_link_service.care_team_user_ids(patient_id)),
    )
    audit_service.log_event(
        action="raise_alert",
        resource_type="emergency_alert",
        resource_id=alert.id,
        user=current_user,
        extra={"patient_id": patient_id, "type": alert.type.value, "severity": alert.severity.value},
    )
    return alert


@router.get("/", response_model=List[EmergencyAlert])
async def list_alerts(
    patient_id: Optional[str] = None,
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
) -> List[EmergencyAlert]:
    if current_user.role == UserRole.PATIENT:
        patient_id = current_user.id
    return alert_service.list_alerts(patient_id=patient_id, active_only=active_only)


@router.get("/active", response_model=List[EmergencyAlert])
async def list_active_alerts(current_user: User = Depends(get_current_user)) -> List[EmergencyAlert]:
    ensure_staff(current_user)
    return alert_service.list_alerts(active_only=True)


@router.post("/{alert_id}/resolve", response_model=EmergencyAlert)
async def resolve_alert(
    alert_id: str,
    payload: AlertResolveRequest,
    current_user: User = Depends(get_current_user),
) -> EmergencyAlert:
    ensure_staff(current_user)
    alert = alert_service.resolve(alert_id, resolved_by=current_user.id, notes=payload.notes)
    audit_service.log_event(action="resolve_alert", resource_type="emergency_alert", resource_id=alert_id, user=current_user)
    return alert
