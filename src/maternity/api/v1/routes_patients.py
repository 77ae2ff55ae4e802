from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, utcnow
from src.maternity.domain.models.patient import (
    KickCountMethod,
    KickIntensity,
    KickPosition,
    KickSession,
    Patient,
    RiskLevel,
)
from src.maternity.domain.models.risk import (
    AIRiskAssessment,
    FetalHealthAssessment,
    MaternalFactors,
    SymptomAnalysis,
    SymptomSeverity,
)
from src.maternity.domain.models.patient_timeline import TimelineEvent
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_self_or_staff, ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.patients.service import patient_service
from src.maternity.services.patients.summary_service import patient_summary_service
from src.maternity.services.risk.assessment import assess_fetal_risk, risk_assessment_service

router = APIRouter(
    prefix="/patients",
    tags=["patients"],
    dependencies=[Depends(get_api_key)],
)


class PatientCreateRequest(BaseModel):
    # Staff registering a patient pass the patient's user id; patients
    # creating their own profile may omit it.
    id: Optional[str] = None
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    pregnancy_week: Optional[int] = Field(default=None, ge=0, le=45)
    due_date: OptionalUtcDatetime = None
    last_checkup: OptionalUtcDatetime = None
    institution_id: Optional[str] = None


class PatientUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    pregnancy_week: Optional[int] = Field(default=None, ge=0, le=45)
    due_date: OptionalUtcDatetime = None
    last_checkup: OptionalUtcDatetime = None
    institution_id: Optional[str] = None


class KickSessionCreateRequest(BaseModel):
    date: Optional[datetime] = None
    kick_count: int = Field(ge=0)
    duration: float = Field(gt=0, description="Session length in minutes")
    position: Optional[KickPosition] = None
    intensity: Optional[KickIntensity] = None
    method: KickCountMethod = KickCountMethod.FIXED_TIME
    phone_on_abdomen: bool = False
    notes: Optional[str] = None


class KickSessionResponse(BaseModel):
    session: KickSession
    session_assessment: FetalHealthAssessment
    previous_risk: RiskLevel
    risk_level: RiskLevel
    alert_id: Optional[str] = None


class RiskLevelResponse(BaseModel):
    patient_id: str
    risk_level: RiskLevel
    sessions_considered: int


class AIRiskRequest(BaseModel):
    gestational_age: Optional[int] = Field(default=None, ge=0, le=45)
    maternal_factors: Optional[MaternalFactors] = None


class SymptomAnalysisRequest(BaseModel):
    symptoms: List[str] = Field(min_length=1)
    severity: SymptomSeverity = SymptomSeverity.MILD
    gestational_age: Optional[int] = Field(default=None, ge=0, le=45)


@router.post("/", response_model=Patient, status_code=status.HTTP_201_CREATED)
async def create_patient(
    payload: PatientCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Patient:
    patient_id = payload.id or current_user.id
    ensure_self_or_staff(current_user, patient_id)

    patient = patient_service.create_patient(Patient(**payload.model_dump(exclude={"id"}), id=patient_id))

    audit_service.log_event(
        action="create_patient",
        resource_type="patient",
        resource_id=patient.id,
        user=current_user,
    )
    return patient


@router.get("/", response_model=List[Patient])
async def list_patients(
    institution_id: Optional[str] = None,
    risk_level: Optional[RiskLevel] = None,
    current_user: User = Depends(get_current_user),
) -> List[Patient]:
    ensure_staff(current_user)
    if current_user.role == UserRole.INSTITUTION and institution_id is None:
        institution_id = current_user.institution_id

    patients = patient_service.list_patients(institution_id=institution_id, risk_level=risk_level)

    audit_service.log_event(
        action="list_patients",
        resource_type="patient",
        user=current_user,
        extra={"count": len(patients)},
    )
    return patients


@router.get("/{patient_id}", response_model=Patient)
async def get_patient(patient_id: str, current_user: User = Depends(get_current_user)) -> Patient:
    ensure_self_or_staff(current_user, patient_id)
    patient = patient_service.get_patient(patient_id)

    audit_service.log_event(action="get_patient", resource_type="patient", resource_id=patient_id, user=current_user)
    return patient


@router.get("/{patient_id}/timeline", response_model=List[TimelineEvent])
async def get_patient_timeline(
    patient_id: str,
    current_user: User = Depends(get_current_user),
) -> List[TimelineEvent]:
    ensure_self_or_staff(current_user, patient_id)
    events = patient_summary_service.build_timeline(patient_id, user=current_user)

    audit_service.log_event(
        action="get_patient_timeline",
        resource_type="patient",
        resource_id=patient_id,
        user=current_user,
        extra={"events": len(events)},
    )
    return events


@router.patch("/{patient_id}", response_model=Patient)
async def update_patient(
    patient_id: str,
    payload: PatientUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> Patient:
    ensure_self_or_staff(current_user, patient_id)
    updates = payload.model_dump(exclude_unset=True)
    patient = patient_service.update_patient(patient_id, updates)

    audit_service.log_event(
        action="update_patient",
        resource_type="patient",
        resource_id=patient_id,
        user=current_user,
        extra={"fields": sorted(updates)},
    )
    return patient


@router.get("/{patient_id}/kick-sessions", response_model=List[KickSession])
async def list_kick_sessions(
    patient_id: str,
    since: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
) -> List[KickSession]:
    ensure_self_or_staff(current_user, patient_id)
    return patient_service.list_kick_sessions(patient_id, since=since)


@router.post("/{patient_id}/kick-sessions", response_model=KickSessionResponse, status_code=status.HTTP_201_CREATED)
async def record_kick_session(
    patient_id: str,
    payload: KickSessionCreateRequest,
    current_user: User = Depends(get_current_user),
) -> KickSessionResponse:
    ensure_self_or_staff(current_user, patient_id)

    data = payload.model_dump(exclude_none=True)
    session = KickSession(patient_id=patient_id, **{"date": utcnow(), **data})
    outcome = patient_service.record_kick_session(session)

    audit_service.log_event(
        action="record_kick_session",
        resource_type="kick_session",
        resource_id=session.id,
        user=current_user,
        extra={
            "patient_id": patient_id,
            "risk_level": outcome.risk_level.value,
            "alert_raised": outcome.alert is not None,
        },
    )
    return KickSessionResponse(
        session=outcome.session,
        session_assessment=outcome.session_assessment,
        previous_risk=outcome.previous_risk,
        risk_level=outcome.risk_level,
        alert_id=outcome.alert.id if outcome.alert else None,
    )


@router.get("/{patient_id}/risk", response_model=RiskLevelResponse)
async def get_risk_level(patient_id: str, current_user: User = Depends(get_current_user)) -> RiskLevelResponse:
    ensure_self_or_staff(current_user, patient_id)
    patient_service.get_patient(patient_id)
    sessions = patient_service.list_kick_sessions(patient_id)
    return RiskLevelResponse(
        patient_id=patient_id,
        risk_level=assess_fetal_risk(sessions),
        sessions_considered=len(sessions),
    )


@router.post("/{patient_id}/risk/ai", response_model=AIRiskAssessment)
async def assess_risk_with_ai(
    patient_id: str,
    payload: AIRiskRequest,
    current_user: User = Depends(get_current_user),
) -> AIRiskAssessment:
    ensure_self_or_staff(current_user, patient_id)
    patient = patient_service.get_patient(patient_id)
    sessions = patient_service.list_kick_sessions(patient_id)

    assessment = risk_assessment_service.assess_fetal_risk_with_ai(
        sessions,
        gestational_age=payload.gestational_age or patient.pregnancy_week,
        maternal_factors=payload.maternal_factors,
    )

    audit_service.log_event(
        action="assess_risk_ai",
        resource_type="patient",
        resource_id=patient_id,
        user=current_user,
        extra={"risk": assessment.risk.value, "sessions": len(sessions)},
    )
    return assessment


@router.post("/{patient_id}/symptoms/analyze", response_model=SymptomAnalysis)
async def analyze_symptoms(
    patient_id: str,
    payload: SymptomAnalysisRequest,
    current_user: User = Depends(get_current_user),
) -> SymptomAnalysis:
    ensure_self_or_staff(current_user, patient_id)
    patient = patient_service.get_patient(patient_id)

    analysis = risk_assessment_service.analyze_symptoms_with_ai(
        payload.symptoms,
        gestational_age=payload.gestational_age or patient.pregnancy_week,
        severity=payload.severity,
    )

    # Symptom text is never written to the audit log.
    audit_service.log_event(
        action="analyze_symptoms",
        resource_type="patient",
        resource_id=patient_id,
        user=current_user,
        extra={"symptom_count": len(payload.symptoms), "urgency": analysis.urgency.value},
    )
    return analysis
